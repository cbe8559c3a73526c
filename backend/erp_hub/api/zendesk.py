from __future__ import annotations

from typing import Any, Dict, List, Optional
import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import Session

from erp_hub.deps import get_session, get_zendesk_client
from erp_hub.errors import NotFoundError, ServiceDisabledError
from erp_hub.repositories.settings import save_app_settings
from erp_hub.services import zendesk_sync
from erp_hub.services.zendesk_client import ZendeskClient

logger = logging.getLogger("erp_hub.api")


router = APIRouter(prefix="/api/zendesk", tags=["zendesk"])


class ZendeskActionRequest(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    action: str
    ticket_id: Optional[int] = Field(default=None, alias="ticketId")
    issue_id: Optional[int] = Field(default=None, alias="issueId")
    ticket_data: Optional[Dict[str, Any]] = Field(default=None, alias="ticketData")
    tickets: Optional[List[Dict[str, Any]]] = None


def _require_configured(client: ZendeskClient) -> ZendeskClient:
    if not client.is_configured():
        raise ServiceDisabledError(
            "Zendesk integration is not configured. Set ZENDESK_SUBDOMAIN and ZENDESK_API_TOKEN or connect via OAuth."
        )
    return client


def _split(value: Optional[str]) -> Optional[List[str]]:
    if not value:
        return None
    return [part.strip() for part in value.split(",") if part.strip()]


@router.get("")
def zendesk_query(
    action: Optional[str] = None,
    status: Optional[str] = None,
    priority: Optional[str] = None,
    limit: Optional[int] = None,
    recent: Optional[int] = None,
    high_priority: bool = False,
    erp_only: bool = False,
    query: Optional[str] = None,
    client: ZendeskClient = Depends(get_zendesk_client),
) -> Any:
    _require_configured(client)
    if action == "test":
        return client.test_connection()
    if action == "stats":
        return client.ticket_stats()
    if action == "tickets":
        if recent:
            tickets = client.recent_tickets(recent)
        elif high_priority:
            tickets = client.high_priority_tickets()
        elif erp_only:
            tickets = client.erp_support_tickets()
        else:
            tickets = client.list_tickets(
                status=_split(status),
                priority=_split(priority),
                limit=limit,
                sort_by="updated_at",
                sort_order="desc",
            )
        return {"tickets": tickets}
    if action == "search":
        if not query:
            raise HTTPException(status_code=400, detail="Search query is required")
        return {"tickets": client.search_tickets(query)}
    raise HTTPException(status_code=400, detail="Invalid action. Supported actions: test, stats, tickets, search")


@router.post("")
def zendesk_action(
    body: ZendeskActionRequest,
    session: Session = Depends(get_session),
    client: ZendeskClient = Depends(get_zendesk_client),
) -> Dict[str, Any]:
    _require_configured(client)
    if body.action == "sync":
        result = zendesk_sync.sync_tickets(session, client, body.tickets)
        return {"success": True, "action": "sync", **result}
    if body.action == "link_issue":
        if not body.ticket_id or not body.issue_id:
            raise HTTPException(status_code=400, detail="ticketId and issueId are required")
        try:
            ticket = zendesk_sync.link_ticket(session, body.issue_id, body.ticket_id, body.ticket_data)
        except NotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except ValueError:
            # Not mirrored yet and no payload: fetch it from Zendesk
            data = client.get_ticket(body.ticket_id)
            ticket = zendesk_sync.link_ticket(session, body.issue_id, body.ticket_id, data)
        return {"success": True, "ticket": ticket}
    raise HTTPException(status_code=400, detail="Invalid action. Supported actions: sync, link_issue")


@router.get("/tickets")
def search_tickets_for_import(search: str = "", client: ZendeskClient = Depends(get_zendesk_client)) -> Dict[str, Any]:
    return client.search_for_import(search.strip())


@router.get("/tickets/erp-admin")
def erp_admin_tickets(
    per_page: int = Query(default=50, ge=1, le=100),
    page: int = Query(default=1, ge=1),
    client: ZendeskClient = Depends(get_zendesk_client),
) -> Any:
    _require_configured(client)
    result = client.erp_admin_group_tickets(per_page=per_page, page=page)
    if result.get("group") is None:
        return JSONResponse(
            status_code=404,
            content={"error": "ERP Admin group not found", "details": {"available_groups": result["available_groups"]}},
        )
    return {"success": True, "current_page": page, "per_page": per_page, **result}


@router.get("/oauth/authorize")
def oauth_authorize(client: ZendeskClient = Depends(get_zendesk_client)) -> RedirectResponse:
    url = client.authorize_url(state=secrets.token_urlsafe(16))
    return RedirectResponse(url, status_code=307)


@router.get("/oauth/callback")
def oauth_callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    session: Session = Depends(get_session),
    client: ZendeskClient = Depends(get_zendesk_client),
) -> Dict[str, Any]:
    if error:
        raise HTTPException(status_code=400, detail=f"OAuth authorization failed: {error_description or error}")
    if not code:
        raise HTTPException(status_code=400, detail="Authorization code is missing")
    tokens = client.exchange_code(code)
    save_app_settings(
        session,
        {
            "zendesk": {
                "oauth_access_token": tokens.get("access_token"),
                "token_type": tokens.get("token_type"),
                "scope": tokens.get("scope"),
            }
        },
    )
    return {
        "success": True,
        "message": "OAuth authorization completed successfully",
        "token_type": tokens.get("token_type"),
        "scope": tokens.get("scope"),
        "has_refresh_token": bool(tokens.get("refresh_token")),
    }
