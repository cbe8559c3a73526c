from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlencode
import base64
import logging

import requests

from erp_hub.config import ZendeskSettings
from erp_hub.errors import ExternalServiceError, ServiceDisabledError
from erp_hub.services.ticket_mapping import map_zendesk_priority, map_zendesk_status

logger = logging.getLogger("erp_hub.zendesk")


ERP_SEARCH_QUERIES = [
    "tags:erp",
    "tags:enterprise",
    "tags:system",
    '"ERP" type:ticket',
    '"enterprise resource planning" type:ticket',
]

EMPTY_STATS: Dict[str, int] = {
    "total": 0,
    "open": 0,
    "pending": 0,
    "solved": 0,
    "closed": 0,
    "new": 0,
    "high_priority": 0,
    "urgent_priority": 0,
}


def _parse_ts(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _is_erp_admin_group(name: str) -> bool:
    lowered = (name or "").lower()
    return "erp admin" in lowered or "erp_admin" in lowered


class ZendeskClient:
    """Thin wrapper over the Zendesk REST API (v2)."""

    def __init__(self, config: ZendeskSettings, oauth_token: Optional[str] = None) -> None:
        self.config = config
        # Token stored at runtime by the OAuth callback, else the env one
        self.oauth_token = oauth_token or config.oauth_access_token or None

    @property
    def base_url(self) -> str:
        return self.config.base_url

    def is_configured(self) -> bool:
        return bool(self.config.subdomain and (self.config.api_token or self.oauth_token))

    def _headers(self) -> Dict[str, str]:
        if self.oauth_token:
            return {"Authorization": f"Bearer {self.oauth_token}", "Content-Type": "application/json"}
        if not self.config.api_token:
            raise ServiceDisabledError("No Zendesk authentication configured. Set up OAuth or an API token.")
        if self.config.api_email:
            raw = f"{self.config.api_email}/token:{self.config.api_token}".encode("utf-8")
            return {
                "Authorization": f"Basic {base64.b64encode(raw).decode('ascii')}",
                "Content-Type": "application/json",
            }
        return {"Authorization": f"Bearer {self.config.api_token}", "Content-Type": "application/json"}

    def _request(self, method: str, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        if not self.is_configured():
            raise ServiceDisabledError("Zendesk integration is not configured")
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(
                method,
                url,
                headers=self._headers(),
                params=params,
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.error("Zendesk request to %s failed: %s", path, exc)
            raise ExternalServiceError("Failed to reach Zendesk") from exc

        if not response.ok:
            logger.error("Zendesk API error %s on %s: %s", response.status_code, path, response.text[:500])
            raise ExternalServiceError(
                f"Zendesk API error: {response.status_code} {response.reason}", status_code=response.status_code
            )
        return response.json()

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self._request("GET", path, params=params)

    # Tickets

    def test_connection(self) -> Dict[str, Any]:
        try:
            data = self._get("/users/me.json")
        except (ExternalServiceError, ServiceDisabledError) as exc:
            return {"success": False, "error": str(exc)}
        return {"success": True, "user": data.get("user")}

    def list_tickets(
        self,
        status: Optional[Iterable[str]] = None,
        priority: Optional[Iterable[str]] = None,
        limit: Optional[int] = None,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        created_after: Optional[datetime] = None,
        updated_after: Optional[datetime] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {}
        if limit:
            params["per_page"] = int(limit)
        if sort_by:
            params["sort_by"] = sort_by
        if sort_order:
            params["sort_order"] = sort_order
        tickets: List[Dict[str, Any]] = list(self._get("/tickets.json", params=params or None).get("tickets") or [])

        # The tickets endpoint has no server-side filters for these
        statuses = [s for s in (status or []) if s]
        if statuses:
            tickets = [t for t in tickets if t.get("status") in statuses]
        priorities = [p for p in (priority or []) if p]
        if priorities:
            tickets = [t for t in tickets if t.get("priority") in priorities]
        if created_after is not None:
            after = created_after if created_after.tzinfo else created_after.replace(tzinfo=timezone.utc)
            tickets = [t for t in tickets if (_parse_ts(t.get("created_at")) or after) > after]
        if updated_after is not None:
            after = updated_after if updated_after.tzinfo else updated_after.replace(tzinfo=timezone.utc)
            tickets = [t for t in tickets if (_parse_ts(t.get("updated_at")) or after) > after]
        return tickets

    def get_ticket(self, ticket_id: int) -> Dict[str, Any]:
        return self._get(f"/tickets/{int(ticket_id)}.json").get("ticket") or {}

    def recent_tickets(self, days: int = 7) -> List[Dict[str, Any]]:
        threshold = datetime.now(timezone.utc) - timedelta(days=days)
        return self.list_tickets(created_after=threshold, sort_by="created_at", sort_order="desc")

    def high_priority_tickets(self) -> List[Dict[str, Any]]:
        return self.list_tickets(
            priority=["urgent", "high"],
            status=["new", "open", "pending"],
            sort_by="priority",
            sort_order="desc",
        )

    def search(
        self,
        query: str,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        per_page: Optional[int] = None,
        page: Optional[int] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"query": query, "sort_by": sort_by, "sort_order": sort_order}
        if per_page:
            params["per_page"] = int(per_page)
        if page:
            params["page"] = int(page)
        return self._get("/search.json", params=params)

    def search_tickets(self, query: str) -> List[Dict[str, Any]]:
        results = self.search(query).get("results") or []
        return [r for r in results if r.get("result_type") == "ticket"]

    def ticket_stats(self) -> Dict[str, int]:
        try:
            by_status = {s: len(self.list_tickets(status=[s])) for s in ("open", "pending", "solved", "closed", "new")}
            pressing = self.list_tickets(priority=["high", "urgent"], status=["new", "open", "pending"])
        except (ExternalServiceError, ServiceDisabledError):
            logger.warning("Zendesk stats unavailable, reporting zeros", exc_info=True)
            return dict(EMPTY_STATS)
        return {
            "total": sum(by_status.values()),
            **by_status,
            "high_priority": len([t for t in pressing if t.get("priority") == "high"]),
            "urgent_priority": len([t for t in pressing if t.get("priority") == "urgent"]),
        }

    def erp_support_tickets(self) -> List[Dict[str, Any]]:
        seen: Dict[Any, Dict[str, Any]] = {}
        for query in ERP_SEARCH_QUERIES:
            try:
                tickets = self.search_tickets(query)
            except ExternalServiceError:
                logger.warning("Zendesk search failed for %r", query)
                continue
            for ticket in tickets:
                seen.setdefault(ticket.get("id"), ticket)
        return list(seen.values())

    # Users and groups

    def get_user(self, user_id: int) -> Dict[str, Any]:
        return self._get(f"/users/{int(user_id)}.json").get("user") or {}

    def show_many_users(self, user_ids: Iterable[int]) -> Dict[int, Dict[str, Any]]:
        ids = list(dict.fromkeys(int(i) for i in user_ids if i))
        if not ids:
            return {}
        try:
            users = self._get("/users/show_many.json", params={"ids": ",".join(str(i) for i in ids)}).get("users") or []
        except ExternalServiceError:
            logger.warning("Failed to fetch Zendesk requester details")
            return {}
        return {int(u["id"]): u for u in users if u.get("id") is not None}

    def list_groups(self) -> List[Dict[str, Any]]:
        return list(self._get("/groups.json").get("groups") or [])

    def _requester(self, ticket: Dict[str, Any], users: Dict[int, Dict[str, Any]]) -> Optional[Dict[str, str]]:
        requester_id = ticket.get("requester_id")
        user = users.get(int(requester_id)) if requester_id else None
        if not user:
            return None
        return {"name": user.get("name") or "Unknown", "email": user.get("email") or ""}

    def erp_admin_group_tickets(self, per_page: int = 50, page: int = 1) -> Dict[str, Any]:
        """Tickets assigned to the ERP Admin group, newest update first.

        ``group`` is None when no such group exists; ``available_groups`` then
        lists what Zendesk returned.
        """
        groups = self.list_groups()
        group = next((g for g in groups if _is_erp_admin_group(g.get("name", ""))), None)
        if group is None:
            return {
                "group": None,
                "available_groups": [{"id": g.get("id"), "name": g.get("name")} for g in groups],
            }
        data = self.search(
            f"type:ticket group_id:{group['id']}",
            sort_by="updated_at",
            sort_order="desc",
            per_page=per_page,
            page=page,
        )
        results = data.get("results") or []
        users = self.show_many_users(t.get("requester_id") for t in results)
        tickets = [
            {
                "ticketId": t.get("id"),
                "subject": t.get("subject"),
                "description": t.get("description"),
                "status": str(t.get("status") or "").upper(),
                "priority": t.get("priority"),
                "type": t.get("type"),
                "requester": self._requester(t, users),
                "updatedAt": t.get("updated_at"),
                "createdAt": t.get("created_at"),
            }
            for t in results
        ]
        total = int(data.get("count") or 0)
        return {
            "group": {"id": group.get("id"), "name": group.get("name"), "description": group.get("description")},
            "tickets": tickets,
            "total_count": total,
            "has_next_page": bool(data.get("next_page")),
            "has_prev_page": bool(data.get("previous_page")),
            "message": f"Found {len(tickets)} tickets (page {page}) for {group.get('name')} - {total} total",
        }

    def search_for_import(self, search: str = "") -> Dict[str, Any]:
        """Requester-enriched ticket search; never raises."""
        if not self.config.subdomain:
            return {"tickets": [], "count": 0, "message": "Zendesk subdomain not configured."}
        if not self.is_configured():
            return {"tickets": [], "count": 0, "message": "Zendesk access token not configured."}
        query = f'type:ticket "{search}"' if search else "type:ticket status<solved"
        try:
            data = self.search(query, sort_by="updated_at", sort_order="desc", per_page=50)
        except (ExternalServiceError, ServiceDisabledError):
            return {
                "tickets": [],
                "count": 0,
                "message": "Unable to search Zendesk tickets. Please check your authentication.",
            }
        results = data.get("results") or data.get("tickets") or []
        users = self.show_many_users(t.get("requester_id") for t in results)
        tickets = [
            {
                "ticketId": t.get("id"),
                "subject": t.get("subject") or "No subject",
                "description": t.get("description") or "",
                "status": map_zendesk_status(t.get("status")).value,
                "priority": map_zendesk_priority(t.get("priority")).value,
                "requester": self._requester(t, users),
                "createdAt": t.get("created_at"),
                "updatedAt": t.get("updated_at"),
            }
            for t in results
        ]
        if search:
            message = f'Found {len(tickets)} tickets matching "{search}"'
        else:
            message = f"Showing {len(tickets)} recent tickets"
        return {"tickets": tickets, "count": len(tickets), "message": message}

    # OAuth

    def authorize_url(self, state: str) -> str:
        if not self.config.oauth_ready():
            raise ServiceDisabledError("OAuth configuration is incomplete")
        query = urlencode(
            {
                "response_type": "code",
                "client_id": self.config.oauth_client_id,
                "redirect_uri": self.config.oauth_redirect_uri,
                "scope": "read write",
                "state": state,
            }
        )
        return f"https://{self.config.subdomain}.zendesk.com/oauth/authorizations/new?{query}"

    def exchange_code(self, code: str) -> Dict[str, Any]:
        if not (self.config.oauth_ready() and self.config.oauth_client_secret):
            raise ServiceDisabledError("OAuth configuration is incomplete")
        payload = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.config.oauth_client_id,
            "client_secret": self.config.oauth_client_secret,
            "redirect_uri": self.config.oauth_redirect_uri,
            "scope": "read write",
        }
        try:
            response = requests.post(
                f"https://{self.config.subdomain}.zendesk.com/oauth/tokens",
                json=payload,
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise ExternalServiceError("Failed to reach Zendesk") from exc
        if not response.ok:
            raise ExternalServiceError(f"Token exchange failed: {response.status_code}", status_code=response.status_code)
        tokens = response.json()
        if not tokens.get("access_token"):
            raise ExternalServiceError("Token exchange returned no access token")
        logger.info("Zendesk OAuth token received (scope=%s)", tokens.get("scope"))
        return tokens
