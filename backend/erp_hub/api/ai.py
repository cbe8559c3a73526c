from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlmodel import Session

from erp_hub.config import Settings
from erp_hub.deps import get_llm_client, get_session, get_settings
from erp_hub.errors import ServiceDisabledError
from erp_hub.repositories.categories import CategoriesRepository
from erp_hub.services import email_assistant, reports, ticket_triage
from erp_hub.services.llm_client import LLMClient
import logging

logger = logging.getLogger("erp_hub.api")


router = APIRouter(prefix="/api/ai", tags=["ai"])


class EmailActionRequest(BaseModel):
    action: str = Field(min_length=1)
    content: str = Field(min_length=1)
    context: Optional[Dict[str, Any]] = None


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1)
    conversation: List[ChatMessage] = Field(default_factory=list)


class TicketProcessRequest(BaseModel):
    tickets: Union[Dict[str, Any], List[Dict[str, Any]]]
    mode: Literal["single", "batch"] = "single"


def _require_llm(llm: Optional[LLMClient]) -> LLMClient:
    if llm is None:
        raise ServiceDisabledError("AI features are disabled. OpenAI API key not configured.")
    return llm


@router.post("/email")
def email_action(body: EmailActionRequest, llm: Optional[LLMClient] = Depends(get_llm_client)) -> Dict[str, Any]:
    client = _require_llm(llm)
    try:
        result = email_assistant.run_email_action(client, body.action, body.content, body.context)
    except email_assistant.UnsupportedActionError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    if not result:
        raise HTTPException(status_code=502, detail="No response generated from OpenAI")
    return {"action": body.action, "original_content": body.content, "result": result}


@router.post("/chat")
def chat(
    body: ChatRequest,
    session: Session = Depends(get_session),
    settings: Settings = Depends(get_settings),
    llm: Optional[LLMClient] = Depends(get_llm_client),
) -> Dict[str, Any]:
    client = _require_llm(llm)
    context = reports.erp_context(session, tz_name=settings.display_timezone)
    reply, conversation = email_assistant.chat(
        client, body.message, [m.model_dump() for m in body.conversation], context
    )
    return {"message": reply, "conversation": conversation}


@router.post("/zendesk-process")
def process_zendesk_tickets(
    body: TicketProcessRequest,
    session: Session = Depends(get_session),
    llm: Optional[LLMClient] = Depends(get_llm_client),
) -> Dict[str, Any]:
    client = _require_llm(llm)
    tickets = body.tickets if isinstance(body.tickets, list) else [body.tickets]
    if not tickets:
        raise HTTPException(status_code=400, detail="At least one ticket is required")
    categories = CategoriesRepository(session).list()
    processed = [ticket_triage.triage_ticket(client, ticket, categories) for ticket in tickets]
    logger.info("Triaged %d Zendesk ticket(s)", len(processed))
    return {
        "success": True,
        "processed_tickets": processed[0] if body.mode == "single" else processed,
        "original_count": len(tickets),
    }
