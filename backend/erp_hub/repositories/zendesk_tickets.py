from __future__ import annotations

from typing import Optional
from sqlmodel import Session, col, select

from erp_hub.models.zendesk_ticket import ZendeskTicket


class ZendeskTicketsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get_by_zendesk_id(self, zendesk_id: int) -> Optional[ZendeskTicket]:
        return self.session.exec(select(ZendeskTicket).where(ZendeskTicket.zendesk_id == zendesk_id)).first()

    def save(self, ticket: ZendeskTicket, commit: bool = True) -> ZendeskTicket:
        self.session.add(ticket)
        if commit:
            self.session.commit()
            self.session.refresh(ticket)
        return ticket

    def commit(self) -> None:
        self.session.commit()

    def list_linked(self, issue_id: int) -> list[ZendeskTicket]:
        statement = (
            select(ZendeskTicket)
            .where(ZendeskTicket.linked_issue_id == issue_id)
            .order_by(col(ZendeskTicket.updated_at).desc())
        )
        return list(self.session.exec(statement))

    def list(self, limit: int = 100, offset: int = 0) -> list[ZendeskTicket]:
        statement = select(ZendeskTicket).order_by(col(ZendeskTicket.updated_at).desc()).limit(limit).offset(offset)
        return list(self.session.exec(statement))
