from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional
from sqlmodel import Session, col, select

from erp_hub.models.vendor_ticket import VendorTicket


class VendorTicketsRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def create(self, ticket: VendorTicket) -> VendorTicket:
        self.session.add(ticket)
        self.session.commit()
        self.session.refresh(ticket)
        return ticket

    def get(self, ticket_id: int) -> Optional[VendorTicket]:
        return self.session.get(VendorTicket, ticket_id)

    def list_by_issue(self, issue_id: int) -> list[VendorTicket]:
        statement = (
            select(VendorTicket)
            .where(VendorTicket.issue_id == issue_id)
            .order_by(col(VendorTicket.vendor).asc(), col(VendorTicket.date_opened).desc())
        )
        return list(self.session.exec(statement))

    def update(self, ticket: VendorTicket, changes: Dict[str, Any]) -> VendorTicket:
        for key, value in changes.items():
            setattr(ticket, key, value)
        ticket.updated_at = datetime.utcnow()
        self.session.add(ticket)
        self.session.commit()
        self.session.refresh(ticket)
        return ticket

    def delete(self, ticket: VendorTicket) -> None:
        self.session.delete(ticket)
        self.session.commit()
