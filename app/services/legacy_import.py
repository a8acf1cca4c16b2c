"""
Append ledger documents exported from the legacy document store.

Both legacy bookings and session-centric attendee documents are accepted; they
are normalized into ``LedgerRecord`` first and written as ordinary ledger
entries. Documents whose payment id is already in the ledger are skipped, so
re-running an import is harmless.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List
from uuid import UUID

from sqlalchemy.orm import Session

from app.services import ledger
from app.utils.records import LedgerRecord, normalize_documents

logger = logging.getLogger(__name__)

UNKNOWN_BUYER = "legacy-import"


@dataclass
class ImportResult:
    imported: int = 0
    skipped: List[str] = field(default_factory=list)


def _decimal(value):
    return Decimal(str(value)) if value is not None else None


def import_records(db: Session, listing_id: UUID, records: Iterable[LedgerRecord]) -> ImportResult:
    listing = ledger.get_listing(db, listing_id, lock=True)
    result = ImportResult()
    seen = set()
    for record in records:
        if record.slot_date is None or not record.start_time or not record.end_time:
            logger.warning("Skipping %s: no slot date/time", record.id)
            result.skipped.append(record.id)
            continue
        if record.payment_id and (record.payment_id in seen or ledger.payment_recorded(db, record.payment_id)):
            logger.info("Skipping %s: payment %s already in the ledger", record.id, record.payment_id)
            result.skipped.append(record.id)
            continue

        fields = dict(
            slot_date=record.slot_date,
            start_time=record.start_time,
            end_time=record.end_time,
            tickets=record.tickets or None,
            ticket_type=record.ticket_type,
            quantity=record.quantity,
            amount=_decimal(record.amount),
            individual_amount=_decimal(record.individual_amount),
            buyer_id=record.buyer_id or UNKNOWN_BUYER,
            name=record.name,
            email=record.email,
            phone=record.phone,
            payment_id=record.payment_id,
            order_id=record.order_id,
            payment_status=record.payment_status or "confirmed",
            status=record.status,
            checked_in=record.checked_in,
            check_in_time=record.check_in_time,
        )
        if record.created_at:
            fields["created_at"] = record.created_at
        ledger.append_booking(db, listing, **fields)
        if record.payment_id:
            seen.add(record.payment_id)
        result.imported += 1

    db.commit()
    return result


def import_documents(db: Session, listing_id: UUID, documents: Iterable[dict]) -> ImportResult:
    return import_records(db, listing_id, normalize_documents(documents))
