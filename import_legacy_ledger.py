import json
import logging
import sys
from uuid import UUID

from app.db.session import SessionLocal
from app.services.legacy_import import import_documents

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def import_legacy_ledger(listing_id: str, path: str) -> None:
    with open(path, encoding="utf-8") as fh:
        documents = json.load(fh)
    if isinstance(documents, dict):
        # {"bookings": [...]} / {"attendees": [...]} exports
        documents = documents.get("bookings") or documents.get("attendees") or []

    db = SessionLocal()
    try:
        result = import_documents(db, UUID(listing_id), documents)
        logger.info("Imported %d ledger entries, skipped %d.", result.imported, len(result.skipped))
        if result.skipped:
            logger.info("Skipped: %s", ", ".join(result.skipped))
    finally:
        db.close()


if __name__ == "__main__":
    if len(sys.argv) != 3:
        print("usage: python import_legacy_ledger.py <listing_id> <export.json>")
        sys.exit(2)
    import_legacy_ledger(sys.argv[1], sys.argv[2])
