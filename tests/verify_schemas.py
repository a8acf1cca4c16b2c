import sys
import os
import traceback

# Add project root to path
sys.path.append(os.getcwd())

print("Starting schema verification...")

try:
    from app import schemas
    print("Schemas package imported successfully.")

    # Try instantiating a few to check for runtime errors in definitions
    from pydantic import ValidationError

    try:
        listing = schemas.ListingCreate(
            kind="activity",
            mode="recurring",
            title="Pottery Workshop",
            price="500",
            weekly_schedule={
                "Saturday": {"is_open": True, "slots": [{"start_time": "10:00", "end_time": "12:00", "capacity": 8}]},
            },
        )
        print(f"ListingCreate schema valid: {listing.title}")
    except ValidationError as e:
        print(f"ListingCreate validation failed: {e}")

    try:
        docs = schemas.ledger_documents.validate_python([
            {"id": "b1", "tickets": {"VIP": 2}, "selectedDate": "2026-11-07", "totalAmount": 1000},
            {"id": "a1", "sessionId": "s1", "ticketType": "VIP", "individualAmount": 500},
        ])
        print(f"Ledger documents parsed: {[type(d).__name__ for d in docs]}")
    except ValidationError as e:
        print(f"Ledger document validation failed: {e}")

    print("SUCCESS: Schemas verified.")

except Exception:
    print("FAILURE: Schema verification failed.")
    traceback.print_exc()
    sys.exit(1)
