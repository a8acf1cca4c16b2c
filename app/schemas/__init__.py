from app.schemas.common import (
    PaginatedResponse, ErrorResponse, InsufficientCapacityError, ErrorEnvelope, CapacityErrorEnvelope,
)
from app.schemas.listing import (
    Listing, ListingCreate, ListingUpdate, ListingDatesResponse,
    Occurrence, OccurrenceCreate, TicketTier, TicketTierCreate,
    DaySchedule, SlotDefinition,
)
from app.schemas.availability import AvailabilityResponse, SlotAvailability, TierAvailability
from app.schemas.booking import (
    Booking, Order, OrderCreate, OrderOutcome, PaymentConfirm, PaymentFail,
)
from app.schemas.dashboard import (
    DashboardResponse, AttendeeStats, TicketBreakdown, TierBreakdown,
    Attendee, Permissions, SessionSummary, CheckInRequest, CheckInResponse,
    ManualAttendeeCreate, ManualAttendeeResponse,
)
from app.schemas.ledger import LegacyBookingDoc, SessionAttendeeDoc, ledger_documents
