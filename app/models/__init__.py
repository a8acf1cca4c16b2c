from app.models.listing import Listing, ListingKind, CatalogMode
from app.models.occurrence import Occurrence, TicketTier
from app.models.booking import Booking, PaymentOrder
