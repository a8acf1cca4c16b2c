
from app.db.session import Base
from app.models.listing import Listing
from app.models.occurrence import Occurrence, TicketTier
from app.models.booking import Booking, PaymentOrder
