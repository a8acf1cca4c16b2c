from fastapi import APIRouter

# Public - catalog and availability
from app.api.v1.public.listings import router as public_listings_router

# Public - booking attempts and bookings
from app.api.v1.public.bookings import router as bookings_router

# Admin - catalog management
from app.api.v1.admin.listings import router as admin_listings_router

# Admin - dashboard, attendees, check-in
from app.api.v1.admin.dashboard import (
    router as dashboard_router,
    bookings_router as admin_bookings_router,
)

api_router = APIRouter()

# --- Public: catalog and availability ---
api_router.include_router(public_listings_router)

# --- Public: bookings ---
api_router.include_router(bookings_router)

# --- Admin ---
api_router.include_router(admin_listings_router)
api_router.include_router(dashboard_router)
api_router.include_router(admin_bookings_router)
