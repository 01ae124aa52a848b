"""
API v1 router setup
Organized into: public (no login) and owner routes (JWT)
"""
from fastapi import APIRouter

from app.api.v1.dashboard import availability, bookings
from app.api.v1.public import availability as public_availability, bookings as public_bookings

api_v1_router = APIRouter()

# ============================================================================
# PUBLIC ROUTES (No authentication required, rate limited per client IP)
# ============================================================================
api_v1_router.include_router(
    public_availability.router,
    prefix="/public",
    tags=["Public"]
)

api_v1_router.include_router(
    public_bookings.router,
    prefix="/public",  # access token in the query string
    tags=["Public"]
)

# ============================================================================
# OWNER ROUTES (JWT authentication; day view and booking creation also
# accept anonymous callers that name an ownerId)
# ============================================================================
api_v1_router.include_router(
    availability.router,
    tags=["Availability"]
)

api_v1_router.include_router(
    bookings.router,
    tags=["Bookings"]
)


# ============================================================================
# ROOT ENDPOINT - API Info
# ============================================================================
@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """
    API information and available endpoints.
    Shows the structure of all API routes organized by authentication type.
    """
    return {
        "version": "1.0",
        "authentication": {
            "public": "No authentication required",
            "owner": "JWT Bearer token required",
            "mixed": "GET /availability/day and POST /bookings accept either a token or ownerId"
        }
    }
