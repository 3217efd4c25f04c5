from fastapi import APIRouter

from app.api.routes import inquiries, invoices, legal, outbox, payments

api_router = APIRouter()

# Health check endpoint
@api_router.get("/health-check/", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "quote-to-cash"}

# Include all API routes
api_router.include_router(inquiries.router)
api_router.include_router(legal.router)
api_router.include_router(invoices.router)
api_router.include_router(invoices.public_router)
api_router.include_router(payments.router)
api_router.include_router(outbox.router)
