"""Primary API router definition."""

from fastapi import APIRouter

from . import account, auth, redemptions

api_router = APIRouter()

api_router.include_router(auth.router)
api_router.include_router(account.router)
api_router.include_router(redemptions.router)


@api_router.get("/health", tags=["health"])
async def healthcheck() -> dict[str, str]:
    """Basic health check endpoint."""
    return {"status": "ok"}
