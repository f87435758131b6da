from typing import Any

from fastapi import APIRouter, Depends
from supabase import Client

from app.api.deps import get_db
from app.api.middleware.auth import AuthenticatedUser, get_current_user
from app.models.base import CamelModel
from app.services.applications import ApplicationService

router = APIRouter(prefix="/api/partner-applications", tags=["partner-applications"])


class PartnerApplicationRequest(CamelModel):
    organization_name: str | None = None
    contact_name: str | None = None
    contact_email: str | None = None
    contact_phone: str | None = None
    city: str | None = None
    facility_types: list[str] | None = None
    facility_count: int | None = None
    existing_system: str | None = None
    notes: str | None = None


@router.post("")
async def submit_application(
    body: PartnerApplicationRequest,
    auth: AuthenticatedUser = Depends(get_current_user),
    db: Client = Depends(get_db),
) -> dict[str, Any]:
    """Apply to become a venue partner."""
    result = ApplicationService(db).submit(auth.email, body.model_dump())
    return {"success": True, **result}
