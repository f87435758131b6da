"""
Venue partner applications: submission by players and review by admins.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from supabase import Client

from app.db.repository import PartnerApplicationRepository, ProfileRepository, VenueRepository
from app.errors import BookingValidationError, NotFoundError

logger = structlog.get_logger()

APPLICATION_STATUSES = ("pending", "accepted", "rejected")


def _text(value: Any) -> str:
    return str(value).strip() if value is not None else ""


def map_application(row: dict) -> dict[str, Any]:
    return {
        "id": row["id"],
        "organization_name": row.get("organization_name"),
        "contact_name": row.get("contact_name"),
        "contact_email": row.get("contact_email"),
        "contact_phone": row.get("contact_phone"),
        "city": row.get("city"),
        "facility_types": row.get("facility_types") if isinstance(row.get("facility_types"), list) else [],
        "facility_count": row.get("facility_count"),
        "existing_system": row.get("existing_system"),
        "notes": row.get("notes"),
        "status": row.get("status") or "pending",
        "handled_by": row.get("handled_by"),
        "decision_note": row.get("decision_note"),
        "created_at": row.get("created_at"),
        "reviewed_at": row.get("reviewed_at"),
    }


class ApplicationService:
    def __init__(self, client: Client):
        self.applications = PartnerApplicationRepository(client)
        self.profiles = ProfileRepository(client)
        self.venues = VenueRepository(client)

    def submit(self, user_email: str | None, form: dict[str, Any]) -> dict[str, Any]:
        """Record a pending application. The signed-in user's email wins over the form's."""
        organization_name = _text(form.get("organization_name"))
        contact_name = _text(form.get("contact_name"))
        contact_email = (_text(user_email) or _text(form.get("contact_email"))).lower()

        if not organization_name:
            raise BookingValidationError("Nama brand venue harus diisi.")
        if not contact_name:
            raise BookingValidationError("Nama penanggung jawab wajib diisi.")
        if not contact_email or "@" not in contact_email:
            raise BookingValidationError("Masukkan email yang valid.")

        facility_types = form.get("facility_types")
        row = self.applications.create(
            organization_name=organization_name,
            contact_name=contact_name,
            contact_email=contact_email,
            contact_phone=_text(form.get("contact_phone")) or None,
            city=_text(form.get("city")) or None,
            facility_types=facility_types if isinstance(facility_types, list) else [],
            facility_count=form.get("facility_count"),
            existing_system=_text(form.get("existing_system")) or None,
            notes=_text(form.get("notes")) or None,
        )
        return {
            "application": map_application(row),
            "message": "Aplikasi kamu sudah kami terima. Tim CourtEase akan menghubungi dalam 1x24 jam kerja.",
        }

    def list(self, status: str | None = None, limit: int = 100) -> dict[str, Any]:
        """Applications (newest first) plus pending / accepted / rejected buckets."""
        rows = [map_application(row) for row in self.applications.list(status, limit)]
        buckets = {name: [row for row in rows if row["status"] == name] for name in APPLICATION_STATUSES}
        return {"applications": rows, **buckets}

    def _get(self, application_id: str) -> dict:
        application = self.applications.get(application_id)
        if not application:
            raise NotFoundError("Application not found")
        return application

    def approve(self, application_id: str, handled_by: str | None, now: datetime | None = None) -> dict[str, Any]:
        """
        Accept an application and turn the applicant into a venue partner.

        The applicant is found by contact email. An existing venue partner
        only has the application marked accepted; anyone else is promoted
        and gets an active, verified venue.
        """
        stamp = (now or datetime.now(timezone.utc)).isoformat()
        application = self._get(application_id)

        profile = self.profiles.find_by_email(application.get("contact_email") or "")
        if not profile:
            raise NotFoundError("User profile not found for this application")

        decision = {"status": "accepted", "handled_by": handled_by, "reviewed_at": stamp}

        if profile.get("role") == "venue_partner":
            self.applications.update(application_id, **decision)
            logger.info("Application accepted for existing partner", application_id=application_id)
            return {
                "success": True,
                "message": "Application accepted successfully (user is already a venue partner)",
            }

        self.applications.update(application_id, **decision)
        self.profiles.update_role(profile["id"], "venue_partner")
        venue = self.venues.create(
            name=application.get("organization_name"),
            owner_profile_id=profile["id"],
            description=application.get("notes"),
            contact_phone=application.get("contact_phone"),
            contact_email=application.get("contact_email"),
            city=application.get("city"),
            venue_status="active",
            verified_at=stamp,
        )
        logger.info(
            "Application accepted and partner onboarded",
            application_id=application_id,
            profile_id=profile["id"],
            venue_id=venue["id"],
        )
        return {
            "success": True,
            "message": "Application accepted and user upgraded to venue partner successfully",
            "venue_id": venue["id"],
        }

    def reject(
        self,
        application_id: str,
        handled_by: str | None,
        note: str | None = None,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        self._get(application_id)
        self.applications.update(
            application_id,
            status="rejected",
            handled_by=handled_by,
            decision_note=_text(note) or None,
            reviewed_at=(now or datetime.now(timezone.utc)).isoformat(),
        )
        logger.info("Application rejected", application_id=application_id)
        return {"success": True, "message": "Application rejected successfully"}
