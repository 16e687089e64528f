"""Registration listing and badge status updates."""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from models.registration import RegistrationRecord
from services.api_client import ApiClient
from designer.errors import ExternalServiceError

logger = logging.getLogger("OnsiteAtlas.services.registrations")

# Query filters forwarded to the backend as-is
FILTER_KEYS = ("search", "category", "status", "sort", "badgePrinted", "registrationType")


@dataclass
class RegistrationPage:
    items: List[RegistrationRecord] = field(default_factory=list)
    page: int = 1
    page_size: int = 0
    total: int = 0

    def to_dict(self) -> dict:
        return {
            "items": [r.to_dict() for r in self.items],
            "page": self.page,
            "pageSize": self.page_size,
            "total": self.total,
        }


class RegistrationService:
    def __init__(self, client: Optional[ApiClient] = None):
        self.client = client or ApiClient()

    def list(self, event_id: str, filters: Optional[dict] = None,
             page: int = 1, page_size: int = 100) -> RegistrationPage:
        if not event_id:
            raise ValueError("Event ID is required")
        filters = filters or {}
        params = {"page": page, "limit": page_size}
        for key in FILTER_KEYS:
            value = filters.get(key)
            if value is not None and value != "":
                params[key] = value

        body = self.client.get(f"/events/{event_id}/registrations", params=params)
        data = body.get("data") or []
        pagination = (body.get("meta") or {}).get("pagination") or {}
        items = [RegistrationRecord.from_dict(d) for d in data if isinstance(d, dict)]
        return RegistrationPage(
            items=items,
            page=int(pagination.get("page", page)),
            page_size=int(pagination.get("limit", page_size)),
            total=int(pagination.get("total", len(items))),
        )

    def get(self, event_id: str, registration_id: str) -> RegistrationRecord:
        body = self.client.get(f"/events/{event_id}/registrations/{registration_id}")
        data = body.get("data", body)
        if not isinstance(data, dict):
            raise ExternalServiceError("Unexpected registration response from server")
        return RegistrationRecord.from_dict(data)

    def mark_badge_printed(self, event_id: str, registration_id: str) -> None:
        """Record that a badge was produced (the backend's check-in endpoint)."""
        if not event_id or not registration_id:
            raise ValueError("Event ID and Registration ID are required")
        self.client.patch(f"/events/{event_id}/registrations/{registration_id}/check-in")
        logger.info("Marked badge printed for registration %s", registration_id)
