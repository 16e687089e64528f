"""Event metadata lookups (display only)."""

from typing import Optional

from services.api_client import ApiClient


class EventService:
    def __init__(self, client: Optional[ApiClient] = None):
        self.client = client or ApiClient()

    def get_event(self, event_id: str) -> dict:
        if not event_id:
            raise ValueError("Event ID is required")
        body = self.client.get(f"/events/{event_id}")
        data = body.get("data", body)
        return data if isinstance(data, dict) else {}
