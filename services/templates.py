"""Badge template persistence backed by the Onsite Atlas API."""

from typing import List, Optional

from models.badge_template import Template
from services.api_client import ApiClient
from designer.errors import ExternalServiceError


def _template_from(body: dict) -> Template:
    data = body.get("data", body)
    if not isinstance(data, dict):
        raise ExternalServiceError("Unexpected template response from server")
    return Template.from_dict(data)


class TemplateService:
    """CRUD for badge templates (``/badge-templates``)."""

    def __init__(self, client: Optional[ApiClient] = None):
        self.client = client or ApiClient()

    def list(self, event_id: Optional[str] = None) -> List[Template]:
        params = {"event": event_id} if event_id else None
        body = self.client.get("/badge-templates", params=params)
        data = body.get("data") or []
        return [Template.from_dict(d) for d in data if isinstance(d, dict)]

    def get(self, template_id: str) -> Template:
        return _template_from(self.client.get(f"/badge-templates/{template_id}"))

    def create(self, template: Template) -> Template:
        payload = template.to_dict()
        payload.pop("_id", None)
        return _template_from(self.client.post("/badge-templates", json=payload))

    def update(self, template_id: str, template: Template) -> Template:
        return _template_from(
            self.client.put(f"/badge-templates/{template_id}", json=template.to_dict())
        )

    def remove(self, template_id: str) -> None:
        self.client.delete(f"/badge-templates/{template_id}")

    def duplicate(self, template_id: str, event_id: Optional[str] = None) -> Template:
        payload = {"event": event_id} if event_id else {}
        return _template_from(
            self.client.post(f"/badge-templates/{template_id}/duplicate", json=payload)
        )

    def set_default(self, event_id: str, template_id: str) -> None:
        if not event_id or not template_id:
            raise ValueError("Event ID and Template ID are required to set the default template")
        self.client.post(f"/badge-templates/{event_id}/{template_id}/set-default")
