"""In-memory application state singleton for the web badge designer."""

import threading
from typing import Dict, List, Optional

from designer.session import DesignerSession
from models.registration import RegistrationRecord, sample_registration
from services.events import EventService
from services.registrations import RegistrationService
from services.templates import TemplateService


class AppState:
    """Holds the designer session, the listed registrations and export tasks."""

    def __init__(self):
        self.session = DesignerSession()
        self.event_id: str = ""
        self.sample: RegistrationRecord = sample_registration()
        # Last listed page, keyed by backend id (falls back to registration id)
        self.registrations: Dict[str, RegistrationRecord] = {}
        # PDF export tasks: {task_id: {"status", "progress", "total", "path", "error", "failures"}}
        self.export_tasks: dict = {}
        self.lock = threading.Lock()

        self.templates = TemplateService()
        self.registration_service = RegistrationService()
        self.events = EventService()

    def reset_session(self):
        self.session = DesignerSession()

    def remember_registrations(self, records: List[RegistrationRecord]) -> None:
        self.registrations = {(r.record_id or r.registration_id): r for r in records}

    def remember_registration(self, record: RegistrationRecord) -> None:
        """Add one record (e.g. a search hit off the listed page) to the cache."""
        self.registrations[record.record_id or record.registration_id] = record

    def find_registration(self, key: str) -> Optional[RegistrationRecord]:
        return self.registrations.get(key)

    def mark_printed(self, record: RegistrationRecord) -> None:
        self.registration_service.mark_badge_printed(
            self.event_id, record.record_id or record.registration_id
        )


# Module-level singleton
state = AppState()
