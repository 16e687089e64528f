"""Attendee registration records consumed by badge data binding."""

from dataclasses import dataclass, asdict


@dataclass
class RegistrationRecord:
    """Read-only attendee fields used when filling a badge."""
    registration_id: str = ""
    first_name: str = ""
    last_name: str = ""
    name: str = ""
    organization: str = ""
    country: str = ""
    email: str = ""
    designation: str = ""
    phone: str = ""
    category_name: str = ""
    category_color: str = ""
    badge_printed: bool = False
    record_id: str = ""  # backend document id, used for status updates

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return f"{self.first_name} {self.last_name}".strip()

    def field_value(self, field_type: str) -> str:
        """Resolve a data binding; unknown bindings resolve to ''."""
        if field_type == "name":
            return self.display_name
        if field_type == "organization":
            return self.organization
        if field_type == "registrationId":
            return self.registration_id
        if field_type == "category":
            return self.category_name
        if field_type == "country":
            return self.country
        return ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "RegistrationRecord":
        """Normalize flat or ``personalInfo``-nested backend registrations."""
        if not d:
            return cls()
        personal = d.get("personalInfo") or {}

        def pick(key: str) -> str:
            value = personal.get(key) or d.get(key) or ""
            return str(value)

        category = d.get("category")
        if isinstance(category, dict):
            category_name = category.get("name") or ""
            category_color = category.get("color") or ""
        else:
            category_name = d.get("categoryName") or ""
            category_color = d.get("categoryColor") or ""

        return cls(
            registration_id=str(d.get("registrationId") or ""),
            first_name=pick("firstName"),
            last_name=pick("lastName"),
            name=pick("name"),
            organization=pick("organization"),
            country=pick("country"),
            email=pick("email"),
            designation=pick("designation"),
            phone=pick("phone"),
            category_name=str(category_name),
            category_color=str(category_color),
            badge_printed=bool(d.get("badgePrinted", False)),
            record_id=str(d.get("_id") or d.get("id") or ""),
        )


def sample_registration() -> RegistrationRecord:
    """Placeholder attendee shown in the designer preview."""
    return RegistrationRecord(
        registration_id="REG-12345",
        first_name="John",
        last_name="Doe",
        organization="Acme Corporation",
        country="United States",
        email="john.doe@example.com",
        category_name="Attendee",
        category_color="#3B82F6",
    )
