"""Shared fixtures for the badge designer tests."""

import pytest

from models.badge_template import Element, Position, Size, Template
from models.registration import RegistrationRecord


@pytest.fixture
def small_template():
    """A 3in x 3in badge (300 x 300 reference px) with one 100 x 40 text box."""
    return Template(
        name="Small",
        size=Size(3, 3),
        unit="in",
        elements=[
            Element(id="title", type="text", field_type="custom", content="Hello",
                    position=Position(10, 10), size=Size(100, 40),
                    style={"fontSize": 16, "zIndex": 1}),
        ],
    )


@pytest.fixture
def registration():
    return RegistrationRecord(
        registration_id="REG-001",
        first_name="Ada",
        last_name="Lovelace",
        organization="Analytical Engines",
        country="United Kingdom",
        category_name="Speaker",
        category_color="#10B981",
        record_id="abc123",
    )
