import pytest

from infrastructure.events import reset_event_bus


@pytest.fixture(autouse=True)
def fresh_event_bus():
    """Every test starts with an empty in-memory event bus."""
    reset_event_bus()
    yield
    reset_event_bus()
