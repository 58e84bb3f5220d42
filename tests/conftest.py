"""Pytest configuration."""

import pytest

try:
    import pytest_homeassistant_custom_component  # noqa: F401

    PHCC_AVAILABLE = True
except ImportError:
    PHCC_AVAILABLE = False


if PHCC_AVAILABLE:

    @pytest.fixture(autouse=True)
    def auto_enable_custom_integrations(request):
        """Let Home Assistant load integrations from custom_components in HA tests."""
        if "hass" in request.fixturenames:
            request.getfixturevalue("enable_custom_integrations")
        yield
