"""Fixtures for the intake lifecycle tests."""

from __future__ import annotations

import pytest

from intake_fakes import CATEGORY_ID, FakePlatform, ManualTimers
from modules.intake import IntakeController, IntakeSettings


@pytest.fixture
def timers() -> ManualTimers:
    return ManualTimers()


@pytest.fixture
def platform() -> FakePlatform:
    return FakePlatform()


@pytest.fixture
def settings() -> IntakeSettings:
    return IntakeSettings(category_id=CATEGORY_ID, first_message_timeout=10.0, close_delay=3600.0)


@pytest.fixture
def controller(platform, settings, timers) -> IntakeController:
    return IntakeController(platform, settings, timers=timers)
