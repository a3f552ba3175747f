"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from twinpane.editor.freeze import FreezeSetManager
from twinpane.ui.domain.sync_controller import SyncController
from twinpane.ui.events import EventBus


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def freeze_manager() -> FreezeSetManager:
    return FreezeSetManager(can_freeze=True)


@pytest.fixture
def controller(event_bus: EventBus, freeze_manager: FreezeSetManager) -> SyncController:
    return SyncController(event_bus=event_bus, freeze_manager=freeze_manager)
