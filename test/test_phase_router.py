"""Tests for PhaseRouter"""

from unittest.mock import MagicMock

import pytest

from entrypoints.phase_router import PhaseRouter
from launch.models import AppPhase, PhaseSnapshot


@pytest.fixture
def pages():
  return MagicMock()


@pytest.fixture
def router(manager, pages):
  return PhaseRouter(manager, show_local_page=pages)


def test_web_container_creates_primary(router, manager, pages):
  router.on_snapshot(PhaseSnapshot(phase=AppPhase.WEB_CONTAINER, destination="https://x"))

  assert manager.primary is not None
  assert manager.primary.loads == ["https://x"]
  pages.assert_not_called()


def test_primary_created_callback(manager, pages):
  created = MagicMock()
  router = PhaseRouter(manager, show_local_page=pages, on_primary_created=created)

  router.on_snapshot(PhaseSnapshot(phase=AppPhase.WEB_CONTAINER, destination="https://x"))

  created.assert_called_once_with()


def test_legacy_shows_local_page(router, manager, pages):
  router.on_snapshot(PhaseSnapshot(phase=AppPhase.LEGACY_MODE))

  pages.assert_called_once_with("/legacy")
  assert manager.primary is None


def test_offline_then_restore_resumes_last_good(router, manager, pages):
  router.on_snapshot(PhaseSnapshot(phase=AppPhase.WEB_CONTAINER, destination="https://x"))
  primary = manager.primary
  manager.on_navigation_settled(primary, "https://x/deep")

  router.on_snapshot(PhaseSnapshot(phase=AppPhase.NO_CONNECTION, destination="https://x"))
  router.on_snapshot(PhaseSnapshot(phase=AppPhase.WEB_CONTAINER, destination="https://x"))

  pages.assert_called_once_with("/offline")
  assert manager.primary is primary
  assert primary.loads == ["https://x", "https://x/deep"]


def test_push_flag_only_change_is_ignored(router, manager, pages):
  router.on_snapshot(PhaseSnapshot(phase=AppPhase.WEB_CONTAINER, destination="https://x"))
  router.on_snapshot(
    PhaseSnapshot(phase=AppPhase.WEB_CONTAINER, destination="https://x", push_prompt_requested=True)
  )

  assert manager.primary.loads == ["https://x"]


def test_override_only_applies_in_web_container(router, manager, preferences):
  preferences.set_override_url("https://promo.example/")

  assert router.on_override() is False

  router.on_snapshot(PhaseSnapshot(phase=AppPhase.WEB_CONTAINER, destination="https://x"))

  assert router.on_override() is True
  assert manager.primary.url == "https://promo.example/"
