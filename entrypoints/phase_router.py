"""Maps engine phase snapshots onto the window and surface set."""

from __future__ import annotations

import logging
from typing import Callable, Optional

from launch.models import AppPhase, PhaseSnapshot
from surfaces.lifecycle import SurfaceLifecycleManager

logger = logging.getLogger(__name__)

LocalPageLoader = Callable[[str], None]

LOCAL_PAGES = {
  AppPhase.INITIALIZING: "/",
  AppPhase.LEGACY_MODE: "/legacy",
  AppPhase.NO_CONNECTION: "/offline",
}


class PhaseRouter:
  """Subscriber that puts the right content in front of the user"""

  def __init__(
    self,
    manager: SurfaceLifecycleManager,
    show_local_page: LocalPageLoader,
    on_primary_created: Optional[Callable[[], None]] = None,
  ):
    self.manager = manager
    self.show_local_page = show_local_page
    self.on_primary_created = on_primary_created
    self.current: PhaseSnapshot = PhaseSnapshot()

  def on_snapshot(self, snapshot: PhaseSnapshot) -> None:
    previous, self.current = self.current, snapshot
    if previous.phase == snapshot.phase and previous.destination == snapshot.destination:
      return

    match snapshot.phase:
      case AppPhase.WEB_CONTAINER:
        self._show_web(snapshot.destination)
      case AppPhase.LEGACY_MODE:
        if self.manager.primary is not None:
          self.manager.teardown()
        self.show_local_page(LOCAL_PAGES[AppPhase.LEGACY_MODE])
      case AppPhase.NO_CONNECTION:
        self.manager.persist_cookies()
        self.show_local_page(LOCAL_PAGES[AppPhase.NO_CONNECTION])
      case _:
        pass

  def _show_web(self, destination: Optional[str]) -> None:
    if not destination:
      logger.error("WebContainer phase without a destination")
      return

    primary = self.manager.primary
    if primary is None or primary.closed:
      self.manager.create_primary(destination)
      if self.on_primary_created is not None:
        self.on_primary_created()
      return

    # Back from offline: resume where the user was when possible.
    guard = self.manager.guard_for(primary)
    resume = guard.last_known_good_url if guard is not None else None
    primary.load(resume or destination)

  def on_override(self) -> bool:
    """Hook for freshly stored override URLs while a web session is live"""
    if self.current.phase != AppPhase.WEB_CONTAINER:
      return False
    return self.manager.apply_pending_override() is not None
