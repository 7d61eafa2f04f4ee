"""
Lifecycle of the embedded browsing surfaces

Owns the primary surface and the stack of auxiliary (popup) surfaces, applies
navigation policy, and ties each surface to its RedirectGuard and the shared
CookieJar.
"""

import logging
import threading
from typing import Dict, List, Optional
from urllib.parse import urlsplit

from launch.preferences import LaunchPreferences
from os_interfaces.base import UrlOpener
from surfaces.cookie_jar import CookieJar
from surfaces.redirect_guard import (
  DEFAULT_REDIRECT_THRESHOLD,
  ProvisionalErrorKind,
  Recovery,
  RedirectGuard,
)
from surfaces.surface import (
  BrowsingSurface,
  ChallengeDisposition,
  ChallengeType,
  NavigationPolicy,
  ScriptDialogKind,
  SurfaceFactory,
  SurfaceRole,
  SurfaceSettings,
  TlsPolicy,
)

logger = logging.getLogger(__name__)

LOADABLE_SCHEMES = {"http", "https"}
IN_SURFACE_SCHEMES = LOADABLE_SCHEMES | {"about", "data", "blob", "javascript"}
BLANK_PAGE = "about:blank"


def is_loadable(url: Optional[str]) -> bool:
  """True for non-empty http(s) URLs other than about:blank"""
  if not url or url.strip() == BLANK_PAGE:
    return False
  return urlsplit(url.strip()).scheme.lower() in LOADABLE_SCHEMES


class SurfaceLifecycleManager:
  """Sole owner and writer of the surface set"""

  def __init__(
    self,
    factory: SurfaceFactory,
    cookie_jar: CookieJar,
    preferences: LaunchPreferences,
    url_opener: UrlOpener,
    tls_policy: Optional[TlsPolicy] = None,
    redirect_threshold: int = DEFAULT_REDIRECT_THRESHOLD,
    settings: Optional[SurfaceSettings] = None,
  ):
    self.factory = factory
    self.cookie_jar = cookie_jar
    self.preferences = preferences
    self.url_opener = url_opener
    self.tls_policy = tls_policy or TlsPolicy()
    self.redirect_threshold = redirect_threshold
    self.settings = settings or SurfaceSettings()

    self.primary: Optional[BrowsingSurface] = None
    self.auxiliary: List[BrowsingSurface] = []
    self._guards: Dict[str, RedirectGuard] = {}
    self._lock = threading.RLock()

    if self.tls_policy.accept_any_server_trust:
      logger.warning(
        "Embedded surfaces accept any server certificate (ACCEPT_ANY_SERVER_TRUST)"
      )

  # ---- surface set ----
  def _register(self, surface: BrowsingSurface) -> None:
    self._guards[surface.surface_id] = RedirectGuard(self.redirect_threshold)

  def _release(self, surface: BrowsingSurface) -> None:
    self._guards.pop(surface.surface_id, None)
    surface.close()

  def guard_for(self, surface: BrowsingSurface) -> Optional[RedirectGuard]:
    return self._guards.get(surface.surface_id)

  def create_primary(self, url: Optional[str] = None) -> BrowsingSurface:
    """Create the session's primary surface, restoring cookies before it loads"""
    with self._lock:
      if self.primary is not None and not self.primary.closed:
        logger.warning("Primary surface already exists, reusing it")
        if is_loadable(url):
          self.primary.load(url)  # type: ignore[arg-type]
        return self.primary

      surface = self.factory.create_surface(SurfaceRole.PRIMARY, self.settings)
      self._register(surface)
      self.primary = surface
      restored = self.restore_cookies()
      logger.info(f"Created primary surface {surface.surface_id} ({restored} cookies restored)")

      if is_loadable(url):
        surface.load(url)  # type: ignore[arg-type]
      return surface

  def request_auxiliary(
    self, url: Optional[str], target_frame_is_none: bool
  ) -> Optional[BrowsingSurface]:
    """
    Create a popup surface for a new-window request

    Args:
      url: Requested destination, may be empty
      target_frame_is_none: True when the request has no target frame

    Returns:
      The new surface, or None when the request is an in-page frame load
    """
    if not target_frame_is_none:
      logger.debug(f"Ignoring popup request with a target frame: {url}")
      return None

    with self._lock:
      surface = self.factory.create_surface(SurfaceRole.AUXILIARY, self.settings)
      surface.attach_edge_swipe(lambda: self.handle_edge_swipe(surface))
      self._register(surface)
      self.auxiliary.append(surface)
      logger.info(
        f"Opened auxiliary surface {surface.surface_id} (stack depth {len(self.auxiliary)})"
      )

    if is_loadable(url):
      surface.load(url)  # type: ignore[arg-type]
    else:
      logger.debug(f"Auxiliary surface left unloaded for {url!r}")
    return surface

  def _release_auxiliary(self) -> None:
    surfaces, self.auxiliary = self.auxiliary, []
    for surface in reversed(surfaces):
      self._release(surface)
    if surfaces:
      logger.info(f"Closed {len(surfaces)} auxiliary surfaces")

  def close_all_auxiliary(self, return_to: Optional[str] = None) -> None:
    """Tear down every popup, then load `return_to` or step the primary back"""
    with self._lock:
      self._release_auxiliary()

      primary = self.primary
      if primary is None or primary.closed:
        return
      if return_to:
        primary.load(return_to)
      elif primary.can_go_back:
        primary.go_back()

  def handle_edge_swipe(self, surface: BrowsingSurface) -> None:
    if surface.can_go_back:
      surface.go_back()
      return
    with self._lock:
      is_top = bool(self.auxiliary) and self.auxiliary[-1] is surface
    if is_top:
      self.close_all_auxiliary(None)

  def apply_pending_override(self) -> Optional[str]:
    """Consume a one-shot override URL and show it in the primary surface"""
    url = self.preferences.consume_override_url()
    if not url:
      return None
    if self.primary is None or self.primary.closed:
      self.create_primary(url)
    else:
      self.close_all_auxiliary(return_to=url)
    return url

  def teardown(self) -> None:
    """Persist cookies and close every surface"""
    with self._lock:
      self.persist_cookies()
      self._release_auxiliary()
      if self.primary is not None:
        self._release(self.primary)
        self.primary = None

  # ---- navigation events ----
  def decide_navigation_policy(self, surface: BrowsingSurface, url: str) -> NavigationPolicy:
    scheme = urlsplit(url).scheme.lower()
    if not scheme or scheme in IN_SURFACE_SCHEMES:
      return NavigationPolicy.ALLOW

    logger.info(f"Handing {scheme}: navigation to the platform: {url}")
    self.url_opener.open_url(url)
    return NavigationPolicy.CANCEL

  def _apply_recovery(self, surface: BrowsingSurface, recovery: Optional[Recovery]) -> None:
    if recovery is None:
      return
    logger.warning(
      f"Redirect storm on surface {surface.surface_id} ({recovery.reason}),"
      f" returning to {recovery.url}"
    )
    surface.stop_loading()
    surface.load(recovery.url)

  def on_server_redirect(self, surface: BrowsingSurface) -> None:
    self.persist_cookies()
    guard = self.guard_for(surface)
    if guard is not None:
      self._apply_recovery(surface, guard.on_server_redirect())

  def on_navigation_settled(self, surface: BrowsingSurface, url: str) -> None:
    guard = self.guard_for(surface)
    if guard is not None:
      guard.on_navigation_settled(url)

  def on_provisional_failure(
    self, surface: BrowsingSurface, error_kind: ProvisionalErrorKind
  ) -> None:
    guard = self.guard_for(surface)
    if guard is not None:
      self._apply_recovery(surface, guard.on_provisional_failure(error_kind))

  def handle_auth_challenge(self, challenge: ChallengeType) -> ChallengeDisposition:
    if challenge == ChallengeType.SERVER_TRUST and self.tls_policy.accept_any_server_trust:
      return ChallengeDisposition.USE_PRESENTED_CREDENTIAL
    return ChallengeDisposition.DEFAULT_HANDLING

  def handle_script_dialog(self, kind: ScriptDialogKind, message: str) -> Optional[bool]:
    """Dismiss content dialogs without UI; confirm() resolves to False"""
    logger.debug(f"Auto-dismissed script {kind.value}: {message[:80]}")
    if kind == ScriptDialogKind.CONFIRM:
      return False
    return None

  # ---- cookies ----
  def persist_cookies(self) -> int:
    try:
      records = self.factory.cookie_store.all_cookies()
    except Exception as e:
      logger.warning(f"Could not read live cookies: {e}")
      return 0
    return self.cookie_jar.save(records)

  def restore_cookies(self) -> int:
    records = self.cookie_jar.restore()
    store = self.factory.cookie_store
    restored = 0
    for record in records:
      try:
        store.set_cookie(record)
        restored += 1
      except Exception as e:
        logger.warning(f"Failed to restore cookie {record.domain}/{record.name}: {e}")
    return restored
