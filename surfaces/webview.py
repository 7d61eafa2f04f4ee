"""pywebview-backed browsing surfaces.

pywebview exposes no redirect, policy or dialog hooks. Each remote page gets
`BRIDGE_SCRIPT` injected once it has loaded; the script routes `window.open`,
`target=_blank` links, script dialogs, links with non-web schemes and left-edge
swipes to `SurfaceBridge`, which forwards them to the lifecycle manager.
A load that settles on a different URL than the one requested is reported as a
server redirect.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import TYPE_CHECKING, List, Optional
from urllib.parse import urlsplit

import webview

from surfaces.cookie_jar import CookieRecord
from surfaces.lifecycle import is_loadable
from surfaces.surface import (
  BrowsingSurface,
  CookieStore,
  EdgeSwipeHandler,
  NavigationPolicy,
  ScriptDialogKind,
  SurfaceFactory,
  SurfaceRole,
  SurfaceSettings,
)

if TYPE_CHECKING:
  from surfaces.lifecycle import SurfaceLifecycleManager

logger = logging.getLogger(__name__)

_MORSEL_PROPERTIES = ("path", "expires", "max-age", "secure", "httponly", "samesite")

# js_api calls resolve asynchronously, so dialogs answer the page right away
# with the dismissal result and report to the bridge in the background.
BRIDGE_SCRIPT = """
(function () {
  if (window.__trailheadBridge) { return; }
  var api = window.pywebview && window.pywebview.api;
  if (!api) { return; }
  window.__trailheadBridge = true;

  var inSurface = ["http:", "https:", "about:", "data:", "blob:", "javascript:"];
  var edgeWidth = 24, minSwipe = 80, maxDrift = 60;

  function text(value) { return value === undefined ? "" : String(value); }

  window.open = function (url) {
    var target = "";
    if (url) {
      try { target = new URL(String(url), location.href).href; } catch (e) { target = String(url); }
    }
    api.open_window(target);
    return null;
  };
  window.alert = function (message) { api.script_dialog("alert", text(message)); };
  window.confirm = function (message) { api.script_dialog("confirm", text(message)); return false; };
  window.prompt = function (message) { api.script_dialog("prompt", text(message)); return null; };

  document.addEventListener("click", function (event) {
    var link = event.target && event.target.closest ? event.target.closest("a[href]") : null;
    if (!link) { return; }
    if (inSurface.indexOf(link.protocol) === -1) {
      event.preventDefault();
      api.open_link(link.href);
    } else if (link.target === "_blank") {
      event.preventDefault();
      api.open_window(link.href);
    }
  }, true);

  var start = null;
  window.addEventListener("touchstart", function (event) {
    var touch = event.touches[0];
    start = touch && touch.clientX <= edgeWidth ? { x: touch.clientX, y: touch.clientY } : null;
  }, { passive: true });
  window.addEventListener("touchend", function (event) {
    if (!start) { return; }
    var touch = event.changedTouches[0];
    var dx = touch.clientX - start.x, dy = Math.abs(touch.clientY - start.y);
    start = null;
    if (dx >= minSwipe && dy <= maxDrift) { api.edge_swipe(); }
  }, { passive: true });
})();
"""


def _cookie_assignment(record: CookieRecord) -> str:
  props = record.properties
  parts = [f"{record.name}={props.get('value', '')}", f"domain={record.domain}"]
  parts.append(f"path={props.get('path') or '/'}")
  if props.get("expires"):
    parts.append(f"expires={props['expires']}")
  if props.get("max-age"):
    parts.append(f"max-age={props['max-age']}")
  if props.get("secure"):
    parts.append("secure")
  if props.get("samesite"):
    parts.append(f"samesite={props['samesite']}")
  return "; ".join(parts)


def _domain_matches(host: str, domain: str) -> bool:
  domain = domain.lstrip(".").lower()
  host = host.lower()
  return host == domain or host.endswith("." + domain)


def _same_page(a: str, b: str) -> bool:
  def normalize(url: str) -> str:
    return urlsplit(url)._replace(fragment="").geturl().rstrip("/")

  return normalize(a) == normalize(b)


class PyWebviewSurface(BrowsingSurface):
  """One pywebview window

  Pages under `local_origin` belong to the shell and are never reported to
  the manager.
  """

  def __init__(
    self,
    window: webview.Window,
    role: SurfaceRole,
    settings: SurfaceSettings,
    cookie_store: "PyWebviewCookieStore",
    local_origin: Optional[str] = None,
  ):
    super().__init__(role, settings)
    self.window = window
    self.cookie_store = cookie_store
    self.local_origin = local_origin
    self.history: List[str] = []
    self.edge_swipe_handler: Optional[EdgeSwipeHandler] = None
    self.manager: Optional["SurfaceLifecycleManager"] = None
    self._requested: Optional[str] = None

    window.events.loaded += self._on_loaded
    window.events.closed += self._on_closed

  def _is_remote(self, url: str) -> bool:
    if self.local_origin and url.startswith(self.local_origin):
      return False
    return is_loadable(url)

  def _on_loaded(self) -> None:
    url = self.window.get_current_url()
    if not url or not self._is_remote(url):
      return
    requested, self._requested = self._requested, None
    if not self.history or self.history[-1] != url:
      self.history.append(url)
    self.cookie_store.apply_pending(self)
    self.window.evaluate_js(BRIDGE_SCRIPT)

    if self.manager is None:
      return
    if requested and not _same_page(requested, url):
      logger.debug(f"Requested {requested} settled on {url}")
      self.manager.on_server_redirect(self)
    self.manager.on_navigation_settled(self, url)

  def _on_closed(self) -> None:
    self.closed = True
    self.cookie_store.forget(self)

  @property
  def url(self) -> Optional[str]:
    return self.window.get_current_url()

  @property
  def can_go_back(self) -> bool:
    return len(self.history) > 1

  def load(self, url: str) -> None:
    self._requested = url
    self.window.load_url(url)

  def stop_loading(self) -> None:
    self.window.evaluate_js("window.stop()")

  def go_back(self) -> None:
    if self.history:
      self.history.pop()
    self.window.evaluate_js("history.back()")

  def attach_edge_swipe(self, handler: EdgeSwipeHandler) -> None:
    self.edge_swipe_handler = handler

  def evaluate(self, script: str) -> None:
    self.window.evaluate_js(script)

  def close(self) -> None:
    if self.closed:
      return
    self.closed = True
    self.window.events.loaded -= self._on_loaded
    self.window.events.closed -= self._on_closed
    self.cookie_store.forget(self)
    # The main window outlives its primary surface.
    if self.role == SurfaceRole.AUXILIARY:
      self.window.destroy()


class PyWebviewCookieStore(CookieStore):
  """Cookie access over pywebview windows

  Reads come from `window.get_cookies()`. Writes can only go through
  `document.cookie`, so they are queued and applied once a page of the
  matching domain has loaded.
  """

  def __init__(self):
    self.surfaces: List[PyWebviewSurface] = []
    self._pending: List[CookieRecord] = []
    self._lock = threading.Lock()

  def track(self, surface: PyWebviewSurface) -> None:
    with self._lock:
      self.surfaces.append(surface)

  def forget(self, surface: PyWebviewSurface) -> None:
    with self._lock:
      if surface in self.surfaces:
        self.surfaces.remove(surface)

  def all_cookies(self) -> List[CookieRecord]:
    records: dict[tuple[str, str], CookieRecord] = {}
    with self._lock:
      surfaces = list(self.surfaces)
    for surface in surfaces:
      if surface.closed:
        continue
      host = urlsplit(surface.url or "").hostname or ""
      for jar in surface.window.get_cookies() or []:
        for name, morsel in jar.items():
          domain = morsel["domain"] or host
          properties = {"value": morsel.value}
          properties.update({key: morsel[key] for key in _MORSEL_PROPERTIES if morsel[key]})
          records[(domain, name)] = CookieRecord(
            domain=domain, name=name, properties=properties
          )
    return list(records.values())

  def set_cookie(self, record: CookieRecord) -> None:
    with self._lock:
      self._pending.append(record)

  def apply_pending(self, surface: PyWebviewSurface) -> None:
    host = urlsplit(surface.url or "").hostname
    if not host:
      return
    with self._lock:
      matching = [r for r in self._pending if _domain_matches(host, r.domain)]
      self._pending = [r for r in self._pending if r not in matching]
    for record in matching:
      surface.evaluate(f"document.cookie = {json.dumps(_cookie_assignment(record))};")
    if matching:
      logger.debug(f"Applied {len(matching)} restored cookies on {host}")


class SurfaceBridge:
  """JS API exposed to page script (`window.pywebview.api`)

  pywebview publishes every public attribute of a js_api object to the page,
  so the manager and surface are private and set through `bind_bridge`.
  """

  def __init__(self):
    self._manager: Optional["SurfaceLifecycleManager"] = None
    self._surface: Optional[PyWebviewSurface] = None

  def open_window(self, url: str = "") -> bool:
    if self._manager is None:
      return False
    return self._manager.request_auxiliary(url, target_frame_is_none=True) is not None

  def open_link(self, url: str) -> str:
    """Non-web link clicked in the page; returns the policy applied"""
    if self._manager is None or self._surface is None:
      return NavigationPolicy.CANCEL.value
    policy = self._manager.decide_navigation_policy(self._surface, url)
    if policy == NavigationPolicy.ALLOW:
      self._surface.load(url)
    return policy.value

  def script_dialog(self, kind: str, message: str = "") -> Optional[bool]:
    if self._manager is None:
      return None
    try:
      dialog = ScriptDialogKind(kind)
    except ValueError:
      logger.warning(f"Unknown script dialog kind {kind!r}")
      return None
    return self._manager.handle_script_dialog(dialog, message)

  def edge_swipe(self) -> None:
    surface = self._surface
    if surface is not None and surface.edge_swipe_handler is not None:
      surface.edge_swipe_handler()

  def close_popups(self, return_to: str = "") -> None:
    if self._manager is not None:
      self._manager.close_all_auxiliary(return_to or None)


def bind_bridge(
  bridge: SurfaceBridge,
  manager: Optional["SurfaceLifecycleManager"],
  surface: Optional[PyWebviewSurface] = None,
) -> None:
  bridge._manager = manager
  bridge._surface = surface


class PyWebviewSurfaceFactory(SurfaceFactory):
  """Primary wraps the existing main window; auxiliaries are new windows"""

  def __init__(
    self, main_window: webview.Window, title: str, local_origin: Optional[str] = None
  ):
    self.main_window = main_window
    self.title = title
    self.local_origin = local_origin
    self.manager: Optional["SurfaceLifecycleManager"] = None
    self._cookie_store = PyWebviewCookieStore()

  @property
  def cookie_store(self) -> PyWebviewCookieStore:
    return self._cookie_store

  def create_surface(self, role: SurfaceRole, settings: SurfaceSettings) -> BrowsingSurface:
    bridge: Optional[SurfaceBridge] = None
    if role == SurfaceRole.PRIMARY:
      window = self.main_window
    else:
      bridge = SurfaceBridge()
      window = webview.create_window(
        title=self.title,
        html="",
        js_api=bridge,
        zoomable=not settings.zoom_locked,
      )

    surface = PyWebviewSurface(
      window, role, settings, self._cookie_store, local_origin=self.local_origin
    )
    surface.manager = self.manager
    if bridge is not None:
      bind_bridge(bridge, self.manager, surface)
    self._cookie_store.track(surface)
    return surface
