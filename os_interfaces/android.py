"""Android-specific implementations of OS interfaces."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, List

from android.permissions import request_permissions  # type: ignore
from jnius import autoclass  # type: ignore

from .base import ConfigStorage, ConnectivityMonitor, PushAuthorizer, UrlOpener

logger = logging.getLogger(__name__)


# --- PyJNIus handles ---
PythonActivity = autoclass("org.kivy.android.PythonActivity")
Intent = autoclass("android.content.Intent")
Uri = autoclass("android.net.Uri")
Context = autoclass("android.content.Context")
BuildVersion = autoclass("android.os.Build$VERSION")
NetworkCapabilities = autoclass("android.net.NetworkCapabilities")
NotificationManagerCompat = autoclass("androidx.core.app.NotificationManagerCompat")

PREFS_NAME = "trailhead-prefs"
POST_NOTIFICATIONS = "android.permission.POST_NOTIFICATIONS"


def _context():
  return PythonActivity.mActivity.getApplicationContext()


class AndroidConfigStorage(ConfigStorage):
  """SharedPreferences-backed storage; values are stored JSON-encoded"""

  def __init__(self, prefs_name: str = PREFS_NAME):
    self.prefs = _context().getSharedPreferences(prefs_name, Context.MODE_PRIVATE)

  def _decode(self, key: str, raw: str | None, default: Any) -> Any:
    if raw is None:
      return default
    try:
      return json.loads(raw)
    except ValueError:
      logger.warning("Corrupt preference %s, treating as absent", key)
      return default

  def load(self) -> dict:
    entries = self.prefs.getAll()
    return {
      key: self._decode(key, entries.get(key), None) for key in entries.keySet().toArray()
    }

  def save(self, config: dict) -> None:
    editor = self.prefs.edit().clear()
    for key, value in config.items():
      editor.putString(key, json.dumps(value))
    editor.apply()

  def get(self, key: str, default: Any = None) -> Any:
    return self._decode(key, self.prefs.getString(key, None), default)

  def set(self, key: str, value: Any) -> None:
    self.prefs.edit().putString(key, json.dumps(value)).apply()

  def delete(self, key: str) -> None:
    self.prefs.edit().remove(key).apply()


class AndroidPushAuthorizer(PushAuthorizer):
  """POST_NOTIFICATIONS runtime permission (API 33+)"""

  def __init__(self):
    self.ctx = _context()

  def _enabled(self) -> bool:
    return bool(getattr(NotificationManagerCompat, "from")(self.ctx).areNotificationsEnabled())

  async def request_authorization(self) -> bool:
    if BuildVersion.SDK_INT < 33 or self._enabled():
      granted = self._enabled()
    else:
      granted = await self._ask_user()
    logger.info("Notification permission granted: %s", granted)
    return granted

  async def _ask_user(self) -> bool:
    """Show the runtime permission dialog and wait for the answer"""
    loop = asyncio.get_running_loop()
    answer: asyncio.Future[bool] = loop.create_future()

    def resolve(granted: bool) -> None:
      if not answer.done():
        answer.set_result(granted)

    # Called on the Android UI thread once the user has answered.
    def on_result(permissions: List[str], grant_results: List[bool]) -> None:
      granted = any(
        permission == POST_NOTIFICATIONS and result
        for permission, result in zip(permissions, grant_results)
      )
      loop.call_soon_threadsafe(resolve, granted)

    request_permissions([POST_NOTIFICATIONS], on_result)
    return await answer

  def register_for_remote_notifications(self) -> None:
    # Token refresh is delivered by the messaging service into the store.
    logger.info("Remote notifications enabled; awaiting token from messaging service")


class AndroidUrlOpener(UrlOpener):
  """ACTION_VIEW intent for non-web schemes"""

  def open_url(self, url: str) -> bool:
    try:
      intent = Intent(Intent.ACTION_VIEW, Uri.parse(url))
      intent.addFlags(Intent.FLAG_ACTIVITY_NEW_TASK)
      _context().startActivity(intent)
      logger.info("Opened external URL %s", url)
      return True
    except Exception:
      logger.exception("No activity could open %s", url)
      return False


class AndroidConnectivityMonitor(ConnectivityMonitor):
  """Polls ConnectivityManager for a validated active network"""

  def __init__(self, poll_interval: float = 5.0):
    super().__init__(poll_interval=poll_interval)
    self.manager = _context().getSystemService(Context.CONNECTIVITY_SERVICE)

  def is_satisfied(self) -> bool:
    network = self.manager.getActiveNetwork()
    if network is None:
      return False
    caps = self.manager.getNetworkCapabilities(network)
    return caps is not None and bool(
      caps.hasCapability(NetworkCapabilities.NET_CAPABILITY_VALIDATED)
    )
