"""
Typed access to the persisted launch keys
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from pydantic import ValidationError

from launch.models import AppMode, PersistedRouteConfig
from os_interfaces.base import ConfigStorage

logger = logging.getLogger(__name__)

HAS_RUN_BEFORE = "has_run_before"
APP_MODE = "app_mode"
SAVED_ROUTE = "saved_route"
LAST_PUSH_ASK = "last_notification_ask"
PUSH_ACCEPTED = "accepted_notifications"
PUSH_SYSTEM_CLOSED = "system_close_notifications"
PUSH_TOKEN = "fcm_token"
OVERRIDE_URL = "temp_url"
INSTALL_ID = "install_id"


class LaunchPreferences:
  """Reads and writes launch state in a ConfigStorage

  Unreadable values are logged and reported as absent.
  """

  def __init__(self, storage: ConfigStorage):
    self.storage = storage

  # ---- first launch ----
  @property
  def has_run_before(self) -> bool:
    return bool(self.storage.get(HAS_RUN_BEFORE, False))

  def mark_has_run(self) -> None:
    self.storage.set(HAS_RUN_BEFORE, True)

  # ---- routing mode ----
  @property
  def app_mode(self) -> Optional[AppMode]:
    raw = self.storage.get(APP_MODE)
    if raw is None:
      return None
    try:
      return AppMode(raw)
    except ValueError:
      logger.warning(f"Unknown persisted app mode {raw!r}, treating as absent")
      return None

  def set_app_mode(self, mode: AppMode) -> None:
    self.storage.set(APP_MODE, mode.value)

  # ---- saved route ----
  @property
  def saved_route(self) -> Optional[PersistedRouteConfig]:
    raw = self.storage.get(SAVED_ROUTE)
    if raw is None:
      return None
    try:
      return PersistedRouteConfig.model_validate(raw)
    except ValidationError as e:
      logger.warning(f"Corrupt saved route, treating as absent: {e}")
      return None

  def save_route(self, route: PersistedRouteConfig) -> None:
    self.storage.set(SAVED_ROUTE, route.model_dump(mode="json"))

  # ---- push prompt ----
  @property
  def last_push_ask(self) -> Optional[datetime]:
    raw = self.storage.get(LAST_PUSH_ASK)
    if raw is None:
      return None
    try:
      return datetime.fromtimestamp(float(raw), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
      logger.warning(f"Corrupt push ask timestamp {raw!r}, treating as absent")
      return None

  def record_push_ask(self, when: datetime) -> None:
    self.storage.set(LAST_PUSH_ASK, when.timestamp())

  def record_push_authorization(self, granted: bool) -> None:
    self.storage.set(PUSH_ACCEPTED, granted)
    if not granted:
      self.storage.set(PUSH_SYSTEM_CLOSED, True)

  @property
  def push_token(self) -> Optional[str]:
    token = self.storage.get(PUSH_TOKEN)
    return token if isinstance(token, str) and token else None

  def set_push_token(self, token: str) -> None:
    self.storage.set(PUSH_TOKEN, token)

  # ---- one-shot override ----
  def set_override_url(self, url: str) -> None:
    self.storage.set(OVERRIDE_URL, url)

  def consume_override_url(self) -> Optional[str]:
    """Read and delete the one-shot destination left by a push or deep link"""
    raw = self.storage.get(OVERRIDE_URL)
    if raw is None:
      return None
    self.storage.delete(OVERRIDE_URL)
    if not isinstance(raw, str) or not raw.strip():
      logger.warning(f"Discarding unusable override URL {raw!r}")
      return None
    logger.info(f"Consumed override URL {raw}")
    return raw.strip()

  # ---- identity ----
  def install_id(self) -> str:
    """Stable per-install identifier, generated on first use"""
    value = self.storage.get(INSTALL_ID)
    if isinstance(value, str) and value:
      return value
    value = uuid.uuid4().hex
    self.storage.set(INSTALL_ID, value)
    return value
