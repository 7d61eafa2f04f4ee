"""Linux-specific implementations of OS interfaces"""

import logging
import subprocess
import threading
from pathlib import Path
from typing import Any

import httpx
import yaml
from desktop_notifier import DesktopNotifier
from platformdirs import user_config_dir

from .base import ConfigStorage, ConnectivityMonitor, PushAuthorizer, UrlOpener

logger = logging.getLogger(__name__)


class LinuxPushAuthorizer(PushAuthorizer):
  """Notification permission via desktop-notifier"""

  def __init__(self, app_name: str):
    self.notifier = DesktopNotifier(app_name=app_name)

  async def request_authorization(self) -> bool:
    try:
      granted = await self.notifier.request_authorisation()
      logger.info(f"Notification authorisation granted: {granted}")
      return bool(granted)
    except Exception as e:
      logger.error(f"Failed to request notification authorisation: {e}")
      return False

  def register_for_remote_notifications(self) -> None:
    # Desktop sessions have no remote push channel; the token stays whatever
    # the push handler last stored.
    logger.info("Remote notification registration is a no-op on Linux")


class LinuxUrlOpener(UrlOpener):
  """Opens URLs with xdg-open"""

  def open_url(self, url: str) -> bool:
    try:
      subprocess.Popen(
        ["xdg-open", url],
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
      )
      logger.info(f"Opened external URL: {url}")
      return True
    except Exception as e:
      logger.error(f"Failed to open external URL {url}: {e}")
      return False


class LinuxConnectivityMonitor(ConnectivityMonitor):
  """Reachability by probing a well-known URL"""

  def __init__(self, probe_url: str, poll_interval: float = 5.0, timeout: float = 3.0):
    super().__init__(poll_interval=poll_interval)
    self.probe_url = probe_url
    self.timeout = timeout

  def is_satisfied(self) -> bool:
    try:
      response = httpx.head(self.probe_url, timeout=self.timeout, follow_redirects=True)
      return response.status_code < 500
    except httpx.HTTPError as e:
      logger.debug(f"Connectivity probe to {self.probe_url} failed: {e}")
      return False


class LinuxConfigStorage(ConfigStorage):
  """Linux configuration storage using YAML files in user config directory"""

  def __init__(self, app_name: str, config_name: str, config_dir: Path | None = None):
    self.config_dir = config_dir or Path(user_config_dir(app_name, ensure_exists=True))
    self.config_file = self.config_dir / f"{config_name}.yaml"
    self._config: dict = {}
    self._lock = threading.RLock()
    self._load_config()

  def _load_config(self) -> None:
    """Load configuration from disk"""
    with self._lock:
      if self.config_file.exists():
        try:
          with open(self.config_file, "r") as f:
            loaded = yaml.safe_load(f) or {}
          if not isinstance(loaded, dict):
            raise ValueError(f"expected a mapping, got {type(loaded).__name__}")
          self._config = loaded
          logger.debug(f"Loaded config from {self.config_file}")
        except Exception as e:
          logger.error(f"Failed to load config, starting empty: {e}")
          self._config = {}
      else:
        self._config = {}

  def load(self) -> dict:
    """Load configuration from storage"""
    with self._lock:
      self._load_config()
      return self._config.copy()

  def save(self, config: dict) -> None:
    """Save configuration to storage"""
    with self._lock:
      self._config = config.copy()
      try:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        with open(self.config_file, "w") as f:
          yaml.safe_dump(self._config, f, default_flow_style=False)
        logger.debug(f"Saved config to {self.config_file}")
      except Exception as e:
        logger.error(f"Failed to save config: {e}")

  def get(self, key: str, default: Any = None) -> Any:
    """Get a configuration value by key"""
    with self._lock:
      return self._config.get(key, default)

  def set(self, key: str, value: Any) -> None:
    """Set a configuration value"""
    with self._lock:
      self._config[key] = value
      self.save(self._config)

  def delete(self, key: str) -> None:
    """Remove a configuration value"""
    with self._lock:
      if key in self._config:
        del self._config[key]
        self.save(self._config)
