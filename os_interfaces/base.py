"""Abstract base classes for OS-specific interfaces"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], None]


class ConfigStorage(ABC):
  """Abstract base class for durable key/value storage"""

  @abstractmethod
  def load(self) -> dict:
    """Load configuration from storage"""
    raise NotImplementedError

  @abstractmethod
  def save(self, config: dict) -> None:
    """Save configuration to storage"""
    raise NotImplementedError

  @abstractmethod
  def get(self, key: str, default: Any = None) -> Any:
    """Get a configuration value by key"""
    raise NotImplementedError

  @abstractmethod
  def set(self, key: str, value: Any) -> None:
    """Set a configuration value"""
    raise NotImplementedError

  @abstractmethod
  def delete(self, key: str) -> None:
    """Remove a configuration value; missing keys are ignored"""
    raise NotImplementedError


class InMemoryConfigStorage(ConfigStorage):
  """Process-local storage, used when no durable backend is wanted"""

  def __init__(self, initial: Optional[dict] = None):
    self._config: dict = dict(initial or {})
    self._lock = threading.Lock()

  def load(self) -> dict:
    with self._lock:
      return self._config.copy()

  def save(self, config: dict) -> None:
    with self._lock:
      self._config = config.copy()

  def get(self, key: str, default: Any = None) -> Any:
    with self._lock:
      return self._config.get(key, default)

  def set(self, key: str, value: Any) -> None:
    with self._lock:
      self._config[key] = value

  def delete(self, key: str) -> None:
    with self._lock:
      self._config.pop(key, None)


class PushAuthorizer(ABC):
  """Abstract base class for push-notification permission handling"""

  @abstractmethod
  async def request_authorization(self) -> bool:
    """Ask the user/OS for notification permission

    Returns:
      True if permission was granted
    """
    raise NotImplementedError

  @abstractmethod
  def register_for_remote_notifications(self) -> None:
    """Register the device for remote pushes after permission was granted"""
    raise NotImplementedError


class UrlOpener(ABC):
  """Hands a URL to the platform's generic URL-opening facility"""

  @abstractmethod
  def open_url(self, url: str) -> bool:
    """Open the URL outside the app

    Returns:
      True if the platform accepted the URL
    """
    raise NotImplementedError


class ConnectivityMonitor(ABC):
  """Background observer of network reachability

  Listeners are invoked from the monitor's own thread with True when the
  network path is satisfied and False when it is not. The first observation
  is always reported; afterwards only changes are.
  """

  def __init__(self, poll_interval: float = 5.0):
    self.poll_interval = poll_interval
    self._listeners: list[ConnectivityListener] = []
    self._last_status: Optional[bool] = None
    self._stop = threading.Event()
    self._thread: Optional[threading.Thread] = None

  @abstractmethod
  def is_satisfied(self) -> bool:
    """Probe the current network status once"""
    raise NotImplementedError

  def add_listener(self, listener: ConnectivityListener) -> None:
    self._listeners.append(listener)

  @property
  def last_status(self) -> Optional[bool]:
    return self._last_status

  def poll_once(self) -> Optional[bool]:
    """Probe and notify listeners on change; returns the new status if it changed"""
    try:
      status = self.is_satisfied()
    except Exception as e:
      logger.warning(f"Connectivity probe failed, treating as offline: {e}")
      status = False

    if status == self._last_status:
      return None

    self._last_status = status
    logger.info(f"Connectivity changed: {'satisfied' if status else 'not satisfied'}")
    for listener in list(self._listeners):
      try:
        listener(status)
      except Exception:
        logger.exception("Connectivity listener failed")
    return status

  def _run(self) -> None:
    while not self._stop.is_set():
      self.poll_once()
      self._stop.wait(self.poll_interval)

  def start(self) -> None:
    if self._thread is not None:
      return
    self._stop.clear()
    self._thread = threading.Thread(
      target=self._run, daemon=True, name="Connectivity-Monitor"
    )
    self._thread.start()

  def stop(self) -> None:
    self._stop.set()
    if self._thread is not None:
      self._thread.join(timeout=self.poll_interval + 1)
      self._thread = None


@dataclass
class OSImplementations:
  """Bundle of platform implementations injected by the entrypoints"""

  config_storage_cls: Callable[..., ConfigStorage]
  push_authorizer_cls: Callable[..., PushAuthorizer]
  url_opener_cls: Callable[..., UrlOpener]
  connectivity_monitor_cls: Callable[..., ConnectivityMonitor]

  def config_storage(self, *args, **kwargs) -> ConfigStorage:
    return self.config_storage_cls(*args, **kwargs)

  def push_authorizer(self, *args, **kwargs) -> PushAuthorizer:
    return self.push_authorizer_cls(*args, **kwargs)

  def url_opener(self, *args, **kwargs) -> UrlOpener:
    return self.url_opener_cls(*args, **kwargs)

  def connectivity_monitor(self, *args, **kwargs) -> ConnectivityMonitor:
    return self.connectivity_monitor_cls(*args, **kwargs)
