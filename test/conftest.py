"""Shared fakes and fixtures for the trailhead tests"""

import sys
from pathlib import Path
from typing import List, Optional

import pytest

# Add repo root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from launch.preferences import LaunchPreferences
from os_interfaces.base import InMemoryConfigStorage, PushAuthorizer, UrlOpener
from surfaces.cookie_jar import CookieJar, CookieRecord
from surfaces.lifecycle import SurfaceLifecycleManager
from surfaces.surface import (
  BrowsingSurface,
  CookieStore,
  EdgeSwipeHandler,
  SurfaceFactory,
  SurfaceRole,
  SurfaceSettings,
  TlsPolicy,
)


class FakeSurface(BrowsingSurface):
  """Records every call made by the lifecycle manager"""

  def __init__(self, role: SurfaceRole, settings: SurfaceSettings):
    super().__init__(role, settings)
    self.history: List[str] = []
    self.loads: List[str] = []
    self.stops = 0
    self.back_calls = 0
    self.edge_swipe_handler: Optional[EdgeSwipeHandler] = None

  @property
  def url(self) -> Optional[str]:
    return self.history[-1] if self.history else None

  @property
  def can_go_back(self) -> bool:
    return len(self.history) > 1

  def load(self, url: str) -> None:
    self.loads.append(url)
    self.history.append(url)

  def stop_loading(self) -> None:
    self.stops += 1

  def go_back(self) -> None:
    self.back_calls += 1
    if self.history:
      self.history.pop()

  def attach_edge_swipe(self, handler: EdgeSwipeHandler) -> None:
    self.edge_swipe_handler = handler

  def close(self) -> None:
    self.closed = True


class FakeCookieStore(CookieStore):
  def __init__(self):
    self.cookies: dict[tuple[str, str], CookieRecord] = {}
    self.set_calls: List[CookieRecord] = []

  def all_cookies(self) -> List[CookieRecord]:
    return list(self.cookies.values())

  def set_cookie(self, record: CookieRecord) -> None:
    self.set_calls.append(record)
    self.cookies[(record.domain, record.name)] = record


class FakeSurfaceFactory(SurfaceFactory):
  def __init__(self):
    self._cookie_store = FakeCookieStore()
    self.created: List[FakeSurface] = []

  @property
  def cookie_store(self) -> FakeCookieStore:
    return self._cookie_store

  def create_surface(self, role: SurfaceRole, settings: SurfaceSettings) -> FakeSurface:
    surface = FakeSurface(role, settings)
    self.created.append(surface)
    return surface


class FakeUrlOpener(UrlOpener):
  def __init__(self):
    self.opened: List[str] = []

  def open_url(self, url: str) -> bool:
    self.opened.append(url)
    return True


class FakePushAuthorizer(PushAuthorizer):
  def __init__(self, granted: bool = True):
    self.granted = granted
    self.requests = 0
    self.registrations = 0

  async def request_authorization(self) -> bool:
    self.requests += 1
    return self.granted

  def register_for_remote_notifications(self) -> None:
    self.registrations += 1


@pytest.fixture
def storage():
  return InMemoryConfigStorage()


@pytest.fixture
def preferences(storage):
  return LaunchPreferences(storage)


@pytest.fixture
def factory():
  return FakeSurfaceFactory()


@pytest.fixture
def url_opener():
  return FakeUrlOpener()


@pytest.fixture
def push_authorizer():
  return FakePushAuthorizer()


@pytest.fixture
def manager(factory, storage, preferences, url_opener):
  return SurfaceLifecycleManager(
    factory,
    CookieJar(storage),
    preferences,
    url_opener,
    tls_policy=TlsPolicy(accept_any_server_trust=True),
  )
