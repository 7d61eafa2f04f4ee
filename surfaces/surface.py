"""Abstract browsing surface and the policies applied to it"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from surfaces.cookie_jar import CookieRecord

EdgeSwipeHandler = Callable[[], None]


class SurfaceRole(str, Enum):
  PRIMARY = "primary"
  AUXILIARY = "auxiliary"


class NavigationPolicy(str, Enum):
  ALLOW = "allow"
  CANCEL = "cancel"


class ChallengeType(str, Enum):
  """Authentication challenge kinds raised by the transport"""

  SERVER_TRUST = "server_trust"
  HTTP_BASIC = "http_basic"
  HTTP_DIGEST = "http_digest"
  CLIENT_CERTIFICATE = "client_certificate"
  OTHER = "other"


class ChallengeDisposition(str, Enum):
  USE_PRESENTED_CREDENTIAL = "use_presented_credential"
  DEFAULT_HANDLING = "default_handling"


class ScriptDialogKind(str, Enum):
  ALERT = "alert"
  CONFIRM = "confirm"
  PROMPT = "prompt"


@dataclass(frozen=True)
class SurfaceSettings:
  """Appearance and behaviour shared by every surface"""

  javascript_enabled: bool = True
  inline_media_playback: bool = True
  autoplay_requires_gesture: bool = False
  zoom_scale: float = 1.0
  zoom_locked: bool = True
  bounce_enabled: bool = False
  back_forward_gestures: bool = True


@dataclass(frozen=True)
class TlsPolicy:
  """Trust decision for the embedded surface

  accept_any_server_trust=True accepts whatever certificate the server
  presents, i.e. certificate validation is off for embedded content. This is
  a trust-boundary choice for the integrator.
  """

  accept_any_server_trust: bool = True


class CookieStore(ABC):
  """Live cookie store shared by all surfaces of a session"""

  @abstractmethod
  def all_cookies(self) -> List[CookieRecord]:
    raise NotImplementedError

  @abstractmethod
  def set_cookie(self, record: CookieRecord) -> None:
    raise NotImplementedError


class BrowsingSurface(ABC):
  """One content-rendering surface"""

  def __init__(self, role: SurfaceRole, settings: SurfaceSettings):
    self.surface_id = uuid.uuid4().hex
    self.role = role
    self.settings = settings
    self.closed = False

  @property
  @abstractmethod
  def url(self) -> Optional[str]:
    raise NotImplementedError

  @property
  @abstractmethod
  def can_go_back(self) -> bool:
    raise NotImplementedError

  @abstractmethod
  def load(self, url: str) -> None:
    raise NotImplementedError

  @abstractmethod
  def stop_loading(self) -> None:
    raise NotImplementedError

  @abstractmethod
  def go_back(self) -> None:
    raise NotImplementedError

  @abstractmethod
  def attach_edge_swipe(self, handler: EdgeSwipeHandler) -> None:
    raise NotImplementedError

  @abstractmethod
  def close(self) -> None:
    raise NotImplementedError


class SurfaceFactory(ABC):
  """Creates surfaces bound to one shared cookie store"""

  @property
  @abstractmethod
  def cookie_store(self) -> CookieStore:
    raise NotImplementedError

  @abstractmethod
  def create_surface(self, role: SurfaceRole, settings: SurfaceSettings) -> BrowsingSurface:
    raise NotImplementedError
