"""Embedded browsing surfaces: lifecycle, redirect safety and cookie persistence"""

from .cookie_jar import CookieJar, CookieRecord
from .lifecycle import SurfaceLifecycleManager
from .redirect_guard import ProvisionalErrorKind, RedirectGuard
from .surface import BrowsingSurface, SurfaceFactory, SurfaceSettings, TlsPolicy

__all__ = [
  "BrowsingSurface",
  "CookieJar",
  "CookieRecord",
  "ProvisionalErrorKind",
  "RedirectGuard",
  "SurfaceFactory",
  "SurfaceLifecycleManager",
  "SurfaceSettings",
  "TlsPolicy",
]
