"""OS interface module - platform-specific implementations

Since we build separate executables for each platform,
import the appropriate implementation directly in the entry points:
- entrypoints/app_linux.py imports from os_interfaces.linux
- entrypoints/app_android.py imports from os_interfaces.android
"""

from .base import (
  ConfigStorage,
  ConnectivityMonitor,
  InMemoryConfigStorage,
  OSImplementations,
  PushAuthorizer,
  UrlOpener,
)

__all__ = [
  "ConfigStorage",
  "ConnectivityMonitor",
  "InMemoryConfigStorage",
  "OSImplementations",
  "PushAuthorizer",
  "UrlOpener",
]
