"""Android entrypoint for the packaged trailhead app.

Injects Android OS interfaces into the shared pywebview + shell API bootstrap.
"""

from __future__ import annotations

import os
from functools import partial
from pathlib import Path

from entrypoints.app_core import run_pywebview_app
from launch.config import AppConfig
from os_interfaces.base import OSImplementations
from os_interfaces.android import (
  AndroidConfigStorage,
  AndroidConnectivityMonitor,
  AndroidPushAuthorizer,
  AndroidUrlOpener,
)

# On Android we rely on runtime-provided assets; in practice this may be set via env.
FRONTEND_PATH = Path(
  os.environ.get("TRAILHEAD_FRONTEND_PATH", "/data/user/0/org.trailhead/files/frontend")
)


def main() -> None:
  os_impl = OSImplementations(
    config_storage_cls=AndroidConfigStorage,
    push_authorizer_cls=AndroidPushAuthorizer,
    url_opener_cls=AndroidUrlOpener,
    connectivity_monitor_cls=partial(
      AndroidConnectivityMonitor, poll_interval=AppConfig.CONNECTIVITY_POLL_SECONDS
    ),
  )
  run_pywebview_app(frontend_path=FRONTEND_PATH, os_impl=os_impl)


if __name__ == "__main__":
  main()
