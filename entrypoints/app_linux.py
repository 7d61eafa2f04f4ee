"""Linux entrypoint for the packaged trailhead app (pywebview shell + shell API).

This entrypoint injects Linux OS interface implementations.
"""

from __future__ import annotations

import os
from functools import partial
from pathlib import Path

from entrypoints.app_core import run_pywebview_app
from launch.config import AppConfig
from os_interfaces.base import OSImplementations
from os_interfaces.linux import (
  LinuxConfigStorage,
  LinuxConnectivityMonitor,
  LinuxPushAuthorizer,
  LinuxUrlOpener,
)

# Desktop build substitutes this path via Nix; in dev it may be overridden.
FRONTEND_PATH = Path(os.environ.get("TRAILHEAD_FRONTEND_PATH", "@FRONTEND_PATH@"))


def main() -> None:
  os_impl = OSImplementations(
    config_storage_cls=partial(LinuxConfigStorage, "trailhead", "launch"),
    push_authorizer_cls=partial(LinuxPushAuthorizer, app_name="Trailhead"),
    url_opener_cls=LinuxUrlOpener,
    connectivity_monitor_cls=partial(
      LinuxConnectivityMonitor,
      AppConfig.CONNECTIVITY_PROBE_URL,
      poll_interval=AppConfig.CONNECTIVITY_POLL_SECONDS,
    ),
  )
  run_pywebview_app(frontend_path=FRONTEND_PATH, os_impl=os_impl)


if __name__ == "__main__":
  main()
