"""Platform-agnostic pywebview app bootstrap.

The platform-specific entrypoints (Linux/Android) should import this module and
provide the correct OS-interface implementations.

Contract:
- Inputs: an os-interface bundle `os_impl` (storage, push authorizer, URL
  opener, connectivity monitor).
- Behavior: starts the shell API (which hosts the decision engine) in a daemon
  thread, opens the main window on the local splash page, then routes the
  window according to the engine's phase snapshots.
"""

from __future__ import annotations

import logging
import os
import sys
import threading
import time
from pathlib import Path
from typing import Optional
from urllib.error import URLError
from urllib.request import urlopen

import uvicorn
import webview
from fastapi import FastAPI

from launch.attribution import OrganicVerifier
from launch.config import AppConfig, EngineSettings, get_attribution_dev_key
from launch.engine import BootstrapEngine
from launch.preferences import LaunchPreferences
from launch.remote_config import DeviceInfo, RemoteConfigClient, preferred_locale
from entrypoints.phase_router import PhaseRouter
from os_interfaces.base import OSImplementations
from shell.main import create_app, install_correlation_filter
from surfaces.cookie_jar import CookieJar
from surfaces.lifecycle import SurfaceLifecycleManager
from surfaces.surface import TlsPolicy
from surfaces.webview import PyWebviewSurfaceFactory, SurfaceBridge, bind_bridge

WEBVIEW_DEBUG = os.getenv("TRAILHEAD_WEBVIEW_DEBUG", "").strip().lower() in {"1", "true"}

logging.basicConfig(
  level=logging.DEBUG if WEBVIEW_DEBUG else AppConfig.LOG_LEVEL,
  format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
install_correlation_filter()
logger = logging.getLogger(__name__)

APP_TITLE = "Trailhead"
SHELL_HOST = AppConfig.SHELL_HOST
SHELL_PORT = AppConfig.SHELL_PORT


def _shell_url(path: str = "/") -> str:
  return f"http://{SHELL_HOST}:{SHELL_PORT}{path}"


def build_engine(
  preferences: LaunchPreferences, os_impl: OSImplementations
) -> BootstrapEngine:
  settings = EngineSettings.from_app_config()
  device = DeviceInfo(
    attribution_uid=os.getenv("ATTRIBUTION_UID") or preferences.install_id(),
    bundle_id=AppConfig.BUNDLE_ID,
    app_store_id=AppConfig.APP_STORE_ID,
    os_name=AppConfig.OS_NAME,
    firebase_project_id=AppConfig.FIREBASE_PROJECT_ID,
    locale=preferred_locale(),
  )
  return BootstrapEngine(
    preferences=preferences,
    remote_config=RemoteConfigClient(
      settings.config_endpoint, device, timeout=settings.http_timeout
    ),
    verifier=OrganicVerifier(
      settings.organic_check_base_url,
      app_id=AppConfig.APP_STORE_ID,
      dev_key=get_attribution_dev_key(),
      timeout=settings.http_timeout,
    ),
    settings=settings,
    push_authorizer=os_impl.push_authorizer(),
  )


def _start_shell_server(app: FastAPI) -> None:
  try:
    logger.info("Starting shell API on %s:%s", SHELL_HOST, SHELL_PORT)
    uvicorn.run(
      app,
      host=SHELL_HOST,
      port=SHELL_PORT,
      log_level="info",
      access_log=False,
    )
  except Exception:
    logger.exception("Failed to start shell server")
    sys.exit(1)


def _wait_for_shell(timeout: int = 10) -> bool:
  url = _shell_url("/health")
  start_time = time.time()

  logger.info("Waiting for shell API to be ready...")
  while time.time() - start_time < timeout:
    try:
      with urlopen(url, timeout=1) as response:
        if response.status == 200:
          logger.info("Shell API is ready!")
          return True
    except (URLError, OSError):
      time.sleep(0.1)

  logger.error("Shell API failed to start within %s seconds", timeout)
  return False


def run_pywebview_app(*, frontend_path: Optional[Path], os_impl: OSImplementations) -> None:
  logger.info("Starting trailhead shell...")

  storage = os_impl.config_storage()
  preferences = LaunchPreferences(storage)
  engine = build_engine(preferences, os_impl)

  bridge = SurfaceBridge()
  cache_bust = int(time.time())
  window = webview.create_window(
    title=APP_TITLE,
    url=_shell_url(f"/?v={cache_bust}"),
    js_api=bridge,
    zoomable=False,
    min_size=(360, 640),
  )

  tls_policy = TlsPolicy(accept_any_server_trust=AppConfig.ACCEPT_ANY_SERVER_TRUST)
  factory = PyWebviewSurfaceFactory(window, APP_TITLE, local_origin=_shell_url("/"))
  manager = SurfaceLifecycleManager(
    factory,
    CookieJar(storage),
    preferences,
    os_impl.url_opener(),
    tls_policy=tls_policy,
    redirect_threshold=AppConfig.REDIRECT_THRESHOLD,
  )
  factory.manager = manager
  bind_bridge(bridge, manager)

  def _bind_primary_bridge() -> None:
    bind_bridge(bridge, manager, manager.primary)  # type: ignore[arg-type]

  router = PhaseRouter(
    manager,
    show_local_page=lambda path: window.load_url(_shell_url(path)),
    on_primary_created=_bind_primary_bridge,
  )
  engine.subscribe(router.on_snapshot)

  app = create_app(
    engine, preferences, frontend_path=frontend_path, on_override=router.on_override
  )
  shell_thread = threading.Thread(
    target=_start_shell_server, args=(app,), daemon=True, name="Shell-API"
  )
  shell_thread.start()

  if not _wait_for_shell():
    raise RuntimeError("Shell API failed to start")

  monitor = os_impl.connectivity_monitor()
  monitor.add_listener(engine.post_connectivity)
  monitor.start()

  webview.settings["IGNORE_SSL_ERRORS"] = tls_policy.accept_any_server_trust

  logger.info("Starting pywebview...")
  webview.start(debug=WEBVIEW_DEBUG, private_mode=False, storage_path="~/.trailhead")

  logger.info("Window closed. Exiting...")
  manager.teardown()
  monitor.stop()
  os._exit(0)
