"""
Bootstrap decision engine

Aggregates attribution, deep-link, connectivity and remote-configuration
signals into the single current AppPhase plus an optional destination.

Concurrency contract:
- All decision logic runs on one asyncio loop (the loop `run()` is awaited on).
- Connectivity observers on other threads go through `post_connectivity()`,
  which marshals onto that loop; the most recently observed status wins.
- Phase and destination are replaced together as one frozen PhaseSnapshot
  under a lock, so readers on other threads never see a half-applied update.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Coroutine, Optional

from launch.attribution import AttributionChannel, AttributionEvent, OrganicVerifier
from launch.config import EngineSettings
from launch.exceptions import AppError
from launch.models import (
  AppMode,
  AppPhase,
  AttributionState,
  Payload,
  PersistedRouteConfig,
  PhaseSnapshot,
  RemoteConfigResponse,
)
from launch.preferences import LaunchPreferences
from launch.remote_config import RemoteConfigClient
from os_interfaces.base import PushAuthorizer

logger = logging.getLogger(__name__)

PhaseListener = Callable[[PhaseSnapshot], None]

ORGANIC_STATUS = "Organic"


def _utcnow() -> datetime:
  return datetime.now(timezone.utc)


class BootstrapEngine:
  """Launch routing state machine"""

  def __init__(
    self,
    preferences: LaunchPreferences,
    remote_config: RemoteConfigClient,
    verifier: OrganicVerifier,
    channel: Optional[AttributionChannel] = None,
    settings: Optional[EngineSettings] = None,
    push_authorizer: Optional[PushAuthorizer] = None,
    clock: Callable[[], datetime] = _utcnow,
  ):
    self.preferences = preferences
    self.remote_config = remote_config
    self.verifier = verifier
    self.channel = channel or AttributionChannel()
    self.settings = settings or EngineSettings()
    self.push_authorizer = push_authorizer
    self.clock = clock

    self._snapshot = PhaseSnapshot()
    self._snapshot_lock = threading.Lock()
    self._listeners: list[PhaseListener] = []

    self._attribution = AttributionState()
    self._decision_started = False
    self._awaiting_push = False
    self._closed = False
    self._loop: Optional[asyncio.AbstractEventLoop] = None
    self._tasks: set[asyncio.Task] = set()

  # ---- observation ----
  @property
  def snapshot(self) -> PhaseSnapshot:
    with self._snapshot_lock:
      return self._snapshot

  @property
  def phase(self) -> AppPhase:
    return self.snapshot.phase

  @property
  def destination(self) -> Optional[str]:
    return self.snapshot.destination

  @property
  def attribution_payload(self) -> Payload:
    return dict(self._attribution.conversion or {})

  def subscribe(self, listener: PhaseListener) -> Callable[[], None]:
    """Register a snapshot listener; returns an unsubscribe callable"""
    self._listeners.append(listener)

    def unsubscribe() -> None:
      if listener in self._listeners:
        self._listeners.remove(listener)

    return unsubscribe

  def _publish(self, snapshot: PhaseSnapshot) -> None:
    with self._snapshot_lock:
      previous = self._snapshot
      self._snapshot = snapshot

    if previous.phase != snapshot.phase:
      logger.info(
        f"Phase {previous.phase.value} -> {snapshot.phase.value}"
        f" (destination={snapshot.destination})"
      )

    for listener in list(self._listeners):
      try:
        listener(snapshot)
      except Exception:
        logger.exception("Phase listener failed")

  def _move_to(self, phase: AppPhase, destination: Optional[str] = None) -> None:
    self._publish(
      PhaseSnapshot(
        phase=phase,
        destination=destination,
        push_prompt_requested=self._awaiting_push,
      )
    )

  # ---- lifecycle ----
  async def run(self) -> None:
    """Consume attribution events until closed"""
    self._loop = asyncio.get_running_loop()
    self.channel.bind(self._loop)

    if self.settings.attribution_timeout is not None:
      self._spawn(self._decision_timeout(self.settings.attribution_timeout))

    try:
      while not self._closed:
        event = await self.channel.get()
        self.handle_event(event)
    finally:
      self.close()

  def close(self) -> None:
    """Stop reacting; a pending debounced call will not fire"""
    self._closed = True
    for task in list(self._tasks):
      if task is not asyncio.current_task():
        task.cancel()

  @property
  def push_prompt_pending(self) -> bool:
    return self._awaiting_push

  def schedule(self, coro: Coroutine) -> asyncio.Task:
    """Run a coroutine as an engine-owned task on the current loop"""
    return self._spawn(coro)

  def _spawn(self, coro: Coroutine) -> asyncio.Task:
    task = asyncio.create_task(coro)
    self._tasks.add(task)

    def _done(t: asyncio.Task) -> None:
      self._tasks.discard(t)
      if not t.cancelled() and t.exception() is not None:
        logger.error("Engine task failed", exc_info=t.exception())

    task.add_done_callback(_done)
    return task

  def handle_event(self, event: AttributionEvent) -> None:
    if event.kind == "conversion":
      self._attribution.conversion = event.payload
      self._spawn(self.decide_launch_strategy())
    else:
      self._attribution.deep_link = event.payload

  async def _decision_timeout(self, seconds: float) -> None:
    await asyncio.sleep(seconds)
    if not self._decision_started and not self._closed:
      logger.info(f"No attribution after {seconds}s, deciding without it")
      await self.decide_launch_strategy()

  # ---- decision ----
  async def decide_launch_strategy(self) -> None:
    """Choose the launch route; runs at most once per cold start"""
    if self._decision_started:
      logger.debug("Launch strategy already decided, ignoring")
      return
    self._decision_started = True

    payload = self._attribution.conversion or {}
    if not payload:
      logger.info("No attribution payload, using cached route or legacy")
      self.fallback_to_cached_or_legacy()
      return

    if self.preferences.app_mode == AppMode.LEGACY:
      logger.info("Install is pinned to legacy mode")
      self._switch_to_legacy()
      return

    if not self.preferences.has_run_before and payload.get("af_status") == ORGANIC_STATUS:
      await self._verify_organic()
      return

    override = self.preferences.consume_override_url()
    if override:
      self._move_to(AppPhase.WEB_CONTAINER, override)
      return

    if self._should_request_push_permission():
      self._request_push_prompt()
      return

    await self.request_remote_configuration()

  async def _verify_organic(self) -> None:
    # Debounce so a deep link arriving right behind the conversion gets merged.
    await asyncio.sleep(self.settings.organic_debounce)
    if self._closed:
      return

    try:
      await self.verifier.verify(self.remote_config.device.attribution_uid)
    except AppError as e:
      logger.warning(f"Organic verification failed [{e.name}]: {e.description}")
      self._switch_to_legacy()
      return
    except Exception:
      logger.exception("Unexpected organic verification failure")
      self._switch_to_legacy()
      return

    self._attribution.conversion = self._attribution.merged()
    await self.request_remote_configuration()

  async def request_remote_configuration(self) -> None:
    try:
      config = await self.remote_config.fetch(
        self._attribution.conversion or {}, self.preferences.push_token
      )
      route = self._route_from(config)
    except AppError as e:
      logger.warning(f"Remote configuration failed [{e.name}]: {e.description}")
      self.fallback_to_cached_or_legacy()
      return
    except Exception:
      logger.exception("Unexpected remote configuration failure")
      self.fallback_to_cached_or_legacy()
      return

    self.preferences.save_route(route)
    self.preferences.set_app_mode(AppMode.PRIMARY)
    self.preferences.mark_has_run()
    self._move_to(AppPhase.WEB_CONTAINER, config.url)

  def _route_from(self, config: RemoteConfigResponse) -> PersistedRouteConfig:
    try:
      expires_at = self.clock() + timedelta(seconds=config.expires)
    except (OverflowError, ValueError) as e:
      raise AppError.from_exception(
        e,
        name="CONFIG_MALFORMED",
        source="protocol",
        context=f"Unusable expires value {config.expires!r}",
      )
    return PersistedRouteConfig(
      destination_url=config.url, expires_at=expires_at, mode=AppMode.PRIMARY
    )

  def fallback_to_cached_or_legacy(self) -> None:
    if self.preferences.app_mode == AppMode.LEGACY:
      self._switch_to_legacy()
      return

    route = self.preferences.saved_route
    if (
      route is not None
      and self.settings.enforce_route_expiry
      and route.is_expired(self.clock())
    ):
      logger.info(f"Cached route expired at {route.expires_at.isoformat()}, ignoring it")
      route = None

    if route is not None:
      logger.info(f"Resuming cached route {route.destination_url}")
      self._move_to(AppPhase.WEB_CONTAINER, route.destination_url)
    else:
      self._switch_to_legacy()

  def _switch_to_legacy(self) -> None:
    self.preferences.set_app_mode(AppMode.LEGACY)
    self.preferences.mark_has_run()
    self._move_to(AppPhase.LEGACY_MODE)

  # ---- push prompt ----
  def _should_request_push_permission(self) -> bool:
    last_ask = self.preferences.last_push_ask
    if last_ask is None:
      return True
    return (self.clock() - last_ask).total_seconds() >= self.settings.push_prompt_cooldown

  def _request_push_prompt(self) -> None:
    self._awaiting_push = True
    current = self.snapshot
    self._publish(current.model_copy(update={"push_prompt_requested": True}))

  async def accept_push_prompt(self) -> None:
    if not self._awaiting_push:
      logger.warning("accept_push_prompt called with no prompt pending")
      return
    self._awaiting_push = False

    granted = False
    if self.push_authorizer is not None:
      try:
        granted = await self.push_authorizer.request_authorization()
      except Exception:
        logger.exception("Push authorization request failed")
    self.preferences.record_push_authorization(granted)
    if granted and self.push_authorizer is not None:
      self.push_authorizer.register_for_remote_notifications()

    await self._resolve_push_prompt()

  async def decline_push_prompt(self) -> None:
    if not self._awaiting_push:
      logger.warning("decline_push_prompt called with no prompt pending")
      return
    self._awaiting_push = False
    await self._resolve_push_prompt()

  async def _resolve_push_prompt(self) -> None:
    self.preferences.record_push_ask(self.clock())
    current = self.snapshot
    self._publish(current.model_copy(update={"push_prompt_requested": False}))
    await self.request_remote_configuration()

  # ---- connectivity ----
  def post_connectivity(self, satisfied: bool) -> None:
    """Thread-safe entry for connectivity observers"""
    loop = self._loop
    if loop is None or loop.is_closed():
      logger.debug("Engine loop not running, dropping connectivity update")
      return
    loop.call_soon_threadsafe(self.on_connectivity_change, satisfied)

  def on_connectivity_change(self, satisfied: bool) -> None:
    current = self.snapshot
    if current.phase == AppPhase.INITIALIZING:
      logger.debug("Connectivity change before launch decision, ignoring")
      return

    if satisfied:
      if current.phase == AppPhase.NO_CONNECTION and current.destination:
        self._move_to(AppPhase.WEB_CONTAINER, current.destination)
      return

    if self.preferences.app_mode == AppMode.PRIMARY:
      self._move_to(AppPhase.NO_CONNECTION, current.destination)
    else:
      self._switch_to_legacy()
