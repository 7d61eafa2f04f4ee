"""
Attribution inputs: the inbound SDK event channel and organic verification
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Literal, Mapping, Optional
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from launch.exceptions import AppError
from launch.models import Payload

logger = logging.getLogger(__name__)

EventKind = Literal["conversion", "deep_link"]


class AttributionEvent(BaseModel):
  """One payload delivered by the attribution SDK"""

  kind: EventKind
  payload: Payload


class AttributionChannel:
  """Fan-in of attribution callbacks towards a single consumer

  Producers may publish from any thread. Each kind is delivered at most once
  per session; later publications of the same kind are dropped. Events
  published before the consumer binds its loop are buffered.
  """

  def __init__(self):
    self._lock = threading.Lock()
    self._seen: set[str] = set()
    self._backlog: list[AttributionEvent] = []
    self._loop: Optional[asyncio.AbstractEventLoop] = None
    self._queue: Optional[asyncio.Queue[AttributionEvent]] = None

  def bind(self, loop: asyncio.AbstractEventLoop) -> None:
    """Attach the consumer loop; must be called from that loop"""
    with self._lock:
      self._loop = loop
      self._queue = asyncio.Queue()
      for event in self._backlog:
        self._queue.put_nowait(event)
      self._backlog.clear()

  def publish_conversion(self, payload: Mapping[str, Any]) -> bool:
    return self._publish(AttributionEvent(kind="conversion", payload=dict(payload)))

  def publish_deep_link(self, payload: Mapping[str, Any]) -> bool:
    return self._publish(AttributionEvent(kind="deep_link", payload=dict(payload)))

  def _publish(self, event: AttributionEvent) -> bool:
    with self._lock:
      if event.kind in self._seen:
        logger.warning(f"Dropping duplicate {event.kind} payload")
        return False
      self._seen.add(event.kind)

      if self._loop is None or self._queue is None:
        self._backlog.append(event)
        return True
      loop, queue = self._loop, self._queue

    loop.call_soon_threadsafe(queue.put_nowait, event)
    logger.info(f"Received {event.kind} payload with {len(event.payload)} keys")
    return True

  async def get(self) -> AttributionEvent:
    if self._queue is None:
      raise RuntimeError("AttributionChannel.get() called before bind()")
    return await self._queue.get()


class OrganicVerifier:
  """Out-of-band identity check against the attribution verification service"""

  def __init__(
    self,
    base_url: str,
    app_id: str,
    dev_key: str,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
  ):
    self.base_url = base_url
    self.app_id = app_id
    self.dev_key = dev_key
    self.timeout = timeout
    self.transport = transport

  def build_url(self, device_uid: str) -> Optional[str]:
    """Verification URL, or None when any identifier is missing"""
    if not self.app_id or not self.dev_key or not device_uid:
      return None
    query = urlencode({"devkey": self.dev_key, "device_id": device_uid})
    return f"{self.base_url}id{self.app_id}?{query}"

  async def verify(self, device_uid: str) -> Any:
    """
    Run the verification call

    Returns:
      The parsed JSON body

    Raises:
      AppError: On missing identifiers, transport failure, non-200 or bad JSON
    """
    url = self.build_url(device_uid)
    if url is None:
      raise AppError(
        description="Cannot build organic verification URL, identifiers missing",
        name="ORGANIC_IDENTIFIERS_MISSING",
        source="attribution",
      )

    try:
      async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
        response = await client.get(url)
    except httpx.HTTPError as e:
      raise AppError.from_exception(
        e,
        name="ORGANIC_TRANSPORT_ERROR",
        source="network",
        context="Organic verification request failed",
      )

    if response.status_code != 200:
      raise AppError(
        description=f"Organic verification returned HTTP {response.status_code}",
        name="ORGANIC_BAD_STATUS",
        source="protocol",
      )

    try:
      return response.json()
    except ValueError as e:
      raise AppError.from_exception(
        e, name="ORGANIC_MALFORMED", source="protocol", context="Unparseable body"
      )
