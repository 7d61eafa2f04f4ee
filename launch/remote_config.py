"""
Remote configuration round trip

POSTs the attribution payload plus device metadata and validates the
`{ok, url, expires}` answer. No retries: a failure is reported once and the
caller falls back.
"""

import json
import locale
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx
from pydantic import ValidationError

from launch.exceptions import AppError
from launch.models import RemoteConfigResponse

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "EN"


def preferred_locale() -> str:
  """Two-letter uppercase language of the preferred locale, EN when unknown"""
  candidates = [os.getenv("LANGUAGE", "").split(":")[0], os.getenv("LANG", "")]
  try:
    candidates.insert(0, locale.getlocale()[0] or "")
  except ValueError:
    pass
  for candidate in candidates:
    language = candidate.split("_")[0].split(".")[0].split("-")[0]
    if len(language) >= 2 and language.isalpha() and candidate.upper() not in {"C", "POSIX"}:
      return language[:2].upper()
  return DEFAULT_LOCALE


@dataclass(frozen=True)
class DeviceInfo:
  """App and device identity sent with every configuration request"""

  attribution_uid: str
  bundle_id: str
  app_store_id: str
  os_name: str = "iOS"
  firebase_project_id: Optional[str] = None
  locale: str = DEFAULT_LOCALE

  @property
  def store_id(self) -> str:
    return f"id{self.app_store_id}"


class RemoteConfigClient:
  """Client for the remote configuration endpoint"""

  def __init__(
    self,
    endpoint: str,
    device: DeviceInfo,
    timeout: float = 30.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
  ):
    self.endpoint = endpoint
    self.device = device
    self.timeout = timeout
    self.transport = transport

  def build_body(
    self, payload: Mapping[str, Any], push_token: Optional[str] = None
  ) -> Dict[str, Any]:
    """Attribution keys pass through; device metadata overrides them"""
    body: Dict[str, Any] = dict(payload)
    body["af_id"] = self.device.attribution_uid
    body["bundle_id"] = self.device.bundle_id
    body["os"] = self.device.os_name
    body["store_id"] = self.device.store_id
    body["locale"] = self.device.locale
    if push_token:
      body["push_token"] = push_token
    else:
      body.pop("push_token", None)
    if self.device.firebase_project_id:
      body["firebase_project_id"] = self.device.firebase_project_id
    else:
      body.pop("firebase_project_id", None)
    return body

  async def fetch(
    self, payload: Mapping[str, Any], push_token: Optional[str] = None
  ) -> RemoteConfigResponse:
    """
    Request the destination for this install

    Args:
      payload: Merged attribution payload
      push_token: Push token if one is known

    Returns:
      The validated configuration

    Raises:
      AppError: On any transport, status or body problem
    """
    body = self.build_body(payload, push_token)
    try:
      content = json.dumps(body)
    except (TypeError, ValueError) as e:
      raise AppError.from_exception(
        e, name="CONFIG_BODY_UNSERIALIZABLE", source="protocol"
      )

    try:
      async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
        response = await client.post(
          self.endpoint,
          content=content,
          headers={"Content-Type": "application/json"},
        )
    except httpx.HTTPError as e:
      raise AppError.from_exception(
        e,
        name="CONFIG_TRANSPORT_ERROR",
        source="network",
        context="Remote configuration request failed",
      )

    if response.status_code != 200:
      raise AppError(
        description=f"Remote configuration returned HTTP {response.status_code}",
        name="CONFIG_BAD_STATUS",
        source="protocol",
      )

    try:
      config = RemoteConfigResponse.model_validate_json(response.content)
    except ValidationError as e:
      raise AppError.from_exception(
        e,
        name="CONFIG_MALFORMED",
        source="protocol",
        context="Remote configuration body did not validate",
      )

    if not config.ok:
      raise AppError(
        description="Remote configuration answered ok=false",
        name="CONFIG_NOT_OK",
        source="protocol",
      )
    if not config.url.strip():
      raise AppError(
        description="Remote configuration returned an empty url",
        name="CONFIG_EMPTY_URL",
        source="protocol",
      )

    logger.info(f"Remote configuration ok: url={config.url} expires={config.expires}s")
    return config
