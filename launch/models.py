"""
Data model for the launch decision core
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from pydantic import (
  AwareDatetime,
  BaseModel,
  ConfigDict,
  Field,
  StrictBool,
  StrictFloat,
  StrictStr,
)

Payload = Dict[str, Any]


class AppPhase(str, Enum):
  """Top-level mode the presentation layer renders"""

  INITIALIZING = "initializing"
  WEB_CONTAINER = "web_container"
  LEGACY_MODE = "legacy_mode"
  NO_CONNECTION = "no_connection"


class AppMode(str, Enum):
  """Persisted routing mode of this install"""

  PRIMARY = "primary"
  LEGACY = "legacy"


class PersistedRouteConfig(BaseModel):
  """Destination chosen by the last successful remote configuration"""

  destination_url: str
  expires_at: AwareDatetime
  mode: AppMode = AppMode.PRIMARY

  def is_expired(self, now: datetime) -> bool:
    return now >= self.expires_at


class PhaseSnapshot(BaseModel):
  """Atomic view of the engine output broadcast to the presentation layer"""

  model_config = ConfigDict(frozen=True)

  phase: AppPhase = AppPhase.INITIALIZING
  destination: Optional[str] = None
  push_prompt_requested: bool = False


class RemoteConfigResponse(BaseModel):
  """Successful remote configuration body; anything else is a failure"""

  model_config = ConfigDict(extra="allow")

  ok: StrictBool
  url: StrictStr
  expires: StrictFloat = Field(..., description="Seconds from now until the route expires")


class AttributionState(BaseModel):
  """Payloads received from the attribution SDK during this cold start"""

  conversion: Optional[Payload] = None
  deep_link: Optional[Payload] = None

  def merged(self) -> Payload:
    return merge_payloads(self.conversion or {}, self.deep_link or {})


def merge_payloads(attribution: Mapping[str, Any], deep_link: Mapping[str, Any]) -> Payload:
  """
  Merge a deep-link payload into an attribution payload

  Attribution keys always win; deep-link values only fill keys attribution lacks.
  """
  merged: Payload = dict(attribution)
  for key, value in deep_link.items():
    if key not in merged:
      merged[key] = value
  return merged
