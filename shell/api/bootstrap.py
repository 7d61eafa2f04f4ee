"""Bootstrap endpoints used by the local presentation layer and SDK bridges"""

import logging
from typing import Any, Dict
from urllib.parse import urlsplit

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from launch.engine import BootstrapEngine
from launch.exceptions import AppError
from launch.models import PhaseSnapshot
from launch.preferences import LaunchPreferences

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bootstrap", tags=["bootstrap"])


class OverrideRequest(BaseModel):
  url: str = Field(..., description="One-shot destination from a push or deep link")


class PushTokenRequest(BaseModel):
  token: str = Field(..., min_length=1)


class PublishResult(BaseModel):
  accepted: bool


class OverrideResult(BaseModel):
  stored: bool
  applied: bool


def _engine(request: Request) -> BootstrapEngine:
  return request.app.state.engine


def _preferences(request: Request) -> LaunchPreferences:
  return request.app.state.preferences


@router.get("/state", response_model=PhaseSnapshot)
async def get_state(request: Request) -> PhaseSnapshot:
  """Current phase, destination and push prompt flag"""
  return _engine(request).snapshot


async def _resolve_prompt(request: Request, accepted: bool) -> PhaseSnapshot:
  engine = _engine(request)
  if not engine.push_prompt_pending:
    raise AppError(
      description="No push permission prompt is pending",
      name="PUSH_PROMPT_NOT_PENDING",
      source="validation",
    )
  engine.schedule(engine.accept_push_prompt() if accepted else engine.decline_push_prompt())
  return engine.snapshot


@router.post("/push/accept", response_model=PhaseSnapshot, status_code=202)
async def accept_push_prompt(request: Request) -> PhaseSnapshot:
  return await _resolve_prompt(request, accepted=True)


@router.post("/push/decline", response_model=PhaseSnapshot, status_code=202)
async def decline_push_prompt(request: Request) -> PhaseSnapshot:
  return await _resolve_prompt(request, accepted=False)


@router.post("/attribution", response_model=PublishResult)
async def publish_attribution(request: Request, payload: Dict[str, Any]) -> PublishResult:
  """Conversion data callback from the attribution SDK bridge"""
  accepted = _engine(request).channel.publish_conversion(payload)
  return PublishResult(accepted=accepted)


@router.post("/deeplink", response_model=PublishResult)
async def publish_deep_link(request: Request, payload: Dict[str, Any]) -> PublishResult:
  """Deep-link callback from the attribution SDK bridge"""
  accepted = _engine(request).channel.publish_deep_link(payload)
  return PublishResult(accepted=accepted)


@router.post("/override", response_model=OverrideResult)
async def set_override(request: Request, body: OverrideRequest) -> OverrideResult:
  """Store a one-shot destination; a live web session picks it up immediately"""
  url = body.url.strip()
  if urlsplit(url).scheme.lower() not in {"http", "https"}:
    raise AppError(
      description=f"Override URL must be http(s): {url!r}",
      name="OVERRIDE_URL_INVALID",
      source="validation",
    )

  _preferences(request).set_override_url(url)
  logger.info(f"Stored override URL {url}")

  applied = False
  on_override = getattr(request.app.state, "on_override", None)
  if on_override is not None:
    applied = bool(on_override())
  return OverrideResult(stored=True, applied=applied)


@router.post("/push-token", response_model=PublishResult)
async def set_push_token(request: Request, body: PushTokenRequest) -> PublishResult:
  _preferences(request).set_push_token(body.token)
  return PublishResult(accepted=True)
