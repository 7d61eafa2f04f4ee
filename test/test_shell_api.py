"""Tests for the shell API"""

from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from launch.attribution import OrganicVerifier
from launch.config import EngineSettings
from launch.engine import BootstrapEngine
from launch.models import AppPhase
from launch.preferences import OVERRIDE_URL, PUSH_TOKEN
from launch.remote_config import DeviceInfo, RemoteConfigClient
from shell.main import create_app


def _config_handler(request: httpx.Request) -> httpx.Response:
  return httpx.Response(200, json={"ok": True, "url": "https://x", "expires": 60.0})


@pytest.fixture
def engine(preferences):
  settings = EngineSettings(organic_debounce=0.0, attribution_timeout=None)
  device = DeviceInfo(attribution_uid="uid-1", bundle_id="com.example", app_store_id="1")
  return BootstrapEngine(
    preferences=preferences,
    remote_config=RemoteConfigClient(
      "https://config.example/", device, transport=httpx.MockTransport(_config_handler)
    ),
    verifier=OrganicVerifier("https://verify.example/", "1", "k"),
    settings=settings,
  )


@pytest.fixture
def client(engine, preferences):
  app = create_app(engine, preferences, run_engine=False)
  with TestClient(app) as client:
    yield client


class TestHealth:
  def test_health(self, client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"

  def test_api_only_root(self, client):
    assert client.get("/").json()["message"] == "Trailhead Shell API"


class TestState:
  def test_initial_state(self, client):
    response = client.get("/api/bootstrap/state")

    assert response.status_code == 200
    assert response.json() == {
      "phase": "initializing",
      "destination": None,
      "push_prompt_requested": False,
    }

  def test_state_follows_engine(self, client, engine):
    engine.fallback_to_cached_or_legacy()

    assert client.get("/api/bootstrap/state").json()["phase"] == AppPhase.LEGACY_MODE.value


class TestPushPrompt:
  @pytest.mark.parametrize("action", ["accept", "decline"])
  def test_no_pending_prompt_is_rejected(self, client, action):
    response = client.post(f"/api/bootstrap/push/{action}")

    assert response.status_code == 400
    assert response.json()["name"] == "PUSH_PROMPT_NOT_PENDING"

  def test_decline_pending_prompt_is_accepted(self, client, engine):
    engine._request_push_prompt()

    response = client.post("/api/bootstrap/push/decline")

    assert response.status_code == 202


class TestAttributionBridge:
  def test_conversion_published_once(self, client):
    first = client.post("/api/bootstrap/attribution", json={"af_status": "Organic"})
    second = client.post("/api/bootstrap/attribution", json={"af_status": "Organic"})

    assert first.json() == {"accepted": True}
    assert second.json() == {"accepted": False}

  def test_deep_link_published(self, client):
    response = client.post("/api/bootstrap/deeplink", json={"deep_link_value": "promo"})

    assert response.json() == {"accepted": True}

  def test_non_object_body_rejected(self, client):
    response = client.post("/api/bootstrap/attribution", json=["not", "an", "object"])

    assert response.status_code == 400
    assert response.json()["name"] == "VALIDATION_ERROR"


class TestOverride:
  def test_override_stored(self, client, storage):
    response = client.post("/api/bootstrap/override", json={"url": " https://promo.example/ "})

    assert response.status_code == 200
    assert response.json() == {"stored": True, "applied": False}
    assert storage.get(OVERRIDE_URL) == "https://promo.example/"

  def test_override_hook_called(self, engine, preferences):
    hook = MagicMock(return_value=True)
    app = create_app(engine, preferences, on_override=hook, run_engine=False)

    with TestClient(app) as client:
      response = client.post("/api/bootstrap/override", json={"url": "https://promo.example/"})

    assert response.json() == {"stored": True, "applied": True}
    hook.assert_called_once_with()

  @pytest.mark.parametrize("url", ["javascript:alert(1)", "ftp://x.example/", "not a url"])
  def test_invalid_override_rejected(self, client, storage, url):
    response = client.post("/api/bootstrap/override", json={"url": url})

    assert response.status_code == 400
    assert response.json()["name"] == "OVERRIDE_URL_INVALID"
    assert storage.get(OVERRIDE_URL) is None


class TestPushToken:
  def test_token_stored(self, client, storage):
    response = client.post("/api/bootstrap/push-token", json={"token": "abc"})

    assert response.status_code == 200
    assert storage.get(PUSH_TOKEN) == "abc"

  def test_empty_token_rejected(self, client):
    assert client.post("/api/bootstrap/push-token", json={"token": ""}).status_code == 400


class TestFrontend:
  def test_serves_index_and_assets(self, engine, preferences, tmp_path):
    (tmp_path / "index.html").write_text("<html>splash</html>")
    (tmp_path / "legacy.js").write_text("console.log('legacy')")
    app = create_app(engine, preferences, frontend_path=tmp_path, run_engine=False)

    with TestClient(app) as client:
      assert "splash" in client.get("/offline").text
      assert "legacy" in client.get("/legacy.js").text
      assert client.get("/offline").headers["Cache-Control"].startswith("no-cache")
