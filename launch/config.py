"""
Launch shell settings

Everything is read from the environment (a .env file is honoured) once at
import. The attribution dev key may instead live in the system keyring.
"""

import os
import logging
from dataclasses import dataclass
from typing import Optional
import keyring
from dotenv import load_dotenv
from keyring.errors import KeyringError

logger = logging.getLogger(__name__)

load_dotenv()

KEYRING_SERVICE = "trailhead-app"
ATTRIBUTION_DEV_KEY = "attribution_dev_key"


def _env_bool(name: str, default: str) -> bool:
  return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


def get_secret(key_name: str, env_var: str) -> Optional[str]:
  """Secret from the system keyring, else from `env_var`"""
  try:
    value = keyring.get_password(KEYRING_SERVICE, key_name)
  except KeyringError as e:
    logger.warning(f"Keyring unavailable for '{key_name}': {e}")
    value = None
  if value:
    return value

  value = os.getenv(env_var)
  if value:
    logger.debug(f"Secret '{key_name}' taken from ${env_var}")
    return value

  logger.warning(f"Secret '{key_name}' is neither in the keyring nor in ${env_var}")
  return None


def get_attribution_dev_key() -> str:
  """Attribution dev key; an empty string makes organic verification fail closed"""
  return get_secret(ATTRIBUTION_DEV_KEY, "ATTRIBUTION_DEV_KEY") or ""


class AppConfig:
  """Application configuration settings"""

  # Remote endpoints
  CONFIG_ENDPOINT = os.getenv("CONFIG_ENDPOINT", "https://birdhenallarm.com/config.php")
  ORGANIC_CHECK_BASE_URL = os.getenv(
    "ORGANIC_CHECK_BASE_URL", "https://gcdsdk.appsflyer.com/install_data/v4.0/"
  )

  # App identity
  APP_STORE_ID = os.getenv("APP_STORE_ID", "6754697142")
  BUNDLE_ID = os.getenv("BUNDLE_ID", "com.unknown.app")
  OS_NAME = os.getenv("OS_NAME", "iOS")
  FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")

  # Decision timing
  PUSH_PROMPT_COOLDOWN_SECONDS = float(os.getenv("PUSH_PROMPT_COOLDOWN_SECONDS", "259200"))
  ORGANIC_DEBOUNCE_SECONDS = float(os.getenv("ORGANIC_DEBOUNCE_SECONDS", "5"))
  ATTRIBUTION_TIMEOUT_SECONDS = float(os.getenv("ATTRIBUTION_TIMEOUT_SECONDS", "15"))
  HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "30"))
  ENFORCE_ROUTE_EXPIRY = _env_bool("ENFORCE_ROUTE_EXPIRY", "true")

  # Embedded browsing
  REDIRECT_THRESHOLD = int(os.getenv("REDIRECT_THRESHOLD", "70"))
  ACCEPT_ANY_SERVER_TRUST = _env_bool("ACCEPT_ANY_SERVER_TRUST", "true")

  # Connectivity
  CONNECTIVITY_PROBE_URL = os.getenv(
    "CONNECTIVITY_PROBE_URL", "https://clients3.google.com/generate_204"
  )
  CONNECTIVITY_POLL_SECONDS = float(os.getenv("CONNECTIVITY_POLL_SECONDS", "5"))

  # Local shell API
  SHELL_HOST = os.getenv("SHELL_HOST", "127.0.0.1")
  SHELL_PORT = int(os.getenv("SHELL_PORT", "8000"))

  # Logging
  LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class EngineSettings:
  """Tunables of the decision engine, decoupled from the environment for tests"""

  config_endpoint: str = AppConfig.CONFIG_ENDPOINT
  organic_check_base_url: str = AppConfig.ORGANIC_CHECK_BASE_URL
  push_prompt_cooldown: float = AppConfig.PUSH_PROMPT_COOLDOWN_SECONDS
  organic_debounce: float = AppConfig.ORGANIC_DEBOUNCE_SECONDS
  attribution_timeout: Optional[float] = AppConfig.ATTRIBUTION_TIMEOUT_SECONDS
  http_timeout: float = AppConfig.HTTP_TIMEOUT_SECONDS
  enforce_route_expiry: bool = AppConfig.ENFORCE_ROUTE_EXPIRY

  @classmethod
  def from_app_config(cls) -> "EngineSettings":
    return cls()
