"""
Redirect storm detection for one browsing surface

Pure state transitions, no I/O. The owner performs the returned recovery.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

DEFAULT_REDIRECT_THRESHOLD = 70


class ProvisionalErrorKind(str, Enum):
  """Classification of a navigation that failed before committing"""

  TOO_MANY_REDIRECTS = "too_many_redirects"
  CANCELLED = "cancelled"
  NETWORK = "network"
  OTHER = "other"


@dataclass
class RedirectGuardState:
  consecutive_redirect_count: int = 0
  last_known_good_url: Optional[str] = None


@dataclass(frozen=True)
class Recovery:
  """Instruction to stop loading and navigate to a known-good address"""

  url: str
  reason: str


class RedirectGuard:
  """Counts consecutive server redirects and decides when to bail out"""

  def __init__(self, threshold: int = DEFAULT_REDIRECT_THRESHOLD):
    if threshold < 0:
      raise ValueError(f"Redirect threshold must be non-negative, got: {threshold}")
    self.threshold = threshold
    self.state = RedirectGuardState()

  @property
  def consecutive_redirect_count(self) -> int:
    return self.state.consecutive_redirect_count

  @property
  def last_known_good_url(self) -> Optional[str]:
    return self.state.last_known_good_url

  def _recover(self, reason: str) -> Optional[Recovery]:
    self.state.consecutive_redirect_count = 0
    if self.state.last_known_good_url is None:
      return None
    return Recovery(url=self.state.last_known_good_url, reason=reason)

  def on_server_redirect(self) -> Optional[Recovery]:
    self.state.consecutive_redirect_count += 1
    if self.state.consecutive_redirect_count > self.threshold:
      return self._recover(
        f"more than {self.threshold} consecutive server redirects"
      )
    return None

  def on_navigation_settled(self, url: str) -> None:
    self.state.consecutive_redirect_count = 0
    if url:
      self.state.last_known_good_url = url

  def on_provisional_failure(self, error_kind: ProvisionalErrorKind) -> Optional[Recovery]:
    if error_kind == ProvisionalErrorKind.TOO_MANY_REDIRECTS:
      return self._recover("transport aborted with too many redirects")
    return None
