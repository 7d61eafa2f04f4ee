"""
Error types shared by the launch core and the shell API

Every failure that crosses a module seam is an AppError with a stable `name`
and an ErrorSource. The engine reacts to the source when picking a fallback;
the shell API turns it into a status code.
"""

from typing import Dict, Literal, Optional, cast

from pydantic import BaseModel, Field

ErrorSource = Literal[
  "network",  # no connectivity, timeout, TLS
  "protocol",  # non-200, malformed body, missing fields
  "attribution",  # organic verification identifiers
  "storage",  # unreadable persisted state
  "validation",  # bad input to the shell API
  "http",  # HTTPException raised inside the shell API
  "unknown",
]

UPSTREAM_SOURCES = ("network", "protocol", "attribution")

_STATUS_BY_SOURCE: Dict[str, int] = {
  "validation": 400,
  **{source: 502 for source in UPSTREAM_SOURCES},
}


def get_status_code(source: ErrorSource) -> int:
  """HTTP status for errors of `source`; 500 when nothing more specific fits"""
  return _STATUS_BY_SOURCE.get(source, 500)


class ErrorResponse(BaseModel):
  """Body of every non-2xx shell API response"""

  name: str = Field(..., description="Stable identifier, e.g. CONFIG_NOT_OK")
  description: str = Field(..., description="Human-readable message")
  source: ErrorSource = Field(..., description="Subsystem the failure came from")
  caused_by: Optional[str] = Field(
    None, description="Class and message of the wrapped exception"
  )


class AppError(Exception):
  """Failure with a stable name and an origin"""

  def __init__(
    self,
    description: str,
    name: str,
    source: ErrorSource,
    caused_by: Optional[str] = None,
  ):
    super().__init__(description)
    self.description = description
    self.name = name
    self.source: ErrorSource = source
    self.caused_by = caused_by

  def __repr__(self) -> str:
    return f"AppError({self.name}, source={self.source}, description={self.description!r})"

  @property
  def status_code(self) -> int:
    return get_status_code(self.source)

  @property
  def is_upstream(self) -> bool:
    """True when a remote dependency, not this process, misbehaved"""
    return self.source in UPSTREAM_SOURCES

  def to_response(self) -> ErrorResponse:
    return ErrorResponse(
      name=self.name,
      description=self.description,
      source=cast(ErrorSource, self.source),
      caused_by=self.caused_by,
    )

  @classmethod
  def from_exception(
    cls,
    e: Exception,
    name: str,
    source: ErrorSource,
    context: Optional[str] = None,
  ) -> "AppError":
    """
    Wrap an exception raised by a library

    Args:
      e: The original exception
      name: Identifier for the wrapped failure
      source: Where it originated
      context: Prefix for the description

    Returns:
      AppError whose `caused_by` keeps the original class and message
    """
    message = str(e) or e.__class__.__name__
    return cls(
      description=f"{context}: {message}" if context else message,
      name=name,
      source=source,
      caused_by=f"{e.__class__.__name__}: {message}",
    )
