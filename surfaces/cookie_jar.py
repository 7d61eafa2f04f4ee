"""
Durable cookie jar

Cookies are grouped by domain, then by name, and written as one blob. The same
name within a domain is last-write-wins.
"""

import logging
from typing import Any, Dict, Iterable, List

from pydantic import BaseModel, Field

from os_interfaces.base import ConfigStorage

logger = logging.getLogger(__name__)

COOKIE_JAR_KEY = "cookie_jar"

GroupedCookies = Dict[str, Dict[str, Dict[str, Any]]]


class CookieRecord(BaseModel):
  """One cookie; `properties` is opaque to the jar (value, path, expiry, flags)"""

  domain: str
  name: str
  properties: Dict[str, Any] = Field(default_factory=dict)


def group_cookies(records: Iterable[CookieRecord]) -> GroupedCookies:
  grouped: GroupedCookies = {}
  for record in records:
    grouped.setdefault(record.domain, {})[record.name] = dict(record.properties)
  return grouped


def flatten_cookies(grouped: GroupedCookies) -> List[CookieRecord]:
  return [
    CookieRecord(domain=domain, name=name, properties=properties)
    for domain, by_name in grouped.items()
    for name, properties in by_name.items()
  ]


class CookieJar:
  """Persists the live cookie set into a ConfigStorage blob"""

  def __init__(self, storage: ConfigStorage, key: str = COOKIE_JAR_KEY):
    self.storage = storage
    self.key = key

  def load(self) -> GroupedCookies:
    """Read the grouped blob; anything malformed is treated as an empty jar"""
    raw = self.storage.get(self.key)
    if raw is None:
      return {}
    if not isinstance(raw, dict):
      logger.warning(f"Corrupt cookie jar ({type(raw).__name__}), treating as empty")
      return {}

    grouped: GroupedCookies = {}
    for domain, by_name in raw.items():
      if not isinstance(domain, str) or not isinstance(by_name, dict):
        logger.warning(f"Skipping corrupt cookie jar entry for {domain!r}")
        continue
      for name, properties in by_name.items():
        if isinstance(name, str) and isinstance(properties, dict):
          grouped.setdefault(domain, {})[name] = properties
    return grouped

  def save(self, records: Iterable[CookieRecord]) -> int:
    """Replace the persisted jar with `records`; returns the cookie count"""
    grouped = group_cookies(records)
    self.storage.set(self.key, grouped)
    count = sum(len(by_name) for by_name in grouped.values())
    logger.debug(f"Persisted {count} cookies across {len(grouped)} domains")
    return count

  def restore(self) -> List[CookieRecord]:
    return flatten_cookies(self.load())

  def clear(self) -> None:
    self.storage.delete(self.key)
