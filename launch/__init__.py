"""Launch routing core: decides between the embedded web surface and the legacy UI"""

from .engine import BootstrapEngine
from .models import AppMode, AppPhase, PersistedRouteConfig, PhaseSnapshot, merge_payloads

__all__ = [
  "AppMode",
  "AppPhase",
  "BootstrapEngine",
  "PersistedRouteConfig",
  "PhaseSnapshot",
  "merge_payloads",
]
