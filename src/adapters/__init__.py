"""Platform adapters and the classification-to-adapter registry."""

from typing import Dict, Optional

from src.agents.field_mapper import FieldMapper
from src.agents.state import Platform

from .base import PlatformAdapter
from .classifier import classify
from .generic import GenericFormHandler
from .greenhouse import GreenhouseAdapter
from .lever import LeverAdapter
from .linkedin import LinkedInAdapter
from .workday import WorkdayAdapter

_ADAPTER_TYPES = {
    Platform.GREENHOUSE: GreenhouseAdapter,
    Platform.LEVER: LeverAdapter,
    Platform.WORKDAY: WorkdayAdapter,
    Platform.LINKEDIN: LinkedInAdapter,
    Platform.GENERIC: GenericFormHandler,
}


def build_adapters(field_mapper: Optional[FieldMapper] = None) -> Dict[Platform, PlatformAdapter]:
    """One adapter instance per platform, sharing a field mapper."""
    return {platform: adapter_type(field_mapper) for platform, adapter_type in _ADAPTER_TYPES.items()}


__all__ = [
    "PlatformAdapter",
    "GenericFormHandler",
    "GreenhouseAdapter",
    "LeverAdapter",
    "LinkedInAdapter",
    "WorkdayAdapter",
    "build_adapters",
    "classify",
]
