"""Configuration and result types."""

from .configs import (
    DEFAULT_THRESHOLDS,
    DetectorConfig,
    InvalidConfig,
    ReferenceConfig,
    coerce_config,
)
from .results import (
    TAG_BAD,
    TAG_BAD_AND_REJECTED,
    TAG_OK,
    BadSegment,
    DetectionResult,
    FileRecord,
    IterationResult,
)

__all__ = [
    "DEFAULT_THRESHOLDS",
    "DetectorConfig",
    "InvalidConfig",
    "ReferenceConfig",
    "coerce_config",
    "TAG_OK",
    "TAG_BAD",
    "TAG_BAD_AND_REJECTED",
    "BadSegment",
    "DetectionResult",
    "FileRecord",
    "IterationResult",
]
