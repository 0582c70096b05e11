"""refclean: robust average referencing and amplitude based cleaning of continuous EEG."""

__version__ = "0.1.0"

from .core.pipeline import BatchRecorder, Pipeline
from .functions import (
    annotate_amplitude_segments,
    detect_bad_segments,
    iterative_rereference,
    rereference_iteratively,
)
from .types import DetectionResult, DetectorConfig, IterationResult, ReferenceConfig

__all__ = [
    "__version__",
    "BatchRecorder",
    "Pipeline",
    "annotate_amplitude_segments",
    "detect_bad_segments",
    "iterative_rereference",
    "rereference_iteratively",
    "DetectionResult",
    "DetectorConfig",
    "IterationResult",
    "ReferenceConfig",
]
