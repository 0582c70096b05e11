# results.py
"""Result containers returned by the referencing and detection routines."""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, NamedTuple, Optional, Tuple

import mne
import numpy as np
from pydantic import BaseModel, Field

__all__ = [
    "IterationResult",
    "BadSegment",
    "DetectionResult",
    "FileRecord",
]

# Tags used in DetectionResult.threshold_matrix
TAG_OK = 0
TAG_BAD = 1
TAG_BAD_AND_REJECTED = 2


@dataclass(frozen=True)
class IterationResult:
    """Outcome of :func:`refclean.functions.artifacts.iterative_rereference`."""

    excluded_channels: Tuple[int, ...]
    iterations_run: int
    referenced_signal: np.ndarray
    converged: bool
    exclusion_history: Tuple[Tuple[int, ...], ...] = ()
    channel_sd: Optional[np.ndarray] = None

    @property
    def n_excluded(self) -> int:
        return len(self.excluded_channels)


class BadSegment(NamedTuple):
    """Half-open bad interval ``[start_sample, stop_sample)``."""

    start_sample: int
    stop_sample: int
    start_seconds: float
    stop_seconds: float

    @property
    def duration(self) -> float:
        return self.stop_seconds - self.start_seconds


@dataclass(frozen=True)
class DetectionResult:
    """Outcome of :func:`refclean.functions.artifacts.detect_bad_segments`.

    ``threshold_matrix`` is channels x windows with values 0 (okay),
    1 (above threshold, or inside a rejected window) and 2 (both).
    ``stat_matrix`` holds the per-window statistic with NaN columns for
    windows that contained a boundary marker.
    """

    bad_channels: Tuple[int, ...]
    bad_segments: Tuple[BadSegment, ...]
    threshold_matrix: np.ndarray
    stat_matrix: np.ndarray
    window_bounds: np.ndarray
    boundary_windows: Tuple[int, ...]
    rejected_windows: np.ndarray
    total_bad_seconds: float
    bad_percentage: float
    sfreq: float
    statistic: str = "sd"
    threshold: float = 0.0

    @property
    def n_windows(self) -> int:
        return self.threshold_matrix.shape[1]

    @property
    def segment_samples(self) -> np.ndarray:
        """Bad segments as an ``(n, 2)`` array of sample bounds."""
        return np.array(
            [(seg.start_sample, seg.stop_sample) for seg in self.bad_segments],
            dtype=int,
        ).reshape(-1, 2)

    @property
    def segment_seconds(self) -> np.ndarray:
        """Bad segments as an ``(n, 2)`` array of bounds in seconds."""
        return np.array(
            [(seg.start_seconds, seg.stop_seconds) for seg in self.bad_segments],
            dtype=float,
        ).reshape(-1, 2)

    def summary(self) -> Dict[str, object]:
        n_channels = self.threshold_matrix.shape[0]
        return {
            "statistic": self.statistic,
            "threshold": self.threshold,
            "n_windows": self.n_windows,
            "n_boundary_windows": len(self.boundary_windows),
            "n_bad_channels": len(self.bad_channels),
            "bad_channel_percentage": (
                100.0 * len(self.bad_channels) / n_channels if n_channels else 0.0
            ),
            "n_bad_segments": len(self.bad_segments),
            "total_bad_seconds": self.total_bad_seconds,
            "bad_percentage": self.bad_percentage,
        }

    def to_annotations(
        self,
        description: str = "BAD_amplitude",
        first_time: float = 0.0,
        orig_time=None,
    ) -> mne.Annotations:
        """Convert the bad segments into MNE annotations.

        ``first_time`` is added to every onset, pass ``raw.first_time`` when
        the annotations are meant for a Raw with ``orig_time`` set.
        """
        seconds = self.segment_seconds
        return mne.Annotations(
            onset=seconds[:, 0] + first_time,
            duration=seconds[:, 1] - seconds[:, 0],
            description=[description] * len(seconds),
            orig_time=orig_time,
        )


class FileRecord(BaseModel):
    """Per-file entry collected by :class:`refclean.core.pipeline.BatchRecorder`."""

    setname: str
    source: str
    status: str = "pending"
    creationDateTime: str = Field(default_factory=lambda: datetime.now().isoformat())
    bad_channels: List[str] = Field(default_factory=list)
    iterations: Optional[int] = None
    bad_segments: int = 0
    bad_seconds: float = 0.0
    output: Optional[str] = None
    error: Optional[str] = None
