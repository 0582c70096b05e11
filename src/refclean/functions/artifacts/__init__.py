"""Artifact detection functions.

This module contains standalone functions for finding low-quality channels
and time segments in continuous EEG data.

Functions
---------
iterative_rereference : Robust average reference by iterative channel exclusion
average_reference : Average reference over a subset of rows
detect_bad_segments : Windowed amplitude statistic thresholding
annotate_amplitude_segments : Mark bad segments on an MNE Raw
"""

from .amplitude_segments import (
    annotate_amplitude_segments,
    detect_bad_segments,
    expand_windows,
    window_bounds,
    window_statistic,
    windows_to_segments,
)
from .iterative_reference import average_reference, iterative_rereference

__all__ = [
    "iterative_rereference",
    "average_reference",
    "detect_bad_segments",
    "annotate_amplitude_segments",
    "expand_windows",
    "window_bounds",
    "window_statistic",
    "windows_to_segments",
]
