"""Standalone signal processing functions.

All functions accept NumPy arrays or MNE data objects and explicit
parameters, so they can be used outside the batch pipeline.

The functions are organized by category:
- preprocessing: filtering and referencing
- artifacts: iterative rereferencing and amplitude based segment detection
- events: event markers and boundary handling

Examples
--------
>>> from refclean.functions import iterative_rereference, detect_bad_segments
>>> result = iterative_rereference(data, sfreq, reference_config)
>>> segments = detect_bad_segments(data, sfreq, markers, detector_config)
"""

from .preprocessing import (
    bandpass_filter,
    filter_data,
    notch_line_noise,
    rereference_data,
    rereference_iteratively,
)
from .artifacts import (
    annotate_amplitude_segments,
    average_reference,
    detect_bad_segments,
    iterative_rereference,
)
from .events import (
    Marker,
    boundary_samples,
    insert_regular_events,
    insert_regular_markers,
    markers_from_annotations,
)

__all__ = [
    # Preprocessing functions
    "bandpass_filter",
    "filter_data",
    "notch_line_noise",
    "rereference_data",
    "rereference_iteratively",
    # Artifact functions
    "annotate_amplitude_segments",
    "average_reference",
    "detect_bad_segments",
    "iterative_rereference",
    # Event functions
    "Marker",
    "boundary_samples",
    "insert_regular_events",
    "insert_regular_markers",
    "markers_from_annotations",
]
