"""Event marker functions.

Functions
---------
markers_from_annotations : Read markers from MNE annotations
boundary_samples : Positions of boundary markers
insert_regular_markers : Insert regularly spaced markers into a marker list
insert_regular_events : Insert regularly spaced annotations into a Raw
"""

from .markers import (
    BOUNDARY,
    Marker,
    boundary_samples,
    insert_regular_events,
    insert_regular_markers,
    markers_from_annotations,
)

__all__ = [
    "BOUNDARY",
    "Marker",
    "boundary_samples",
    "insert_regular_events",
    "insert_regular_markers",
    "markers_from_annotations",
]
