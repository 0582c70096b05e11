"""Preprocessing functions: filtering and referencing."""

from .filtering import bandpass_filter, filter_data, notch_line_noise
from .referencing import rereference_data, rereference_iteratively

__all__ = [
    "bandpass_filter",
    "filter_data",
    "notch_line_noise",
    "rereference_data",
    "rereference_iteratively",
]
