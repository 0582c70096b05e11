"""Event markers for continuous EEG data.

Markers are ``(type, sample)`` pairs with 0-based sample positions relative
to the first sample of the recording. They are read from MNE annotations,
and regularly spaced markers can be inserted into a recording.
"""

from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

import mne
import numpy as np

from refclean.utils.logging import message

__all__ = [
    "BOUNDARY",
    "Marker",
    "markers_from_annotations",
    "boundary_samples",
    "insert_regular_markers",
    "insert_regular_events",
]

BOUNDARY = "boundary"

# Descriptions MNE and EEGLAB use for recording discontinuities
BOUNDARY_DESCRIPTIONS = {"boundary", "bad boundary", "edge boundary"}


class Marker(NamedTuple):
    type: str
    sample: float


def _normalise_type(description: str) -> str:
    if description.strip().lower() in BOUNDARY_DESCRIPTIONS:
        return BOUNDARY
    return description


def markers_from_annotations(raw: mne.io.BaseRaw) -> List[Marker]:
    """Convert the annotations of ``raw`` to markers.

    Onsets are converted to samples relative to ``raw.first_samp`` and
    boundary descriptions are normalised to ``"boundary"``.
    """
    if not isinstance(raw, mne.io.BaseRaw):
        raise TypeError(f"Data must be an MNE Raw object, got {type(raw).__name__}")

    annotations = raw.annotations
    if annotations is None or len(annotations) == 0:
        return []

    sfreq = raw.info["sfreq"]
    # Annotation onsets are relative to first_time when orig_time is set
    offset = raw.first_time if annotations.orig_time is not None else 0.0
    markers = [
        Marker(_normalise_type(desc), (onset - offset) * sfreq)
        for onset, desc in zip(annotations.onset, annotations.description)
    ]
    return sorted(markers, key=lambda m: m.sample)


def boundary_samples(markers: Iterable[Marker]) -> List[float]:
    """Sorted sample positions of the boundary markers."""
    return sorted(float(m[1]) for m in markers if m[0] == BOUNDARY)


def insert_regular_markers(
    markers: Sequence[Marker],
    sfreq: float,
    event_type: str,
    interval: float,
    lag: float = 0.0,
    begin: float = 0.0,
    end: Optional[float] = None,
    n_samples: Optional[int] = None,
) -> Tuple[List[Marker], np.ndarray]:
    """Insert markers of ``event_type`` every ``interval`` seconds.

    The first marker is placed ``lag`` seconds after ``begin``; as many
    markers as fit before ``end`` are inserted. ``end`` defaults to the
    recording length (``n_samples / sfreq``).

    Returns
    -------
    markers : list of Marker
        Existing and new markers, sorted by sample.
    inserted : ndarray
        Latencies of the new markers, in seconds from recording start.
    """
    if sfreq <= 0:
        raise ValueError(f"sfreq must be positive, got {sfreq}")
    if interval <= 0:
        raise ValueError(f"interval must be positive, got {interval}")
    if end is None:
        if n_samples is None:
            raise ValueError("Either end or n_samples must be given")
        end = n_samples / sfreq

    step = interval * sfreq
    first = (begin + lag) * sfreq
    stop = end * sfreq
    n_new = max(int(np.floor((stop - first) / step)), 0)

    new_samples = first + step * np.arange(n_new)
    new_markers = [Marker(event_type, float(s)) for s in new_samples]
    merged = sorted(list(markers) + new_markers, key=lambda m: m[1])

    message("debug", f"Inserted {n_new} '{event_type}' markers every {interval} s")
    return merged, new_samples / sfreq


def insert_regular_events(
    raw: mne.io.BaseRaw,
    event_type: str,
    interval: float,
    lag: float = 0.0,
    begin: float = 0.0,
    end: Optional[float] = None,
) -> Tuple[mne.io.BaseRaw, np.ndarray]:
    """Add regularly spaced zero-duration annotations to a copy of ``raw``.

    Parameters
    ----------
    raw : mne.io.BaseRaw
        Continuous data.
    event_type : str
        Annotation description of the new events.
    interval : float
        Seconds between consecutive events.
    lag : float
        Seconds after ``begin`` of the first event.
    begin, end : float
        Segment to fill, in seconds from recording start. ``end`` defaults
        to the end of the recording.

    Returns
    -------
    raw_out : mne.io.BaseRaw
        Copy of ``raw`` with the new annotations.
    latencies : ndarray
        Latencies of the inserted events in seconds from recording start.
    """
    if not isinstance(raw, mne.io.BaseRaw):
        raise TypeError(f"Data must be an MNE Raw object, got {type(raw).__name__}")

    _, latencies = insert_regular_markers(
        [],
        raw.info["sfreq"],
        event_type,
        interval,
        lag=lag,
        begin=begin,
        end=end,
        n_samples=raw.n_times,
    )

    raw_out = raw.copy()
    offset = raw_out.first_time if raw_out.annotations.orig_time is not None else 0.0
    raw_out.annotations.append(
        onset=latencies + offset,
        duration=np.zeros(len(latencies)),
        description=[event_type] * len(latencies),
    )
    return raw_out, latencies
