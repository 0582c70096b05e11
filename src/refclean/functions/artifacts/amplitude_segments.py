"""Amplitude statistic based detection of bad segments and bad channels.

The recording is cut into non-overlapping windows and the amplitude SD or
RMS of every channel is computed per window. Windows containing a boundary
marker, or with a non-finite statistic on any channel, are left out of the
evaluation. A (channel, window) cell is bad when its statistic reaches the
threshold; a channel is bad when enough of its windows are bad, and a
window is rejected when enough channels are bad in it. Rejected windows are
widened by a buffer and merged into segments.
"""

from typing import Any, Mapping, Sequence, Tuple, Union

import mne
import numpy as np

from refclean.functions.events import boundary_samples, markers_from_annotations
from refclean.functions.preprocessing.filtering import bandpass_filter
from refclean.types import (
    TAG_BAD,
    BadSegment,
    DetectionResult,
    DetectorConfig,
    InvalidConfig,
    coerce_config,
)
from refclean.utils.logging import message

__all__ = [
    "window_bounds",
    "window_statistic",
    "expand_windows",
    "windows_to_segments",
    "detect_bad_segments",
    "annotate_amplitude_segments",
]

_VOLTAGE_TYPES = ("eeg", "eog", "ecg", "emg", "seeg", "ecog", "dbs")


def window_bounds(n_samples: int, window_samples: int) -> np.ndarray:
    """Half-open ``[start, stop)`` sample bounds of non-overlapping windows.

    The last window absorbs the remainder of the recording. Returns an
    empty ``(0, 2)`` array when the recording is shorter than one window.
    """
    n_windows = n_samples // window_samples if window_samples > 0 else 0
    if n_windows == 0:
        return np.empty((0, 2), dtype=int)
    starts = np.arange(n_windows) * window_samples
    stops = starts + window_samples
    stops[-1] = n_samples
    return np.column_stack([starts, stops])


def window_statistic(segment: np.ndarray, statistic: str) -> np.ndarray:
    """Per-channel SD (ddof=1) or RMS of a channels x samples segment."""
    if statistic == "sd":
        if segment.shape[1] < 2:
            return np.full(segment.shape[0], np.nan)
        return segment.std(axis=1, ddof=1)
    if statistic == "rms":
        return np.sqrt(np.mean(np.square(segment), axis=1))
    raise InvalidConfig(f"Unknown statistic: {statistic}")


def _zscore_channels(data: np.ndarray) -> np.ndarray:
    """Standardise each channel; zero-variance channels become zeros."""
    centred = data - data.mean(axis=1, keepdims=True)
    sd = data.std(axis=1, ddof=1, keepdims=True)
    return np.divide(centred, sd, out=np.zeros_like(centred), where=sd > 0)


def expand_windows(rejected: np.ndarray, buffer: int) -> np.ndarray:
    """Widen every rejected window by ``buffer`` windows on each side."""
    rejected = np.asarray(rejected, dtype=bool)
    if buffer == 0 or not rejected.any():
        return rejected.copy()
    expanded = np.zeros_like(rejected)
    for idx in np.flatnonzero(rejected):
        expanded[max(idx - buffer, 0) : idx + buffer + 1] = True
    return expanded


def windows_to_segments(
    rejected: np.ndarray, bounds: np.ndarray, sfreq: float
) -> Tuple[BadSegment, ...]:
    """Collapse runs of rejected windows into sorted, non-overlapping segments."""
    rejected = np.asarray(rejected, dtype=bool)
    if not rejected.any():
        return ()
    edges = np.diff(np.concatenate([[False], rejected, [False]]).astype(int))
    run_starts = np.flatnonzero(edges == 1)
    run_stops = np.flatnonzero(edges == -1) - 1
    segments = []
    for first, last in zip(run_starts, run_stops):
        start = int(bounds[first, 0])
        stop = int(bounds[last, 1])
        segments.append(BadSegment(start, stop, start / sfreq, stop / sfreq))
    return tuple(segments)


def _boundary_windows(bounds: np.ndarray, positions: Sequence[float]) -> np.ndarray:
    """Mask of windows whose ``[start, stop)`` range holds a boundary position."""
    flags = np.zeros(len(bounds), dtype=bool)
    if len(bounds) == 0:
        return flags
    for pos in positions:
        if pos < bounds[0, 0] or pos >= bounds[-1, 1]:
            continue
        idx = np.searchsorted(bounds[:, 1], pos, side="right")
        flags[idx] = True
    return flags


def detect_bad_segments(
    data: np.ndarray,
    sfreq: float,
    markers: Sequence[Tuple[str, float]] = (),
    config: Union[DetectorConfig, Mapping[str, Any], None] = None,
) -> DetectionResult:
    """Find bad channels and bad time segments from windowed amplitude statistics.

    Parameters
    ----------
    data : ndarray, shape (n_channels, n_samples)
        Continuous signal. Not modified.
    sfreq : float
        Sampling frequency in Hz.
    markers : sequence of (type, sample)
        Event markers with 0-based sample positions. Windows holding a
        ``"boundary"`` marker are excluded from the evaluation and the
        optional filter is applied separately between boundaries.
    config : DetectorConfig or mapping
        Detector parameters; ``reject_buffer_windows`` is required.

    Returns
    -------
    result : DetectionResult
        Bad channels, bad segments in samples and seconds, the tagged
        threshold matrix and the statistic matrix.

    Raises
    ------
    InvalidConfig
        If the configuration or signal is invalid.

    Notes
    -----
    Threshold matrix tags: 0 okay, 1 statistic at or above threshold or
    inside a rejected (buffer-expanded) window, 2 both. Boundary windows
    and windows with a non-finite statistic start as 0 and only become 1
    through buffer expansion.

    Examples
    --------
    >>> result = detect_bad_segments(
    ...     data, 250.0, markers=[("boundary", 30000)],
    ...     config={"window_seconds": 10, "reject_buffer_windows": 1},
    ... )
    >>> bad_seconds = result.segment_seconds
    """
    config = coerce_config(config, DetectorConfig)
    data = np.asarray(data, dtype=np.float64)
    if data.ndim != 2:
        raise InvalidConfig(
            f"Signal must be a 2-D channels x samples array, got shape {data.shape}"
        )
    if not sfreq or sfreq <= 0:
        raise InvalidConfig(f"sfreq must be positive, got {sfreq}")

    n_channels, n_samples = data.shape
    boundaries = boundary_samples(markers)

    working = data
    if config.hp_filter or config.lp_filter:
        message("header", "Filtering the data...")
        working = bandpass_filter(
            working, sfreq, config.hp_filter, config.lp_filter, boundaries=boundaries
        )

    if config.use_zscore:
        working = _zscore_channels(working)

    bounds = window_bounds(n_samples, int(np.floor(config.window_seconds * sfreq)))
    n_windows = len(bounds)
    is_boundary = _boundary_windows(bounds, boundaries)

    stat_matrix = np.full((n_channels, n_windows), np.nan)
    for idx, (start, stop) in enumerate(bounds):
        if not is_boundary[idx]:
            stat_matrix[:, idx] = window_statistic(working[:, start:stop], config.statistic)

    # A window with any non-finite statistic is dropped as a whole
    not_finite = ~is_boundary & ~np.isfinite(stat_matrix).all(axis=0)
    # Index map from evaluated windows back to their original position
    kept = np.flatnonzero(~(is_boundary | not_finite))
    if is_boundary.any():
        message("info", f"{int(is_boundary.sum())} window(s) hold a boundary and are skipped")
    if not_finite.any():
        message(
            "warning",
            f"{int(not_finite.sum())} window(s) have non-finite statistics and are skipped",
        )

    above = stat_matrix[:, kept] >= config.threshold

    if len(kept) > 0 and n_channels > 0:
        channel_fraction = above.sum(axis=1) / len(kept)
        bad_channels = tuple(
            int(ch) for ch in np.flatnonzero(channel_fraction >= config.channel_bad_fraction)
        )
        window_fraction = above.sum(axis=0) / n_channels
        rejected_kept = window_fraction >= config.segment_fraction
    else:
        message("warning", "No windows available for evaluation")
        bad_channels = ()
        rejected_kept = np.zeros(0, dtype=bool)

    threshold_matrix = np.zeros((n_channels, n_windows), dtype=np.int8)
    threshold_matrix[:, kept] = above.astype(np.int8) * TAG_BAD

    rejected = np.zeros(n_windows, dtype=bool)
    rejected[kept] = rejected_kept
    rejected = expand_windows(rejected, config.reject_buffer_windows)
    threshold_matrix[:, rejected] += TAG_BAD

    segments = windows_to_segments(rejected, bounds, sfreq)
    total_bad_seconds = float(sum(seg.duration for seg in segments))
    duration = n_samples / sfreq
    bad_percentage = 100.0 * total_bad_seconds / duration if duration > 0 else 0.0

    message("info", f"Number of bad channels found:    {len(bad_channels)}")
    if segments:
        message("info", f"Number of bad segment(s) found:  {len(segments)}")
        message("info", f"Total length of bad segments:    {total_bad_seconds:.0f} seconds")
        message("info", f"Percentage of total data:        {bad_percentage:.1f} %")
    else:
        message("info", "No bad segments were found.")

    return DetectionResult(
        bad_channels=bad_channels,
        bad_segments=segments,
        threshold_matrix=threshold_matrix,
        stat_matrix=stat_matrix,
        window_bounds=bounds,
        boundary_windows=tuple(int(w) for w in np.flatnonzero(is_boundary)),
        rejected_windows=rejected,
        total_bad_seconds=total_bad_seconds,
        bad_percentage=bad_percentage,
        sfreq=float(sfreq),
        statistic=config.statistic,
        threshold=float(config.threshold),
    )


def annotate_amplitude_segments(
    raw: mne.io.BaseRaw,
    config: Union[DetectorConfig, Mapping[str, Any]],
    picks: Union[str, list] = "eeg",
    description: str = "BAD_amplitude",
) -> Tuple[mne.io.BaseRaw, DetectionResult]:
    """Run :func:`detect_bad_segments` on a Raw and annotate the bad segments.

    The statistic is computed in microvolts on the picked channels. Boundary
    markers are taken from the annotations of ``raw``.

    Parameters
    ----------
    raw : mne.io.BaseRaw
        Continuous EEG data.
    config : DetectorConfig or mapping
        Detector parameters.
    picks : "eeg" or list of str
        Channels to evaluate, all EEG channels (bads included) by default.
    description : str
        Description of the added annotations.

    Returns
    -------
    raw_out : mne.io.BaseRaw
        Copy of ``raw`` with one annotation per bad segment.
    result : DetectionResult
        Detection result; ``bad_channels`` index into the picked channels.
    """
    if not isinstance(raw, mne.io.BaseRaw):
        raise TypeError(f"Data must be an MNE Raw object, got {type(raw).__name__}")

    config = coerce_config(config, DetectorConfig)
    message("header", f"Detecting bad segments ({config.statistic.upper()}, "
            f"{config.window_seconds:g} s windows)...")

    if picks == "eeg":
        pick_idx = mne.pick_types(raw.info, eeg=True, exclude=[])
    else:
        pick_idx = mne.pick_channels(raw.ch_names, include=list(picks), ordered=True)
    # Microvolts for every picked voltage channel type
    units = {
        ch_type: "uV"
        for ch_type in set(raw.get_channel_types(picks=pick_idx))
        if ch_type in _VOLTAGE_TYPES
    }
    data = raw.get_data(picks=pick_idx, units=units or None)
    result = detect_bad_segments(
        data, raw.info["sfreq"], markers_from_annotations(raw), config
    )

    raw_out = raw.copy()
    if result.bad_segments:
        offset = raw_out.first_time if raw_out.annotations.orig_time is not None else 0.0
        seconds = result.segment_seconds
        raw_out.annotations.append(
            onset=seconds[:, 0] + offset,
            duration=seconds[:, 1] - seconds[:, 0],
            description=[description] * len(seconds),
        )
    return raw_out, result
