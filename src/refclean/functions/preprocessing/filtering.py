"""Filtering functions for EEG data.

This module provides the temporary band-pass used while evaluating channel
and segment quality, on plain ``(n_channels, n_samples)`` arrays, and a
Raw-level wrapper used by the preprocessing steps. Both delegate the filter
design to MNE (zero-phase FIR) and never filter across a boundary marker.
"""

from typing import Iterable, Optional, Sequence, Union

import mne
import numpy as np

from refclean.utils.logging import message

# Annotations MNE filters should treat as discontinuities
BOUNDARY_SKIP = ("edge", "bad_acq_skip", "boundary", "bad boundary")

# Segments shorter than this are left unfiltered
_MIN_SEGMENT_SAMPLES = 3


def _cutoff(value: Optional[float]) -> Optional[float]:
    """Map the 0-disables convention onto MNE's None."""
    if value is None or value == 0:
        return None
    return float(value)


def _segment_edges(n_samples: int, boundaries: Iterable[float]) -> list:
    """Split ``[0, n_samples)`` at boundary positions into ``(start, stop)`` pairs."""
    cuts = sorted(
        {int(np.ceil(pos)) for pos in boundaries if 0 < np.ceil(pos) < n_samples}
    )
    edges = [0] + cuts + [n_samples]
    return list(zip(edges[:-1], edges[1:]))


def bandpass_filter(
    data: np.ndarray,
    sfreq: float,
    hp_filter: Optional[float] = 0.0,
    lp_filter: Optional[float] = 0.0,
    boundaries: Optional[Sequence[float]] = None,
    verbose: Optional[Union[bool, str]] = False,
) -> np.ndarray:
    """Zero-phase band-pass filter a channels x samples array.

    Parameters
    ----------
    data : ndarray, shape (n_channels, n_samples)
        Signal to filter. The input is never modified.
    sfreq : float
        Sampling frequency in Hz.
    hp_filter : float
        High-pass cutoff in Hz. ``0`` or None disables the high-pass edge.
    lp_filter : float
        Low-pass cutoff in Hz. ``0`` or None disables the low-pass edge.
    boundaries : sequence of float, optional
        Sample positions of boundary markers. Each contiguous segment between
        boundaries is filtered independently.
    verbose : bool or str, optional
        Passed to MNE.

    Returns
    -------
    filtered : ndarray
        Filtered copy with the same shape as ``data``.
    """
    data = np.array(data, dtype=np.float64, ndmin=2, copy=True)
    l_freq = _cutoff(hp_filter)
    h_freq = _cutoff(lp_filter)
    if l_freq is None and h_freq is None:
        return data

    segments = _segment_edges(data.shape[1], boundaries or ())
    if len(segments) > 1:
        message("debug", f"Filtering {len(segments)} segments separately")

    for start, stop in segments:
        if stop - start < _MIN_SEGMENT_SAMPLES:
            message("debug", f"Segment {start}-{stop} too short to filter, left as is")
            continue
        data[:, start:stop] = mne.filter.filter_data(
            data[:, start:stop],
            sfreq,
            l_freq=l_freq,
            h_freq=h_freq,
            phase="zero",
            fir_design="firwin",
            verbose=verbose,
        )
    return data


def filter_data(
    data: mne.io.BaseRaw,
    l_freq: Optional[float] = None,
    h_freq: Optional[float] = None,
    picks: Optional[Union[str, list]] = None,
    verbose: Optional[Union[bool, str]] = None,
) -> mne.io.BaseRaw:
    """Filter continuous EEG data without crossing boundary annotations.

    Parameters
    ----------
    data : mne.io.BaseRaw
        The continuous EEG data to filter.
    l_freq : float or None
        High-pass cutoff in Hz. None (or 0) skips the high-pass.
    h_freq : float or None
        Low-pass cutoff in Hz. None (or 0) skips the low-pass.
    picks : str or list, optional
        Channels to filter, MNE default when None.
    verbose : bool or None
        Control verbosity of MNE output.

    Returns
    -------
    filtered : mne.io.BaseRaw
        Filtered copy of ``data``.

    Raises
    ------
    TypeError
        If ``data`` is not an MNE Raw object.
    ValueError
        If a cutoff is negative or ``l_freq >= h_freq``.
    RuntimeError
        If MNE fails to filter the data.
    """
    if not isinstance(data, mne.io.BaseRaw):
        raise TypeError(f"Data must be an MNE Raw object, got {type(data).__name__}")

    if l_freq is not None and l_freq < 0:
        raise ValueError(f"l_freq must be non-negative, got {l_freq}")
    if h_freq is not None and h_freq < 0:
        raise ValueError(f"h_freq must be non-negative, got {h_freq}")

    l_freq = _cutoff(l_freq)
    h_freq = _cutoff(h_freq)
    if l_freq is not None and h_freq is not None and l_freq >= h_freq:
        raise ValueError(f"l_freq ({l_freq}) must be less than h_freq ({h_freq})")

    filtered = data.copy()
    if l_freq is None and h_freq is None:
        return filtered

    try:
        filtered.load_data()
        filtered.filter(
            l_freq=l_freq,
            h_freq=h_freq,
            picks=picks,
            phase="zero",
            fir_design="firwin",
            skip_by_annotation=BOUNDARY_SKIP,
            verbose=verbose,
        )
    except Exception as e:
        raise RuntimeError(f"Failed to filter data: {str(e)}") from e

    return filtered


def notch_line_noise(
    data: mne.io.BaseRaw,
    line_freq: float,
    verbose: Optional[Union[bool, str]] = None,
) -> mne.io.BaseRaw:
    """Notch out ``line_freq`` and its harmonics below Nyquist."""
    if not isinstance(data, mne.io.BaseRaw):
        raise TypeError(f"Data must be an MNE Raw object, got {type(data).__name__}")
    if line_freq <= 0:
        raise ValueError(f"line_freq must be positive, got {line_freq}")

    nyquist = data.info["sfreq"] / 2.0
    freqs = np.arange(line_freq, nyquist, line_freq)
    cleaned = data.copy()
    if freqs.size == 0:
        message("warning", f"Line frequency {line_freq} Hz is above Nyquist, skipping")
        return cleaned

    try:
        cleaned.load_data()
        cleaned.notch_filter(
            freqs=freqs, skip_by_annotation=BOUNDARY_SKIP, verbose=verbose
        )
    except Exception as e:
        raise RuntimeError(f"Failed to remove line noise: {str(e)}") from e
    return cleaned
