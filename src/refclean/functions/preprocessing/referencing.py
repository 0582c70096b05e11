"""Referencing functions for EEG data.

This module provides standalone functions for applying referencing schemes
to continuous EEG data: a plain average or channel reference, and the
iterative average reference that leaves noisy and flat channels out of the
reference signal.
"""

from dataclasses import replace
from typing import List, Optional, Sequence, Tuple, Union

import mne
import numpy as np

from refclean.functions.artifacts.iterative_reference import iterative_rereference
from refclean.types import InvalidConfig, IterationResult, ReferenceConfig, coerce_config
from refclean.utils.logging import message


def rereference_data(
    data: mne.io.BaseRaw,
    ref_channels: Union[str, List[str]] = "average",
    projection: bool = False,
    verbose: Optional[bool] = None,
) -> mne.io.BaseRaw:
    """Apply a referencing scheme to continuous EEG data.

    Parameters
    ----------
    data : mne.io.BaseRaw
        The EEG data to rereference.
    ref_channels : str or list of str, default 'average'
        'average' for an average reference over all EEG channels, a channel
        name, or a list of channel names whose mean is used as reference.
    projection : bool, default False
        Whether to apply the reference as a projector instead of modifying
        the data.
    verbose : bool or None, default None
        Control verbosity of MNE output.

    Returns
    -------
    rereferenced_data : mne.io.BaseRaw
        Rereferenced copy of ``data``.

    Raises
    ------
    TypeError
        If data is not an MNE Raw object.
    ValueError
        If reference channels are not found in the data.
    RuntimeError
        If referencing fails.

    Examples
    --------
    >>> avg_ref_data = rereference_data(raw, ref_channels="average")
    >>> linked_ref_data = rereference_data(raw, ref_channels=["TP9", "TP10"])
    """
    if not isinstance(data, mne.io.BaseRaw):
        raise TypeError(f"Data must be an MNE Raw object, got {type(data).__name__}")

    if isinstance(ref_channels, str):
        if ref_channels != "average" and ref_channels not in data.ch_names:
            raise ValueError(
                f"Reference channel '{ref_channels}' not found in data. "
                f"Available channels: {data.ch_names}"
            )
    elif isinstance(ref_channels, (list, tuple)):
        missing_channels = [ch for ch in ref_channels if ch not in data.ch_names]
        if missing_channels:
            raise ValueError(
                f"Reference channels {missing_channels} not found in data. "
                f"Available channels: {data.ch_names}"
            )
        ref_channels = list(ref_channels)
    else:
        raise TypeError(
            f"ref_channels must be str, list, or tuple, got {type(ref_channels).__name__}"
        )

    rereferenced_data = data.copy()
    try:
        rereferenced_data.load_data()
        rereferenced_data.set_eeg_reference(
            ref_channels=ref_channels, projection=projection, verbose=verbose
        )
        return rereferenced_data
    except Exception as e:
        ref_str = ref_channels if isinstance(ref_channels, str) else f"[{', '.join(ref_channels)}]"
        raise RuntimeError(f"Failed to apply {ref_str} reference: {str(e)}") from e


def _resolve_channels(
    raw: mne.io.BaseRaw, channels: Optional[Sequence[Union[int, str]]]
) -> np.ndarray:
    """Map channel names or indices onto sorted EEG row indices of ``raw``."""
    if channels is None:
        return mne.pick_types(raw.info, eeg=True, exclude=[])
    indices = []
    for ch in channels:
        if isinstance(ch, str):
            if ch not in raw.ch_names:
                raise ValueError(f"Channel '{ch}' not found in data")
            indices.append(raw.ch_names.index(ch))
        else:
            indices.append(int(ch))
    if len(set(indices)) != len(indices):
        raise ValueError("Reference channels must be unique")
    for idx in indices:
        if not 0 <= idx < len(raw.ch_names):
            raise ValueError(f"Channel index {idx} out of range")
        if mne.channel_type(raw.info, idx) != "eeg":
            raise ValueError(
                f"Reference channel '{raw.ch_names[idx]}' is not an EEG channel"
            )
    return np.sort(np.asarray(indices, dtype=int))


def rereference_iteratively(
    raw: mne.io.BaseRaw,
    channels: Optional[Sequence[Union[int, str]]] = None,
    max_iterations: int = 40,
    max_sd: float = 75.0,
    min_sd: float = 1.0,
    hp_filter: float = 1.0,
    lp_filter: float = 100.0,
    verbose: Optional[bool] = None,
) -> Tuple[mne.io.BaseRaw, List[str], IterationResult]:
    """Rereference a Raw to the average of its good channels.

    Channel quality is evaluated with :func:`iterative_rereference` on the
    data in microvolts, so ``max_sd`` and ``min_sd`` are in microvolts.

    Parameters
    ----------
    raw : mne.io.BaseRaw
        Continuous EEG data.
    channels : sequence of str or int, optional
        Channels forming the reference. All EEG channels when None.
    max_iterations : int
        Iteration limit.
    max_sd, min_sd : float
        Accepted channel SD range in microvolts.
    hp_filter, lp_filter : float
        Temporary band-pass used only for the evaluation (0 disables).
    verbose : bool or None
        Control verbosity of MNE output.

    Returns
    -------
    raw_out : mne.io.BaseRaw
        Copy of ``raw`` referenced to the mean of the included channels.
    bad_channels : list of str
        Names of the channels left out of the reference.
    result : IterationResult
        Full result of the iterative procedure. Channel indices are rows of
        ``raw``. ``referenced_signal`` holds only the reference channels, in
        ascending row order.

    Notes
    -----
    Non-EEG channels (EOG, ECG, ...) are neither evaluated nor referenced in
    ``raw_out``, matching MNE ``set_eeg_reference``.
    """
    if not isinstance(raw, mne.io.BaseRaw):
        raise TypeError(f"Data must be an MNE Raw object, got {type(raw).__name__}")

    message("header", "Finding a robust average reference...")
    picks = _resolve_channels(raw, channels)
    if len(picks) == 0:
        raise InvalidConfig("No EEG channels available for the reference")
    config = coerce_config(
        {
            "channels": range(len(picks)),
            "max_iterations": max_iterations,
            "max_sd": max_sd,
            "min_sd": min_sd,
            "hp_filter": hp_filter,
            "lp_filter": lp_filter,
        },
        ReferenceConfig,
    )

    # Reference rows only, so other channel types never mix into the units
    data = raw.get_data(picks=picks, units="uV")
    result = iterative_rereference(data, raw.info["sfreq"], config)
    result = replace(
        result,
        excluded_channels=tuple(int(picks[idx]) for idx in result.excluded_channels),
        exclusion_history=tuple(
            tuple(int(picks[idx]) for idx in step) for step in result.exclusion_history
        ),
    )

    bad_channels = [raw.ch_names[idx] for idx in result.excluded_channels]
    included = [raw.ch_names[idx] for idx in picks if raw.ch_names[idx] not in bad_channels]

    if not included:
        message("warning", "No channels left for the reference, data left unreferenced")
        return raw.copy(), bad_channels, result

    raw_out = rereference_data(raw, ref_channels=included, verbose=verbose)
    message(
        "info",
        f"Excluded {len(bad_channels)} channel(s) from the reference: {', '.join(bad_channels) or 'none'}",
    )
    return raw_out, bad_channels, result
