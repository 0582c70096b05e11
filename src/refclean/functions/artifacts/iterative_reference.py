"""Iterative average rereferencing.

A moderately robust average reference is found by repeatedly evaluating the
amplitude standard deviation of every reference channel and removing
low-quality channels from the reference signal:

* every channel whose SD falls below ``min_sd`` (flat or disconnected) is
  excluded in the iteration it is found,
* of the channels above ``max_sd`` only the single noisiest is excluded per
  iteration,
* the procedure stops when no channel violates either limit, or after
  ``max_iterations`` iterations.

The evaluation runs on a temporarily band-pass filtered copy; the returned
signal is the unfiltered input referenced to the mean of the channels that
survived.
"""

from typing import Any, Mapping, Optional, Union

import numpy as np

from refclean.functions.preprocessing.filtering import bandpass_filter
from refclean.types import IterationResult, InvalidConfig, ReferenceConfig, coerce_config
from refclean.utils.logging import message

__all__ = ["average_reference", "iterative_rereference"]


def average_reference(
    data: np.ndarray, include: Optional[np.ndarray] = None
) -> np.ndarray:
    """Subtract the per-sample mean of the ``include`` rows from every row.

    ``include`` is a boolean mask or index array over the rows of ``data``;
    all rows are used when it is None. All rows are kept.
    """
    data = np.asarray(data, dtype=np.float64)
    rows = data if include is None else data[include]
    return data - rows.mean(axis=0, keepdims=True)


def _validate_signal(data: Any, sfreq: float) -> np.ndarray:
    data = np.asarray(data, dtype=np.float64)
    if data.ndim != 2:
        raise InvalidConfig(
            f"Signal must be a 2-D channels x samples array, got shape {data.shape}"
        )
    if data.shape[1] < 2:
        raise InvalidConfig("Signal must contain at least two samples")
    if not sfreq or sfreq <= 0:
        raise InvalidConfig(f"sfreq must be positive, got {sfreq}")
    return data


def iterative_rereference(
    data: np.ndarray,
    sfreq: float,
    config: Union[ReferenceConfig, Mapping[str, Any]],
) -> IterationResult:
    """Rereference to the average of the channels that pass the SD criteria.

    Parameters
    ----------
    data : ndarray, shape (n_channels, n_samples)
        Continuous signal. Not modified.
    sfreq : float
        Sampling frequency in Hz, used by the temporary filter.
    config : ReferenceConfig or mapping
        Reference channel set, iteration limit, SD limits and temporary
        filter cut-offs.

    Returns
    -------
    result : IterationResult
        Excluded channel indices (into ``data``), number of iterations run,
        and the full signal referenced to the mean of the included channels.

    Raises
    ------
    InvalidConfig
        If the configuration is invalid or refers to channels outside the
        signal.

    Notes
    -----
    Ties on the highest SD are resolved in favour of excluding the lowest
    channel index. Reaching ``max_iterations`` is not an error; the state
    after the last iteration is returned with ``converged=False``.

    Examples
    --------
    >>> result = iterative_rereference(
    ...     data, 500.0,
    ...     {"channels": range(64), "max_iterations": 40, "max_sd": 75,
    ...      "min_sd": 1, "hp_filter": 1, "lp_filter": 100},
    ... )
    """
    config = coerce_config(config, ReferenceConfig)
    data = _validate_signal(data, sfreq)

    channels = np.asarray(config.channels, dtype=int)
    if channels.max() >= data.shape[0]:
        raise InvalidConfig(
            f"Channel index {channels.max()} out of range for {data.shape[0]} channels"
        )

    # Evaluation copy: reference channels only, average referenced, filtered
    working = average_reference(data[channels])
    if config.hp_filter or config.lp_filter:
        working = bandpass_filter(working, sfreq, config.hp_filter, config.lp_filter)

    n_ref = len(channels)
    included = np.ones(n_ref, dtype=bool)
    excluded = np.zeros(n_ref, dtype=bool)
    history = []
    converged = False
    iterations_run = 0
    sd_chans = np.full(n_ref, np.nan)

    for iteration in range(1, config.max_iterations + 1):
        iterations_run = iteration
        message("debug", f"Iterative rereferencing: iteration {iteration}")

        sd_chans = working.std(axis=1, ddof=1)
        sd_chans[excluded] = np.nan

        low_sd = sd_chans < config.min_sd
        high_sd = sd_chans > config.max_sd

        if not low_sd.any() and not high_sd.any():
            converged = True
            break

        newly_excluded = []
        if low_sd.any():
            message(
                "info",
                f"  {int(low_sd.sum())} channel(s) below SD threshold, removing from reference",
            )
            excluded |= low_sd
            newly_excluded.extend(np.flatnonzero(low_sd).tolist())

        if high_sd.any():
            # nanargmax returns the first maximum, i.e. the lowest index on ties
            top_sd = int(np.nanargmax(sd_chans))
            message(
                "info",
                f"  Removing channel {channels[top_sd]} from reference, SD = {sd_chans[top_sd]:.2f}",
            )
            excluded[top_sd] = True
            newly_excluded.append(top_sd)

        included = ~excluded
        history.append(tuple(sorted(int(channels[i]) for i in set(newly_excluded))))

        if not included.any():
            message("warning", "All reference channels were excluded, stopping")
            break

        working = average_reference(working, included)
        message("values", f"  SD after iteration {iteration}: {np.round(sd_chans, 2)}")

    excluded_channels = tuple(int(ch) for ch in channels[excluded])

    if not included.any():
        referenced = data.copy()
    else:
        referenced = average_reference(data, channels[included])

    if converged:
        message(
            "success",
            f"Iterative rereferencing converged after {iterations_run} iteration(s), "
            f"excluded {len(excluded_channels)} channel(s)",
        )
    else:
        message(
            "warning",
            f"Iterative rereferencing stopped after {iterations_run} iteration(s) without "
            f"converging, excluded {len(excluded_channels)} channel(s)",
        )

    return IterationResult(
        excluded_channels=excluded_channels,
        iterations_run=iterations_run,
        referenced_signal=referenced,
        converged=converged,
        exclusion_history=tuple(history),
        channel_sd=sd_chans,
    )
