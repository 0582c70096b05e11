"""Continuous preprocessing steps."""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import mne

from refclean.functions.artifacts import annotate_amplitude_segments
from refclean.functions.preprocessing import (
    filter_data,
    notch_line_noise,
    rereference_data,
    rereference_iteratively,
)
from refclean.types import DetectionResult, IterationResult
from refclean.utils.config import STEP_ORDER
from refclean.utils.logging import message

__all__ = [
    "PreprocessOutcome",
    "step_set_montage",
    "step_preprocess_raw",
]


@dataclass
class PreprocessOutcome:
    """What :func:`step_preprocess_raw` produced for one recording."""

    raw: Optional[mne.io.BaseRaw]
    bad_channels: List[str] = field(default_factory=list)
    rejected: bool = False
    iteration_result: Optional[IterationResult] = None
    detection_result: Optional[DetectionResult] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def step_set_montage(raw: mne.io.BaseRaw, montage: str) -> mne.io.BaseRaw:
    """Attach a standard montage by name, or a montage read from file."""
    message("header", f"Setting montage: {montage}")
    if Path(montage).suffix and Path(montage).exists():
        montage_obj = mne.channels.read_custom_montage(montage)
    else:
        montage_obj = mne.channels.make_standard_montage(montage)
    raw.set_montage(montage_obj, on_missing="warn")
    return raw


def step_preprocess_raw(
    raw: mne.io.BaseRaw, refclean_dict: Dict[str, Any]
) -> PreprocessOutcome:
    """Run the enabled preprocessing steps on one continuous recording.

    Steps run in a fixed order: montage, iterative reference, bad channel
    limit, line noise, high-pass, low-pass, amplitude segment detection,
    event removal, interpolation of the bad channels, average reference.

    Parameters
    ----------
    raw : mne.io.BaseRaw
        Recording to preprocess. A copy is processed.
    refclean_dict : dict
        Validated configuration (see :func:`refclean.utils.config.load_config`).

    Returns
    -------
    outcome : PreprocessOutcome
        ``outcome.raw`` is None when the recording was rejected because too
        many channels were excluded from the reference.
    """
    message("header", "\nPreprocessing Steps")
    steps = refclean_dict["preprocessing"]

    for name in STEP_ORDER:
        enabled = steps[name]["enabled"]
        message("info", f"{'✓' if enabled else '✗'} {name.replace('_', ' ').title()}: {enabled}")

    metadata = {
        "preprocessing": {
            "creationDateTime": datetime.now().isoformat(),
            "sfreq": raw.info["sfreq"],
            "n_channels": len(raw.ch_names),
            "duration_sec": raw.times[-1] if raw.n_times else 0.0,
        }
    }
    outcome = PreprocessOutcome(raw=None, metadata=metadata)

    raw = raw.copy().load_data()

    if steps["montage"]["enabled"] and steps["montage"]["value"]:
        raw = step_set_montage(raw, steps["montage"]["value"])

    bad_channels: List[str] = []
    if steps["iterative_reference"]["enabled"]:
        settings = dict(steps["iterative_reference"]["value"])
        raw, bad_channels, result = rereference_iteratively(raw, **settings)
        outcome.iteration_result = result
        metadata["preprocessing"]["IterativeReference"] = {
            "excluded": bad_channels,
            "iterations": result.iterations_run,
            "converged": result.converged,
        }
    outcome.bad_channels = bad_channels

    if steps["bad_channel_limit"]["enabled"]:
        n_eeg = len(mne.pick_types(raw.info, eeg=True, exclude=[]))
        limit = steps["bad_channel_limit"]["value"]
        if n_eeg and len(bad_channels) > limit * n_eeg:
            message(
                "warning",
                f"{len(bad_channels)} of {n_eeg} channels are bad "
                f"(limit {limit:.0%}), discarding recording",
            )
            outcome.rejected = True
            return outcome

    raw.info["bads"] = sorted(set(raw.info["bads"]) | set(bad_channels))

    if steps["line_noise"]["enabled"]:
        message("header", "Removing line noise...")
        raw = notch_line_noise(raw, steps["line_noise"]["value"], verbose=False)

    if steps["highpass"]["enabled"]:
        message("header", f"High-pass filtering at {steps['highpass']['value']} Hz...")
        raw = filter_data(raw, l_freq=steps["highpass"]["value"], verbose=False)

    if steps["lowpass"]["enabled"]:
        message("header", f"Low-pass filtering at {steps['lowpass']['value']} Hz...")
        raw = filter_data(raw, h_freq=steps["lowpass"]["value"], verbose=False)

    segment_annotations = None
    if steps["amplitude_segments"]["enabled"]:
        _, detection = annotate_amplitude_segments(
            raw, steps["amplitude_segments"]["value"]
        )
        outcome.detection_result = detection
        segment_annotations = detection.to_annotations()
        metadata["preprocessing"]["AmplitudeSegments"] = detection.summary()

    # The original events are not carried into the cleaned recording
    message("info", f"Removing {len(raw.annotations)} existing annotation(s)")
    raw.set_annotations(segment_annotations)

    if raw.info["bads"]:
        message("header", f"Interpolating {len(raw.info['bads'])} bad channel(s)...")
        try:
            raw.interpolate_bads(reset_bads=True, verbose=False)
        except Exception as e:
            raise RuntimeError(f"Failed to interpolate bad channels: {str(e)}") from e

    if steps["average_reference"]["enabled"]:
        ref_value = steps["average_reference"]["value"] or "average"
        message("header", f"Applying {ref_value} reference...")
        raw = rereference_data(raw, ref_channels=ref_value, verbose=False)

    outcome.raw = raw
    message("success", "✓ Preprocessing complete")
    return outcome
