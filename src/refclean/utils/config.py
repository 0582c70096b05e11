# src/refclean/utils/config.py
import copy
from pathlib import Path
from typing import Any, Dict, Union

import yaml
from schema import And, Optional, Or, Schema, Use

from refclean.types import DetectorConfig, InvalidConfig, coerce_config
from refclean.utils.logging import message

Number = Or(int, float)

STEP_ORDER = (
    "montage",
    "iterative_reference",
    "bad_channel_limit",
    "line_noise",
    "highpass",
    "lowpass",
    "amplitude_segments",
    "average_reference",
)

OUTPUT_FORMATS = ("eeglab", "fif")

CONFIG_SCHEMA = Schema(
    {
        "preprocessing": {
            "montage": {"enabled": bool, "value": Or(str, None)},
            "iterative_reference": {
                "enabled": bool,
                "value": {
                    Optional("channels", default=None): Or([Or(int, str)], None),
                    "max_iterations": And(int, lambda n: n > 0),
                    "max_sd": Number,
                    "min_sd": Number,
                    Optional("hp_filter", default=0): Number,
                    Optional("lp_filter", default=0): Number,
                },
            },
            "bad_channel_limit": {
                "enabled": bool,
                "value": And(Number, lambda x: 0 <= x <= 1),
            },
            "line_noise": {"enabled": bool, "value": Or(Number, None)},
            "highpass": {"enabled": bool, "value": Or(Number, None)},
            "lowpass": {"enabled": bool, "value": Or(Number, None)},
            "amplitude_segments": {"enabled": bool, "value": Or(dict, None)},
            "average_reference": {"enabled": bool, "value": Or(str, [str], None)},
        },
        Optional("output", default={"format": "eeglab", "skip_existing": True}): {
            Optional("format", default="eeglab"): And(
                Use(str.lower), lambda fmt: fmt in OUTPUT_FORMATS
            ),
            Optional("skip_existing", default=True): bool,
        },
    }
)

DEFAULT_CONFIG: Dict[str, Any] = {
    "preprocessing": {
        "montage": {"enabled": False, "value": None},
        "iterative_reference": {
            "enabled": True,
            "value": {
                "channels": None,
                "max_iterations": 40,
                "max_sd": 75,
                "min_sd": 1,
                "hp_filter": 1,
                "lp_filter": 100,
            },
        },
        "bad_channel_limit": {"enabled": True, "value": 0.3},
        "line_noise": {"enabled": True, "value": 60},
        "highpass": {"enabled": True, "value": 1},
        "lowpass": {"enabled": True, "value": 45},
        "amplitude_segments": {
            "enabled": False,
            "value": {"window_seconds": 10, "reject_buffer_windows": 1},
        },
        "average_reference": {"enabled": True, "value": "average"},
    },
    "output": {"format": "eeglab", "skip_existing": True},
}


def default_config() -> dict:
    """Return a fresh copy of the default preprocessing configuration."""
    return copy.deepcopy(DEFAULT_CONFIG)


def validate_config(config: dict) -> dict:
    """Validate a configuration dictionary and fill optional defaults.

    Parameters
    ----------
    config : dict
        Configuration in the ``{enabled, value}`` step layout.

    Returns
    -------
    refclean_dict : dict
        The validated configuration dictionary.

    Raises
    ------
    schema.SchemaError
        If the layout or types are wrong.
    ValueError
        If signal processing parameters are inconsistent.
    """
    refclean_dict = CONFIG_SCHEMA.validate(config)
    validate_signal_processing_params(refclean_dict)
    return refclean_dict


def load_config(config_file: Union[str, Path]) -> dict:
    """Load and validate the refclean configuration file.

    Parameters
    ----------
    config_file : Path
        The path to the YAML configuration file.

    Returns
    -------
    refclean_dict : dict
        The validated configuration dictionary.
    """
    message("info", f"Loading config: {config_file}")

    with open(config_file) as f:
        config = yaml.safe_load(f)

    if not isinstance(config, dict):
        raise ValueError(f"Config file {config_file} does not contain a mapping")

    return validate_config(config)


def validate_signal_processing_params(refclean_dict: dict) -> None:
    """Validate signal processing parameters for physical constraints.

    Parameters
    ----------
    refclean_dict : dict
        Configuration dictionary

    Raises
    ------
    ValueError
        If parameters violate signal processing constraints
    """
    steps = refclean_dict["preprocessing"]

    itref = steps["iterative_reference"]
    if itref["enabled"]:
        value = itref["value"]
        if value["min_sd"] < 0 or value["min_sd"] >= value["max_sd"]:
            message("error", "Iterative reference needs 0 <= min_sd < max_sd")
            raise ValueError(
                f"Invalid SD range: min_sd {value['min_sd']} / max_sd {value['max_sd']}"
            )
        if value["hp_filter"] and value["lp_filter"] and value["hp_filter"] >= value["lp_filter"]:
            raise ValueError(
                f"Temporary high-pass {value['hp_filter']} Hz must be below "
                f"low-pass {value['lp_filter']} Hz"
            )

    highpass, lowpass = steps["highpass"], steps["lowpass"]
    for name, step in (("highpass", highpass), ("lowpass", lowpass), ("line_noise", steps["line_noise"])):
        if step["enabled"] and (step["value"] is None or step["value"] <= 0):
            message("error", f"{name} is enabled but has no positive cutoff")
            raise ValueError(f"Invalid {name} value: {step['value']}")

    if highpass["enabled"] and lowpass["enabled"] and highpass["value"] >= lowpass["value"]:
        message(
            "error",
            f"High-pass ({highpass['value']} Hz) must be below low-pass ({lowpass['value']} Hz)",
        )
        raise ValueError(
            f"Invalid filter band: {highpass['value']} Hz >= {lowpass['value']} Hz"
        )

    segments = steps["amplitude_segments"]
    if segments["enabled"]:
        try:
            coerce_config(segments["value"], DetectorConfig)
        except InvalidConfig as e:
            message("error", "Amplitude segment settings are invalid")
            raise ValueError(str(e)) from e

    message("debug", "Signal processing parameters validated")


def save_config(refclean_dict: dict, config_file: Union[str, Path]) -> Path:
    """Write a configuration dictionary as YAML."""
    config_file = Path(config_file)
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, "w") as f:
        yaml.safe_dump(refclean_dict, f, sort_keys=False)
    return config_file
