# configs.py
"""Typed configuration models for the referencing and segment detection routines."""

import operator
from typing import Any, Literal, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

__all__ = [
    "InvalidConfig",
    "ReferenceConfig",
    "DetectorConfig",
    "coerce_config",
    "DEFAULT_THRESHOLDS",
]

# (statistic, use_zscore) -> threshold
DEFAULT_THRESHOLDS = {
    ("sd", False): 25.0,
    ("sd", True): 3.0,
    ("rms", False): 50.0,
    ("rms", True): 3.0,
}


class InvalidConfig(ValueError):
    """Raised when a configuration is malformed or incomplete."""


class ReferenceConfig(BaseModel):
    """Parameters of the iterative rereferencing procedure.

    ``channels`` holds 0-based row indices into the signal matrix. Filter
    cut-offs are in Hz; ``0`` disables that edge of the temporary band-pass.
    SD limits are in the units of the signal (microvolts for EEG).
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    channels: Tuple[int, ...]
    max_iterations: int = Field(gt=0)
    max_sd: float = Field(gt=0)
    min_sd: float = Field(ge=0)
    hp_filter: float = Field(default=0.0, ge=0)
    lp_filter: float = Field(default=0.0, ge=0)

    @field_validator("channels", mode="before")
    @classmethod
    def _index_channels(cls, value: Any) -> Any:
        # accepts numpy integer arrays and ranges
        if isinstance(value, (str, bytes)):
            return value
        try:
            return tuple(operator.index(ch) for ch in value)
        except TypeError:
            return value

    @field_validator("channels")
    @classmethod
    def _unique_sorted_channels(cls, value: Tuple[int, ...]) -> Tuple[int, ...]:
        if not value:
            raise ValueError("channel set must not be empty")
        if any(ch < 0 for ch in value):
            raise ValueError("channel indices must be non-negative")
        if len(set(value)) != len(value):
            raise ValueError("channel indices must be unique")
        return tuple(sorted(value))

    @model_validator(mode="after")
    def _check_sd_range(self) -> "ReferenceConfig":
        if self.min_sd >= self.max_sd:
            raise ValueError(
                f"min_sd ({self.min_sd}) must be smaller than max_sd ({self.max_sd})"
            )
        return self


class DetectorConfig(BaseModel):
    """Parameters of the windowed amplitude statistic detector.

    ``threshold`` defaults depend on ``statistic`` and ``use_zscore`` (see
    ``DEFAULT_THRESHOLDS``). ``reject_buffer_windows`` has no default: the
    caller always decides how many windows to add on each side of a
    rejected window.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    reject_buffer_windows: int = Field(ge=0)
    hp_filter: float = Field(default=0.0, ge=0)
    lp_filter: float = Field(default=0.0, ge=0)
    use_zscore: bool = False
    statistic: Literal["sd", "rms"] = "sd"
    window_seconds: float = Field(default=10.0, gt=0)
    threshold: Optional[float] = None
    segment_fraction: float = Field(
        default=0.25,
        ge=0,
        le=1,
        validation_alias=AliasChoices("segment_fraction", "channel_fraction"),
    )
    channel_bad_fraction: float = Field(default=0.05, ge=0, le=1)

    @field_validator("statistic", mode="before")
    @classmethod
    def _lower_statistic(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.lower()
        return value

    @model_validator(mode="before")
    @classmethod
    def _fill_threshold(cls, data: Any) -> Any:
        if isinstance(data, Mapping) and data.get("threshold") is None:
            statistic = data.get("statistic", "sd")
            if isinstance(statistic, str):
                statistic = statistic.lower()
            key = (statistic, bool(data.get("use_zscore", False)))
            if key in DEFAULT_THRESHOLDS:
                data = {**data, "threshold": DEFAULT_THRESHOLDS[key]}
        return data


ConfigT = TypeVar("ConfigT", bound=BaseModel)


def coerce_config(
    config: Union[ConfigT, Mapping[str, Any], None], model: Type[ConfigT]
) -> ConfigT:
    """Return ``config`` as an instance of ``model``.

    Mappings are validated into the model; validation failures are raised as
    :class:`InvalidConfig` so callers see one error type.
    """
    if isinstance(config, model):
        return config
    if config is None:
        config = {}
    if not isinstance(config, Mapping):
        raise InvalidConfig(
            f"Expected {model.__name__} or mapping, got {type(config).__name__}"
        )
    try:
        return model.model_validate(dict(config))
    except ValidationError as e:
        raise InvalidConfig(f"Invalid {model.__name__}: {e}") from e
