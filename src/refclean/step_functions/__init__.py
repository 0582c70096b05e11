"""Pipeline step functions."""

from .continuous import PreprocessOutcome, step_preprocess_raw, step_set_montage

__all__ = ["PreprocessOutcome", "step_preprocess_raw", "step_set_montage"]
