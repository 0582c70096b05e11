"""Core pipeline classes."""

from .pipeline import BatchRecorder, Pipeline

__all__ = ["BatchRecorder", "Pipeline"]
