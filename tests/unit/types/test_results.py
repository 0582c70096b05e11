"""Unit tests for the result containers."""

import numpy as np
import pytest

from refclean.types import BadSegment, DetectionResult, FileRecord, IterationResult


def _detection(segments):
    return DetectionResult(
        bad_channels=(1,),
        bad_segments=tuple(segments),
        threshold_matrix=np.zeros((4, 6), dtype=np.int8),
        stat_matrix=np.zeros((4, 6)),
        window_bounds=np.zeros((6, 2), dtype=int),
        boundary_windows=(),
        rejected_windows=np.zeros(6, dtype=bool),
        total_bad_seconds=sum(s.duration for s in segments),
        bad_percentage=0.0,
        sfreq=100.0,
    )


class TestDetectionResult:
    def test_segment_arrays(self):
        result = _detection([BadSegment(100, 300, 1.0, 3.0), BadSegment(500, 600, 5.0, 6.0)])
        np.testing.assert_array_equal(result.segment_samples, [[100, 300], [500, 600]])
        np.testing.assert_allclose(result.segment_seconds, [[1.0, 3.0], [5.0, 6.0]])

    def test_empty_segment_arrays(self):
        result = _detection([])
        assert result.segment_samples.shape == (0, 2)
        assert len(result.to_annotations()) == 0

    def test_to_annotations(self):
        result = _detection([BadSegment(100, 300, 1.0, 3.0)])
        annotations = result.to_annotations(description="BAD_test", first_time=2.0)
        assert annotations.onset[0] == pytest.approx(3.0)
        assert annotations.duration[0] == pytest.approx(2.0)
        assert annotations.description[0] == "BAD_test"


class TestIterationResult:
    def test_n_excluded(self):
        result = IterationResult(
            excluded_channels=(2, 5), iterations_run=3,
            referenced_signal=np.zeros((6, 10)), converged=True,
        )
        assert result.n_excluded == 2


class TestFileRecord:
    def test_defaults(self):
        record = FileRecord(setname="sub-01", source="sub-01.set")
        assert record.status == "pending"
        assert record.bad_channels == []
        assert record.creationDateTime
