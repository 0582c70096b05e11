"""Tests for amplitude statistic based bad segment detection."""

import numpy as np
import pytest

from refclean.functions.artifacts import (
    annotate_amplitude_segments,
    detect_bad_segments,
    expand_windows,
    window_bounds,
    window_statistic,
    windows_to_segments,
)
from refclean.types import TAG_BAD, TAG_BAD_AND_REJECTED, TAG_OK, DetectorConfig, InvalidConfig
from tests.fixtures.synthetic_data import constant_channels_raw

SFREQ = 100.0


def _signal(rng, n_channels=4, seconds=60, sd=5.0):
    return rng.normal(0, sd, size=(n_channels, int(seconds * SFREQ)))


def _spike(data, rng, channel, window, sd=100.0, window_samples=1000):
    start = window * window_samples
    data[channel, start : start + window_samples] = rng.normal(0, sd, window_samples)
    return data


class TestWindowHelpers:
    """Test the window helpers."""

    def test_window_bounds_last_window_absorbs_remainder(self):
        bounds = window_bounds(2550, 1000)
        np.testing.assert_array_equal(bounds, [[0, 1000], [1000, 2550]])

    def test_window_bounds_short_recording(self):
        assert window_bounds(999, 1000).shape == (0, 2)

    def test_window_statistic_sd_and_rms(self):
        segment = np.array([[1.0, -1.0, 1.0, -1.0], [3.0, 3.0, 3.0, 3.0]])
        np.testing.assert_allclose(window_statistic(segment, "rms"), [1.0, 3.0])
        np.testing.assert_allclose(
            window_statistic(segment, "sd"), [np.std([1, -1, 1, -1], ddof=1), 0.0]
        )

    def test_window_statistic_unknown(self):
        with pytest.raises(InvalidConfig):
            window_statistic(np.zeros((2, 4)), "mad")

    def test_expand_windows(self):
        rejected = np.array([False, False, True, False, False, False])
        np.testing.assert_array_equal(
            expand_windows(rejected, 1), [False, True, True, True, False, False]
        )
        np.testing.assert_array_equal(expand_windows(rejected, 0), rejected)

    def test_expand_windows_clips_at_edges(self):
        rejected = np.array([True, False, False, True])
        np.testing.assert_array_equal(expand_windows(rejected, 2), [True] * 4)

    def test_windows_to_segments_merges_runs(self):
        bounds = window_bounds(6000, 1000)
        rejected = np.array([True, True, False, False, True, False])
        segments = windows_to_segments(rejected, bounds, SFREQ)

        assert [(s.start_sample, s.stop_sample) for s in segments] == [(0, 2000), (4000, 5000)]
        assert segments[0].start_seconds == 0.0
        assert segments[0].stop_seconds == 20.0
        assert segments[1].duration == 10.0


class TestDetectBadSegments:
    """Test detection on synthetic signals."""

    def test_single_bad_window_with_buffer(self, rng):
        data = _spike(_signal(rng), rng, channel=0, window=2)
        result = detect_bad_segments(
            data, SFREQ, config={"window_seconds": 10, "reject_buffer_windows": 1}
        )

        np.testing.assert_array_equal(result.segment_samples, [[1000, 4000]])
        np.testing.assert_allclose(result.segment_seconds, [[10.0, 40.0]])
        assert result.total_bad_seconds == pytest.approx(30.0)
        assert result.bad_percentage == pytest.approx(50.0)
        assert result.bad_channels == (0,)
        assert result.n_windows == 6

    def test_tags(self, rng):
        data = _spike(_signal(rng), rng, channel=0, window=2)
        result = detect_bad_segments(
            data, SFREQ, config={"window_seconds": 10, "reject_buffer_windows": 1}
        )

        tags = result.threshold_matrix
        assert tags[0, 2] == TAG_BAD_AND_REJECTED
        assert tags[1, 2] == TAG_BAD
        assert tags[0, 1] == TAG_BAD
        assert tags[0, 3] == TAG_BAD
        assert tags[0, 0] == TAG_OK
        assert tags[3, 5] == TAG_OK

    def test_no_buffer(self, rng):
        data = _spike(_signal(rng), rng, channel=0, window=2)
        result = detect_bad_segments(
            data, SFREQ, config={"window_seconds": 10, "reject_buffer_windows": 0}
        )
        np.testing.assert_array_equal(result.segment_samples, [[2000, 3000]])

    def test_buffered_windows_merge(self, rng):
        data = _signal(rng)
        _spike(data, rng, channel=0, window=1)
        _spike(data, rng, channel=1, window=3)
        result = detect_bad_segments(
            data, SFREQ, config={"window_seconds": 10, "reject_buffer_windows": 1}
        )
        np.testing.assert_array_equal(result.segment_samples, [[0, 5000]])

    def test_segment_fraction_not_reached(self, rng):
        data = _spike(_signal(rng, n_channels=8), rng, channel=0, window=2)
        result = detect_bad_segments(
            data, SFREQ, config={"window_seconds": 10, "reject_buffer_windows": 1}
        )
        # 1 of 8 channels is below the default 0.25
        assert result.bad_segments == ()
        assert result.bad_channels == (0,)

    def test_channel_bad_fraction(self, rng):
        data = _spike(_signal(rng), rng, channel=0, window=2)
        result = detect_bad_segments(
            data,
            SFREQ,
            config={
                "window_seconds": 10,
                "reject_buffer_windows": 0,
                "channel_bad_fraction": 0.5,
            },
        )
        assert result.bad_channels == ()

    def test_boundary_window_skipped(self, rng):
        data = _spike(_signal(rng), rng, channel=0, window=2)
        result = detect_bad_segments(
            data,
            SFREQ,
            markers=[("boundary", 2500.0), ("stim", 100.0)],
            config={"window_seconds": 10, "reject_buffer_windows": 1},
        )

        assert result.boundary_windows == (2,)
        assert result.bad_segments == ()
        assert np.isnan(result.stat_matrix[:, 2]).all()
        assert (result.threshold_matrix[:, 2] == TAG_OK).all()

    def test_boundary_window_can_be_covered_by_buffer(self, rng):
        data = _spike(_signal(rng), rng, channel=0, window=3)
        result = detect_bad_segments(
            data,
            SFREQ,
            markers=[("boundary", 2000.0)],
            config={"window_seconds": 10, "reject_buffer_windows": 1},
        )

        assert result.boundary_windows == (2,)
        np.testing.assert_array_equal(result.segment_samples, [[2000, 5000]])
        assert result.threshold_matrix[0, 2] == TAG_BAD

    def test_window_with_missing_values_dropped_from_fractions(self, rng):
        data = _spike(_signal(rng), rng, channel=0, window=2)
        data[1:, 4000:5000] = np.nan
        result = detect_bad_segments(
            data,
            SFREQ,
            config={
                "window_seconds": 10,
                "reject_buffer_windows": 0,
                "channel_bad_fraction": 0.2,
            },
        )

        # 1 bad window out of 5 evaluated ones
        assert result.bad_channels == (0,)
        assert result.boundary_windows == ()
        assert (result.threshold_matrix[:, 4] == TAG_OK).all()
        np.testing.assert_array_equal(result.segment_samples, [[2000, 3000]])

    def test_single_sample_windows_are_skipped_for_sd(self, rng):
        data = _signal(rng, seconds=0.05)
        result = detect_bad_segments(
            data, SFREQ, config={"window_seconds": 0.01, "reject_buffer_windows": 0}
        )
        assert result.n_windows == 5
        assert np.isnan(result.stat_matrix).all()
        assert result.bad_channels == ()
        assert result.bad_segments == ()

    def test_rms_statistic(self, rng):
        data = _signal(rng)
        data[2, 3000:4000] += 80.0
        result = detect_bad_segments(
            data,
            SFREQ,
            config={"window_seconds": 10, "reject_buffer_windows": 0, "statistic": "RMS"},
        )
        assert result.statistic == "rms"
        assert result.threshold == 50.0
        np.testing.assert_array_equal(result.segment_samples, [[3000, 4000]])

    def test_zscore_default_threshold(self, rng):
        data = _spike(_signal(rng, seconds=200), rng, channel=0, window=2, sd=200.0)
        data[1] *= 1000.0
        result = detect_bad_segments(
            data,
            SFREQ,
            config={"window_seconds": 10, "reject_buffer_windows": 0, "use_zscore": True},
        )
        assert result.threshold == 3.0
        # channel 1 is large but uniform, z-scoring removes it
        assert 1 not in result.bad_channels
        np.testing.assert_array_equal(result.segment_samples, [[2000, 3000]])

    def test_zero_signal(self):
        data = np.zeros((10, 6000))
        result = detect_bad_segments(
            data, SFREQ, config={"window_seconds": 10, "reject_buffer_windows": 1}
        )
        assert result.bad_channels == ()
        assert result.bad_segments == ()
        assert result.total_bad_seconds == 0.0

    def test_signal_shorter_than_one_window(self, rng):
        result = detect_bad_segments(
            _signal(rng, seconds=5), SFREQ, config={"reject_buffer_windows": 1}
        )
        assert result.n_windows == 0
        assert result.bad_segments == ()
        assert result.bad_channels == ()

    def test_input_not_modified(self, rng):
        data = _signal(rng)
        original = data.copy()
        detect_bad_segments(
            data,
            SFREQ,
            config={
                "window_seconds": 10,
                "reject_buffer_windows": 1,
                "hp_filter": 1,
                "lp_filter": 30,
                "use_zscore": True,
            },
        )
        np.testing.assert_array_equal(data, original)

    def test_buffer_is_required(self, rng):
        with pytest.raises(InvalidConfig):
            detect_bad_segments(_signal(rng), SFREQ, config={"window_seconds": 10})

    def test_invalid_statistic(self, rng):
        with pytest.raises(InvalidConfig):
            detect_bad_segments(
                _signal(rng), SFREQ, config={"reject_buffer_windows": 1, "statistic": "max"}
            )

    def test_accepts_config_model(self, rng):
        config = DetectorConfig(reject_buffer_windows=2, window_seconds=5)
        result = detect_bad_segments(_signal(rng), SFREQ, config=config)
        assert result.n_windows == 12

    def test_summary(self, rng):
        data = _spike(_signal(rng), rng, channel=0, window=2)
        result = detect_bad_segments(
            data, SFREQ, config={"window_seconds": 10, "reject_buffer_windows": 1}
        )
        summary = result.summary()
        assert summary["n_bad_segments"] == 1
        assert summary["n_bad_channels"] == 1
        assert summary["bad_channel_percentage"] == pytest.approx(25.0)


class TestAnnotateAmplitudeSegments:
    """Test the MNE wrapper."""

    def test_annotations_added(self, rng):
        data = _spike(_signal(rng), rng, channel=0, window=2)
        raw = constant_channels_raw(data, sfreq=SFREQ)

        raw_out, result = annotate_amplitude_segments(
            raw, {"window_seconds": 10, "reject_buffer_windows": 1}
        )

        assert raw_out is not raw
        assert len(raw.annotations) == 0
        assert list(raw_out.annotations.description) == ["BAD_amplitude"]
        assert raw_out.annotations.onset[0] == pytest.approx(10.0)
        assert raw_out.annotations.duration[0] == pytest.approx(30.0)
        assert result.bad_channels == (0,)

    def test_boundary_annotations_are_used(self, rng):
        data = _spike(_signal(rng), rng, channel=0, window=2)
        raw = constant_channels_raw(data, sfreq=SFREQ)
        raw.annotations.append(onset=25.0, duration=0.0, description="boundary")

        _, result = annotate_amplitude_segments(
            raw, {"window_seconds": 10, "reject_buffer_windows": 1}
        )
        assert result.boundary_windows == (2,)
        assert result.bad_segments == ()

    def test_picks(self, rng):
        data = _spike(_signal(rng), rng, channel=0, window=2)
        raw = constant_channels_raw(data, sfreq=SFREQ)
        _, result = annotate_amplitude_segments(
            raw, {"window_seconds": 10, "reject_buffer_windows": 0}, picks=["EEG002", "EEG003"]
        )
        assert result.threshold_matrix.shape == (2, 6)
        assert result.bad_segments == ()

    def test_rejects_non_raw(self):
        with pytest.raises(TypeError):
            annotate_amplitude_segments(np.zeros((2, 100)), {"reject_buffer_windows": 1})

    def test_mixed_channel_type_picks_in_microvolts(self, rng):
        data = _spike(_signal(rng), rng, channel=0, window=2)
        raw = constant_channels_raw(data, sfreq=SFREQ)
        raw.set_channel_types({"EEG004": "eog"})

        _, result = annotate_amplitude_segments(
            raw, {"window_seconds": 10, "reject_buffer_windows": 0}, picks=raw.ch_names
        )
        assert result.threshold_matrix.shape == (4, 6)
        assert result.bad_channels == (0,)
        np.testing.assert_array_equal(result.segment_samples, [[2000, 3000]])
