"""Tests for the Raw level referencing functions."""

import numpy as np
import pytest

from refclean.functions.preprocessing import rereference_data, rereference_iteratively
from refclean.types import InvalidConfig
from tests.fixtures.synthetic_data import create_synthetic_raw
from tests.fixtures.test_utils import assert_zero_mean


class TestRereferenceData:
    """Test the plain referencing wrapper."""

    def test_average_reference(self):
        raw = create_synthetic_raw(n_channels=8, sfreq=250, duration=5)
        referenced = rereference_data(raw, ref_channels="average")

        assert referenced is not raw
        assert_zero_mean(referenced, referenced.ch_names)

    def test_channel_list(self):
        raw = create_synthetic_raw(n_channels=8, sfreq=250, duration=5)
        referenced = rereference_data(raw, ref_channels=["Fp1", "Fp2"])
        assert_zero_mean(referenced, ["Fp1", "Fp2"])

    def test_missing_channel(self):
        raw = create_synthetic_raw(n_channels=4, sfreq=250, duration=2)
        with pytest.raises(ValueError):
            rereference_data(raw, ref_channels=["Xyz"])
        with pytest.raises(ValueError):
            rereference_data(raw, ref_channels="Xyz")

    def test_invalid_types(self):
        raw = create_synthetic_raw(n_channels=4, sfreq=250, duration=2)
        with pytest.raises(TypeError):
            rereference_data(np.zeros((4, 10)))
        with pytest.raises(TypeError):
            rereference_data(raw, ref_channels=3)


class TestRereferenceIteratively:
    """Test the iterative reference on MNE Raw objects."""

    def test_noisy_channel_left_out(self):
        raw = create_synthetic_raw(
            n_channels=12, sfreq=250, duration=20, noisy_channels={5: 500e-6}
        )
        raw_out, bad_channels, result = rereference_iteratively(raw)

        assert bad_channels == [raw.ch_names[5]]
        assert result.excluded_channels == (5,)
        assert result.converged
        good = [name for name in raw.ch_names if name not in bad_channels]
        assert_zero_mean(raw_out, good)
        # input untouched
        assert raw.get_data()[5].std() > 100e-6

    def test_channel_names(self):
        raw = create_synthetic_raw(
            n_channels=12, sfreq=250, duration=20, noisy_channels={5: 500e-6}
        )
        channels = raw.ch_names[:6]
        _, bad_channels, result = rereference_iteratively(raw, channels=channels)

        assert bad_channels == [raw.ch_names[5]]
        assert result.iterations_run == 2

    def test_unknown_channel(self):
        raw = create_synthetic_raw(n_channels=4, sfreq=250, duration=2)
        with pytest.raises(ValueError):
            rereference_iteratively(raw, channels=["Xyz"])

    def test_invalid_limits(self):
        raw = create_synthetic_raw(n_channels=4, sfreq=250, duration=2)
        with pytest.raises(InvalidConfig):
            rereference_iteratively(raw, max_sd=1.0, min_sd=5.0)

    def test_all_flat_left_unreferenced(self):
        raw = create_synthetic_raw(n_channels=4, sfreq=250, duration=4, noise_sd=0.0)
        raw_out, bad_channels, _ = rereference_iteratively(raw, hp_filter=0, lp_filter=0)

        assert bad_channels == raw.ch_names
        np.testing.assert_array_equal(raw_out.get_data(), raw.get_data())

    def test_rejects_non_raw(self):
        with pytest.raises(TypeError):
            rereference_iteratively(np.zeros((4, 100)))

    def test_eog_channel_not_evaluated_or_referenced(self):
        raw = create_synthetic_raw(
            n_channels=7, sfreq=250, duration=20, noisy_channels={0: 300e-6, 4: 500e-6}
        )
        raw.set_channel_types({raw.ch_names[0]: "eog"})
        raw_out, bad_channels, result = rereference_iteratively(raw, hp_filter=0, lp_filter=0)

        # indices refer to rows of the Raw, not of the EEG subset
        assert result.excluded_channels == (4,)
        assert result.exclusion_history == ((4,),)
        assert bad_channels == [raw.ch_names[4]]
        assert result.referenced_signal.shape == (6, raw.n_times)
        np.testing.assert_array_equal(raw_out.get_data()[0], raw.get_data()[0])
        good = [name for name in raw.ch_names[1:] if name not in bad_channels]
        assert_zero_mean(raw_out, good)

    def test_non_eeg_reference_channel(self):
        raw = create_synthetic_raw(n_channels=5, sfreq=250, duration=2)
        raw.set_channel_types({raw.ch_names[0]: "eog"})
        with pytest.raises(ValueError):
            rereference_iteratively(raw, channels=[raw.ch_names[0], raw.ch_names[1]])

    def test_no_eeg_channels(self):
        raw = create_synthetic_raw(n_channels=2, sfreq=250, duration=2)
        raw.set_channel_types({name: "eog" for name in raw.ch_names})
        with pytest.raises(InvalidConfig):
            rereference_iteratively(raw)
