from __future__ import annotations

import tracemalloc

import numpy as np
import pytest

from autoslice import loudness
from autoslice.errors import InsufficientDataError
from autoslice.loudness import compute_loudness, downsample_series, estimate_noise_floor
from autoslice.models import LoudnessSeries


@pytest.mark.parametrize(
    "sample_rate, window_ms, hop_ms, n_samples",
    [
        (22050, 50, 25, 22050),
        (44100, 50, 25, 100_000),
        (8000, 20, 10, 8001),
        (22050, 100, 50, 2205),
        (16000, 30, 7, 12345),
    ],
)
def test_frame_count_matches_formula(sample_rate, window_ms, hop_ms, n_samples) -> None:
    rng = np.random.default_rng(0)
    samples = rng.uniform(-1, 1, n_samples)

    series = compute_loudness(samples, sample_rate, window_ms=window_ms, hop_ms=hop_ms)

    window = int(sample_rate * window_ms / 1000)
    hop = int(sample_rate * hop_ms / 1000)
    assert len(series) == (n_samples - window) // hop + 1
    assert np.all(series.levels_db >= -100.0)
    assert np.all(np.diff(series.times) > 0)


def test_frame_times_are_frame_start_over_sample_rate() -> None:
    series = compute_loudness(np.ones(22050), 22050)

    hop = int(22050 * 25 / 1000)
    assert series.times[0] == 0.0
    assert series.times[3] == pytest.approx(3 * hop / 22050)


def test_digital_silence_is_floored() -> None:
    series = compute_loudness(np.zeros(22050), 22050)

    assert np.all(series.levels_db == -100.0)


def test_very_quiet_signal_is_clamped_to_floor() -> None:
    series = compute_loudness(np.full(22050, 1e-9), 22050)

    assert np.all(series.levels_db == -100.0)


def test_full_scale_constant_is_zero_db() -> None:
    series = compute_loudness(np.full(22050, 0.5), 22050)

    assert series.levels_db == pytest.approx(np.full(len(series), 20 * np.log10(0.5)))


def test_sine_level_matches_rms(make_signal) -> None:
    series = compute_loudness(make_signal([(2.0, -20.0)]), 22050)

    assert np.median(series.levels_db) == pytest.approx(-20.0, abs=0.2)


def test_stereo_input_is_downmixed() -> None:
    stereo = np.vstack([np.full(22050, 0.5), np.full(22050, 0.5)])

    series = compute_loudness(stereo, 22050)

    assert series.levels_db[0] == pytest.approx(20 * np.log10(0.5))


def test_audio_shorter_than_window_raises() -> None:
    with pytest.raises(InsufficientDataError):
        compute_loudness(np.ones(100), 22050)


def test_zero_sample_window_is_rejected() -> None:
    with pytest.raises(ValueError):
        compute_loudness(np.ones(1000), 10, window_ms=50, hop_ms=25)


def test_noise_floor_of_identical_levels_is_that_level() -> None:
    series = LoudnessSeries(times=np.arange(40) * 0.025, levels_db=np.full(40, -42.5), hop_ms=25)

    assert estimate_noise_floor(series) == -42.5


def test_noise_floor_averages_quietest_decile() -> None:
    levels = np.concatenate([np.full(10, -80.0), np.full(90, -10.0)])
    np.random.default_rng(1).shuffle(levels)
    series = LoudnessSeries(times=np.arange(100) * 0.025, levels_db=levels, hop_ms=25)

    assert estimate_noise_floor(series) == pytest.approx(-80.0)


def test_noise_floor_uses_at_least_one_frame() -> None:
    series = LoudnessSeries(times=np.arange(3) * 0.025, levels_db=np.array([-5.0, -70.0, -20.0]), hop_ms=25)

    assert estimate_noise_floor(series) == -70.0


def test_noise_floor_of_empty_series_raises() -> None:
    with pytest.raises(InsufficientDataError):
        estimate_noise_floor(LoudnessSeries.empty())


def test_downsample_series_caps_points() -> None:
    series = LoudnessSeries(times=np.arange(1000) * 0.025, levels_db=np.zeros(1000), hop_ms=25)

    small = downsample_series(series, max_points=300)

    assert len(small) <= 300
    assert small.times[0] == 0.0
    assert downsample_series(series, max_points=5000) is series


def test_blockwise_profile_matches_direct_rms(monkeypatch) -> None:
    monkeypatch.setattr(loudness, "RMS_BLOCK_FRAMES", 7)
    rng = np.random.default_rng(3)
    samples = rng.uniform(-0.5, 0.5, 22050) * np.linspace(0.01, 1.0, 22050)

    series = compute_loudness(samples, 22050)

    window, hop = 1102, 551
    assert len(series) == (len(samples) - window) // hop + 1
    for k in (0, 6, 7, 8, 13, 14, len(series) - 1):
        frame = samples[k * hop:k * hop + window]
        expected = 20 * np.log10(np.sqrt(np.mean(frame ** 2)))
        assert series.levels_db[k] == pytest.approx(expected, abs=1e-3)


def test_long_input_memory_stays_bounded() -> None:
    # Ten minutes at the analysis rate
    samples = np.random.default_rng(4).standard_normal(22050 * 600, dtype=np.float32) * 0.1

    tracemalloc.start()
    try:
        series = compute_loudness(samples, 22050)
        _, peak = tracemalloc.get_traced_memory()
    finally:
        tracemalloc.stop()

    assert len(series) == (len(samples) - 1102) // 551 + 1
    assert peak < samples.nbytes
