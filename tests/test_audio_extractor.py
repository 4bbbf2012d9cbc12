from __future__ import annotations

import numpy as np
import pytest
import soundfile as sf

from autoslice import audio_extractor
from autoslice.audio_extractor import detect_gaps_in_file, get_audio_info
from autoslice.errors import DetectionInProgressError
from autoslice.gap_detector import GapDetectionParams


SR = 22050


@pytest.fixture
def two_track_wav(tmp_path, make_signal):
    path = tmp_path / "set.wav"
    samples = make_signal([(20, -10.0), (3, -60.0), (20, -10.0)])
    sf.write(str(path), samples, SR)
    return path


def test_get_audio_info(two_track_wav) -> None:
    info = get_audio_info(str(two_track_wav))

    assert info.duration == pytest.approx(43.0, abs=0.01)
    assert info.sample_rate == SR
    assert info.channels == 1
    assert info.file_name == "set.wav"


def test_get_audio_info_missing_file(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        get_audio_info(str(tmp_path / "missing.wav"))


def test_detect_gaps_in_file(two_track_wav) -> None:
    params = GapDetectionParams(threshold_db=-40, auto_threshold=False)

    result = detect_gaps_in_file(str(two_track_wav), params)

    assert result.track_count == 2
    assert result.markers == [pytest.approx(21.5, abs=0.1)]


def test_detection_is_not_reentrant_per_file(two_track_wav, monkeypatch) -> None:
    key = str(two_track_wav.resolve())
    monkeypatch.setattr(audio_extractor, "_active_paths", {key})

    with pytest.raises(DetectionInProgressError):
        detect_gaps_in_file(str(two_track_wav))


def test_detection_releases_the_file_after_errors(tmp_path) -> None:
    path = tmp_path / "tiny.wav"
    sf.write(str(path), np.full(10, 0.1), SR)

    with pytest.raises(Exception):
        detect_gaps_in_file(str(path))

    assert audio_extractor._active_paths == set()
