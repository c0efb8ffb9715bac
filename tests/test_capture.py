"""Tests for the microphone capture device, with sounddevice replaced by a fake module."""

from types import SimpleNamespace

import numpy as np
import pytest

from streamscribe import capture as capture_module
from streamscribe.capture import MicrophoneCapture, relative_energy
from streamscribe.config import CaptureConfig

BLOCK = 1600


class FakePortAudioError(Exception):
  pass


class FakeInputStream:
  instances: list["FakeInputStream"] = []

  def __init__(self, **kwargs):
    self.kwargs = kwargs
    self.started = False
    self.closed = False
    FakeInputStream.instances.append(self)

  def start(self):
    self.started = True

  def stop(self):
    self.started = False

  def close(self):
    self.closed = True


@pytest.fixture
def fake_sounddevice(monkeypatch):
  FakeInputStream.instances = []
  module = SimpleNamespace(
    InputStream=FakeInputStream,
    PortAudioError=FakePortAudioError,
    check_input_settings=lambda **kwargs: None,
  )
  monkeypatch.setattr(capture_module, "_load_sounddevice", lambda: module)
  return module


def tone(amplitude: float, length: int = BLOCK) -> np.ndarray:
  return np.full(length, amplitude, dtype=np.float32)


class TestRelativeEnergy:
  def test_silence_is_zero(self):
    assert relative_energy(tone(0.0), None) == 0.0

  def test_full_scale_is_one(self):
    assert relative_energy(tone(1.0), 1e-3) == pytest.approx(1.0)

  def test_rescaled_against_reference(self):
    # -30 dB halfway between a -60 dB floor and 0 dB
    assert relative_energy(tone(10 ** (-30 / 20)), 1e-3) == pytest.approx(0.5, abs=1e-4)

  def test_clamped(self):
    assert relative_energy(tone(1e-5), 1e-3) == 0.0
    assert relative_energy(tone(0.5), 1.0) == 0.0

  def test_empty_block(self):
    assert relative_energy(np.zeros(0, dtype=np.float32), None) == 0.0


class TestBuffer:
  def test_append_tracks_samples_and_energy(self):
    mic = MicrophoneCapture()
    for _ in range(10):
      mic.append(tone(0.1))

    assert len(mic.audio_samples) == 10 * BLOCK
    assert len(mic.relative_energy) == 10
    assert all(0.0 <= e <= 1.0 for e in mic.relative_energy)

  def test_energy_relative_to_quietest_recent_block(self):
    mic = MicrophoneCapture()
    mic.append(tone(0.001))
    mic.append(tone(1.0))

    assert mic.relative_energy[-1] == pytest.approx(1.0)

  def test_purge_keeps_trailing_samples(self):
    mic = MicrophoneCapture()
    samples = np.arange(10 * BLOCK, dtype=np.float32)
    for block in np.split(samples, 10):
      mic.append(block)

    removed = mic.purge(4000)

    assert removed == 10 * BLOCK - 4000
    np.testing.assert_array_equal(mic.audio_samples, samples[-4000:])
    # Energy frames still covering the kept samples
    assert len(mic.relative_energy) == 3

  def test_purge_larger_than_buffer_is_noop(self):
    mic = MicrophoneCapture()
    mic.append(tone(0.1))

    assert mic.purge(10 * BLOCK) == 0
    assert len(mic.audio_samples) == BLOCK

  def test_lookback_window_from_config(self):
    mic = MicrophoneCapture(CaptureConfig(energy_lookback_window_size=7))
    assert mic.energy_lookback_window_size == 7


class TestStream:
  def test_start_and_stop(self, fake_sounddevice):
    mic = MicrophoneCapture(CaptureConfig(device=3))
    ready = []
    mic.start_capture(lambda: ready.append(True))

    stream = FakeInputStream.instances[0]
    assert stream.started
    assert stream.kwargs["device"] == 3
    assert stream.kwargs["samplerate"] == 16000
    assert stream.kwargs["blocksize"] == BLOCK

    stream.kwargs["callback"](tone(0.2).reshape(-1, 1), BLOCK, None, None)
    assert ready == [True]
    assert len(mic.audio_samples) == BLOCK

    mic.stop_capture()
    assert stream.closed
    stream.kwargs["callback"](tone(0.2).reshape(-1, 1), BLOCK, None, None)
    assert ready == [True]

  def test_start_twice_opens_one_stream(self, fake_sounddevice):
    mic = MicrophoneCapture()
    mic.start_capture(lambda: None)
    mic.start_capture(lambda: None)

    assert len(FakeInputStream.instances) == 1

  def test_stop_without_start(self, fake_sounddevice):
    MicrophoneCapture().stop_capture()

  @pytest.mark.asyncio
  async def test_permission_granted(self, fake_sounddevice):
    assert await MicrophoneCapture().request_permission() is True

  @pytest.mark.asyncio
  async def test_permission_refused(self, fake_sounddevice):
    def refuse(**kwargs):
      raise FakePortAudioError("Error querying device -1")

    fake_sounddevice.check_input_settings = refuse
    assert await MicrophoneCapture().request_permission() is False
