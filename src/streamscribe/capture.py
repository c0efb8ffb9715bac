"""
Microphone capture backed by sounddevice.

Keeps a growing float32 buffer of mono samples plus one relative-energy value per callback
block, and satisfies the AudioCaptureDevice protocol the stream controller consumes.
"""

import asyncio
import math
import threading
from collections import deque
from collections.abc import Callable
from types import ModuleType

import numpy as np

from streamscribe.config import CaptureConfig
from streamscribe.constants import SAMPLE_RATE
from streamscribe.logs import get_logger

CHANNELS = 1
DTYPE = np.float32


def _load_sounddevice() -> ModuleType:
  # PortAudio is only needed once a microphone is actually used
  import sounddevice

  return sounddevice


def relative_energy(block: np.ndarray, reference_rms: float | None) -> float:
  """
  Energy of a block in dB, rescaled between the reference floor and 0 dBFS, clamped to [0, 1].

  :param block: Audio samples normalized to [-1.0, 1.0].
  :param reference_rms: RMS of the quietest recent block, or None before any history exists.
  """
  rms = float(np.sqrt(np.mean(np.square(block, dtype=np.float64)))) if block.size else 0.0
  reference = max(1e-8, reference_rms if reference_rms is not None else 1e-3)
  db_energy = 20 * math.log10(max(rms, 1e-10))
  db_reference = 20 * math.log10(reference)
  if db_reference >= 0:
    return 0.0
  normalized = (db_energy - db_reference) / (0 - db_reference)
  return max(0.0, min(normalized, 1.0))


class MicrophoneCapture:
  """Captures microphone audio into a purgeable in-memory buffer."""

  def __init__(self, config: CaptureConfig | None = None, sample_rate: int = SAMPLE_RATE) -> None:
    self.config = config or CaptureConfig()
    self.sample_rate = sample_rate
    self.logger = get_logger("mic")

    self._lock = threading.Lock()
    self._samples: np.ndarray = np.zeros(0, dtype=DTYPE)
    self._energy: list[float] = []
    self._recent_rms: deque[float] = deque(maxlen=self.config.energy_lookback_window_size)

    self._stream = None
    self._on_buffer_ready: Callable[[], None] | None = None

  @property
  def block_size(self) -> int:
    return max(1, int(self.config.block_duration * self.sample_rate))

  async def request_permission(self) -> bool:
    sd = _load_sounddevice()
    try:
      await asyncio.to_thread(
        sd.check_input_settings,
        device=self.config.device,
        channels=CHANNELS,
        dtype="float32",
        samplerate=self.sample_rate,
      )
    except (sd.PortAudioError, ValueError) as e:
      self.logger.warning("Input device unavailable", device=self.config.device, error=str(e))
      return False
    return True

  def start_capture(self, on_buffer_ready: Callable[[], None]) -> None:
    if self._stream is not None:
      return

    sd = _load_sounddevice()
    self._on_buffer_ready = on_buffer_ready
    self._stream = sd.InputStream(
      device=self.config.device,
      channels=CHANNELS,
      samplerate=self.sample_rate,
      dtype=DTYPE,
      latency="low",
      blocksize=self.block_size,
      callback=self._audio_callback,
    )
    self._stream.start()
    self.logger.info("Microphone capture started", device=self.config.device)

  def stop_capture(self) -> None:
    if self._stream is None:
      return

    stream, self._stream = self._stream, None
    self._on_buffer_ready = None
    stream.stop()
    stream.close()
    self.logger.info("Microphone capture stopped")

  def _audio_callback(self, indata: np.ndarray, frames: int, time_info, status) -> None:
    """Sounddevice audio callback, runs on the PortAudio thread."""
    if status:
      self.logger.warning("Audio status", status=str(status))

    self.append(indata[:, 0] if indata.ndim > 1 else indata)

    callback = self._on_buffer_ready
    if callback is not None:
      callback()

  def append(self, block: np.ndarray) -> None:
    """Add a block of samples and its energy value to the buffer."""
    block = np.asarray(block, dtype=DTYPE)
    reference = min(self._recent_rms) if self._recent_rms else None
    energy = relative_energy(block, reference)
    rms = float(np.sqrt(np.mean(np.square(block, dtype=np.float64)))) if block.size else 0.0

    with self._lock:
      self._samples = np.concatenate((self._samples, block))
      self._energy.append(energy)
      self._recent_rms.append(rms)

  @property
  def audio_samples(self) -> np.ndarray:
    # Appends and purges replace the array, so the reference is a stable snapshot.
    with self._lock:
      return self._samples

  @property
  def relative_energy(self) -> list[float]:
    with self._lock:
      return list(self._energy)

  @property
  def energy_lookback_window_size(self) -> int:
    return self.config.energy_lookback_window_size

  def purge(self, keeping_last: int) -> int:
    with self._lock:
      removed = max(0, self._samples.shape[0] - max(0, keeping_last))
      if removed == 0:
        return 0
      self._samples = self._samples[removed:].copy()

      frames_to_keep = math.ceil(self._samples.shape[0] / self.block_size)
      if len(self._energy) > frames_to_keep:
        self._energy = self._energy[len(self._energy) - frames_to_keep :]

    self.logger.debug("Purged capture buffer", removed=removed, kept=keeping_last)
    return removed
