"""
Voice gate: decides whether enough new, voiced audio has accumulated to justify a pass.
"""

from collections.abc import Sequence
from enum import Enum

from streamscribe.config import GateConfig
from streamscribe.constants import ENERGY_FRAME_SECONDS


class GateDecision(Enum):
  """Outcome of a gate check."""

  TRANSCRIBE = "transcribe"
  INSUFFICIENT_AUDIO = "insufficient_audio"
  NO_VOICE = "no_voice"


def is_voice_detected(
  relative_energy: Sequence[float],
  next_buffer_seconds: float,
  silence_threshold: float,
  frame_seconds: float = ENERGY_FRAME_SECONDS,
) -> bool:
  """
  Check the energy trace covering the new audio for any frame louder than the threshold.

  The newest ten frames are excluded once there are more than twenty to consider, since the
  capture callback may not have settled them yet.

  :param relative_energy: Energy trace, oldest first, one value per energy frame.
  :param next_buffer_seconds: Duration of the new audio in seconds.
  :param silence_threshold: Relative energy above which a frame counts as speech.
  :param frame_seconds: Audio duration covered by one energy value.
  :returns: True if speech is present in the new-audio window.
  """
  frames_to_consider = int(next_buffer_seconds / frame_seconds)
  if frames_to_consider <= 0:
    return False

  window = list(relative_energy)[-frames_to_consider:]
  frames_to_check = max(10, len(window) - 10)
  return any(energy > silence_threshold for energy in window[:frames_to_check])


class VoiceGate:
  """
  Pure decision over buffer bookkeeping and the energy trace.

  Declining is not an error; the controller idles and checks again.
  """

  def __init__(self, config: GateConfig, frame_seconds: float = ENERGY_FRAME_SECONDS) -> None:
    self.config = config
    self.frame_seconds = frame_seconds

  def new_audio_seconds(self, buffer_length_samples: int, last_buffer_size: int) -> float:
    """Seconds of audio captured since the last pass, clamped at zero."""
    new_samples = max(0, buffer_length_samples - last_buffer_size)
    return new_samples / self.config.sample_rate

  def evaluate(
    self,
    buffer_length_samples: int,
    last_buffer_size: int,
    energy_trace: Sequence[float],
  ) -> GateDecision:
    new_seconds = self.new_audio_seconds(buffer_length_samples, last_buffer_size)
    if new_seconds <= self.config.min_new_audio_seconds:
      return GateDecision.INSUFFICIENT_AUDIO

    if self.config.use_vad and not is_voice_detected(
      energy_trace, new_seconds, self.config.silence_threshold, self.frame_seconds
    ):
      return GateDecision.NO_VOICE

    return GateDecision.TRANSCRIBE

  def should_transcribe(
    self,
    buffer_length_samples: int,
    last_buffer_size: int,
    energy_trace: Sequence[float],
  ) -> bool:
    decision = self.evaluate(buffer_length_samples, last_buffer_size, energy_trace)
    return decision is GateDecision.TRANSCRIBE
