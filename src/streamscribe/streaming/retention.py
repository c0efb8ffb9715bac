"""
Buffer retention: how much trailing audio must survive a purge after confirmation.
"""

from collections.abc import Sequence

from streamscribe.config import RetentionConfig, RetentionStrategy
from streamscribe.models import Segment

__all__ = ["BufferRetentionPolicy", "RetentionStrategy"]


class BufferRetentionPolicy:
  """
  Computes the number of trailing samples to keep.

  Results are clamped to [0, buffer_length]: timing jitter between the engine's timestamps and
  the live buffer is expected, so the arithmetic never fails.
  """

  def __init__(self, config: RetentionConfig) -> None:
    self.config = config

  @property
  def strategy(self) -> RetentionStrategy:
    return self.config.strategy

  def compute_retention(
    self,
    unconfirmed_segments: Sequence[Segment],
    watermark: float,
    voice_activity_lookback_window: int,
    sample_rate: int,
    buffer_length: int,
    buffer_start_seconds: float = 0.0,
  ) -> int:
    """
    :param unconfirmed_segments: The held-back tail of the latest pass.
    :param watermark: Confirmed watermark in absolute stream seconds.
    :param voice_activity_lookback_window: Look-back size of the voice detector, in energy frames.
    :param sample_rate: Sample rate of the buffer.
    :param buffer_length: Current length of the capture buffer in samples.
    :param buffer_start_seconds: Absolute stream time of the first retained sample.
    :returns: Number of trailing samples to keep.
    """
    if self.config.strategy is RetentionStrategy.WATERMARK:
      keep_from_seconds = max(0.0, watermark - self.config.overlap_seconds - buffer_start_seconds)
      keep = buffer_length - int(keep_from_seconds * sample_rate)
    else:
      keep = int(
        self._context_seconds(unconfirmed_segments, voice_activity_lookback_window) * sample_rate
      )

    return max(0, min(keep, buffer_length))

  def _context_seconds(
    self, unconfirmed_segments: Sequence[Segment], voice_activity_lookback_window: int
  ) -> float:
    """Span of the unconfirmed tail plus the voice detector's look-back."""
    if unconfirmed_segments:
      span = max(0.0, unconfirmed_segments[-1].end - unconfirmed_segments[0].start)
    else:
      span = 0.0
    return span + voice_activity_lookback_window * self.config.energy_frame_seconds


def clamp_last_buffer_size(last_buffer_size: int, purged_samples: int, buffer_length: int) -> int:
  """
  Shift the consumed-sample count by what was purged and clamp it to the new buffer length.

  Without this, the next pass's new-audio calculation underflows.
  """
  return max(0, min(last_buffer_size - purged_samples, buffer_length))
