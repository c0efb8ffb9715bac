"""Mutable snapshot of streaming progress, owned exclusively by the stream controller."""

import dataclasses
from dataclasses import dataclass, field

from streamscribe.models import Segment


@dataclass
class StreamState:
  is_recording: bool = False
  """True between a successful start and stop (or loop termination)."""

  current_fallbacks: int = 0
  """Decode fallbacks observed in the most recent pass."""

  last_buffer_size: int = 0
  """Sample count consumed as of the last completed pass. Never exceeds the buffer length."""

  last_confirmed_segment_end_seconds: float = 0.0
  """Watermark: confirmed transcript covers audio up to here. Only increases."""

  buffer_energy: list[float] = field(default_factory=list)
  """Most recent relative-energy trace from the capture device."""

  current_text: str = ""
  """Provisional text of the in-flight pass."""

  unconfirmed_text: list[str] = field(default_factory=list)
  """Hypotheses the engine discarded mid-pass without a fallback."""

  confirmed_segments: list[Segment] = field(default_factory=list)
  """Append-only confirmed history."""

  unconfirmed_segments: list[Segment] = field(default_factory=list)
  """Tail of the latest segmentation, replaced wholesale every pass."""

  def snapshot(self) -> "StreamState":
    """Copy with its own lists, safe to hand to observers. Segments are immutable and shared."""
    return dataclasses.replace(
      self,
      buffer_energy=list(self.buffer_energy),
      unconfirmed_text=list(self.unconfirmed_text),
      confirmed_segments=list(self.confirmed_segments),
      unconfirmed_segments=list(self.unconfirmed_segments),
    )

  @property
  def confirmed_text(self) -> str:
    return "".join(segment.text for segment in self.confirmed_segments)

  @property
  def unconfirmed_segment_text(self) -> str:
    return "".join(segment.text for segment in self.unconfirmed_segments)
