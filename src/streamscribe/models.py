"""
Data types exchanged with the transcription engine.

Segments arrive from the engine in absolute stream seconds and are never mutated afterwards;
the frozen model makes that a guarantee rather than a convention.
"""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.dataclasses import dataclass


class Segment(BaseModel):
  """A timestamped span of transcribed text with its token sequence."""

  model_config = ConfigDict(frozen=True)

  start: float
  """Segment start time in absolute stream seconds."""

  end: float
  """Segment end time in absolute stream seconds."""

  text: str
  """Transcribed text content of the audio segment."""

  tokens: tuple[int, ...] = ()
  """Token IDs from the model's vocabulary used to generate this segment."""

  @property
  def identity(self) -> tuple[float, float, str]:
    """The key two segments must share to count as the same confirmation."""
    return (self.start, self.end, self.text)

  @property
  def duration(self) -> float:
    return self.end - self.start


class DecodingOptions(BaseModel):
  """Options forwarded to the transcription engine on every pass."""

  language: str | None = "en"
  """Language for transcription. None lets the engine detect it."""

  task: str = "transcribe"

  temperature: float = Field(default=0.0, ge=0.0)
  """Initial sampling temperature."""

  temperature_increment_on_fallback: float = Field(default=0.2, ge=0.0)
  """Temperature step applied by the engine on each decode fallback."""

  compression_ratio_threshold: float | None = 2.4
  """Token compression ratio above which a decode is considered degenerate."""

  log_prob_threshold: float | None = -1.0
  """Average log probability below which a decode is considered unreliable."""

  no_speech_threshold: float | None = 0.6

  initial_prompt: str | None = None

  clip_timestamps: list[float] = Field(default_factory=list)
  """Buffer-relative seconds the engine should start seeking from."""

  time_offset: float = Field(default=0.0, ge=0.0)
  """Absolute stream time of the first sample handed to the engine."""


@dataclass
class TranscriptionProgress:
  """Cumulative engine output reported while a decode pass is still running."""

  text: str
  """Text decoded so far in the current pass."""

  tokens: list[int]
  """Tokens decoded so far in the current pass."""

  fallbacks: int = 0
  """Total decode fallbacks the engine has taken in the current pass."""

  avg_logprob: float | None = None
  """Average log probability of the tokens so far, if the engine reports it."""


@dataclass
class TranscriptionResult:
  """Final output of one engine pass."""

  segments: list[Segment]
  """Segments in timestamp order, covering the whole buffer handed to the engine."""

  language: str | None = None
  """Detected or specified language code."""

  language_probability: float | None = Field(default=None, ge=0.0, le=1.0)
  """Confidence score for language detection."""
