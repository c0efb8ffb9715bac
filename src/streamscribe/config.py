import math
from enum import Enum

import yaml
from pydantic import BaseModel, Field, model_validator, validate_call
from pydantic.dataclasses import dataclass
from pydantic.types import FilePath

from streamscribe.constants import ENERGY_FRAME_SECONDS, SAMPLE_RATE
from streamscribe.logs import get_logger
from streamscribe.models import DecodingOptions

logger = get_logger("cfg")


class RetentionStrategy(str, Enum):
  """How much trailing audio to keep after each confirming pass."""

  CONTEXT = "context"
  """Keep the span of the unconfirmed tail plus the voice detector's look-back."""

  WATERMARK = "watermark"
  """Keep everything from a fixed overlap before the confirmed watermark."""


@dataclass
class GateConfig:
  """Configuration for deciding when a transcription pass is worth running."""

  sample_rate: int = Field(default=SAMPLE_RATE, gt=0)
  """Audio sample rate in Hz."""

  min_new_audio_seconds: float = Field(default=1.0, gt=0.0)
  """New audio required, in seconds, before a pass runs. The comparison is strict."""

  use_vad: bool = True
  """Whether to require voice activity in the new audio before transcribing."""

  silence_threshold: float = Field(default=0.3, ge=0.0, le=1.0)
  """Relative energy above which a frame counts as speech."""

  poll_interval: float = Field(default=0.1, gt=0.0)
  """Longest idle wait, in seconds, between gate checks."""

  @model_validator(mode="after")
  def validate_poll_interval(self) -> "GateConfig":
    """Validate that the idle wait is shorter than the audio it waits for."""
    if self.poll_interval >= self.min_new_audio_seconds:
      raise ValueError(
        f"poll_interval ({self.poll_interval}s) must be less than "
        f"min_new_audio_seconds ({self.min_new_audio_seconds}s)"
      )
    return self


@dataclass
class EarlyStopConfig:
  """Configuration for abandoning degenerate decodes."""

  compression_check_window: int = Field(default=60, gt=0)
  """Number of trailing tokens the compression ratio is measured over."""


@dataclass
class RetentionConfig:
  """Configuration for trimming the capture buffer after confirmation."""

  strategy: RetentionStrategy = RetentionStrategy.CONTEXT
  """Retention strategy. Fixed for the lifetime of a controller."""

  overlap_seconds: float = Field(default=2.0, ge=0.0)
  """Audio kept before the watermark by the watermark strategy."""

  energy_frame_seconds: float = Field(default=ENERGY_FRAME_SECONDS, gt=0.0)
  """Audio duration represented by one unit of the voice detector's look-back window."""


class StreamingConfig(BaseModel):
  """Configuration for the stream controller."""

  required_segments_for_confirmation: int = Field(default=2, ge=0)
  """Trailing segments held back from confirmation on every pass."""

  pass_timeout_seconds: float | None = Field(default=None, gt=0.0)
  """Fail a pass that takes longer than this. None waits indefinitely."""

  gate: GateConfig = Field(default_factory=GateConfig)
  early_stop: EarlyStopConfig = Field(default_factory=EarlyStopConfig)
  retention: RetentionConfig = Field(default_factory=RetentionConfig)
  decoding: DecodingOptions = Field(default_factory=DecodingOptions)

  @property
  def sample_rate(self) -> int:
    return self.gate.sample_rate


class CaptureConfig(BaseModel):
  """Configuration for the microphone capture adapter."""

  device: int | str | None = None
  """Input device index or name. None selects the system default."""

  block_duration: float = Field(default=ENERGY_FRAME_SECONDS, gt=0.0)
  """Seconds of audio per capture callback; one energy value is computed per block."""

  energy_lookback_window_size: int = Field(default=20, gt=0)
  """Energy frames used to estimate the noise floor."""


class EngineConfig(BaseModel):
  """Configuration for the faster-whisper engine adapter."""

  model: str = "distil-medium.en"
  """Whisper model size, HuggingFace repo or local CTranslate2 directory."""

  device: str = "auto"
  compute_type: str = "int8"

  num_workers: int = Field(default=1, gt=0)

  download_root: str | None = None
  """Where downloaded models are cached. None uses the HuggingFace default."""


class StreamscribeConfig(BaseModel):
  """Top-level configuration with streaming, capture and engine settings."""

  streaming: StreamingConfig = Field(default_factory=StreamingConfig)
  capture: CaptureConfig = Field(default_factory=CaptureConfig)
  engine: EngineConfig = Field(default_factory=EngineConfig)

  @model_validator(mode="after")
  def validate_energy_frame_duration(self) -> "StreamscribeConfig":
    """Validate that capture blocks and the voice detector agree on the energy frame length."""
    block_duration = self.capture.block_duration
    frame_seconds = self.streaming.retention.energy_frame_seconds
    if not math.isclose(block_duration, frame_seconds):
      raise ValueError(
        f"capture.block_duration ({block_duration}s) must equal "
        f"streaming.retention.energy_frame_seconds ({frame_seconds}s)"
      )
    return self

  def pretty_print(self) -> None:
    """Log every configuration property, defaults included, at INFO level."""
    streaming = self.streaming
    logger.info("=" * 60)
    logger.info("STREAMSCRIBE CONFIGURATION")
    logger.info("=" * 60)

    logger.info("STREAMING SETTINGS:")
    logger.info(f"  Required Segments: {streaming.required_segments_for_confirmation}")
    logger.info(f"  Pass Timeout: {streaming.pass_timeout_seconds}")

    logger.info("  GATE:")
    logger.info(f"    Sample Rate: {streaming.gate.sample_rate}")
    logger.info(f"    Min New Audio: {streaming.gate.min_new_audio_seconds}s")
    logger.info(f"    Use VAD: {streaming.gate.use_vad}")
    logger.info(f"    Silence Threshold: {streaming.gate.silence_threshold}")
    logger.info(f"    Poll Interval: {streaming.gate.poll_interval}s")

    logger.info("  EARLY STOP:")
    logger.info(f"    Compression Check Window: {streaming.early_stop.compression_check_window}")

    logger.info("  RETENTION:")
    logger.info(f"    Strategy: {streaming.retention.strategy.value}")
    logger.info(f"    Overlap: {streaming.retention.overlap_seconds}s")
    logger.info(f"    Energy Frame: {streaming.retention.energy_frame_seconds}s")

    logger.info("  DECODING:")
    for name, value in streaming.decoding.model_dump().items():
      logger.info(f"    {name}: {value}")

    logger.info("CAPTURE SETTINGS:")
    logger.info(f"  Device: {self.capture.device}")
    logger.info(f"  Block Duration: {self.capture.block_duration}s")
    logger.info(f"  Energy Lookback Window: {self.capture.energy_lookback_window_size}")

    logger.info("ENGINE SETTINGS:")
    logger.info(f"  Model: {self.engine.model}")
    logger.info(f"  Device: {self.engine.device}")
    logger.info(f"  Compute Type: {self.engine.compute_type}")
    logger.info(f"  Num Workers: {self.engine.num_workers}")
    logger.info(f"  Download Root: {self.engine.download_root}")

    logger.info("=" * 60)


@validate_call
def load_config_from_file(config_path: FilePath) -> StreamscribeConfig:
  """Load and validate streamscribe configuration from a YAML file."""

  logger.info("Loading streamscribe configuration", path=str(config_path))

  try:
    with open(config_path, "r", encoding="utf-8") as file:
      config_data = yaml.safe_load(file)
  except yaml.YAMLError as e:
    raise ValueError(f"Invalid YAML in configuration file: {e}") from e
  except OSError as e:
    raise ValueError(f"Error reading configuration file: {e}") from e

  if config_data is None:
    raise ValueError("Configuration file is empty")

  if not isinstance(config_data, dict):
    raise ValueError("Configuration file must contain a YAML dictionary")

  config = StreamscribeConfig.model_validate(config_data)
  config.pretty_print()

  return config
