"""
streamscribe: realtime streaming transcription controller.
"""

from streamscribe.config import StreamingConfig, StreamscribeConfig, load_config_from_file
from streamscribe.errors import StreamscribeError, TranscriptionFailure
from streamscribe.logs import get_logger, setup_logging, setup_logging_from_env
from streamscribe.models import DecodingOptions, Segment, TranscriptionProgress, TranscriptionResult
from streamscribe.streaming import StreamController, StreamState

__version__ = "0.1.0"

__all__ = [
  "DecodingOptions",
  "Segment",
  "StreamController",
  "StreamState",
  "StreamingConfig",
  "StreamscribeConfig",
  "StreamscribeError",
  "TranscriptionFailure",
  "TranscriptionProgress",
  "TranscriptionResult",
  "get_logger",
  "load_config_from_file",
  "setup_logging",
  "setup_logging_from_env",
]
