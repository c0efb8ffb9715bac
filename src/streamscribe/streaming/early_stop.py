"""
Early-stop heuristic consulted by the engine on every intermediate decode result.

Runs on the engine's worker thread, so it touches no shared state.
"""

import zlib
from collections.abc import Sequence

import numpy as np

from streamscribe.config import EarlyStopConfig
from streamscribe.models import DecodingOptions, TranscriptionProgress


def compression_ratio(tokens: Sequence[int]) -> float:
  """
  Ratio of raw to zlib-compressed size of the token ids, packed as little-endian int32.

  Degenerate repetition compresses well, so a high ratio means the decoder is looping.
  """
  if len(tokens) == 0:
    return 0.0
  raw = np.asarray(tokens, dtype="<i4").tobytes()
  return len(raw) / len(zlib.compress(raw))


class EarlyStopHeuristic:
  """Circuit breaker for a single decode pass."""

  def __init__(self, config: EarlyStopConfig) -> None:
    self.compression_check_window = config.compression_check_window

  @staticmethod
  def consult(
    tokens: Sequence[int],
    compression_check_window: int,
    compression_ratio_threshold: float | None = None,
    avg_logprob: float | None = None,
    log_prob_threshold: float | None = None,
  ) -> bool | None:
    """
    :returns: False to abort the pass now, None to let it continue.
    """
    if len(tokens) > compression_check_window:
      ratio = compression_ratio(tokens[-compression_check_window:])
      if ratio > (compression_ratio_threshold or 0.0):
        return False

    if avg_logprob is not None and log_prob_threshold is not None:
      if avg_logprob < log_prob_threshold:
        return False

    return None

  def __call__(self, progress: TranscriptionProgress, options: DecodingOptions) -> bool | None:
    return self.consult(
      progress.tokens,
      self.compression_check_window,
      options.compression_ratio_threshold,
      progress.avg_logprob,
      options.log_prob_threshold,
    )
