"""
Transcription engine backed by faster-whisper.

faster-whisper decodes lazily, one segment per iteration of the returned generator, so progress
is reported per segment and an early stop simply stops iterating.
"""

from typing import Any

import numpy as np

from streamscribe.config import EngineConfig
from streamscribe.interfaces import ProgressCallback
from streamscribe.logs import get_logger
from streamscribe.models import (
  DecodingOptions,
  Segment,
  TranscriptionProgress,
  TranscriptionResult,
)


def temperature_schedule(options: DecodingOptions) -> tuple[float, ...]:
  """Temperatures the decoder walks through, one more per fallback, capped at 1.0."""
  if options.temperature_increment_on_fallback <= 0:
    return (options.temperature,)
  steps = np.arange(options.temperature, 1.0 + 1e-6, options.temperature_increment_on_fallback)
  return tuple(round(float(t), 6) for t in steps) or (options.temperature,)


def fallbacks_for(temperature: float | None, schedule: tuple[float, ...]) -> int:
  """Number of fallbacks it took to decode at `temperature`."""
  if temperature is None:
    return 0
  return min(range(len(schedule)), key=lambda i: abs(schedule[i] - temperature))


class FasterWhisperEngine:
  """TranscriptionEngine over a faster_whisper.WhisperModel."""

  def __init__(self, config: EngineConfig | None = None, model: Any | None = None) -> None:
    """
    :param config: Model selection and runtime settings.
    :param model: An already constructed WhisperModel. Loaded from config on first use if None.
    """
    self.config = config or EngineConfig()
    self.logger = get_logger("eng")
    self._model = model

  @property
  def model(self) -> Any:
    if self._model is None:
      from faster_whisper import WhisperModel

      self.logger.info(
        "Loading model",
        model=self.config.model,
        device=self.config.device,
        compute_type=self.config.compute_type,
      )
      self._model = WhisperModel(
        self.config.model,
        device=self.config.device,
        compute_type=self.config.compute_type,
        num_workers=self.config.num_workers,
        download_root=self.config.download_root,
      )
      self.logger.debug("Model loaded successfully")
    return self._model

  def run(
    self,
    samples: np.ndarray,
    options: DecodingOptions,
    on_progress: ProgressCallback,
  ) -> TranscriptionResult:
    schedule = temperature_schedule(options)
    raw_segments, info = self.model.transcribe(
      np.asarray(samples, dtype=np.float32),
      language=options.language,
      task=options.task,
      temperature=list(schedule),
      compression_ratio_threshold=options.compression_ratio_threshold,
      log_prob_threshold=options.log_prob_threshold,
      no_speech_threshold=options.no_speech_threshold,
      initial_prompt=options.initial_prompt,
      clip_timestamps=options.clip_timestamps or "0",
      condition_on_previous_text=False,
      vad_filter=False,
    )

    segments: list[Segment] = []
    text = ""
    tokens: list[int] = []
    fallbacks = 0
    logprob_sum = 0.0

    for raw in raw_segments:
      segment = Segment(
        start=options.time_offset + raw.start,
        end=options.time_offset + raw.end,
        text=raw.text,
        tokens=tuple(raw.tokens),
      )
      segments.append(segment)

      text += raw.text
      tokens.extend(raw.tokens)
      fallbacks += fallbacks_for(raw.temperature, schedule)
      logprob_sum += raw.avg_logprob * len(raw.tokens)

      progress = TranscriptionProgress(
        text=text,
        tokens=list(tokens),
        fallbacks=fallbacks,
        avg_logprob=logprob_sum / len(tokens) if tokens else None,
      )
      if on_progress(progress) is False:
        # The segment that tripped the heuristic is the degenerate one
        segments.pop()
        self.logger.debug("Decode stopped early", kept_segments=len(segments))
        break

    return TranscriptionResult(
      segments=segments,
      language=info.language,
      language_probability=info.language_probability,
    )
