"""Tests for the faster-whisper engine adapter, with the model replaced by a fake."""

from types import SimpleNamespace

import numpy as np
import pytest

from streamscribe.engine import FasterWhisperEngine, fallbacks_for, temperature_schedule
from streamscribe.models import DecodingOptions, TranscriptionProgress


def raw_segment(start, end, text, tokens, temperature=0.0, avg_logprob=-0.3):
  return SimpleNamespace(
    start=start,
    end=end,
    text=text,
    tokens=tokens,
    temperature=temperature,
    avg_logprob=avg_logprob,
  )


class FakeWhisperModel:
  """Mimics WhisperModel.transcribe: a lazy segment generator plus an info object."""

  def __init__(self, segments):
    self.segments = segments
    self.kwargs = None
    self.yielded = 0

  def transcribe(self, audio, **kwargs):
    self.kwargs = kwargs

    def generate():
      for segment in self.segments:
        self.yielded += 1
        yield segment

    return generate(), SimpleNamespace(language="en", language_probability=0.98)


def run(engine, options=None, on_progress=None):
  progress = []

  def record(update: TranscriptionProgress):
    progress.append(update)
    return on_progress(update) if on_progress else None

  result = engine.run(np.zeros(32000, dtype=np.float32), options or DecodingOptions(), record)
  return result, progress


class TestTemperatureSchedule:
  def test_default_schedule(self):
    assert temperature_schedule(DecodingOptions()) == (0.0, 0.2, 0.4, 0.6, 0.8, 1.0)

  def test_no_increment(self):
    options = DecodingOptions(temperature=0.3, temperature_increment_on_fallback=0.0)
    assert temperature_schedule(options) == (0.3,)

  def test_fallbacks_for(self):
    schedule = (0.0, 0.2, 0.4)
    assert fallbacks_for(0.0, schedule) == 0
    assert fallbacks_for(0.4, schedule) == 2
    assert fallbacks_for(None, schedule) == 0


class TestRun:
  def test_segments_in_absolute_time(self):
    model = FakeWhisperModel(
      [raw_segment(0.0, 1.5, " Hello", [1, 2]), raw_segment(1.5, 3.0, " world", [3])]
    )
    engine = FasterWhisperEngine(model=model)

    result, _ = run(engine, DecodingOptions(time_offset=8.0, clip_timestamps=[2.0]))

    assert [(s.start, s.end, s.text) for s in result.segments] == [
      (8.0, 9.5, " Hello"),
      (9.5, 11.0, " world"),
    ]
    assert result.segments[0].tokens == (1, 2)
    assert result.language == "en"
    assert result.language_probability == pytest.approx(0.98)
    assert model.kwargs["clip_timestamps"] == [2.0]
    assert model.kwargs["condition_on_previous_text"] is False

  def test_empty_clip_timestamps_start_at_zero(self):
    model = FakeWhisperModel([])
    run(FasterWhisperEngine(model=model))

    assert model.kwargs["clip_timestamps"] == "0"
    assert model.kwargs["temperature"] == [0.0, 0.2, 0.4, 0.6, 0.8, 1.0]

  def test_progress_is_cumulative(self):
    model = FakeWhisperModel(
      [
        raw_segment(0.0, 1.0, " one", [1, 2], avg_logprob=-0.2),
        raw_segment(1.0, 2.0, " two", [3, 4], temperature=0.4, avg_logprob=-0.6),
      ]
    )
    _, progress = run(FasterWhisperEngine(model=model))

    assert [p.text for p in progress] == [" one", " one two"]
    assert progress[1].tokens == [1, 2, 3, 4]
    assert [p.fallbacks for p in progress] == [0, 2]
    assert progress[1].avg_logprob == pytest.approx(-0.4)

  def test_early_stop_drops_offending_segment(self):
    model = FakeWhisperModel(
      [
        raw_segment(0.0, 1.0, " fine", [1]),
        raw_segment(1.0, 2.0, " la la la", [2, 2, 2]),
        raw_segment(2.0, 3.0, " unreached", [3]),
      ]
    )
    engine = FasterWhisperEngine(model=model)

    result, progress = run(engine, on_progress=lambda p: False if "la" in p.text else None)

    assert [s.text for s in result.segments] == [" fine"]
    assert len(progress) == 2
    assert model.yielded == 2

  def test_injected_model_is_used(self):
    engine = FasterWhisperEngine(model=FakeWhisperModel([]))
    assert isinstance(engine.model, FakeWhisperModel)
