"""
Realtime stream controller: gates, transcribes, reconciles and trims a live capture buffer.

The controller is the single writer of its StreamState. Everything that mutates it runs on the
event loop that called start(); the capture device and the transcription engine report from
their own threads and hand their updates to that loop.
"""

import asyncio
import weakref
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import numpy as np

from streamscribe.config import StreamingConfig
from streamscribe.constants import WAITING_FOR_SPEECH
from streamscribe.errors import TranscriptionFailure
from streamscribe.format import Samples, Seconds
from streamscribe.interfaces import (
  AudioCaptureDevice,
  ProgressCallback,
  StateObserver,
  TranscriptionEngine,
)
from streamscribe.logs import get_logger
from streamscribe.models import DecodingOptions, TranscriptionProgress, TranscriptionResult
from streamscribe.streaming.early_stop import EarlyStopHeuristic
from streamscribe.streaming.gate import GateDecision, VoiceGate
from streamscribe.streaming.reconciler import Reconciliation, SegmentReconciler
from streamscribe.streaming.retention import BufferRetentionPolicy, clamp_last_buffer_size
from streamscribe.streaming.state import StreamState

tracing_logger = get_logger("tracing")


class StreamController:
  """
  Drives realtime transcription of a capture device through a transcription engine.

  Lifecycle is Idle -> Recording -> Idle. Stopping is terminal: a stopped controller cannot be
  started again, create a new one instead.

  Observers receive `(previous, current)` snapshots once per batch of mutations: a capture
  energy refresh, a progress update, a lifecycle change, or a completed pass.
  """

  def __init__(
    self,
    capture: AudioCaptureDevice,
    engine: TranscriptionEngine,
    config: StreamingConfig | None = None,
    on_state_change: StateObserver | None = None,
  ) -> None:
    self.capture = capture
    self.engine = engine
    self.config = config or StreamingConfig()
    self.logger = get_logger("ctl")

    self.gate = VoiceGate(self.config.gate, self.config.retention.energy_frame_seconds)
    self.early_stop = EarlyStopHeuristic(self.config.early_stop)
    self.reconciler = SegmentReconciler()
    self.retention = BufferRetentionPolicy(self.config.retention)

    self._state = StreamState()
    self._observer = on_state_change
    self._notifying = False
    self._stopped = False

    self._buffer_start_seconds: float = 0.0
    """Absolute stream time of the first sample still held by the capture device."""

    self._loop: asyncio.AbstractEventLoop | None = None
    self._audio_ready = asyncio.Event()

    self._pass_generation = 0
    self._active_pass: int | None = None
    """Generation of the pass in flight. Progress from any other generation is stale."""

    self.last_error: BaseException | None = None
    """The error that terminated the loop, if any."""

  @property
  def state(self) -> StreamState:
    """Snapshot of the current state."""
    return self._state.snapshot()

  @property
  def is_recording(self) -> bool:
    return self._state.is_recording

  @property
  def buffer_start_seconds(self) -> float:
    return self._buffer_start_seconds

  async def start(self) -> bool:
    """
    Start capturing and run the realtime loop until stopped or a pass fails.

    :returns:
        False if the controller was already recording, already stopped, or permission to
        capture was denied. True once a started session has ended.
    """
    self._ensure_not_notifying()
    if self._state.is_recording:
      self.logger.debug("Already recording, ignoring start")
      return False
    if self._stopped:
      self.logger.warning("Controller was stopped, create a new one to record again")
      return False

    if not await self.capture.request_permission():
      self.logger.error("Microphone access was not granted")
      return False
    if self._stopped:
      return False

    self._loop = asyncio.get_running_loop()
    with self._mutation() as state:
      state.is_recording = True

    try:
      self.capture.start_capture(self._buffer_ready_callback())
    except Exception:
      self.logger.exception("Failed to start audio capture")
      with self._mutation() as state:
        state.is_recording = False
      raise

    self.logger.info("Realtime transcription has started")
    await self._realtime_loop()
    return True

  def stop(self) -> None:
    """
    Stop recording. Must be called from the event loop running the controller.

    A pass already in flight runs to completion; the loop exits at its next iteration.
    """
    self._ensure_not_notifying()
    self._stopped = True
    with self._mutation() as state:
      state.is_recording = False
    self.capture.stop_capture()
    self._audio_ready.set()
    self.logger.info("Realtime transcription has ended")

  async def _realtime_loop(self) -> None:
    while self._state.is_recording:
      try:
        await self._transcribe_current_buffer()
      except asyncio.CancelledError:
        self.logger.info("Realtime loop cancelled")
        self._terminate()
        raise
      except Exception as e:
        self.last_error = e
        self.logger.exception("Transcription loop failed, stopping")
        self._terminate()
        break

    self.logger.debug("Exited realtime loop")

  def _terminate(self) -> None:
    """Leave an honest terminal state after the loop dies."""
    self._stopped = True
    with self._mutation() as state:
      state.is_recording = False
    self.capture.stop_capture()

  async def _transcribe_current_buffer(self) -> None:
    current_buffer = self.capture.audio_samples
    buffer_length = len(current_buffer)

    decision = self.gate.evaluate(
      buffer_length, self._state.last_buffer_size, self._state.buffer_energy
    )
    if decision is not GateDecision.TRANSCRIBE:
      if not self._state.current_text:
        with self._mutation() as state:
          state.current_text = WAITING_FOR_SPEECH
      await self._idle()
      return

    tracing_logger.info(
      "Processing audio buffer",
      buffer=Samples(buffer_length),
      new_audio=Seconds(self.gate.new_audio_seconds(buffer_length, self._state.last_buffer_size)),
      window_start=Seconds(self._buffer_start_seconds),
      window_end=Seconds(self._buffer_start_seconds + buffer_length / self.config.sample_rate),
      watermark=Seconds(self._state.last_confirmed_segment_end_seconds),
    )

    result = await self._transcribe_audio_samples(current_buffer)
    reconciliation = self.reconciler.reconcile(
      result.segments,
      self.config.required_segments_for_confirmation,
      self._state.confirmed_segments,
      self._state.last_confirmed_segment_end_seconds,
    )

    with self._mutation() as state:
      state.last_buffer_size = buffer_length
      state.current_text = ""
      state.unconfirmed_text = []
      state.unconfirmed_segments = reconciliation.unconfirmed_tail
      if reconciliation.advanced:
        state.last_confirmed_segment_end_seconds = reconciliation.watermark
        state.confirmed_segments.extend(reconciliation.confirmed_additions)
        self._apply_retention(state, reconciliation)

    self.logger.debug(
      "Pass complete",
      segments=len(result.segments),
      confirmed=len(reconciliation.confirmed_additions),
      unconfirmed=len(reconciliation.unconfirmed_tail),
      watermark=Seconds(reconciliation.watermark),
    )

  async def _idle(self) -> None:
    """Wait for the next capture callback, or the poll interval, whichever is sooner."""
    self._audio_ready.clear()
    try:
      await asyncio.wait_for(self._audio_ready.wait(), timeout=self.config.gate.poll_interval)
    except asyncio.TimeoutError:
      pass

  async def _transcribe_audio_samples(self, samples: np.ndarray) -> TranscriptionResult:
    watermark = self._state.last_confirmed_segment_end_seconds
    options = self.config.decoding.model_copy(
      update={
        "clip_timestamps": [max(0.0, watermark - self._buffer_start_seconds)],
        "time_offset": self._buffer_start_seconds,
      }
    )

    self._pass_generation += 1
    generation = self._active_pass = self._pass_generation
    on_progress = self._progress_callback(options, generation)

    run = asyncio.to_thread(self.engine.run, samples, options, on_progress)
    try:
      if self.config.pass_timeout_seconds is None:
        return await run
      return await asyncio.wait_for(run, timeout=self.config.pass_timeout_seconds)
    except Exception as e:
      raise TranscriptionFailure(
        f"Transcription pass failed: {e!r}", buffer_size=len(samples), watermark=watermark
      ) from e
    finally:
      # An abandoned pass may still be decoding on its worker thread
      self._active_pass = None

  def _apply_retention(self, state: StreamState, reconciliation: Reconciliation) -> None:
    sample_rate = self.config.sample_rate
    buffer_length = len(self.capture.audio_samples)
    keep = self.retention.compute_retention(
      reconciliation.unconfirmed_tail,
      reconciliation.watermark,
      self.capture.energy_lookback_window_size,
      sample_rate,
      buffer_length,
      self._buffer_start_seconds,
    )
    if keep >= buffer_length:
      return

    purged = self.capture.purge(keep)
    self._buffer_start_seconds += purged / sample_rate
    state.last_buffer_size = clamp_last_buffer_size(state.last_buffer_size, purged, keep)

    self.logger.debug(
      "Purged audio buffer",
      strategy=self.retention.strategy.value,
      purged=Samples(purged),
      kept=Samples(keep),
      buffer_start=Seconds(self._buffer_start_seconds),
      last_buffer_size=Samples(state.last_buffer_size),
    )

  def _on_audio_buffer(self) -> None:
    with self._mutation() as state:
      state.buffer_energy = list(self.capture.relative_energy)
    self._audio_ready.set()

  def _on_progress(self, generation: int, progress: TranscriptionProgress) -> None:
    if generation != self._active_pass:
      return

    current_text = self._state.current_text
    if current_text == WAITING_FOR_SPEECH:
      current_text = ""

    with self._mutation() as state:
      if len(progress.text) < len(current_text):
        if progress.fallbacks == state.current_fallbacks:
          state.unconfirmed_text.append(current_text)
        else:
          self.logger.info("Fallback occurred", fallbacks=progress.fallbacks)
      state.current_text = progress.text
      state.current_fallbacks = progress.fallbacks

  def _buffer_ready_callback(self) -> Callable[[], None]:
    """Capture callback holding only a weak reference to the controller."""
    ref = weakref.ref(self)

    def on_buffer_ready() -> None:
      controller = ref()
      if controller is not None:
        controller._hand_off(controller._on_audio_buffer)

    return on_buffer_ready

  def _progress_callback(self, options: DecodingOptions, generation: int) -> ProgressCallback:
    """
    Engine progress hook: decides early stop on the worker thread, defers state updates.

    Vetoes the decode outright once its pass is no longer the one in flight.
    """
    ref = weakref.ref(self)
    early_stop = self.early_stop

    def on_progress(progress: TranscriptionProgress) -> bool | None:
      controller = ref()
      if controller is None or controller._active_pass != generation:
        return False
      controller._hand_off(controller._on_progress, generation, progress)
      return early_stop(progress, options)

    return on_progress

  def _hand_off(self, callback: Callable[..., None], *args: Any) -> None:
    """Schedule a state update on the controller's loop from any thread."""
    loop = self._loop
    if loop is None or loop.is_closed():
      return
    loop.call_soon_threadsafe(callback, *args)

  @contextmanager
  def _mutation(self) -> Iterator[StreamState]:
    """Group writes to the state into one observer notification."""
    if self._notifying:
      raise RuntimeError("State observers must not mutate the stream controller")

    previous = self._state.snapshot()
    yield self._state
    if self._observer is None or self._state == previous:
      return

    self._notifying = True
    try:
      self._observer(previous, self._state.snapshot())
    except Exception:
      self.logger.exception("State observer raised")
    finally:
      self._notifying = False

  def _ensure_not_notifying(self) -> None:
    if self._notifying:
      raise RuntimeError("State observers must not call back into the stream controller")
