"""
Protocol interfaces for the collaborators of the stream controller.

Defines the contracts for the capture device, the transcription engine and the state observer
using Python's Protocol system for structural typing.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING, Protocol

import numpy as np

from streamscribe.models import DecodingOptions, TranscriptionProgress, TranscriptionResult

if TYPE_CHECKING:
  from streamscribe.streaming.state import StreamState

ProgressCallback = Callable[[TranscriptionProgress], bool | None]
"""Invoked per intermediate result. Returning False asks the engine to abandon the pass."""


class AudioCaptureDevice(Protocol):
  """
  Protocol for live audio capture.

  The device owns the sample buffer. It grows monotonically until purged and is only ever
  read, never copied into long-lived storage, by the controller.
  """

  async def request_permission(self) -> bool:
    """
    Ask for access to the input device.

    :returns:
        True if capture may start.
    """
    ...

  def start_capture(self, on_buffer_ready: Callable[[], None]) -> None:
    """
    Begin capturing audio.

    :param
        on_buffer_ready: Called from the device's own thread each time new samples land.
    """
    ...

  def stop_capture(self) -> None:
    """Stop capturing audio and release the input device."""
    ...

  @property
  def audio_samples(self) -> np.ndarray:
    """Snapshot of all retained samples, float32 normalized to [-1.0, 1.0]."""
    ...

  @property
  def relative_energy(self) -> list[float]:
    """One value in [0, 1] per energy frame, oldest first."""
    ...

  @property
  def energy_lookback_window_size(self) -> int:
    """Number of energy frames the voice detector looks back over."""
    ...

  def purge(self, keeping_last: int) -> int:
    """
    Drop samples from the front of the buffer.

    :param
        keeping_last: Number of trailing samples to retain.
    :returns:
        Number of samples removed, counting any that arrived while purging.
    """
    ...


class TranscriptionEngine(Protocol):
  """Protocol for the external transcription engine."""

  def run(
    self,
    samples: np.ndarray,
    options: DecodingOptions,
    on_progress: ProgressCallback,
  ) -> TranscriptionResult:
    """
    Transcribe a buffer of samples. Blocking; the controller runs it off the event loop.

    :param
        samples: Audio to transcribe, starting at options.time_offset in stream time.
        options: Decoding options for this pass.
        on_progress: Early-stop hook, called repeatedly while decoding.
    :returns:
        Segments for the whole buffer in absolute stream seconds.
    """
    ...


class StateObserver(Protocol):
  """Receives the previous and current state after each batch of mutations."""

  def __call__(self, previous: "StreamState", current: "StreamState") -> None: ...
