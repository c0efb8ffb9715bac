class StreamscribeError(Exception):
  """Base class for errors raised by streamscribe."""


class TranscriptionFailure(StreamscribeError):
  """The transcription engine failed during a pass. Terminates the controller loop."""

  def __init__(self, message: str, buffer_size: int, watermark: float) -> None:
    super().__init__(message)
    self.buffer_size = buffer_size
    self.watermark = watermark
