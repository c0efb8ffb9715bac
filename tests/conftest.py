import pytest

from streamscribe.config import GateConfig, StreamingConfig
from tests.mocks import MockCaptureDevice


@pytest.fixture
def fake_filesystem(fs):
  """Variable name 'fs' causes a pylint warning. Provide a longer name
  acceptable to pylint for use in tests.
  """
  yield fs


@pytest.fixture
def capture() -> MockCaptureDevice:
  return MockCaptureDevice()


@pytest.fixture
def streaming_config() -> StreamingConfig:
  """Streaming config with voice gating off, so tests control passes by feeding audio."""
  return StreamingConfig(gate=GateConfig(use_vad=False, poll_interval=0.01))
