"""Basic tests for streamscribe."""

import streamscribe


def test_import():
  """Test that the module can be imported."""
  assert streamscribe is not None


def test_version():
  """Test that version is defined."""
  assert hasattr(streamscribe, "__version__")


def test_public_surface():
  """Test that the controller and its state are exported at the top level."""
  assert streamscribe.StreamController is not None
  assert streamscribe.StreamState().is_recording is False
