SAMPLE_RATE = 16000
"""Sample rate, in Hz, of every buffer this package consumes."""

ENERGY_FRAME_SECONDS = 0.1
"""Audio duration represented by one relative-energy value."""

WAITING_FOR_SPEECH = "Waiting for speech..."
"""Placeholder shown as the current text while the voice gate is declining."""
