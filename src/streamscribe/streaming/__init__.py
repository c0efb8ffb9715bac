"""
Realtime streaming transcription control.

Ties a live capture buffer to an incremental transcription engine and reconciles the engine's
output into a stable, growing transcript while keeping the buffer bounded.
"""

from streamscribe.streaming.controller import StreamController
from streamscribe.streaming.early_stop import EarlyStopHeuristic, compression_ratio
from streamscribe.streaming.gate import GateDecision, VoiceGate, is_voice_detected
from streamscribe.streaming.reconciler import Reconciliation, SegmentReconciler
from streamscribe.streaming.retention import BufferRetentionPolicy, RetentionStrategy
from streamscribe.streaming.state import StreamState

__all__ = [
  "BufferRetentionPolicy",
  "EarlyStopHeuristic",
  "GateDecision",
  "Reconciliation",
  "RetentionStrategy",
  "SegmentReconciler",
  "StreamController",
  "StreamState",
  "VoiceGate",
  "compression_ratio",
  "is_voice_detected",
]
