"""
Segment reconciliation: splits a fresh segmentation into confirmed history and a held-back tail.

Confirmation is monotonic. The watermark never moves backwards and confirmed segments are
never revisited, so a pass that produces a shorter confirmable prefix than an earlier one
simply confirms nothing.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from streamscribe.format import Pretty, Seconds
from streamscribe.logs import get_logger
from streamscribe.models import Segment


@dataclass(frozen=True)
class Reconciliation:
  """Result of reconciling one pass against confirmed history."""

  confirmed_additions: list[Segment]
  """Segments to append to confirmed history, in timestamp order."""

  unconfirmed_tail: list[Segment]
  """Replacement for the unconfirmed segments."""

  watermark: float
  """Watermark after this pass."""

  advanced: bool
  """Whether the watermark moved forward."""


class SegmentReconciler:
  """
  Holds back the last `required_tail_size` segments of every pass, since later audio is most
  likely to revise them, and confirms everything before them.
  """

  def __init__(self) -> None:
    self.logger = get_logger("rcn")

  def reconcile(
    self,
    fresh_segments: Sequence[Segment],
    required_tail_size: int,
    prior_confirmed: Sequence[Segment],
    prior_watermark: float,
  ) -> Reconciliation:
    fresh = list(fresh_segments)
    if len(fresh) <= required_tail_size:
      return Reconciliation([], fresh, prior_watermark, advanced=False)

    split = len(fresh) - required_tail_size
    candidates, tail = fresh[:split], fresh[split:]

    # Engines can emit overlapping timestamps, so the last candidate need not end latest
    candidate_end = max(segment.end for segment in candidates)
    if candidate_end <= prior_watermark:
      self.logger.debug(
        "Confirmable prefix does not pass the watermark",
        candidate_end=Seconds(candidate_end),
        watermark=Seconds(prior_watermark),
      )
      return Reconciliation([], tail, prior_watermark, advanced=False)

    additions = self._new_confirmations(candidates, prior_confirmed, prior_watermark)
    self.logger.debug(
      "Confirming segments",
      watermark=Seconds(candidate_end),
      additions=Pretty([segment.text for segment in additions]),
      skipped=len(candidates) - len(additions),
    )
    return Reconciliation(additions, tail, candidate_end, advanced=True)

  def _new_confirmations(
    self,
    candidates: list[Segment],
    prior_confirmed: Sequence[Segment],
    prior_watermark: float,
  ) -> list[Segment]:
    """Drop candidates already confirmed, or that end at or before the old watermark."""
    earliest_start = candidates[0].start
    already_confirmed = set()
    for segment in reversed(prior_confirmed):
      if segment.end < earliest_start:
        break
      already_confirmed.add(segment.identity)

    additions = []
    for segment in candidates:
      if segment.identity in already_confirmed:
        continue
      if segment.end <= prior_watermark:
        continue
      additions.append(segment)
    return additions
