"""Tests for segment reconciliation."""

import pytest

from streamscribe.streaming.reconciler import SegmentReconciler
from tests.mocks import seg


@pytest.fixture
def reconciler() -> SegmentReconciler:
  return SegmentReconciler()


FIRST_PASS = [
  seg(0, 2, "a"),
  seg(2, 4, "b"),
  seg(4, 6, "c"),
  seg(6, 8, "d"),
  seg(8, 10, "e"),
]


class TestTailHoldBack:
  def test_tail_only_pass_confirms_nothing(self, reconciler):
    fresh = [seg(0, 2, "a"), seg(2, 4, "b")]
    result = reconciler.reconcile(fresh, 2, [], 0.0)

    assert result.confirmed_additions == []
    assert result.unconfirmed_tail == fresh
    assert result.watermark == 0.0
    assert result.advanced is False

  def test_empty_pass(self, reconciler):
    result = reconciler.reconcile([], 2, [seg(0, 2, "a")], 2.0)

    assert result.confirmed_additions == []
    assert result.unconfirmed_tail == []
    assert result.watermark == 2.0

  def test_prefix_is_confirmed(self, reconciler):
    result = reconciler.reconcile(FIRST_PASS, 2, [], 0.0)

    assert [s.text for s in result.confirmed_additions] == ["a", "b", "c"]
    assert [s.text for s in result.unconfirmed_tail] == ["d", "e"]
    assert result.watermark == 6.0
    assert result.advanced is True

  def test_zero_tail_confirms_everything(self, reconciler):
    result = reconciler.reconcile(FIRST_PASS, 0, [], 0.0)

    assert len(result.confirmed_additions) == 5
    assert result.unconfirmed_tail == []
    assert result.watermark == 10.0


class TestAcrossPasses:
  def test_two_pass_stream(self, reconciler):
    first = reconciler.reconcile(FIRST_PASS, 2, [], 0.0)
    confirmed = list(first.confirmed_additions)

    second_pass = [seg(6, 8, "d"), seg(8, 10, "e"), seg(10, 12, "f")]
    second = reconciler.reconcile(second_pass, 2, confirmed, first.watermark)
    confirmed.extend(second.confirmed_additions)

    assert second.confirmed_additions == [seg(6, 8, "d")]
    assert second.watermark == 8.0
    assert second.unconfirmed_tail == [seg(8, 10, "e"), seg(10, 12, "f")]
    assert [s.text for s in confirmed] == ["a", "b", "c", "d"]

  def test_reemitted_segments_are_not_duplicated(self, reconciler):
    confirmed = [seg(0, 2, "a"), seg(2, 4, "b")]
    fresh = [seg(2, 4, "b"), seg(4, 6, "c"), seg(6, 8, "d"), seg(8, 10, "e")]

    result = reconciler.reconcile(fresh, 2, confirmed, 4.0)

    assert result.confirmed_additions == [seg(4, 6, "c")]
    assert result.watermark == 6.0

  def test_shorter_prefix_confirms_nothing(self, reconciler):
    confirmed = [seg(0, 2, "a"), seg(2, 4, "b"), seg(4, 6, "c")]
    # Jitter: a later pass whose confirmable prefix ends before the watermark
    fresh = [seg(0, 2, "a"), seg(2, 5, "b c"), seg(5, 8, "d")]

    result = reconciler.reconcile(fresh, 2, confirmed, 6.0)

    assert result.confirmed_additions == []
    assert result.watermark == 6.0
    assert result.advanced is False
    assert result.unconfirmed_tail == [seg(2, 5, "b c"), seg(5, 8, "d")]

  def test_revised_text_behind_watermark_is_skipped(self, reconciler):
    confirmed = [seg(0, 2, "a"), seg(2, 4, "b")]
    # Same span as "b" but re-worded; it ends at the watermark so it stays out
    fresh = [seg(2, 4, "bee"), seg(4, 6, "c"), seg(6, 8, "d"), seg(8, 10, "e")]

    result = reconciler.reconcile(fresh, 2, confirmed, 4.0)

    assert result.confirmed_additions == [seg(4, 6, "c")]

  def test_watermark_is_monotonic(self, reconciler):
    watermark = 0.0
    confirmed = []
    passes = [
      FIRST_PASS,
      [seg(4, 6, "c"), seg(6, 8, "d"), seg(8, 10, "e")],
      [seg(0, 3, "x"), seg(3, 5, "y"), seg(5, 7, "z")],
      [seg(6, 8, "d"), seg(8, 10, "e"), seg(10, 12, "f"), seg(12, 13, "g")],
    ]
    seen = []
    for fresh in passes:
      result = reconciler.reconcile(fresh, 2, confirmed, watermark)
      assert result.watermark >= watermark
      confirmed.extend(result.confirmed_additions)
      watermark = result.watermark
      seen.append(watermark)

    assert seen == [6.0, 6.0, 6.0, 10.0]
    assert [s.text for s in confirmed] == ["a", "b", "c", "d", "e"]
    ends = [s.end for s in confirmed]
    assert ends == sorted(ends)

  def test_overlapping_timestamps_use_latest_end(self, reconciler):
    # "a" runs past the start and end of "b"
    fresh = [seg(0, 5, "a"), seg(2, 4, "b"), seg(5, 7, "c"), seg(7, 9, "d")]

    result = reconciler.reconcile(fresh, 2, [], 0.0)

    assert result.watermark == 5.0
    assert all(s.end <= result.watermark for s in result.confirmed_additions)
    assert result.confirmed_additions == [seg(0, 5, "a"), seg(2, 4, "b")]
