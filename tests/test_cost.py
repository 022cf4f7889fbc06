"""Tests for the rent cost model."""

import pytest

from algo_did.config import ExactMultiplePolicy, StoreLimits
from algo_did.cost import estimate_cost, estimate_for_limits, layout_cost, slot_layout

C = 32768


class TestEstimateCost:
    """Test the reference cost formula."""

    def test_single_small_box(self):
        """11 bytes fit in one box with an 11-byte tail."""
        estimate = estimate_cost(11, C, 400, 2500, 65)
        assert estimate.num_slots == 1
        assert estimate.tail_size == 11
        # box + key bytes + tail bytes + metadata box
        assert estimate.total == 2500 + 8 * 400 + 11 * 400 + 2500 + 65 * 400

    def test_two_boxes(self):
        """64000 bytes need one full box and a 31232-byte tail."""
        estimate = estimate_cost(64000, C, 400, 2500, 65)
        assert estimate.num_slots == 2
        assert estimate.tail_size == 31232
        assert estimate.total == 25_639_900

    def test_matches_layout_cost(self):
        """estimate_cost applies layout_cost to the computed layout."""
        estimate = estimate_cost(100_000, C, 400, 2500, 65)
        assert estimate.total == layout_cost(
            estimate.num_slots, estimate.tail_size, C, 400, 2500, 65
        )

    def test_estimate_for_limits_uses_configured_rates(self):
        """Configured limits feed straight into the formula."""
        limits = StoreLimits(per_byte_rate=1, per_slot_rate=10, metadata_fixed_bytes=0)
        estimate = estimate_for_limits(11, limits)
        assert estimate.total == 10 + 8 + 11 + 10


class TestExactMultiples:
    """Test the exact-multiple layout policies."""

    def test_trailing_slot_declares_extra_empty_box(self):
        assert slot_layout(2 * C, C, ExactMultiplePolicy.TRAILING_SLOT) == (3, 0)

    def test_exact_declares_full_last_box(self):
        assert slot_layout(2 * C, C, ExactMultiplePolicy.EXACT) == (2, C)

    def test_non_multiple_unaffected_by_policy(self):
        for policy in ExactMultiplePolicy:
            assert slot_layout(C + 1, C, policy) == (2, 1)

    def test_both_policies_fund_every_byte(self):
        """Paid payload bytes never fall short of the document size."""
        for policy in ExactMultiplePolicy:
            num_slots, tail = slot_layout(3 * C, C, policy)
            assert (num_slots - 1) * C + tail == 3 * C


class TestMonotonicity:
    """Cost never decreases as the document grows."""

    @pytest.mark.parametrize("policy", list(ExactMultiplePolicy))
    def test_non_decreasing_in_length(self, policy):
        capacity = 100
        previous = 0
        for length in range(1, 4 * capacity + 2):
            total = estimate_cost(length, capacity, 400, 2500, 65, policy).total
            assert total >= previous, f"cost dropped at length {length}"
            previous = total
