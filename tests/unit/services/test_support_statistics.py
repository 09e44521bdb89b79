"""Unit tests for the support impact score."""

import pytest

from mindmate.services.support import calculate_impact_score


@pytest.mark.parametrize(
    ("provided", "received", "expected"),
    [
        (0, 0, 0),
        (20, 0, 60),
        (0, 20, 40),
        (20, 20, 100),
        (50, 50, 100),
        (10, 0, 30),
        (5, 10, 35),
    ],
)
def test_calculate_impact_score(provided: int, received: int, expected: int) -> None:
    """Test impact scores."""
    assert calculate_impact_score(provided, received) == expected


def test_giving_weighs_more_than_receiving() -> None:
    """Test that giving weighs more than receiving."""
    assert calculate_impact_score(5, 0) > calculate_impact_score(0, 5)
