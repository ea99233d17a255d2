"""Carbon level classification."""

from carbonledger.types import CarbonLevel

# Upper bounds (exclusive) for each bucket, in ascending order.
LEVEL_THRESHOLDS = (
    (10, CarbonLevel.LOW),
    (30, CarbonLevel.MEDIUM),
    (50, CarbonLevel.HIGH),
)


def classify(value: float) -> CarbonLevel:
    """Map a cleartext carbon value to its severity bucket.

    Boundaries are 10, 30 and 50: values below 10 are Low, below 30 Medium,
    below 50 High, anything else Very High.
    """
    for upper, level in LEVEL_THRESHOLDS:
        if value < upper:
            return level
    return CarbonLevel.VERY_HIGH
