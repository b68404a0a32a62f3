"""
rakepool/rake.py - Fee math: checked u64 arithmetic, rake derivation, splits.

Pure functions, no state. Amounts are integers in the smallest currency unit
and must stay inside the unsigned 64-bit range; anything that would leave it
raises ArithmeticOverflow instead of wrapping.
"""

from dataclasses import dataclass

from .errors import ArithmeticOverflow

U64_MAX = 2**64 - 1

BPS_DENOMINATOR = 10_000
MAX_RAKE_BPS = 1_000  # 10%


def check_u64(value: int, what: str = "value") -> int:
    """Return value if it fits in u64, else raise ArithmeticOverflow."""
    if value < 0 or value > U64_MAX:
        raise ArithmeticOverflow(f"{what}={value} outside u64 range")
    return value


def checked_add(a: int, b: int) -> int:
    return check_u64(a + b, "sum")


def checked_sub(a: int, b: int) -> int:
    return check_u64(a - b, "difference")


def checked_mul(a: int, b: int) -> int:
    return check_u64(a * b, "product")


def saturating_sub(a: int, b: int) -> int:
    """a - b, floored at zero."""
    return a - b if a > b else 0


# ============================================================================
# Rake
# ============================================================================


@dataclass(frozen=True)
class RakeBreakdown:
    """How one buy-in divides between the pot and the two rake buckets."""

    buy_in: int
    rake: int
    net: int
    creator_rake: int
    admin_rake: int


def compute_rake(buy_in: int, rake_bps: int) -> tuple[int, int]:
    """Return (rake, net) for a single buy-in.

    rake = floor(buy_in * rake_bps / 10000), net = buy_in - rake.
    """
    rake = checked_mul(buy_in, rake_bps) // BPS_DENOMINATOR
    net = checked_sub(buy_in, rake)
    return rake, net


def split_rake(rake: int, creator_share_pct: int) -> tuple[int, int]:
    """Split rake into (creator_rake, admin_rake).

    The creator share is floored; the admin share takes the remainder so
    the two always add back up to rake.
    """
    creator_rake = checked_mul(rake, creator_share_pct) // 100
    admin_rake = checked_sub(rake, creator_rake)
    return creator_rake, admin_rake


def quote(buy_in: int, rake_bps: int, creator_share_pct: int) -> RakeBreakdown:
    """Full breakdown for one buy-in at the given rate and creator share."""
    check_u64(buy_in, "buy_in")
    rake, net = compute_rake(buy_in, rake_bps)
    creator_rake, admin_rake = split_rake(rake, creator_share_pct)
    return RakeBreakdown(
        buy_in=buy_in,
        rake=rake,
        net=net,
        creator_rake=creator_rake,
        admin_rake=admin_rake,
    )
