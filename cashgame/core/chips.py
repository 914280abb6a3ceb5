"""
Chip denominations and the buy-in chip allocator.

The allocator turns a monetary amount into a count per denomination. It first
tries to hand out a plausible mix of chip sizes, the way a bank would at a
real table, and falls back to plain greedy (and then an exact search) when the
heuristic misses the target. Whatever path succeeds, the result always values
exactly to the requested amount.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from functools import reduce
from typing import Any, Dict, List, Mapping, Optional, Sequence

from cashgame.core.errors import UndistributableAmount
from cashgame.core.money import (
    CENT, ZERO, Number, TOLERANCE, approx_equal, format_money, money_sum, to_money,
)


logger = logging.getLogger(__name__)


# Allocation policy
BIG_BUY_IN_THRESHOLD = Decimal("50")     # above: only the two largest chips
SMALL_BUY_IN_THRESHOLD = Decimal("30")   # at or below: only chips under 10
LARGE_CHIP_VALUE = Decimal("10")
SMALL_CHIP_SHARE = Decimal("0.1")        # share of the buy-in pre-allocated in sub-1 chips
SMALL_CHIP_MAX_COUNT = 4
ROUND_SMALL_COUNTS_TO = 5

ALLOCATION_PERCENT_LARGE = Decimal("0.5")   # value >= 10
ALLOCATION_PERCENT_UNIT = Decimal("0.4")    # value >= 1
ALLOCATION_PERCENT_SMALL = Decimal("0.3")   # value < 1

# Largest exact search, in multiples of the chips' common divisor
MAX_EXACT_SEARCH_STEPS = 100_000

ChipCounts = Dict[int, int]


@dataclass(frozen=True)
class ChipDenomination:
    """A chip size available at the table."""
    id: int
    value: Decimal
    color: str = "#ffffff"
    name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "value": format_money(self.value),
            "color": self.color,
            "name": self.name,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ChipDenomination:
        return make_denomination(
            int(data["id"]), data["value"], data.get("color", "#ffffff"), data.get("name", "")
        )


def make_denomination(chip_id: int, value: Number, color: str = "#ffffff", name: str = "") -> ChipDenomination:
    """Build a denomination, validating its value."""
    amount = to_money(value)
    if amount <= 0:
        raise ValueError(f"Chip value must be positive, got {value!r}")
    return ChipDenomination(id=chip_id, value=amount, color=color, name=name)


DEFAULT_CHIP_SET: List[ChipDenomination] = [
    make_denomination(1, "0.25", "#22c55e", "Green"),
    make_denomination(2, "0.50", "#ef4444", "Red"),
    make_denomination(3, "1", "#f5f5f5", "White"),
    make_denomination(4, "10", "#171717", "Black"),
]


# ============= Chip vectors =============

def normalize_counts(
    counts: Optional[Mapping[Any, Any]],
    denominations: Sequence[ChipDenomination],
) -> ChipCounts:
    """
    Re-express a chip vector over every denomination, sorted by id.

    Keys may arrive as strings from JSON; they are coerced to int.

    Raises:
        ValueError: On unknown denominations or negative/non-integer counts.
    """
    known = {d.id for d in denominations}
    result = {d.id: 0 for d in sorted(denominations, key=lambda d: d.id)}
    for raw_id, raw_count in (counts or {}).items():
        chip_id = int(raw_id)
        if chip_id not in known:
            raise ValueError(f"Unknown chip denomination: {raw_id}")
        if isinstance(raw_count, bool) or int(raw_count) != raw_count or raw_count < 0:
            raise ValueError(f"Chip count must be a non-negative integer, got {raw_count!r}")
        result[chip_id] += int(raw_count)
    return result


def chip_value(counts: Mapping[int, int], denominations: Sequence[ChipDenomination]) -> Decimal:
    """Monetary value of a chip vector. Unknown ids count as zero."""
    values = {d.id: d.value for d in denominations}
    return money_sum(values.get(int(chip_id), ZERO) * count for chip_id, count in counts.items())


def add_counts(*vectors: Mapping[int, int]) -> ChipCounts:
    """Element-wise sum of chip vectors."""
    total: ChipCounts = {}
    for vector in vectors:
        for chip_id, count in vector.items():
            total[int(chip_id)] = total.get(int(chip_id), 0) + count
    return dict(sorted(total.items()))


# ============= Allocator =============

def allocate_chips(amount: Number, denominations: Sequence[ChipDenomination]) -> ChipCounts:
    """
    Suggest a chip distribution for a buy-in.

    Args:
        amount: Monetary amount to hand out
        denominations: Chips available at the table

    Returns:
        Count per denomination id (every denomination present, sorted by id)
        whose value equals ``amount``.

    Raises:
        UndistributableAmount: If no combination of chips reaches the amount.
    """
    target = to_money(amount)
    if target <= 0:
        raise UndistributableAmount(f"Cannot distribute non-positive amount {format_money(target)}")
    if not denominations:
        raise UndistributableAmount("No chip denominations available")

    distribution = _realistic_fill(target, denominations)
    if approx_equal(chip_value(distribution, denominations), target):
        return normalize_counts(distribution, denominations)

    logger.warning(
        f"Realistic distribution failed for {format_money(target)}, falling back to greedy"
    )
    distribution = _greedy_fill(target, denominations)
    if distribution is None:
        distribution = _exact_fill(target, denominations)
    if distribution is None:
        raise UndistributableAmount(
            f"Cannot distribute {format_money(target)} with the available chips"
        )
    return normalize_counts(distribution, denominations)


def _candidate_chips(amount: Decimal, denominations: Sequence[ChipDenomination]) -> List[ChipDenomination]:
    """Narrow the chip set by buy-in tier, largest value first."""
    by_value = sorted(denominations, key=lambda d: (-d.value, d.id))
    if amount > BIG_BUY_IN_THRESHOLD:
        return by_value[:2]
    if amount <= SMALL_BUY_IN_THRESHOLD:
        return [d for d in by_value if d.value < LARGE_CHIP_VALUE]
    return by_value


def _allocation_percent(value: Decimal) -> Decimal:
    if value >= LARGE_CHIP_VALUE:
        return ALLOCATION_PERCENT_LARGE
    if value >= 1:
        return ALLOCATION_PERCENT_UNIT
    return ALLOCATION_PERCENT_SMALL


def _realistic_fill(amount: Decimal, denominations: Sequence[ChipDenomination]) -> ChipCounts:
    chips = _candidate_chips(amount, denominations)
    distribution: ChipCounts = {d.id: 0 for d in chips}
    remaining = amount

    # A few small chips first so every stack can make change
    for chip in sorted((d for d in chips if d.value < 1), key=lambda d: d.value):
        ideal = min(int((amount * SMALL_CHIP_SHARE) // chip.value), SMALL_CHIP_MAX_COUNT)
        if remaining >= chip.value * ideal:
            distribution[chip.id] += ideal
            remaining -= chip.value * ideal

    for chip in chips:
        if remaining <= 0:
            break
        if chip.value > remaining:
            continue

        count = int((remaining * _allocation_percent(chip.value)) // chip.value)
        if chip.value < 1 and count > ROUND_SMALL_COUNTS_TO:
            count = int(
                (Decimal(count) / ROUND_SMALL_COUNTS_TO).quantize(Decimal(1), rounding=ROUND_HALF_UP)
            ) * ROUND_SMALL_COUNTS_TO

        if count > 0 and remaining >= count * chip.value:
            distribution[chip.id] += count
            remaining -= count * chip.value

    # Sweep what is left, largest first
    for chip in chips:
        if remaining < chip.value:
            continue
        count = int(remaining // chip.value)
        distribution[chip.id] += count
        remaining -= count * chip.value

    # Round up with the smallest chips; an overshoot is caught by the caller
    if remaining > TOLERANCE:
        for chip in sorted(chips, key=lambda d: d.value):
            if remaining < chip.value:
                continue
            count = math.ceil(remaining / chip.value)
            distribution[chip.id] += count
            remaining -= count * chip.value

    return distribution


def _greedy_fill(amount: Decimal, denominations: Sequence[ChipDenomination]) -> Optional[ChipCounts]:
    """Largest chip first, floor-divide; None if a residue remains."""
    distribution: ChipCounts = {}
    remaining = amount
    for chip in sorted(denominations, key=lambda d: (-d.value, d.id)):
        if remaining >= chip.value:
            count = int(remaining // chip.value)
            distribution[chip.id] = count
            remaining -= count * chip.value
    if abs(remaining) >= TOLERANCE:
        return None
    return distribution


def _exact_fill(amount: Decimal, denominations: Sequence[ChipDenomination]) -> Optional[ChipCounts]:
    """
    Fewest-chips exact distribution over integer cents.

    Greedy misses some representable amounts when chip values do not divide
    each other (e.g. 3 and 5 for 9); this search finds them.
    """
    target = int(amount / CENT)
    values = {d.id: int(d.value / CENT) for d in denominations}
    step = reduce(math.gcd, values.values())
    if target % step:
        return None

    # Work in units of the common divisor to keep the table small
    target //= step
    if target > MAX_EXACT_SEARCH_STEPS:
        logger.warning(f"Amount {format_money(amount)} too large for an exact chip search")
        return None
    units = {chip_id: cents // step for chip_id, cents in values.items()}

    best: List[Optional[int]] = [0] + [None] * target
    last_chip: List[Optional[int]] = [None] * (target + 1)
    for total in range(1, target + 1):
        for chip_id, unit in units.items():
            if unit <= total and best[total - unit] is not None:
                candidate = best[total - unit] + 1
                if best[total] is None or candidate < best[total]:
                    best[total] = candidate
                    last_chip[total] = chip_id
    if best[target] is None:
        return None

    distribution: ChipCounts = {}
    total = target
    while total > 0:
        chip_id = last_chip[total]
        distribution[chip_id] = distribution.get(chip_id, 0) + 1
        total -= units[chip_id]
    return distribution

