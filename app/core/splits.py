from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN
from enum import Enum
from typing import Dict, List, Optional, Sequence

from app.core.utils import CENTS, ZERO, qround

# Splits may be off from the total by rounding, up to this much
SPLIT_TOLERANCE = Decimal("0.02")

class SplitError(ValueError):
    pass

class SplitType(str, Enum):
    EQUAL = "equal"
    EXACT = "exact"
    PERCENT = "percent"
    SHARES = "shares"
    ADJUSTMENT = "adjustment"

@dataclass
class SplitData:
    amounts: Dict[int, Decimal] = field(default_factory=dict)
    percentages: Dict[int, Decimal] = field(default_factory=dict)
    shares: Dict[int, Decimal] = field(default_factory=dict)
    adjustments: Dict[int, Decimal] = field(default_factory=dict)

@dataclass(frozen=True)
class SplitRow:
    user_id: int
    amount: Decimal
    share_value: Optional[Decimal] = None
    percentage: Optional[Decimal] = None


def split_equal(total: Decimal, participants: Sequence[int]) -> List[SplitRow]:
    count = len(participants)
    base = (total / count).quantize(CENTS, rounding=ROUND_DOWN)
    remainder = qround(total - base * count)

    # First participant absorbs the rounding remainder
    return [
        SplitRow(uid, base + remainder if i == 0 else base)
        for i, uid in enumerate(participants)
    ]

def split_exact(total: Decimal, participants: Sequence[int], data: SplitData) -> List[SplitRow]:
    return [SplitRow(uid, data.amounts.get(uid, ZERO)) for uid in participants]

def split_percent(total: Decimal, participants: Sequence[int], data: SplitData) -> List[SplitRow]:
    rows = []
    for uid in participants:
        pct = data.percentages.get(uid, ZERO)
        rows.append(SplitRow(uid, qround(total * pct / 100), percentage=pct))
    return rows

def split_shares(total: Decimal, participants: Sequence[int], data: SplitData) -> List[SplitRow]:
    total_shares = sum(data.shares.values(), ZERO) or Decimal(len(participants))

    rows = []
    for uid in participants:
        user_shares = data.shares.get(uid) or Decimal(1)
        rows.append(SplitRow(uid, qround(total * user_shares / total_shares), share_value=user_shares))
    return rows

def split_adjustment(total: Decimal, participants: Sequence[int], data: SplitData) -> List[SplitRow]:
    adjustments = data.adjustments
    remaining = total - sum(adjustments.values(), ZERO)
    unadjusted = [uid for uid in participants if not adjustments.get(uid)]
    base_each = remaining / len(unadjusted) if unadjusted else ZERO

    return [
        SplitRow(uid, qround(adjustments.get(uid) or base_each))
        for uid in participants
    ]

_CALCULATORS = {
    SplitType.EXACT: split_exact,
    SplitType.PERCENT: split_percent,
    SplitType.SHARES: split_shares,
    SplitType.ADJUSTMENT: split_adjustment,
}

def calculate_splits(
    total: Decimal,
    participants: Sequence[int],
    split_type: SplitType = SplitType.EQUAL,
    data: Optional[SplitData] = None
) -> List[SplitRow]:
    if not participants:
        raise SplitError("An expense needs at least one participant")

    if split_type == SplitType.EQUAL:
        return split_equal(total, participants)

    return _CALCULATORS[SplitType(split_type)](total, participants, data or SplitData())

def validate_splits(splits: Sequence[SplitRow], total: Decimal) -> bool:
    split_sum = sum((s.amount for s in splits), ZERO)
    return abs(split_sum - total) < SPLIT_TOLERANCE
