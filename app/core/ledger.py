"""
Ledger engine for group expenses.

Three folds over a group's history:

* ``compute_balances``     - net balance per user (creditor positive).
* ``compute_direct_debts`` - who owes whom, keeping the pairs that actually
  transacted and netting each pair against its reverse direction.
* ``simplify_debts``       - greedy largest-debtor / largest-creditor matching
  over the net balances.

Everything here is a pure function of the records passed in. The services
layer loads a group's snapshot from the database and hands it over.
"""
import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Mapping, NamedTuple, Sequence, Tuple

from app.core.utils import TOLERANCE, ZERO, is_settled, qround

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    pass


class MalformedExpenseError(LedgerError, ValueError):
    def __init__(self, expense_id):
        self.expense_id = expense_id
        super().__init__(f"Expense {expense_id} has a zero paid total")


@dataclass(frozen=True)
class Share:
    user_id: int
    amount: Decimal


@dataclass(frozen=True)
class ExpenseRecord:
    id: int
    payers: Tuple[Share, ...]
    splits: Tuple[Share, ...]


@dataclass(frozen=True)
class SettlementRecord:
    from_user: int
    to_user: int
    amount: Decimal


@dataclass(frozen=True)
class FriendExpenseRecord:
    user_id: int
    friend_id: int
    amount: Decimal
    paid_by: int


@dataclass(frozen=True)
class Transfer:
    from_user: int
    to_user: int
    amount: Decimal


@dataclass(frozen=True)
class CounterpartyAmount:
    user_id: int
    amount: Decimal


@dataclass
class UserDebts:
    owes: list = field(default_factory=list)
    owed: list = field(default_factory=list)


class PairKey(NamedTuple):
    low: int
    high: int


# Signed amount per unordered pair: positive means ``low`` owes ``high``.
DebtMap = Mapping[PairKey, Decimal]


def compute_balances(
    expenses: Iterable[ExpenseRecord],
    settlements: Iterable[SettlementRecord]
) -> Dict[int, Decimal]:
    balances: Dict[int, Decimal] = defaultdict(Decimal)

    for expense in expenses:
        for p in expense.payers:
            balances[p.user_id] += p.amount
        for s in expense.splits:
            balances[s.user_id] -= s.amount

    # The payer of a settlement paid down debt, the recipient got paid
    for s in settlements:
        balances[s.from_user] += s.amount
        balances[s.to_user] -= s.amount

    return dict(balances)


def pair_key(debtor: int, creditor: int) -> Tuple[PairKey, int]:
    """Canonical key for the pair, and the sign a debtor -> creditor amount carries under it."""
    if debtor < creditor:
        return PairKey(debtor, creditor), 1
    return PairKey(creditor, debtor), -1


def owed_amount(debts: DebtMap, debtor: int, creditor: int) -> Decimal:
    """What ``debtor`` owes ``creditor``; negative when the debt runs the other way."""
    key, sign = pair_key(debtor, creditor)
    return sign * debts.get(key, ZERO)


def _with_owed(debts: DebtMap, debtor: int, creditor: int, owed: Decimal) -> Dict[PairKey, Decimal]:
    key, sign = pair_key(debtor, creditor)
    updated = dict(debts)
    if owed == 0:
        updated.pop(key, None)
    else:
        updated[key] = sign * owed
    return updated


def add_debt(debts: DebtMap, debtor: int, creditor: int, amount: Decimal) -> Dict[PairKey, Decimal]:
    """
    Record that ``debtor`` owes ``creditor`` another ``amount``.

    An existing reverse debt is netted first; if the contribution is larger
    the pair flips direction and keeps the overflow. Returns a new mapping.
    """
    owed = owed_amount(debts, debtor, creditor)
    net = owed + amount
    if owed < 0 and is_settled(net):
        net = ZERO
    return _with_owed(debts, debtor, creditor, net)


def apply_settlement(debts: DebtMap, payer: int, recipient: int, amount: Decimal) -> Dict[PairKey, Decimal]:
    """
    Apply a payment from ``payer`` to ``recipient``. Returns a new mapping.

    A reverse debt (recipient owes payer) is netted with the same flip rule as
    expenses. Otherwise the payment only reduces what the payer owes and stops
    at zero: a settlement never opens a new debt by itself.
    """
    owed = owed_amount(debts, payer, recipient)
    if owed < 0:
        net = owed + amount
        if is_settled(net):
            net = ZERO
    else:
        net = owed - amount
        if net <= 0:
            net = ZERO
    return _with_owed(debts, payer, recipient, net)


def expense_obligations(expense: ExpenseRecord) -> Iterator[Tuple[int, int, Decimal]]:
    """
    Yield ``(debtor, creditor, amount)`` for every split/payer pair of an expense.

    Each split is spread over the payers in proportion to what they paid.
    """
    total_paid = sum((p.amount for p in expense.payers), ZERO)
    if total_paid == 0:
        raise MalformedExpenseError(expense.id)

    for split in expense.splits:
        for payer in expense.payers:
            if split.user_id == payer.user_id:
                continue
            yield split.user_id, payer.user_id, split.amount * payer.amount / total_paid


def debt_edges(debts: DebtMap) -> List[Transfer]:
    edges = []
    for key in sorted(debts):
        signed = debts[key]
        if signed > 0:
            debtor, creditor, amount = key.low, key.high, signed
        else:
            debtor, creditor, amount = key.high, key.low, -signed

        rounded = qround(amount)
        if rounded > TOLERANCE:
            edges.append(Transfer(debtor, creditor, rounded))
    return edges


def compute_direct_debts(
    expenses: Iterable[ExpenseRecord],
    settlements: Iterable[SettlementRecord]
) -> List[Transfer]:
    debts: DebtMap = {}

    # Order matters: settlements can flip debts built up by expenses
    for expense in expenses:
        for debtor, creditor, amount in expense_obligations(expense):
            debts = add_debt(debts, debtor, creditor, amount)

    for s in settlements:
        debts = apply_settlement(debts, s.from_user, s.to_user, s.amount)

    edges = debt_edges(debts)
    logger.debug("Reduced %d pairs to %d direct debts", len(debts), len(edges))
    return edges


def simplify_debts(balances: Mapping[int, Decimal]) -> List[Transfer]:
    """
    Settle net balances with few transfers.

    Greedy: the largest debtor pays the largest creditor as much as possible,
    then the cursors move on. Not guaranteed minimal. Ties between equal
    balances go to the lower user id.
    """
    creditors = []
    debtors = []

    for uid, bal in sorted(balances.items()):
        bal = qround(bal)
        if bal > TOLERANCE:
            creditors.append([uid, bal])
        elif bal < -TOLERANCE:
            debtors.append([uid, -bal])

    creditors.sort(key=lambda x: x[1], reverse=True)
    debtors.sort(key=lambda x: x[1], reverse=True)

    transfers: List[Transfer] = []
    i = j = 0

    while i < len(debtors) and j < len(creditors):
        debt_id, debt_amt = debtors[i]
        cred_id, cred_amt = creditors[j]

        pay_amt = min(debt_amt, cred_amt)
        if qround(pay_amt) > TOLERANCE:
            transfers.append(Transfer(debt_id, cred_id, qround(pay_amt)))

        debtors[i][1] = debt_amt - pay_amt
        creditors[j][1] = cred_amt - pay_amt

        if debtors[i][1] < TOLERANCE:
            i += 1
        if creditors[j][1] < TOLERANCE:
            j += 1

    return transfers


def split_user_debts(debts: Sequence[Transfer], user_id: int) -> UserDebts:
    return UserDebts(
        owes=[d for d in debts if d.from_user == user_id],
        owed=[d for d in debts if d.to_user == user_id],
    )


def net_by_counterparty(
    user_id: int,
    debts: Iterable[Transfer],
    friend_expenses: Iterable[FriendExpenseRecord]
) -> UserDebts:
    net: Dict[int, Decimal] = defaultdict(Decimal)

    for d in debts:
        if d.from_user == user_id:
            net[d.to_user] -= d.amount
        elif d.to_user == user_id:
            net[d.from_user] += d.amount

    # Friend expenses are always split in half between the two people
    for fe in friend_expenses:
        other_id = fe.friend_id if fe.user_id == user_id else fe.user_id
        if fe.paid_by == user_id:
            net[other_id] += fe.amount / 2
        else:
            net[other_id] -= fe.amount / 2

    result = UserDebts()
    for other_id, amount in sorted(net.items()):
        rounded = qround(amount)
        if rounded > TOLERANCE:
            result.owed.append(CounterpartyAmount(other_id, rounded))
        elif rounded < -TOLERANCE:
            result.owes.append(CounterpartyAmount(other_id, -rounded))

    return result
