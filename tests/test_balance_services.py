from decimal import Decimal

import pytest
from fastapi import HTTPException

from app.core.ledger import CounterpartyAmount, Transfer
from app.schemas.expense import ExpenseCreate, FriendExpenseCreate
from app.schemas.group import GroupEdit
from app.schemas.settlements import SettlementHistoryCreate
from app.services.balance_services import (
    get_group_balance_summary,
    get_group_balances,
    get_group_direct_debts,
    get_pairwise_debts,
    get_user_group_debts,
    get_user_total_balance,
    load_group_history,
)
from app.services.expense_services import create_expense, create_friend_expense, delete_expense, list_group_expenses
from app.services.group_services import edit_group, exit_group
from app.services.settlement_service import add_settlement, get_settlement_history, undo_settlement

from conftest import add_expense, add_friend_expense, add_raw_settlement, make_group, make_user


@pytest.fixture
async def trio(db):
    a = await make_user(db, "Alice")
    b = await make_user(db, "Bob")
    c = await make_user(db, "Carol")
    return a, b, c


async def seed_three_way(db, group, a, b, c):
    await add_expense(db, group, {a.id: 90}, {a.id: 30, b.id: 30, c.id: 30})
    await add_expense(db, group, {b.id: 60}, {a.id: 20, b.id: 20, c.id: 20})


async def test_simplified_group_uses_net_balances(db, trio):
    a, b, c = trio
    group = await make_group(db, a, [b, c], simplify_debts=True)
    await seed_three_way(db, group, a, b, c)

    balances = await get_group_balances(db, group.id)
    assert balances == {a.id: Decimal("40"), b.id: Decimal("10"), c.id: Decimal("-50")}

    assert await get_pairwise_debts(db, group.id) == [
        Transfer(c.id, a.id, Decimal("40")),
        Transfer(c.id, b.id, Decimal("10")),
    ]


async def test_direct_mode_after_toggling_setting(db, trio):
    a, b, c = trio
    group = await make_group(db, a, [b, c], simplify_debts=True)
    await seed_three_way(db, group, a, b, c)

    await edit_group(db, group.id, a.id, GroupEdit(simplify_debts=False))

    assert await get_pairwise_debts(db, group.id) == [
        Transfer(b.id, a.id, Decimal("10")),
        Transfer(c.id, a.id, Decimal("30")),
        Transfer(c.id, b.id, Decimal("20")),
    ]


async def test_settlement_is_counted_once(db, trio):
    a, b, _ = trio
    group = await make_group(db, a, [b], simplify_debts=False)
    await add_expense(db, group, {a.id: 100}, {a.id: 50, b.id: 50})

    await add_settlement(db, b.id, group.id, SettlementHistoryCreate(to_user_id=a.id, amount=Decimal("50")))

    expenses, settlements = await load_group_history(db, group.id)
    assert len(expenses) == 1
    assert len(settlements) == 1

    assert await get_group_balances(db, group.id) == {a.id: Decimal("0"), b.id: Decimal("0")}
    assert await get_pairwise_debts(db, group.id) == []


async def test_undo_settlement_restores_debt(db, trio):
    a, b, _ = trio
    group = await make_group(db, a, [b], simplify_debts=False)
    await add_expense(db, group, {a.id: 100}, {a.id: 50, b.id: 50})
    settlement = await add_settlement(db, b.id, group.id, SettlementHistoryCreate(to_user_id=a.id, amount=Decimal("20")))

    assert await get_group_direct_debts(db, group.id) == [Transfer(b.id, a.id, Decimal("30"))]

    with pytest.raises(HTTPException) as exc:
        await undo_settlement(db, group.id, settlement.id, a.id)
    assert exc.value.status_code == 403

    await undo_settlement(db, group.id, settlement.id, b.id)

    assert await get_group_direct_debts(db, group.id) == [Transfer(b.id, a.id, Decimal("50"))]
    assert await get_settlement_history(db, group.id, a.id) == []
    page = await list_group_expenses(db, a.id, group.id)
    assert page["total"] == 1


async def test_malformed_expense_surfaces_as_error(db, trio):
    a, b, _ = trio
    group = await make_group(db, a, [b], simplify_debts=False)
    await add_expense(db, group, {a.id: 0}, {a.id: 5, b.id: 5})

    with pytest.raises(HTTPException) as exc:
        await get_pairwise_debts(db, group.id)

    assert exc.value.status_code == 422


async def test_unknown_group(db):
    with pytest.raises(HTTPException) as exc:
        await get_pairwise_debts(db, 404)

    assert exc.value.status_code == 404


async def test_user_group_debts_partition(db, trio):
    a, b, c = trio
    group = await make_group(db, a, [b, c], simplify_debts=False)
    await seed_three_way(db, group, a, b, c)

    view = await get_user_group_debts(db, group.id, b.id)

    assert view.owes == [Transfer(b.id, a.id, Decimal("10"))]
    assert view.owed == [Transfer(c.id, b.id, Decimal("20"))]


async def test_total_balance_across_groups_and_friends(db, trio):
    a, b, c = trio
    trip = await make_group(db, a, [b, c], simplify_debts=True)
    await seed_three_way(db, trip, a, b, c)

    flat = await make_group(db, b, [a], simplify_debts=False)
    await add_expense(db, flat, {b.id: 30}, {a.id: 15, b.id: 15})

    await add_friend_expense(db, c, a, 40, paid_by=c)

    total = await get_user_total_balance(db, a.id)

    # Carol owed 40 in the trip and is owed 20 back for the friend expense
    assert total.owed == [CounterpartyAmount(c.id, Decimal("20.00"))]
    assert total.owes == [CounterpartyAmount(b.id, Decimal("15.00"))]


async def test_friend_expense_half_owed(db, trio):
    a, b, _ = trio

    await create_friend_expense(db, FriendExpenseCreate(friend_id=b.id, description="Taxi", amount=Decimal("40"), paid_by=b.id), a.id)

    total = await get_user_total_balance(db, a.id)
    assert total.owes == [CounterpartyAmount(b.id, Decimal("20.00"))]
    assert total.owed == []


async def test_create_expense_equal_split_over_members(db, trio):
    a, b, c = trio
    group = await make_group(db, a, [b, c], simplify_debts=False)

    expense = await create_expense(db, ExpenseCreate(group_id=group.id, amount=Decimal("100"), description="Dinner"), a.id)

    assert sorted((s.user_id, s.amount) for s in expense.splits) == [
        (a.id, Decimal("33.34")),
        (b.id, Decimal("33.33")),
        (c.id, Decimal("33.33")),
    ]
    assert [(p.user_id, p.amount) for p in expense.payers] == [(a.id, Decimal("100.00"))]
    assert expense.currency == "RUB"

    assert await get_pairwise_debts(db, group.id) == [
        Transfer(b.id, a.id, Decimal("33.33")),
        Transfer(c.id, a.id, Decimal("33.33")),
    ]


async def test_create_expense_with_two_payers(db, trio):
    a, b, c = trio
    group = await make_group(db, a, [b, c], simplify_debts=True)

    await create_expense(
        db,
        ExpenseCreate(group_id=group.id, amount=Decimal("90"), payer_ids=[a.id, b.id], participant_ids=[c.id]),
        a.id
    )

    assert await get_pairwise_debts(db, group.id) == [
        Transfer(c.id, a.id, Decimal("45")),
        Transfer(c.id, b.id, Decimal("45")),
    ]


async def test_create_expense_rejects_mismatched_payers(db, trio):
    a, b, _ = trio
    group = await make_group(db, a, [b])

    data = ExpenseCreate(group_id=group.id, amount=Decimal("50"), payers=[{"user_id": a.id, "amount": "20"}])

    with pytest.raises(HTTPException) as exc:
        await create_expense(db, data, a.id)

    assert exc.value.status_code == 400


async def test_create_expense_rejects_outsiders(db, trio):
    a, b, c = trio
    group = await make_group(db, a, [b])

    data = ExpenseCreate(group_id=group.id, amount=Decimal("50"), participant_ids=[a.id, c.id])
    with pytest.raises(HTTPException) as exc:
        await create_expense(db, data, a.id)
    assert exc.value.status_code == 400

    with pytest.raises(HTTPException) as exc:
        await create_expense(db, ExpenseCreate(group_id=group.id, amount=Decimal("50")), c.id)
    assert exc.value.status_code == 403


async def test_deleted_expense_drops_out_of_balances(db, trio):
    a, b, _ = trio
    group = await make_group(db, a, [b], simplify_debts=True)
    expense = await create_expense(db, ExpenseCreate(group_id=group.id, amount=Decimal("10")), a.id)

    await delete_expense(db, a.id, expense.id)

    assert await get_group_balances(db, group.id) == {}


async def test_member_with_open_debt_cannot_exit(db, trio):
    a, b, _ = trio
    group = await make_group(db, a, [b], simplify_debts=True)
    await add_expense(db, group, {a.id: 10}, {b.id: 10})

    with pytest.raises(HTTPException) as exc:
        await exit_group(db, group.id, b.id)
    assert exc.value.status_code == 400

    await add_raw_settlement(db, group, b.id, a.id, 10)
    assert await exit_group(db, group.id, b.id) == {"status": "exited_group"}


async def test_balance_summary_names_users(db, trio):
    a, b, c = trio
    group = await make_group(db, a, [b, c], simplify_debts=True)
    await seed_three_way(db, group, a, b, c)

    summary = await get_group_balance_summary(db, group.id)

    assert summary["simplified"] is True
    assert summary["balances"] == [
        {"user_id": a.id, "name": "Alice", "balance": 40.0},
        {"user_id": b.id, "name": "Bob", "balance": 10.0},
        {"user_id": c.id, "name": "Carol", "balance": -50.0},
    ]
    assert summary["debts"][0] == {
        "from_id": c.id, "from_name": "Carol",
        "to_id": a.id, "to_name": "Alice",
        "amount": 40.0
    }
