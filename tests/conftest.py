import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["JWT_SECRET"] = "test-secret"

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import app.models  # noqa: F401
from app.db.session import Base, get_db
from app.models import Expense, ExpensePayer, ExpenseSplit, FriendExpense, Group, GroupMember, Settlement, User


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    from app.main import app

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def make_user(db, name):
    user = User(name=name, email=f"{name.lower()}@example.com", password_hash="x")
    db.add(user)
    await db.commit()
    return user


async def make_group(db, creator, members=(), simplify_debts=True, currency="RUB"):
    group = Group(name="Trip", currency=currency, simplify_debts=simplify_debts, created_by=creator.id)
    db.add(group)
    await db.flush()
    for user in (creator, *members):
        db.add(GroupMember(group_id=group.id, user_id=user.id))
    await db.commit()
    return group


async def add_expense(db, group, payers, splits, is_settlement=False):
    """Insert an expense row as-is, without service validation."""
    total = sum((Decimal(str(a)) for a in payers.values()), Decimal("0"))
    expense = Expense(
        group_id=group.id,
        created_by=next(iter(payers)) if payers else next(iter(splits)),
        amount=total,
        currency=group.currency,
        is_settlement=is_settlement,
    )
    db.add(expense)
    await db.flush()
    for uid, amount in payers.items():
        db.add(ExpensePayer(expense_id=expense.id, user_id=uid, amount=Decimal(str(amount))))
    for uid, amount in splits.items():
        db.add(ExpenseSplit(expense_id=expense.id, user_id=uid, amount=Decimal(str(amount))))
    await db.commit()
    return expense


async def add_raw_settlement(db, group, from_user, to_user, amount):
    settlement = Settlement(
        group_id=group.id,
        from_user_id=from_user,
        to_user_id=to_user,
        amount=Decimal(str(amount)),
        currency=group.currency,
    )
    db.add(settlement)
    await db.commit()
    return settlement


async def add_friend_expense(db, user, friend, amount, paid_by):
    expense = FriendExpense(
        user_id=user.id,
        friend_id=friend.id,
        description="Lunch",
        amount=Decimal(str(amount)),
        currency="RUB",
        paid_by=paid_by.id,
    )
    db.add(expense)
    await db.commit()
    return expense
