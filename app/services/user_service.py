from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from app.models.user import User
from app.schemas.user import UserCreate
from app.core.security import hash_password
from fastapi import HTTPException

async def get_user_by_email(db: AsyncSession, email:str):
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()

async def get_user_by_id(db: AsyncSession, id:int):
    result = await db.execute(select(User).where(User.id == id))
    return result.scalar_one_or_none()

async def get_user_by_telegram_id(db: AsyncSession, telegram_id: str):
    result = await db.execute(select(User).where(User.telegram_id == telegram_id))
    return result.scalar_one_or_none()

async def create_user(db: AsyncSession, data: UserCreate):
    existing = await get_user_by_email(db, data.email)
    if existing:
        raise ValueError("User already Exists")

    if data.telegram_id and await get_user_by_telegram_id(db, data.telegram_id):
        raise ValueError("Telegram account already linked")

    user = User(
        email = data.email,
        name = data.name,
        telegram_id = data.telegram_id,
        password_hash = hash_password(data.password)
    )

    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user

async def edit_user(db : AsyncSession, data, user_id: int):
    user = await get_user_by_id(db, user_id)

    if not user:
        raise HTTPException(404, "User does not exist")

    if data.name:
        user.name = data.name

    if data.email and data.email != user.email:
        if await get_user_by_email(db, data.email):
            raise HTTPException(400, "Email already in use")
        user.email = data.email

    await db.commit()
    await db.refresh(user)

    return user
