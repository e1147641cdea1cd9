import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from app.core.config import settings
from app.db.session import init_models
from app.api.v1.routes.user import router as user_router
from app.api.v1.routes.group import router as group_router
from app.api.v1.routes.expense import router as expense_router
from app.api.v1.routes.friend import router as friend_router
from app.api.v1.routes.balances import router as balances_router

logging.basicConfig(
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    level=settings.LOG_LEVEL
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    logger.info("Database ready at %s", settings.DATABASE_URL)
    yield

app = FastAPI(title="Expense Splitter Backend", lifespan=lifespan)

@app.get("/")
async def root():
    return {"message": "Expense Splitter Backend is live"}

app.include_router(user_router, prefix="/api/v1/users")
app.include_router(group_router, prefix="/api/v1/groups")
app.include_router(expense_router, prefix="/api/v1/expense")
app.include_router(friend_router, prefix="/api/v1/friends")
app.include_router(balances_router, prefix="/api/v1/balances")
