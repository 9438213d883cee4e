"""
Struk Bot backend — Telegram receipt assistant for a multi-store retail chain.

ARCHITECTURE:
- Telegram Bot: cashiers and store heads enter and edit receipts
- Conversation runtime: pure state machine + effect execution per chat
- Relational ledger (SQLAlchemy): transactions and their items
- FastAPI: status and health endpoints, hosts the bot lifecycle
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from strukbot.api.routes import health
from strukbot.core.config import settings
from strukbot.db.init_db import check_connection, init_db
from strukbot.telegram.bot import start_bot, stop_bot

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    1. Create database tables and check the connection
    2. Start Telegram bot polling (if token provided)

    Shutdown:
    1. Stop Telegram bot gracefully
    """
    logger.info("[*] Initializing database...")
    init_db()
    check_connection()
    logger.info("[OK] Database connected")

    await start_bot()

    yield

    await stop_bot()


app = FastAPI(
    title="Struk Bot API",
    description="Telegram receipt assistant: status and health.",
    version="1.0.0",
    lifespan=lifespan,
)

app.include_router(health.router, tags=["health"])


@app.get("/", response_class=PlainTextResponse)
def root():
    return "Telegram Bot is running"
