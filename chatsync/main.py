import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, status
from pymongo.errors import PyMongoError

from chatsync.core.config import get_settings
from chatsync.database.connection import close_mongo_connection, connect_to_mongo, get_database
from chatsync.repositories.chat_repository import ChatRepository
from chatsync.repositories.message_repository import MessageRepository
from chatsync.routers.chats import router as chats_router
from chatsync.utils.realtime_bus import close_bus


settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):

    await connect_to_mongo()
    db = get_database()
    await ChatRepository(db).ensure_indexes()
    await MessageRepository(db).ensure_indexes()
    try:
        yield
    finally:
        await close_bus()
        await close_mongo_connection()


app = FastAPI(title=settings.app_name, lifespan=lifespan)


app.include_router(chats_router)


@app.get("/health")
async def health():

    db = get_database()
    try:
        await db.command("ping")
    except PyMongoError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=f"MongoDB unavailable: {exc}")
    return {"status": "ok", "app": settings.app_name}
