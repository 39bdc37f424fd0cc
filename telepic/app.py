from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from tortoise.contrib.fastapi import RegisterTortoise

from .accounts import AccountService
from .config import Config
from .models import RoomRecord, Session, User, UserRoom
from .registry import RoomRegistry
from .routers import websockets as ws_router
from .storage import ModelTable

# -----------------------------
# FastAPI app factory
# -----------------------------


def create_app(config_class=Config) -> FastAPI:
    logging.basicConfig(level=config_class.LOG_LEVEL)

    registry = RoomRegistry(
        ModelTable(RoomRecord),
        AccountService(ModelTable(User), ModelTable(Session), ModelTable(UserRoom)),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        async with RegisterTortoise(
            app,
            db_url=config_class.DATABASE_URL,
            modules={"models": ["telepic.models"]},
            generate_schemas=config_class.GENERATE_SCHEMAS,
        ):
            yield
            # rooms must reach the database before the ORM closes
            await registry.save_all()

    app = FastAPI(title="Telepic Game Server", lifespan=lifespan)
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config_class.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(ws_router.router)

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "rooms": len(registry.rooms)}

    return app


app = create_app()

__all__ = ["app", "create_app"]
