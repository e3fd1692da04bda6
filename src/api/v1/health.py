from __future__ import annotations

import time

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from src.config import Settings, get_settings


router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
async def root() -> str:
    return "Booking relay is alive"


@router.get("/health")
async def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}


@router.get("/ping")
async def ping(settings: Settings = Depends(get_settings)) -> dict:
    return {"ok": True, "ts": int(time.time() * 1000), "tz": settings.timezone}
