"""REST API routes."""

import logging
from typing import Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel

from sarbot.services import BotController, ReadinessFeed
from sarcore.errors import ControlError
from sarcore.models import ReadinessInput

logger = logging.getLogger(__name__)

router = APIRouter()


class ControlResponse(BaseModel):
    """Start/stop response."""

    success: bool
    message: str


# Dependencies resolved from app.state
def get_controller(request: Request) -> BotController:
    return request.app.state.controller


def get_readiness_feed(request: Request) -> ReadinessFeed:
    return request.app.state.readiness_feed


def _control_failure(e: ControlError) -> ORJSONResponse:
    return ORJSONResponse(status_code=400, content={"success": False, "error": str(e)})


@router.post("/bot/start", response_model=ControlResponse)
async def start_bot(controller: BotController = Depends(get_controller)):
    """Start the polling loop."""
    try:
        await controller.start()
    except ControlError as e:
        logger.warning(f"Start rejected: {e}")
        return _control_failure(e)
    return ControlResponse(success=True, message="Bot started")


@router.post("/bot/stop", response_model=ControlResponse)
async def stop_bot(controller: BotController = Depends(get_controller)):
    """Stop the polling loop."""
    try:
        await controller.stop()
    except ControlError as e:
        logger.warning(f"Stop rejected: {e}")
        return _control_failure(e)
    return ControlResponse(success=True, message="Bot stopped")


@router.get("/bot/status")
async def get_bot_status(controller: BotController = Depends(get_controller)) -> dict[str, Any]:
    """Current snapshot with trade stats, recent trades, and account info."""
    return await controller.get_status()


@router.get("/trades")
async def get_trades(
    limit: int = Query(50, ge=1, le=1000, description="Max trades to return"),
    controller: BotController = Depends(get_controller),
) -> list[dict[str, Any]]:
    """Recent trades, newest first."""
    trades = await controller.store.get_recent_trades(limit)
    return [t.to_wire() for t in trades]


@router.get("/trades/stats")
async def get_trade_stats(controller: BotController = Depends(get_controller)) -> dict[str, Any]:
    """Win/loss statistics."""
    stats = await controller.store.get_trade_stats()
    return stats.to_wire()


@router.put("/readiness/{asset}")
async def put_readiness(
    asset: str,
    body: ReadinessInput,
    feed: ReadinessFeed = Depends(get_readiness_feed),
) -> dict[str, Any]:
    """Supply the externally computed readiness for one asset."""
    feed.update(asset, body)
    return {"success": True, "asset": asset, **body.to_wire()}


@router.delete("/readiness/{asset}")
async def delete_readiness(
    asset: str,
    feed: ReadinessFeed = Depends(get_readiness_feed),
) -> dict[str, Any]:
    """Withdraw the readiness input for one asset (treated as 0%)."""
    feed.remove(asset)
    return {"success": True, "asset": asset}
