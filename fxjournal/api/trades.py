"""Trade API routes: journal entries, their labels, and broker CSV import."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import BaseModel, Field

from fxjournal.api.auth import require_api_key
from fxjournal.api.deps import current_user, get_aggregator, get_import_policy, get_trade_service
from fxjournal.config import settings
from fxjournal.services.datetime_utils import TimezonePolicy
from fxjournal.services.importer import CsvFormatError, import_hirose_csv
from fxjournal.services.metrics import PerformanceAggregator
from fxjournal.services.trade_service import TradeService
from fxjournal.services.trade_types import (
    TradeDraft,
    TradeNotFoundError,
    TradePatch,
    TradeValidationError,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/trades", tags=["trades"])


class LabelsRequest(BaseModel):
    """Replacement set of tag or emotion names."""

    names: list[str] = Field(default_factory=list, max_length=50)


@router.get("/")
async def list_trades(
    start: date | None = Query(None, description="First entry date (UTC), inclusive"),
    end: date | None = Query(None, description="Last entry date (UTC), inclusive"),
    user_id: str = Depends(current_user),
    service: TradeService = Depends(get_trade_service),
):
    """List the user's trades, newest first, with symbol, tags and emotions."""
    trades = await service.list_trades(user_id, start, end)
    return {"count": len(trades), "trades": trades}


@router.post("/import", dependencies=[Depends(require_api_key)])
async def import_trades(
    file: UploadFile = File(...),
    user_id: str = Depends(current_user),
    service: TradeService = Depends(get_trade_service),
    aggregator: PerformanceAggregator = Depends(get_aggregator),
    policy: TimezonePolicy = Depends(get_import_policy),
):
    """Import a Hirose settlement history CSV."""
    raw = await file.read()
    try:
        result = await import_hirose_csv(
            raw,
            user_id,
            service,
            aggregator,
            policy=policy,
            max_bytes=settings.import_max_bytes,
            max_rows=settings.import_max_rows,
            scan_lines=settings.header_scan_lines,
        )
    except CsvFormatError as e:
        logger.info("Rejected CSV %s from user %s: %s", file.filename, user_id, e)
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "success_count": result.success_count,
        "error_count": result.error_count,
        "skipped_count": result.skipped_count,
        "message": result.message,
    }


@router.get("/{trade_id}")
async def get_trade(
    trade_id: int,
    user_id: str = Depends(current_user),
    service: TradeService = Depends(get_trade_service),
):
    try:
        return {"trade": await service.get_trade(user_id, trade_id)}
    except TradeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post("/", status_code=201, dependencies=[Depends(require_api_key)])
async def create_trade(
    draft: TradeDraft,
    user_id: str = Depends(current_user),
    service: TradeService = Depends(get_trade_service),
):
    """Log a trade manually. Rollups are updated before the response."""
    created = await service.create_trade(user_id, draft)
    return {"trade": await service.get_trade(user_id, created["id"])}


@router.patch("/{trade_id}", dependencies=[Depends(require_api_key)])
async def update_trade(
    trade_id: int,
    patch: TradePatch,
    user_id: str = Depends(current_user),
    service: TradeService = Depends(get_trade_service),
):
    try:
        await service.update_trade(user_id, trade_id, patch)
        return {"trade": await service.get_trade(user_id, trade_id)}
    except TradeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except TradeValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/{trade_id}", dependencies=[Depends(require_api_key)])
async def delete_trade(
    trade_id: int,
    user_id: str = Depends(current_user),
    service: TradeService = Depends(get_trade_service),
):
    try:
        await service.delete_trade(user_id, trade_id)
    except TradeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return {"status": "deleted", "trade_id": trade_id}


@router.put("/{trade_id}/tags", dependencies=[Depends(require_api_key)])
async def set_tags(
    trade_id: int,
    req: LabelsRequest,
    user_id: str = Depends(current_user),
    service: TradeService = Depends(get_trade_service),
):
    """Replace the trade's tags, creating unknown tag names."""
    try:
        await service.set_tags(user_id, trade_id, req.names)
        return {"trade": await service.get_trade(user_id, trade_id)}
    except TradeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.put("/{trade_id}/emotions", dependencies=[Depends(require_api_key)])
async def set_emotions(
    trade_id: int,
    req: LabelsRequest,
    user_id: str = Depends(current_user),
    service: TradeService = Depends(get_trade_service),
):
    """Replace the trade's emotions, creating unknown emotion names."""
    try:
        await service.set_emotions(user_id, trade_id, req.names)
        return {"trade": await service.get_trade(user_id, trade_id)}
    except TradeNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
