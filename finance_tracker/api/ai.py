from typing import Any, Dict, Optional
import logging
import sqlite3

from fastapi import APIRouter, Depends, HTTPException

from .. import schemas
from ..auth import get_current_user
from ..db import get_db_conn
from ..services import advice_service
from ..services.advice_service import AdviceClient, AdviceProviderError, get_advice_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ai", tags=["ai"])

NOT_ENOUGH_DATA = (
    "Not enough data for analysis. Add some transactions to get personalized recommendations."
)
NOT_ENOUGH_HISTORY = (
    "Not enough historical data for accurate forecast. "
    "Add more transactions (at least 10 in the last 3 months)."
)


@router.post("/analyze")
async def api_analyze(
    payload: Optional[schemas.AdviceRequest] = None,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
    client: AdviceClient = Depends(get_advice_client),
) -> Dict[str, Any]:
    """Advice on last month's spending."""
    payload = payload or schemas.AdviceRequest()
    summary = advice_service.build_month_summary(db_conn, user["id"])
    if summary["transaction_count"] == 0:
        return {"advice": NOT_ENOUGH_DATA}
    if not client.configured:
        raise HTTPException(status_code=503, detail="Advice provider is not configured (ADVICE_API_KEY)")

    prompt = advice_service.build_advice_prompt(summary, payload.currency, payload.language)
    try:
        advice = await client.generate(prompt)
    except AdviceProviderError as exc:
        logger.exception("Advice generation failed")
        raise HTTPException(status_code=502, detail=str(exc)) from exc

    return {
        "advice": advice,
        "summary": {
            "total_income": summary["total_income"],
            "total_expense": summary["total_expense"],
            "balance": summary["balance"],
            "top_categories": summary["categories"][:3],
        },
    }


@router.post("/predict")
async def api_predict(
    payload: Optional[schemas.AdviceRequest] = None,
    user: Dict[str, Any] = Depends(get_current_user),
    db_conn: sqlite3.Connection = Depends(get_db_conn),
    client: AdviceClient = Depends(get_advice_client),
) -> Dict[str, Any]:
    """Next-month forecast; the narrative is only filled when a provider is configured."""
    payload = payload or schemas.AdviceRequest()
    forecast = advice_service.build_forecast(db_conn, user["id"])
    if forecast["transaction_count"] < advice_service.MIN_FORECAST_TRANSACTIONS:
        return {"prediction": NOT_ENOUGH_HISTORY, "predictions": None}

    prediction = None
    if client.configured:
        try:
            prompt = advice_service.build_forecast_prompt(forecast, payload.currency, payload.language)
            prediction = await client.generate(prompt)
        except AdviceProviderError:
            logger.exception("Forecast narrative failed; returning figures only")

    predictions = {k: v for k, v in forecast.items() if k not in ("transaction_count", "months")}
    return {"prediction": prediction, "predictions": predictions}
