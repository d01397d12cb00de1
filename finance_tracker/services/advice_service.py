"""
Financial advice and next-month forecast.

Responsibilities:
- Summarize the last month (totals and expense share per category).
- Forecast next month from the last three months plus active recurring series.
- Format the advisor prompts and send them to an optional text provider via httpx.

Environment variables used (see core.config):
- ADVICE_API_KEY: provider key; without it no narrative text is produced
- ADVICE_API_URL: endpoint template, `{model}` is substituted
- ADVICE_MODEL: model name
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import date
from typing import Any, Dict, List, Optional

import httpx
from dateutil.relativedelta import relativedelta

from ..core import config
from . import statistics_service
from .statistics_service import round_half_up

logger = logging.getLogger(__name__)

MIN_FORECAST_TRANSACTIONS = 10

CURRENCY_LABELS = {
    "USD": {"en": "USD", "ru": "долл.", "uk": "дол."},
    "EUR": {"en": "EUR", "ru": "евро", "uk": "євро"},
    "UAH": {"en": "UAH", "ru": "грн.", "uk": "грн."},
}

LANGUAGE_NAMES = {"en": "English", "ru": "Russian", "uk": "Ukrainian"}


class AdviceProviderError(RuntimeError):
    """The text provider could not be reached or returned an unusable answer."""


def currency_label(currency: str, language: str = "en") -> str:
    """Currency name as written in `language`; unknown codes are returned as given."""
    return CURRENCY_LABELS.get((currency or "").upper(), {}).get(language, currency)


def _answer_in(language: str) -> str:
    return f"Answer in {LANGUAGE_NAMES.get(language, LANGUAGE_NAMES['en'])}."


# --------------- Figures ---------------

def build_month_summary(db_conn: sqlite3.Connection, user_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    today = today or date.today()
    since = today - relativedelta(months=1)
    totals = statistics_service.get_totals(db_conn, user_id, since)
    by_category = statistics_service.get_expenses_by_category(db_conn, user_id, since)
    expense = totals["expense"]
    categories = [
        {
            "category": c["category"],
            "amount": round_half_up(c["amount"]),
            "percentage": round_half_up(c["amount"] / expense * 100) if expense else 0,
        }
        for c in by_category
    ]
    return {
        "transaction_count": totals["count"],
        "total_income": round_half_up(totals["income"]),
        "total_expense": round_half_up(expense),
        "balance": round_half_up(totals["income"] - expense),
        "categories": categories,
    }


def build_forecast(db_conn: sqlite3.Connection, user_id: int, today: Optional[date] = None) -> Dict[str, Any]:
    """Average of the months with data in the last three months, plus active recurring amounts."""
    today = today or date.today()
    since = today - relativedelta(months=3)

    totals = statistics_service.get_totals(db_conn, user_id, since)
    monthly = statistics_service.get_monthly_totals(db_conn, user_id, since)
    months = max(len(monthly), 1)

    avg_income = sum(m["income"] for m in monthly.values()) / months
    avg_expense = sum(m["expense"] for m in monthly.values()) / months
    by_category = statistics_service.get_expenses_by_category(db_conn, user_id, since)

    rec = db_conn.execute(
        """
        SELECT COALESCE(SUM(CASE WHEN type = 'income' THEN amount ELSE 0 END), 0) AS income,
               COALESCE(SUM(CASE WHEN type = 'expense' THEN amount ELSE 0 END), 0) AS expense
        FROM recurring_transactions
        WHERE user_id = ? AND is_active = 1
        """,
        (user_id,),
    ).fetchone()
    recurring_income = float(rec["income"])
    recurring_expense = float(rec["expense"])

    expected_income = round_half_up(avg_income + recurring_income)
    expected_expense = round_half_up(avg_expense + recurring_expense)
    return {
        "transaction_count": totals["count"],
        "months": len(monthly),
        "average_income": round_half_up(avg_income),
        "average_expense": round_half_up(avg_expense),
        "expected_income": expected_income,
        "expected_expense": expected_expense,
        "expected_balance": expected_income - expected_expense,
        "category_predictions": [
            {"category": c["category"], "amount": round_half_up(c["amount"] / months)} for c in by_category
        ],
        "recurring_expenses": round_half_up(recurring_expense),
        "recurring_income": round_half_up(recurring_income),
    }


# --------------- Prompts ---------------

def _category_lines(rows: List[Dict[str, Any]], cur: str, with_share: bool) -> str:
    if with_share:
        return "\n".join(f"- {r['category']}: {r['amount']} {cur} ({r['percentage']}%)" for r in rows)
    return "\n".join(f"- {r['category']}: {r['amount']} {cur}" for r in rows)


def build_advice_prompt(summary: Dict[str, Any], currency: str = "USD", language: str = "en") -> str:
    cur = currency_label(currency, language)
    return (
        "You are a financial advisor. Analyze the user's financial data for the last month "
        "and give brief personalized recommendations.\n\n"
        "Data:\n"
        f"- Total income: {summary['total_income']} {cur}\n"
        f"- Total expenses: {summary['total_expense']} {cur}\n"
        f"- Balance: {summary['balance']} {cur}\n\n"
        "Expenses by category:\n"
        f"{_category_lines(summary['categories'], cur, with_share=True)}\n\n"
        "Give 3-4 specific tips for budget optimization. Be brief, friendly, and constructive. "
        "Compare spending with typical norms (e.g., food typically takes 25-30% of budget). "
        + _answer_in(language)
    )


def build_forecast_prompt(forecast: Dict[str, Any], currency: str = "USD", language: str = "en") -> str:
    cur = currency_label(currency, language)
    return (
        "Based on historical data, make a forecast of the user's expenses for the next month.\n\n"
        f"Data for the last {forecast['months']} months:\n"
        f"- Average income: {forecast['average_income']} {cur}\n"
        f"- Average expenses: {forecast['average_expense']} {cur}\n\n"
        "Average expenses by category:\n"
        f"{_category_lines(forecast['category_predictions'], cur, with_share=False)}\n\n"
        "Recurring payments for next month:\n"
        f"- Expenses: {forecast['recurring_expenses']} {cur}\n"
        f"- Income: {forecast['recurring_income']} {cur}\n\n"
        "Make a brief forecast for next month taking into account trends and recurring payments. "
        "Give specific numbers and budget planning advice. "
        + _answer_in(language)
    )


# --------------- Provider ---------------

class AdviceClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        self.api_key = config.ADVICE_API_KEY if api_key is None else api_key
        self.api_url = api_url or config.ADVICE_API_URL
        self.model = model or config.ADVICE_MODEL
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def generate(self, prompt: str) -> str:
        if not self.configured:
            raise AdviceProviderError("Advice provider is not configured")
        url = self.api_url.format(model=self.model)
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        logger.info("Requesting advice text from model %s", self.model)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(url, params={"key": self.api_key}, json=payload)
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise AdviceProviderError(f"Advice provider request failed: {exc}") from exc

        try:
            return data["candidates"][0]["content"]["parts"][0]["text"].strip()
        except (KeyError, IndexError, TypeError) as exc:
            raise AdviceProviderError("Advice provider returned no text") from exc


def get_advice_client() -> AdviceClient:
    """FastAPI dependency; overridden in tests."""
    return AdviceClient()
