"""Schemas for the polled third-party feeds."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class CurrencyRate(BaseModel):
    """One entry of the exchange-rate feed, field names as the feed sends them."""

    moneda: str
    nombre: str | None = None
    compra: float | None = None
    venta: float | None = None
    fecha: str | None = None

    model_config = ConfigDict(extra="ignore")


class FeedResponse(BaseModel):
    """Last value a poller holds, with its refresh time and last error."""

    data: Any = None
    updated_at: datetime | None = None
    error: str | None = None
