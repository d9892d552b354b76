"""
Third-party feeds shown in the sidebar: exchange rates and quotations.

Both are plain ``requests.get`` calls refreshed by a ``PeriodicPoller``
every ``POLL_INTERVAL_SECONDS``.  The quotations feed only exists when
``QUOTATIONS_WEBHOOK_URL`` is configured.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

import requests

from conecta2.config import get_settings
from conecta2.schemas.currency import CurrencyRate
from conecta2.utils.pollers import PeriodicPoller

logger = logging.getLogger(__name__)

MSG_RATES_FAILED = "Error al obtener cotizaciones"
MSG_QUOTATIONS_FAILED = "Error al obtener las cotizaciones del proveedor"

FEED_CURRENCY_RATES = "currencyRates"
FEED_QUOTATIONS = "quotations"


class FeedError(Exception):
    """A feed could not be fetched or decoded; the message is user-facing."""


def _get_json(url: str, failure_message: str) -> Any:
    try:
        response = requests.get(url)
        response.raise_for_status()
        return response.json()
    except (requests.exceptions.RequestException, ValueError) as exc:
        logger.error("Error fetching %s: %s", url, exc)
        raise FeedError(failure_message) from exc


def fetch_currency_rates(url: str | None = None) -> list[dict]:
    """GET the exchange-rate feed.

    Returns:
        ``[{moneda, nombre, compra, venta, fecha}, ...]`` in feed order.

    Raises:
        FeedError: Network failure, non-2xx status or a malformed body.
    """
    payload = _get_json(url or get_settings().CURRENCY_RATES_URL, MSG_RATES_FAILED)
    if not isinstance(payload, list):
        raise FeedError(MSG_RATES_FAILED)
    return [CurrencyRate.model_validate(item).model_dump() for item in payload]


def fetch_quotations(url: str | None = None) -> Any:
    target = url or get_settings().QUOTATIONS_WEBHOOK_URL
    if not target:
        raise FeedError("No hay un webhook de cotizaciones configurado")
    return _get_json(target, MSG_QUOTATIONS_FAILED)


@lru_cache
def get_feeds() -> dict[str, PeriodicPoller]:
    """Pollers keyed by feed name; quotations only when a URL is set."""
    settings = get_settings()
    feeds = {
        FEED_CURRENCY_RATES: PeriodicPoller(FEED_CURRENCY_RATES, fetch_currency_rates, settings.POLL_INTERVAL_SECONDS),
    }
    if settings.QUOTATIONS_WEBHOOK_URL:
        feeds[FEED_QUOTATIONS] = PeriodicPoller(FEED_QUOTATIONS, fetch_quotations, settings.POLL_INTERVAL_SECONDS)
    return feeds


def start_feeds() -> None:
    for poller in get_feeds().values():
        poller.start()


def stop_feeds() -> None:
    for poller in get_feeds().values():
        poller.stop()
