"""
Tests for the polled sidebar feeds under ``/api/cotizaciones``.

``requests.get`` is replaced with a stub so no test reaches the network.
"""

from __future__ import annotations

import pytest
import requests

from conecta2.config import Settings
from conecta2.services import currency_service
from conecta2.services.currency_service import FeedError, fetch_currency_rates
from conecta2.utils.pollers import PeriodicPoller

BASE = "/api/cotizaciones"

RATES = [
    {"moneda": "USD", "nombre": "Dólar", "compra": 3.71, "venta": 3.75, "fecha": "2024-09-10", "casa": "oficial"},
    {"moneda": "EUR", "nombre": "Euro", "compra": 4.05, "venta": 4.12, "fecha": "2024-09-10"},
]


class FakeResponse:
    def __init__(self, payload, status_code: int = 200) -> None:
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Server Error")

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


@pytest.fixture
def fake_get(monkeypatch):
    """Route ``requests.get`` to a table of canned responses by URL."""
    responses: dict[str, object] = {}
    calls: list[str] = []

    def _get(url, *args, **kwargs):
        calls.append(url)
        outcome = responses[url]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    monkeypatch.setattr(currency_service.requests, "get", _get)
    return responses, calls


class TestFetch:
    def test_parses_rates(self, fake_get):
        responses, _ = fake_get
        responses["http://rates"] = FakeResponse(RATES)

        rates = fetch_currency_rates("http://rates")

        assert [rate["moneda"] for rate in rates] == ["USD", "EUR"]
        assert rates[0] == {"moneda": "USD", "nombre": "Dólar", "compra": 3.71, "venta": 3.75, "fecha": "2024-09-10"}

    @pytest.mark.parametrize(
        "outcome",
        [
            requests.exceptions.ConnectionError("connection refused"),
            FakeResponse({}, status_code=503),
            FakeResponse(ValueError("no json")),
            FakeResponse({"moneda": "USD"}),
        ],
    )
    def test_failures_raise_feed_error(self, fake_get, outcome):
        responses, _ = fake_get
        responses["http://rates"] = outcome

        with pytest.raises(FeedError, match="Error al obtener cotizaciones"):
            fetch_currency_rates("http://rates")


class TestPoller:
    def test_keeps_last_value_after_failure(self):
        outcomes = iter([["primero"], RuntimeError("caído")])

        def _fetch():
            value = next(outcomes)
            if isinstance(value, Exception):
                raise value
            return value

        poller = PeriodicPoller("test", _fetch, interval=60)
        poller.poll_once()
        updated_at = poller.updated_at
        poller.poll_once()

        assert poller.value == ["primero"]
        assert str(poller.error) == "caído"
        assert poller.updated_at == updated_at


class TestRoutes:
    def test_rates_are_fetched_on_first_read(self, api, seed, fake_get):
        responses, calls = fake_get
        responses[Settings().CURRENCY_RATES_URL] = FakeResponse(RATES)

        first = api.get(BASE, headers=seed.users.requester.headers)
        second = api.get(BASE, headers=seed.users.requester.headers)

        assert first.status_code == 200
        assert first.json()["data"][1]["moneda"] == "EUR"
        assert first.json()["error"] is None
        assert first.json()["updated_at"] is not None
        assert second.json() == first.json()
        assert len(calls) == 1

    def test_rates_unavailable(self, api, seed, fake_get):
        responses, _ = fake_get
        responses[Settings().CURRENCY_RATES_URL] = requests.exceptions.Timeout("timed out")

        response = api.get(BASE, headers=seed.users.requester.headers)

        assert response.status_code == 502
        assert response.json()["detail"] == "Error al obtener cotizaciones"

    def test_quotations_not_configured(self, api, seed, monkeypatch):
        monkeypatch.setattr(currency_service, "get_settings", lambda: Settings(QUOTATIONS_WEBHOOK_URL=""))

        response = api.get(f"{BASE}/proveedores", headers=seed.users.requester.headers)

        assert response.status_code == 404
        assert response.json()["detail"] == "Fuente de cotizaciones no configurada"

    def test_quotations_configured(self, api, seed, fake_get, monkeypatch):
        responses, _ = fake_get
        responses["http://hooks/cotizaciones"] = FakeResponse({"items": [{"proveedor": "Reactivos del Sur"}]})
        monkeypatch.setattr(
            currency_service,
            "get_settings",
            lambda: Settings(QUOTATIONS_WEBHOOK_URL="http://hooks/cotizaciones"),
        )

        response = api.get(f"{BASE}/proveedores", headers=seed.users.requester.headers)

        assert response.status_code == 200
        assert response.json()["data"] == {"items": [{"proveedor": "Reactivos del Sur"}]}

    def test_requires_session(self, api):
        assert api.get(BASE).status_code == 401
