"""
Sidebar feeds router: exchange rates and supplier quotations.

Mounts under ``/api/cotizaciones`` (prefix set in ``main.py``).  Values
come from the background pollers; a feed that has never been fetched is
fetched on the first request.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from conecta2.schemas.currency import FeedResponse
from conecta2.services import currency_service
from conecta2.services.auth_service import get_current_session
from conecta2.utils.pollers import PeriodicPoller
from conecta2.services.session_gate import CurrentSession

router = APIRouter(tags=["Cotizaciones"])

Session = Annotated[CurrentSession, Depends(get_current_session)]


def _read_feed(name: str) -> FeedResponse:
    poller: PeriodicPoller | None = currency_service.get_feeds().get(name)
    if poller is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Fuente de cotizaciones no configurada")
    if poller.updated_at is None:
        poller.poll_once()
    error = str(poller.error) if poller.error else None
    if poller.value is None and error:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error)
    return FeedResponse(data=poller.value, updated_at=poller.updated_at, error=error)


@router.get(
    "",
    response_model=FeedResponse,
    summary="Tipos de cambio",
    description="Compra y venta por moneda, refrescadas cada 5 minutos.",
    responses={502: {"description": "Error al obtener cotizaciones."}},
)
def currency_rates(session: Session) -> FeedResponse:
    return _read_feed(currency_service.FEED_CURRENCY_RATES)


@router.get(
    "/proveedores",
    response_model=FeedResponse,
    summary="Cotizaciones del webhook",
    responses={404: {"description": "Webhook no configurado."}},
)
def quotations(session: Session) -> FeedResponse:
    return _read_feed(currency_service.FEED_QUOTATIONS)
