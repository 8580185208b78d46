from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from src.adapters.api.dependencies import get_eta_service
from src.adapters.api.schemas.eta import EtaSchema, NextArrivalsSchema, RouteEtaSchema
from src.app.services.eta_service import EtaService
from src.domain.models import EtaResult, GeoPoint

router = APIRouter(tags=["eta"])


def _eta_fields(eta: EtaResult) -> dict:
    return {
        "vehicle_id": eta.vehicle_id,
        "stop_id": eta.stop_id,
        "stop_name": eta.stop_name,
        "distance_km": eta.distance_km,
        "current_speed": eta.current_speed,
        "eta_minutes": eta.eta_minutes,
        "eta_text": eta.eta_text,
    }


@router.get("/eta", response_model=EtaSchema)
async def eta_to_stop(
    vehicle_id: str,
    stop_id: str,
    service: EtaService = Depends(get_eta_service),
) -> EtaSchema:
    eta = await service.eta_to_stop(vehicle_id=vehicle_id, stop_id=stop_id)
    return EtaSchema(**_eta_fields(eta))


@router.get("/eta/route", response_model=RouteEtaSchema)
async def eta_for_route(
    vehicle_id: str,
    route_id: str,
    lat: float = Query(..., ge=-90.0, le=90.0),
    lon: float = Query(..., ge=-180.0, le=180.0),
    service: EtaService = Depends(get_eta_service),
) -> RouteEtaSchema:
    result = await service.eta_for_route(
        vehicle_id=vehicle_id, route_id=route_id, rider=GeoPoint(lat=lat, lon=lon)
    )
    return RouteEtaSchema(
        **_eta_fields(result.eta),
        nearest_stop=result.nearest_stop,
        distance_to_stop_km=result.distance_to_stop_km,
    )


@router.get("/stops/{stop_id}/next-arrivals", response_model=NextArrivalsSchema)
async def next_arrivals(
    stop_id: str,
    service: EtaService = Depends(get_eta_service),
) -> NextArrivalsSchema:
    result = await service.next_arrivals(stop_id=stop_id)
    return NextArrivalsSchema(
        stop_id=result.stop_id,
        arrivals=[EtaSchema(**_eta_fields(e)) for e in result.arrivals],
        message=result.message,
    )
