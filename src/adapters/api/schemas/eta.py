from __future__ import annotations

from pydantic import BaseModel


class EtaSchema(BaseModel):
    vehicle_id: str
    stop_id: str
    stop_name: str
    distance_km: float
    current_speed: float
    eta_minutes: int
    eta_text: str


class RouteEtaSchema(EtaSchema):
    nearest_stop: str
    distance_to_stop_km: float


class NextArrivalsSchema(BaseModel):
    stop_id: str
    arrivals: list[EtaSchema] = []
    message: str | None = None
