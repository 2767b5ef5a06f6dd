"""
FastAPI route: nearest safety stations.

    GET /stations/nearest?latitude=37.7749&longitude=-122.4194&k=2

Returns the K closest stations from the loaded catalogue, nearest first,
each with a directions link from the caller's position.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional, Sequence

from fastapi import APIRouter, Depends, Query

from backend.app.api.schemas import NearestStationsResponse, RankedStationOut
from backend.app.core.config import settings
from backend.app.spatial.distance import Coordinate
from backend.app.spatial.stations import Station, load_stations, nearest

router = APIRouter(prefix="/stations", tags=["stations"])


@lru_cache()
def get_stations() -> Sequence[Station]:
    """Station catalogue, loaded once per process."""
    return load_stations(settings.STATIONS_FILE)


@router.get(
    "/nearest",
    response_model=NearestStationsResponse,
    summary="Nearest stations to a position",
)
async def nearest_stations(
    latitude: float = Query(..., ge=-90, le=90, examples=[37.7749]),
    longitude: float = Query(..., ge=-180, le=180, examples=[-122.4194]),
    k: Optional[int] = Query(None, ge=1, le=50, description="How many stations"),
    stations: Sequence[Station] = Depends(get_stations),
):
    origin = Coordinate(latitude, longitude)
    ranked = nearest(origin, stations, k or settings.NEAREST_STATION_COUNT)
    return NearestStationsResponse(
        latitude=latitude,
        longitude=longitude,
        count=len(ranked),
        stations=[RankedStationOut(**r.to_dict()) for r in ranked],
    )
