from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..db import get_db
from ..schemas.attendance import Coordinates, LocationCheck
from ..services import attendance_service
from ..services.geolocation import ReverseGeocoder, describe_location, get_geocoder, parse_coordinates
from ..services.time_rules import utcnow


router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.get("")
def list_attendance(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=500),
    employee_id: Optional[str] = None,
    day: Optional[date] = None,
    db: Session = Depends(get_db),
):
    data = attendance_service.list_attendance(db, page=page, limit=limit, employee_id=employee_id, day=day)
    return {"success": True, "data": data}


@router.get("/attempts/{employee_id}")
def remaining_attempts(employee_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": attendance_service.get_remaining_attempts(db, employee_id)}


@router.get("/assigned-location/{employee_id}")
def assigned_location(employee_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": attendance_service.get_assigned_location(db, employee_id)}


@router.post("/verify-location")
def verify_location(payload: LocationCheck, db: Session = Depends(get_db)):
    result = attendance_service.verify_location(
        db,
        employee_id=payload.employee_id,
        latitude=payload.latitude,
        longitude=payload.longitude,
        site_latitude=payload.site.latitude,
        site_longitude=payload.site.longitude,
        radius_m=payload.site.radius_m,
        accuracy_m=payload.accuracy_m,
    )
    return {"success": True, "data": result}


def _location_payload(latitude, longitude, geocoder: ReverseGeocoder) -> dict:
    lat, lng = parse_coordinates(latitude, longitude)
    location = geocoder.lookup(lat, lng)
    return {
        "success": True,
        "coordinates": {"latitude": lat, "longitude": lng},
        "location": {
            "address": (location or {}).get("address", "Unknown Address"),
            "city": (location or {}).get("city", "Unknown City"),
            "state": (location or {}).get("state", "Unknown State"),
        },
        "human_readable_location": describe_location(location, lat, lng),
        "timestamp": utcnow().isoformat() + "Z",
    }


@router.get("/location")
def location_from_query(
    latitude: Optional[str] = None,
    longitude: Optional[str] = None,
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    geocoder: ReverseGeocoder = Depends(get_geocoder),
):
    return _location_payload(latitude or lat, longitude or lng, geocoder)


@router.post("/location")
def location_from_body(payload: Coordinates, geocoder: ReverseGeocoder = Depends(get_geocoder)):
    return _location_payload(payload.latitude, payload.longitude, geocoder)


@router.get("/location/{latitude}/{longitude}")
def location_from_path(latitude: str, longitude: str, geocoder: ReverseGeocoder = Depends(get_geocoder)):
    return _location_payload(latitude, longitude, geocoder)
