from datetime import datetime, timezone
from typing import Annotated, Optional

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


def _as_utc(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


UtcDatetime = Annotated[datetime, PlainSerializer(_as_utc, return_type=str)]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ================== REQUESTS ==================
class VehicleCreate(CamelModel):
    name: str
    capacity_kg: float
    tyres: int


class BookingCreate(CamelModel):
    model_config = ConfigDict(coerce_numbers_to_str=True)

    vehicle_id: int
    from_pincode: str
    to_pincode: str
    start_time: str
    customer_id: str


# ================== RESPONSES ==================
class VehicleOut(CamelModel):
    id: int
    name: str
    capacity_kg: float
    tyres: int
    created_at: UtcDatetime


class AvailableVehicleOut(VehicleOut):
    estimated_ride_duration_hours: int


class BookingOut(CamelModel):
    id: int
    vehicle_id: int
    customer_id: str
    from_pincode: str
    to_pincode: str
    start_time: UtcDatetime
    end_time: UtcDatetime
    estimated_ride_duration_hours: int
    created_at: UtcDatetime
    vehicle: Optional[VehicleOut] = None
