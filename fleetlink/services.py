import logging
from dataclasses import dataclass
from typing import List

from fleetlink.errors import ValidationError
from fleetlink.models import Booking, Vehicle
from fleetlink.repository import FleetRepository, NewBooking, NewVehicle
from fleetlink.rules import estimate_ride_duration, is_positive_number, overlaps, parse_start_time, ride_window

logger = logging.getLogger(__name__)


@dataclass
class AvailableVehicle:
    vehicle: Vehicle
    estimated_ride_duration_hours: int


def _required_text(value, field: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise ValidationError(f"{field} must be a non-empty string")
    return text


class FleetService:
    """Vehicle registration, availability search and booking admission."""

    def __init__(self, repository: FleetRepository):
        self.repository = repository

    def add_vehicle(self, name: str, capacity_kg: float, tyres: int) -> Vehicle:
        return self.repository.add_vehicle(NewVehicle(name=name, capacity_kg=capacity_kg, tyres=tyres))

    def get_vehicle(self, vehicle_id: int) -> Vehicle:
        return self.repository.get_vehicle(vehicle_id)

    def list_vehicles(self) -> List[Vehicle]:
        return self.repository.list_vehicles()

    def list_bookings(self) -> List[Booking]:
        return self.repository.list_bookings()

    def bookings_for_vehicle(self, vehicle_id: int) -> List[Booking]:
        self.repository.get_vehicle(vehicle_id)
        return self.repository.find_bookings_for_vehicle(vehicle_id)

    def find_available(self, capacity_required, from_pincode, to_pincode, start_time) -> List[AvailableVehicle]:
        """Vehicles able to carry ``capacity_required`` and free for the ride.

        The result is a snapshot taken without locks. A vehicle listed here
        can still be lost to a concurrent booking, in which case ``book``
        raises Conflict.
        """
        if not is_positive_number(capacity_required):
            raise ValidationError("capacityRequired must be a positive number")
        start = parse_start_time(start_time)

        duration = estimate_ride_duration(from_pincode, to_pincode)
        start, end = ride_window(start, duration)

        available = []
        for vehicle in self.repository.find_vehicles_with_capacity_at_least(capacity_required):
            bookings = self.repository.find_bookings_for_vehicle(vehicle.id)
            if any(overlaps(b.start_time, b.end_time, start, end) for b in bookings):
                continue
            available.append(AvailableVehicle(vehicle=vehicle, estimated_ride_duration_hours=duration))

        logger.debug("Search capacity>=%s %s-%s: %d vehicle(s) free",
                     capacity_required, start.isoformat(), end.isoformat(), len(available))
        return available

    def book(self, vehicle_id: int, from_pincode, to_pincode, start_time, customer_id) -> Booking:
        customer_id = _required_text(customer_id, "customerId")
        from_pincode = _required_text(from_pincode, "fromPincode")
        to_pincode = _required_text(to_pincode, "toPincode")

        self.repository.get_vehicle(vehicle_id)
        start = parse_start_time(start_time)

        duration = estimate_ride_duration(from_pincode, to_pincode)
        start, end = ride_window(start, duration)

        return self.repository.create_booking(NewBooking(
            vehicle_id=vehicle_id,
            customer_id=customer_id,
            from_pincode=from_pincode,
            to_pincode=to_pincode,
            start_time=start,
            end_time=end,
            estimated_ride_duration_hours=duration,
        ))
