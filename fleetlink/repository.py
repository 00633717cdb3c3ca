import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from fleetlink.database import Base, create_db_engine, create_session_factory
from fleetlink.errors import Conflict, NotFound, StorageError, ValidationError
from fleetlink.models import Booking, Vehicle
from fleetlink.rules import is_positive_number, overlaps

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewVehicle:
    name: str
    capacity_kg: float
    tyres: int


@dataclass(frozen=True)
class NewBooking:
    vehicle_id: int
    customer_id: str
    from_pincode: str
    to_pincode: str
    start_time: datetime
    end_time: datetime
    estimated_ride_duration_hours: int


def validate_new_vehicle(new: NewVehicle) -> NewVehicle:
    name = new.name.strip() if isinstance(new.name, str) else ""
    if not name:
        raise ValidationError("name must be a non-empty string")
    if not is_positive_number(new.capacity_kg):
        raise ValidationError("capacityKg must be a positive number")
    if isinstance(new.tyres, bool) or not isinstance(new.tyres, int) or new.tyres < 2:
        raise ValidationError("tyres must be a number greater than or equal to 2")
    return NewVehicle(name=name, capacity_kg=float(new.capacity_kg), tyres=new.tyres)


class FleetRepository:
    """Vehicle and booking storage on top of a SQLAlchemy engine.

    Booking admission for a vehicle is serialized by a per-vehicle lock held
    for the whole read-check-insert transaction. Inside the transaction the
    vehicle row is also selected FOR UPDATE so that several processes sharing
    a database which supports row locks serialize the same way. Attempts on
    different vehicles never wait on each other.
    """

    def __init__(self, engine):
        self.engine = engine
        self.SessionLocal = create_session_factory(engine)
        self._locks = {}
        self._locks_guard = threading.Lock()

    @classmethod
    def from_url(cls, database_url: str) -> "FleetRepository":
        return cls(create_db_engine(database_url))

    def create_schema(self):
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Could not create schema: {e}") from e

    def dispose(self):
        self.engine.dispose()

    @contextmanager
    def session(self):
        db = self.SessionLocal()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("Storage failure")
            raise StorageError("Storage failure") from e
        finally:
            db.close()

    @contextmanager
    def vehicle_lock(self, vehicle_id: int):
        with self._locks_guard:
            lock = self._locks.setdefault(vehicle_id, threading.Lock())
        with lock:
            yield

    # ================== VEHICLES ==================
    def add_vehicle(self, new: NewVehicle) -> Vehicle:
        new = validate_new_vehicle(new)
        with self.session() as db:
            vehicle = Vehicle(name=new.name, capacity_kg=new.capacity_kg, tyres=new.tyres)
            db.add(vehicle)
            db.commit()
            db.refresh(vehicle)
        logger.info("Registered vehicle %s (%s, %.1f kg)", vehicle.id, vehicle.name, vehicle.capacity_kg)
        return vehicle

    def get_vehicle(self, vehicle_id: int) -> Vehicle:
        with self.session() as db:
            vehicle = db.get(Vehicle, vehicle_id)
        if vehicle is None:
            raise NotFound("Vehicle not found")
        return vehicle

    def list_vehicles(self):
        with self.session() as db:
            return list(db.scalars(select(Vehicle).order_by(Vehicle.id)))

    def find_vehicles_with_capacity_at_least(self, capacity: float):
        with self.session() as db:
            return list(db.scalars(
                select(Vehicle)
                .where(Vehicle.capacity_kg >= capacity)
                .order_by(Vehicle.id)
            ))

    # ================== BOOKINGS ==================
    def find_bookings_for_vehicle(self, vehicle_id: int):
        with self.session() as db:
            return self._bookings_for_vehicle(db, vehicle_id)

    def list_bookings(self):
        with self.session() as db:
            return list(db.scalars(select(Booking).order_by(Booking.id)).unique())

    def create_booking(self, new: NewBooking) -> Booking:
        """Insert the booking unless it overlaps one of the vehicle's bookings."""
        # vehicles are never deleted, so checking first keeps one lock per real vehicle
        self.get_vehicle(new.vehicle_id)
        with self.vehicle_lock(new.vehicle_id), self.session() as db:
            vehicle = db.scalars(
                select(Vehicle).where(Vehicle.id == new.vehicle_id).with_for_update()
            ).first()
            if vehicle is None:
                raise NotFound("Vehicle not found")

            for existing in self._bookings_for_vehicle(db, new.vehicle_id):
                if overlaps(existing.start_time, existing.end_time, new.start_time, new.end_time):
                    db.rollback()
                    logger.info("Rejected booking for vehicle %s at %s: overlaps booking %s",
                                new.vehicle_id, new.start_time.isoformat(), existing.id)
                    raise Conflict("Vehicle is already booked for an overlapping time slot")

            booking = Booking(
                vehicle=vehicle,
                customer_id=new.customer_id,
                from_pincode=new.from_pincode,
                to_pincode=new.to_pincode,
                start_time=new.start_time,
                end_time=new.end_time,
                estimated_ride_duration_hours=new.estimated_ride_duration_hours,
            )
            db.add(booking)
            db.commit()
            db.refresh(booking)
        logger.info("Committed booking %s for vehicle %s (%s - %s)",
                    booking.id, booking.vehicle_id, booking.start_time, booking.end_time)
        return booking

    @staticmethod
    def _bookings_for_vehicle(db, vehicle_id):
        return list(db.scalars(
            select(Booking)
            .where(Booking.vehicle_id == vehicle_id)
            .order_by(Booking.start_time, Booking.id)
        ).unique())
