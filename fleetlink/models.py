from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import relationship

from fleetlink.database import Base


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Vehicle(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    capacity_kg = Column(Float, nullable=False, index=True)
    tyres = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f"Vehicle(id={self.id}, name={self.name!r}, capacity_kg={self.capacity_kg})"


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        Index("ix_bookings_vehicle_window", "vehicle_id", "start_time"),
    )

    id = Column(Integer, primary_key=True)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    customer_id = Column(String, nullable=False)
    from_pincode = Column(String, nullable=False)
    to_pincode = Column(String, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    estimated_ride_duration_hours = Column(Integer, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    vehicle = relationship(Vehicle, lazy="joined")

    def __repr__(self):
        return (f"Booking(id={self.id}, vehicle_id={self.vehicle_id}, "
                f"start_time={self.start_time}, end_time={self.end_time})")
