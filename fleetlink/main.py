import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from fleetlink.config import Settings
from fleetlink.errors import FleetError
from fleetlink.notifications import notify_new_booking
from fleetlink.repository import FleetRepository
from fleetlink.schemas import AvailableVehicleOut, BookingCreate, BookingOut, VehicleCreate, VehicleOut
from fleetlink.services import FleetService

logger = logging.getLogger(__name__)


def get_service(request: Request) -> FleetService:
    return request.app.state.service


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def create_app(settings: Optional[Settings] = None, repository: Optional[FleetRepository] = None) -> FastAPI:
    settings = settings or Settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if repository is None:
        repository = FleetRepository.from_url(settings.DATABASE_URL)
    repository.create_schema()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        repository.dispose()

    app = FastAPI(title="FleetLink", lifespan=lifespan)
    app.state.settings = settings
    app.state.repository = repository
    app.state.service = FleetService(repository)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ================== ERRORS ==================
    @app.exception_handler(FleetError)
    async def fleet_error_handler(request: Request, exc: FleetError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        fields = sorted({
            ".".join(str(part) for part in err["loc"][1:]) or str(err["loc"][0])
            for err in exc.errors()
        })
        return JSONResponse(
            status_code=400,
            content={"detail": f"Missing or malformed fields: {', '.join(fields)}"},
        )

    # ================== API ==================
    @app.get("/api/health")
    def health():
        return {"status": "OK", "message": "FleetLink API is running"}

    @app.post("/api/vehicles", response_model=VehicleOut, status_code=201)
    def add_vehicle(data: VehicleCreate, service: FleetService = Depends(get_service)):
        return service.add_vehicle(data.name, data.capacity_kg, data.tyres)

    @app.get("/api/vehicles", response_model=List[VehicleOut])
    def list_vehicles(service: FleetService = Depends(get_service)):
        return service.list_vehicles()

    @app.get("/api/vehicles/available", response_model=List[AvailableVehicleOut])
    def available_vehicles(
        capacity_required: float = Query(..., alias="capacityRequired"),
        from_pincode: str = Query(..., alias="fromPincode"),
        to_pincode: str = Query(..., alias="toPincode"),
        start_time: str = Query(..., alias="startTime"),
        service: FleetService = Depends(get_service),
    ):
        found = service.find_available(capacity_required, from_pincode, to_pincode, start_time)
        return [
            AvailableVehicleOut(
                **VehicleOut.model_validate(item.vehicle).model_dump(),
                estimated_ride_duration_hours=item.estimated_ride_duration_hours,
            )
            for item in found
        ]

    @app.get("/api/vehicles/{vehicle_id}", response_model=VehicleOut)
    def get_vehicle(vehicle_id: int, service: FleetService = Depends(get_service)):
        return service.get_vehicle(vehicle_id)

    @app.get("/api/vehicles/{vehicle_id}/bookings", response_model=List[BookingOut])
    def vehicle_bookings(vehicle_id: int, service: FleetService = Depends(get_service)):
        return service.bookings_for_vehicle(vehicle_id)

    @app.post("/api/bookings", response_model=BookingOut, status_code=201)
    def book(
        data: BookingCreate,
        background_tasks: BackgroundTasks,
        service: FleetService = Depends(get_service),
        settings: Settings = Depends(get_settings),
    ):
        booking = service.book(
            vehicle_id=data.vehicle_id,
            from_pincode=data.from_pincode,
            to_pincode=data.to_pincode,
            start_time=data.start_time,
            customer_id=data.customer_id,
        )
        background_tasks.add_task(notify_new_booking, settings, booking)
        return booking

    @app.get("/api/bookings", response_model=List[BookingOut])
    def list_bookings(service: FleetService = Depends(get_service)):
        return service.list_bookings()

    return app
