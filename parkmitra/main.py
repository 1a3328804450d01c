from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from parkmitra.api.routes import admin, bookings, parking_lots, payments
from parkmitra.core.config import JWT_ALGORITHM, JWT_SECRET
from parkmitra.core.exceptions import InvariantViolation, ParkingError
from parkmitra.core.logging_config import get_logger
from parkmitra.core.redis import AvailabilityCache, get_redis_client
from parkmitra.db.session import Database
from parkmitra.services.container import build_services

logger = get_logger()


def create_app(
    db: Database | None = None,
    cache: AvailabilityCache | None = None,
    auth_secret: str | None = None,
    auth_algorithm: str | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        database = db or Database()
        owns_database = not database.is_open
        if owns_database:
            database.open()

        app.state.services = build_services(
            database, cache or AvailabilityCache(get_redis_client())
        )
        logger.info("Parking services ready")
        try:
            yield
        finally:
            if owns_database:
                database.close()

    app = FastAPI(
        title="ParkMitra API",
        version="1.0.0",
        description="Parking slot booking, lifecycle and lot management",
        lifespan=lifespan,
    )
    app.state.auth = {
        "secret": auth_secret or JWT_SECRET,
        "algorithm": auth_algorithm or JWT_ALGORITHM,
    }

    # ⭐ Request Logging Middleware
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        logger.info(f"REQUEST: {request.method} {request.url}")

        try:
            response = await call_next(request)
            logger.info(f"RESPONSE: {response.status_code} {request.url}")
            return response

        except Exception as e:
            logger.error(f"ERROR: {request.url} -> {str(e)}")
            raise e

    @app.exception_handler(ParkingError)
    async def parking_error_handler(request: Request, exc: ParkingError):
        if isinstance(exc, InvariantViolation):
            logger.bind(log_type="ledger").error(f"{request.url} -> {exc.detail} | {exc.context}")
        else:
            logger.warning(f"{exc.code}: {request.method} {request.url} -> {exc.detail}")

        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "error": exc.code, "detail": exc.detail},
        )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(bookings.router)
    app.include_router(parking_lots.router)
    app.include_router(payments.router)
    app.include_router(admin.router)

    @app.get("/", tags=["Root"])
    def root():
        return {"message": "Backend running successfully"}

    return app


app = create_app()
