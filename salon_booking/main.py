# salon_booking/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from salon_booking.db import init_db
from salon_booking.exceptions import DomainException
from salon_booking.routers import (
    appointments_routes,
    auth_routes,
    closures_routes,
    establishments_routes,
    professionals_routes,
    queue_routes,
    users_routes,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # reminders are swept by the Celery worker, see salon_booking.tasks
    init_db()
    logger.info("database_ready")
    yield


app = FastAPI(title="Salon Booking Engine", lifespan=lifespan)


@app.exception_handler(DomainException)
async def domain_exception_handler(request: Request, exc: DomainException):
    http_exc = exc.to_http_exception()
    return JSONResponse(status_code=http_exc.status_code, content={"detail": http_exc.detail})


@app.get("/health")
def health_check():
    return {"status": "ok"}


app.include_router(auth_routes.router)
app.include_router(users_routes.router)
app.include_router(establishments_routes.router)
app.include_router(professionals_routes.router)
app.include_router(closures_routes.router)
app.include_router(appointments_routes.router)
app.include_router(queue_routes.router)
