import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from config import LOG_LEVEL
from middleware import TenantMiddleware
from routers import availability, booking, events, experiences, pages, wizard
from services.provider_client import BookingProviderError

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Experience Marketplace",
    description="Multi-tenant experience storefront backed by a booking provider and Firebase Firestore",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"]
)
app.add_middleware(TenantMiddleware)

app.include_router(experiences.router)
app.include_router(availability.router)
app.include_router(booking.router)
app.include_router(wizard.router)
app.include_router(events.router)
app.include_router(pages.router)

app.mount("/static", StaticFiles(directory="static"), name="static")


@app.exception_handler(BookingProviderError)
async def provider_error_handler(request: Request, exc: BookingProviderError):
    logger.error("Booking provider error on %s: %s", request.url.path, exc.message)
    status = exc.status if exc.is_client_error else 502
    return JSONResponse(status_code=status, content={"success": False, "error": exc.message})


@app.get("/api/health")
def health():
    return {"status": "ok", "service": "experience-marketplace"}
