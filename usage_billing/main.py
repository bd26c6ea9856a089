# usage_billing/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from usage_billing.api.customers import router as customers_router
from usage_billing.api.invoices import router as invoices_router
from usage_billing.config import settings
from usage_billing.db.engine import get_engine
from usage_billing.db.schema import metadata
from usage_billing.errors import BillingError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    metadata.create_all(get_engine())
    logger.info("Database schema ready")
    yield


app = FastAPI(
    title="Smart Invoice Usage Billing API",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(BillingError)
async def billing_error_handler(_request: Request, exc: BillingError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Request failed: %s", exc)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.payload})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    lines = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        lines.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    if not lines:
        payload = "Invalid request payload"
    elif len(lines) == 1:
        payload = lines[0]
    else:
        payload = lines
    return JSONResponse(status_code=400, content={"error": payload})


@app.exception_handler(Exception)
async def unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error: %s", exc)
    return JSONResponse(status_code=500, content={"error": "Internal Server Error"})


@app.get("/health")
def health_check():
    return {"status": "ok", "message": "Smart Invoice Backend API is running"}


app.include_router(customers_router)
app.include_router(invoices_router)
