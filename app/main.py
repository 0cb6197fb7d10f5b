# app/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.exceptions import AppError, AuthenticationError
from app.core.limiter import limiter

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Application starting up (env={settings.ENV})")
    yield
    logger.info("Application shutting down")


app = FastAPI(
    title="Event Registration Service",
    version="1.0.0",
    description="""
        **Event Registration & Payment Engine**

        ## Features

        * **Registration**: Multi-attendee registrations with custom questions
        * **Inventory**: Ticket reservation without overselling
        * **Guest checkout**: Short-lived payment tokens for anonymous registrants
        * **Payments**: Stripe payment intents and signed webhook settlement

        ## Authentication

        Registration and checkout accept an optional `Authorization: Bearer <token>`
        header; reading or cancelling a registration requires one.
        """,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "field": exc.field},
        headers=headers,
    )



@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = [str(part) for part in first.get("loc", ()) if part != "body"]
    return JSONResponse(
        status_code=400,
        content={
            "detail": first.get("msg", "Invalid request"),
            "field": ".".join(loc) or None,
        },
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,  # Allow specific origins
    allow_credentials=True,  # Allow cookies and authorization headers
    allow_methods=["*"],  # Allow all methods (GET, POST, etc.)
    allow_headers=["*"],  # Allow all headers
)

app.include_router(api_router, prefix="/api/v1")


@app.get("/")
def read_root():
    return {"status": "Event Registration Service is running"}
