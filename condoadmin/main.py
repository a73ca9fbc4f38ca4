import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load env from condoadmin/.env
backend_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(backend_dir, ".env"))

# Import after dotenv is loaded
from condoadmin.core.config import settings, validate_config  # noqa: E402
from condoadmin.core.logging import configure_logging  # noqa: E402
from condoadmin.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from condoadmin.core.validation import validate_env  # noqa: E402
from condoadmin.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    unhandled_exception_handler,
)
from condoadmin.api import admin_subscriptions, health, plans, subscriptions, webhooks  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("condoadmin")
    logger.info("Starting condoadmin backend...")
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        logging.getLogger("condoadmin").info("Stopping condoadmin backend...")


app = FastAPI(title="condoadmin - Billing backend", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(HTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# CORS (adjust origins in production)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.root_router, tags=["health"])
app.include_router(plans.router)
app.include_router(subscriptions.router)
app.include_router(admin_subscriptions.router)
app.include_router(webhooks.router)
