import logging
import sys
import uuid
from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from bookmarket.routers import (
    auth,
    listings,
    cart,
    orders,
    messages,
    users,
)
from bookmarket.config import settings
from bookmarket.services.uploads import UPLOAD_URL_PREFIX, ensure_upload_dir
from bookmarket.utils.logger import logger

# Global logging configuration
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s :: %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
    force=True,
)

app = FastAPI(title="Bookmarket API", version="1.0.0")

origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Request-ID"],
    max_age=3600,
)


# Request logging middleware with request ID
@app.middleware("http")
async def request_logger(request: Request, call_next):
    rid = uuid.uuid4().hex[:8]
    request.state.rid = rid
    logging.info("→ %s %s rid=%s", request.method, request.url.path, rid)
    try:
        resp = await call_next(request)
        logging.info("← %s status=%s rid=%s", request.url.path, resp.status_code, rid)
        resp.headers["X-Request-ID"] = rid
        return resp
    except Exception as e:
        logging.exception("Unhandled error rid=%s: %s", rid, str(e))
        error_resp = JSONResponse(
            {"error": "internal_error", "rid": rid, "message": "Internal server error"},
            status_code=500
        )
        error_resp.headers["X-Request-ID"] = rid
        return error_resp


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    rid = getattr(request.state, "rid", "unknown")
    logger.info(f"Validation failed on {request.url.path} rid={rid}: {len(exc.errors())} error(s)")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


app.include_router(auth.router)
app.include_router(listings.router)
app.include_router(listings.seller_router)
app.include_router(cart.router)
app.include_router(orders.router)
app.include_router(messages.router)
app.include_router(users.router)

app.mount(UPLOAD_URL_PREFIX, StaticFiles(directory=str(ensure_upload_dir())), name="uploads")


@app.on_event("startup")
async def startup_event():
    logger.info("Bookmarket API starting up...")
    logger.info(f"Record store backend: {settings.STORAGE_BACKEND}")

    if settings.SEED_DEMO_DATA:
        from bookmarket.seed_data import seed_data
        from bookmarket.services.database import db
        seed_data(db)


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/")
async def root():
    return {
        "message": "Bookmarket API",
        "version": "1.0.0",
        "docs": "/docs"
    }
