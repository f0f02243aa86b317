import asyncio
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.config import DB_SCHEMA, LOG_LEVEL
from app.database import Base, engine
from app.deps.services import build_services
from app.errors import EngineError
from app.routes import flow_routes, forum_routes, contact_routes, admin_routes

# model modules must be imported before create_all
from app.models import user_model, flow_model, forum_model, contact_model, notification_model  # noqa: F401

# 🔒 Rate limiting setup
from app.limiter import limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("app.http")

app = FastAPI(title="Forum Engine API")

app.state.limiter = limiter
app.state.services = build_services()
app.add_middleware(SlowAPIMiddleware)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Too many requests. Please slow down."}
    )


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# request trace: METHOD path status - ms - identity - IP
@app.middleware("http")
async def trace_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000

    user = getattr(request.state, "user", None)
    identity = f"user:{user.id}" if user is not None else "anonymous"
    ip = request.client.host if request.client else "-"
    line = "%s %s %s - %.1fms - %s - %s"
    args = (request.method, request.url.path, response.status_code, elapsed_ms, identity, ip)

    if response.status_code >= 500:
        logger.error(line, *args)
    elif response.status_code >= 400:
        logger.warning(line, *args)
    else:
        logger.info(line, *args)
    return response


# ✅ Enable CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ✅ Include your routers
app.include_router(flow_routes.router)
app.include_router(forum_routes.router)
app.include_router(contact_routes.router)
app.include_router(admin_routes.router)


# ✅ Run DB init on startup
@app.on_event("startup")
async def on_startup():
    # Tiny retry so a momentary DB disconnect doesn't crash the app.
    for attempt in range(2):
        try:
            async with engine.begin() as conn:
                if DB_SCHEMA:
                    await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{DB_SCHEMA}";'))
                await conn.run_sync(Base.metadata.create_all)
            break  # success
        except Exception as e:
            if attempt == 0:
                logger.warning("[startup] DB init failed, retrying once: %r", e)
                await asyncio.sleep(0.5)
            else:
                # Tables should already exist from previous runs.
                logger.error("[startup] Skipping DB init due to error: %r", e)


@app.on_event("shutdown")
async def on_shutdown():
    # let detached counter/notification work finish before the pool goes away
    await app.state.services.dispatcher.drain()
    await engine.dispose()
