import os
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import Response

from torrlink import config, instrumentation, logging, middleware
from torrlink.api import playback
from torrlink.database import db

logging.init()
instrumentation.init()

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    log.info("starting", version=config.VERSION, env=config.ENV)
    await db.ping()
    yield
    log.info("shutting down")
    if "PROMETHEUS_MULTIPROC_DIR" in os.environ:
        instrumentation.shutdown()


app = FastAPI(title=config.APP_NAME, version=config.VERSION, lifespan=lifespan)

# XXX These are executed in reverse order
app.add_middleware(middleware.Metrics)
app.add_middleware(middleware.RequestLogger)
app.add_middleware(middleware.RequestID)

app.add_route("/metrics", instrumentation.metrics_handler)


# handle CORS preflight requests
@app.options("/{rest_of_path:path}")
async def preflight_handler() -> Response:
    return Response(
        status_code=200,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
            "Access-Control-Allow-Headers": "Authorization, Content-Type",
        },
    )


# set CORS headers
@app.middleware("http")
async def add_CORS_header(request: Request, call_next: Any):
    response = await call_next(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "POST, GET, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
    return response


app.include_router(playback.router)
