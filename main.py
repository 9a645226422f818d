# main.py

#============================================================#
#                          Taskhub                           #
#============================================================#
# Version     : V1.0.0                                       #
#------------------------------------------------------------#
# Purpose     : REST API over users and tasks that keeps     #
#               task assignment and users' pending task      #
#               lists in sync (SQLite/Postgres powered)      #
#============================================================#

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
import db
from routes import tasks, users
from utils.errors import ApiError
from utils.responses import error_envelope

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("taskhub")


@asynccontextmanager
async def lifespan(app: FastAPI):
    db.init_db()
    logger.info("tables ready, serving under '%s'", config.API_PREFIX or "/")
    yield


app = FastAPI(title="Taskhub API", version="1.0.0", lifespan=lifespan)
app.include_router(users.router, prefix=config.API_PREFIX)
app.include_router(tasks.router, prefix=config.API_PREFIX)


# ---- Error envelopes ----

def _describe(error: str, detail) -> str:
    if config.DEBUG and detail:
        return f"{error}: {detail}"
    return error


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error("%s %s -> %s (%s)", request.method, request.url.path, exc.error, exc.detail)
    else:
        logger.warning("%s %s -> %d %s (%s)", request.method, request.url.path,
                       exc.status_code, exc.error, exc.detail or "")
    return error_envelope(exc.message, _describe(exc.error, exc.detail), exc.status_code)


@app.exception_handler(RequestValidationError)
async def payload_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        where = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{where}: {err.get('msg')}" if where else str(err.get("msg")))
    error = "; ".join(problems) or "Invalid request body"
    logger.warning("%s %s -> 400 %s", request.method, request.url.path, error)
    return error_envelope("Missing or invalid fields", error, 400)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    logger.warning("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.detail)
    return error_envelope(str(exc.detail), str(exc.detail), exc.status_code)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("store failure on %s %s", request.method, request.url.path)
    return error_envelope("Store failure", _describe("Store failure", str(exc)), 500)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception("unexpected failure on %s %s", request.method, request.url.path)
    return error_envelope("Server error", _describe("Server error", str(exc)), 500)


def run_server(host: str = config.HOST, port: int = config.PORT):
    """Launch the API with uvicorn."""
    import uvicorn

    uvicorn.run(app, host=host, port=port, log_level=config.LOG_LEVEL.lower())


if __name__ == "__main__":
    run_server()
