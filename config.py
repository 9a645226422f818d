# config.py

#============================================================#
#                          Taskhub                           #
#============================================================#
# Version     : V1.0.0                                       #
#------------------------------------------------------------#
# Purpose     : Environment driven settings for the users /  #
#               tasks REST service (SQLite/Postgres powered) #
#============================================================#

import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


DATABASE_URL = os.getenv("DATABASE_URL") or "sqlite:///taskhub.db"

# e.g. "/api" to serve /api/users and /api/tasks
API_PREFIX = os.getenv("API_PREFIX", "").rstrip("/")

TASK_DEFAULT_LIMIT = int(os.getenv("TASK_DEFAULT_LIMIT", "100"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = _env_bool("DEBUG")

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "3000"))
