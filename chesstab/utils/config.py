# ==============================================================================
# config.py  –  Environment-driven settings for chesstab
#
# Centralizes:
#   • .env loading (process environment wins over the file)
#   • Callback service endpoint, pacing and batch limits
#   • Table store URL (explicit, AWS Secrets Manager, or local SQLite)
# ==============================================================================

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import boto3
from botocore.exceptions import ClientError
from dotenv import load_dotenv

ROOT_ENV = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(dotenv_path=ROOT_ENV, override=False)  # env values override file

DEFAULT_BATCH_SIZE = 5
MAX_BATCH_SIZE = 20
_REGION: str = os.getenv("AWS_DEFAULT_REGION", "us-east-2")


# ------------------------------------------------------------------------------
# Internal helpers
# ------------------------------------------------------------------------------


def _bool_env(var_name: str, default: str = "false") -> bool:
    """Convert TRUE / true / 1 style env vars to bool."""
    return os.getenv(var_name, default).strip().lower() in {"1", "true", "yes"}


def _float_env(var_name: str, default: float) -> float:
    try:
        return float(os.getenv(var_name, default))
    except (TypeError, ValueError):
        return default


# ------------------------------------------------------------------------------
# Settings
# ------------------------------------------------------------------------------


@dataclass(frozen=True)
class Settings:
    callback_root: str
    user_agent: str
    timeout: float
    rate_limit_backoff: float
    batch_pause: float
    timezone: str
    headers_file: Optional[str]


def load_settings() -> Settings:
    """Snapshot the current environment into a `Settings` object."""
    return Settings(
        callback_root=os.getenv(
            "CALLBACK_ROOT", "https://www.chess.com/callback/live/game"
        ).rstrip("/"),
        user_agent=os.getenv("CALLBACK_USER_AGENT", "chesstab/0.1 (+callback enrichment)"),
        timeout=_float_env("CALLBACK_TIMEOUT", 30.0),
        rate_limit_backoff=_float_env("RATE_LIMIT_BACKOFF", 2.0),
        batch_pause=_float_env("BATCH_PAUSE", 1.0),
        timezone=os.getenv("CHESSTAB_TIMEZONE", "UTC"),
        headers_file=os.getenv("HEADERS_FILE") or None,
    )


# ------------------------------------------------------------------------------
# Table store credentials
# ------------------------------------------------------------------------------


def load_db_credentials(
    secret_name: str,
    region_name: str = _REGION,
) -> Dict[str, str]:
    """
    Fetch Postgres credentials JSON from AWS Secrets Manager.

    Notes
    -----
    • If running in Docker Compose (*RUNNING_IN_DOCKER=true*),
      override ``PGHOST`` with ``db`` to point at the Postgres service.
    """
    client = boto3.session.Session().client("secretsmanager", region_name=region_name)

    try:
        response = client.get_secret_value(SecretId=secret_name)
        creds: Dict[str, str] = json.loads(response["SecretString"])
    except ClientError as exc:
        raise RuntimeError(f"Failed to load secret `{secret_name}`") from exc

    if _bool_env("RUNNING_IN_DOCKER"):
        creds["PGHOST"] = "db"

    return creds


def get_database_url(creds: Optional[Dict[str, str]] = None) -> str:
    """
    Resolve the SQLAlchemy URL for the game table.

    Order: explicit credentials → ``DATABASE_URL`` → secret named by
    ``DB_SECRET_NAME`` → local ``sqlite:///chesstab.db``.
    """
    if creds is None:
        explicit = os.getenv("DATABASE_URL")
        if explicit:
            return explicit
        secret_name = os.getenv("DB_SECRET_NAME")
        if not secret_name:
            return "sqlite:///chesstab.db"
        creds = load_db_credentials(secret_name)

    return (
        "postgresql+psycopg2://{PGUSER}:{PGPASSWORD}" "@{PGHOST}:{PGPORT}/{PGDATABASE}"
    ).format(
        PGUSER=creds["PGUSER"],
        PGPASSWORD=creds["PGPASSWORD"],  # pragma: allowlist secret
        PGHOST=creds.get("PGHOST", "localhost"),
        PGPORT=creds.get("PGPORT", "5432"),
        PGDATABASE=creds["PGDATABASE"],
    )
