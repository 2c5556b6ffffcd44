from __future__ import annotations

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

_REPO_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(_REPO_ROOT / ".env", override=False)

LEDGERDESK_API_URL = os.getenv("LEDGERDESK_API_URL", "http://localhost:8080")
LEDGERDESK_API_TOKEN = os.getenv("LEDGERDESK_API_TOKEN", "")
BACKEND_MODE = os.getenv("BACKEND_MODE", "rest")
HTTP_TIMEOUT_SECONDS = float(os.getenv("HTTP_TIMEOUT_SECONDS", "20"))
TRANSFER_TIMEOUT_SECONDS = float(os.getenv("TRANSFER_TIMEOUT_SECONDS", "300"))
TRANSFER_CHUNK_BYTES = int(os.getenv("TRANSFER_CHUNK_BYTES", str(256 * 1024)))
POLL_INTERVAL_SECONDS = float(os.getenv("POLL_INTERVAL_SECONDS", "1"))
POLL_MAX_ATTEMPTS = int(os.getenv("POLL_MAX_ATTEMPTS", "300"))
POLL_PROGRESS_LOW = int(os.getenv("POLL_PROGRESS_LOW", "40"))
POLL_PROGRESS_HIGH = int(os.getenv("POLL_PROGRESS_HIGH", "95"))
WAIT_FOR_INGESTION = os.getenv("WAIT_FOR_INGESTION", "false").lower() in {"1", "true", "yes"}
UPLOAD_WORKERS = max(1, int(os.getenv("UPLOAD_WORKERS", "1")))
PARTITION_MODE = os.getenv("PARTITION_MODE", "remote")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

_LOGGING_CONFIGURED = False


def configure_logging(level: str | None = None) -> None:
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _LOGGING_CONFIGURED = True
