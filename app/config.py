import os
from pathlib import Path

from dotenv import load_dotenv

# Explicitly load .env from project root (parent of app/)
ENV_PATH = Path(__file__).parent.parent / ".env"
load_dotenv(ENV_PATH)


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


ENVIRONMENT = os.getenv("ENVIRONMENT", "dev")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Short links are built as http://HOST:PORT/<shortcode>
HOST = os.getenv("HOST", "localhost")
PORT = int(os.getenv("PORT", 3000))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", f"http://{HOST}:{PORT}")

DEFAULT_VALIDITY_MINUTES = int(os.getenv("DEFAULT_VALIDITY_MINUTES", 30))
SHORTCODE_LENGTH = int(os.getenv("SHORTCODE_LENGTH", 5))
MAX_SHORTCODE_ATTEMPTS = int(os.getenv("MAX_SHORTCODE_ATTEMPTS", 32))

# 0 disables the background sweep; expired links are then only dropped on access
SWEEP_INTERVAL_SECONDS = float(os.getenv("SWEEP_INTERVAL_SECONDS", 0))

# External collaborators. An empty LOG_SERVICE_URL keeps log events local.
LOG_SERVICE_URL = os.getenv("LOG_SERVICE_URL", "")
AUTH_SERVICE_URL = os.getenv("AUTH_SERVICE_URL", "http://20.244.56.144/evaluation-service/auth")
EXTERNAL_TIMEOUT_SECONDS = float(os.getenv("EXTERNAL_TIMEOUT_SECONDS", 5))

REQUIRE_AUTH = _flag("REQUIRE_AUTH")
