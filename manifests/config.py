import os


def _int_env(name: str, default: int) -> int:
    raw = str(os.getenv(name, str(default))).strip()
    try:
        return int(raw)
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    raw = str(os.getenv(name, str(default))).strip()
    try:
        return float(raw)
    except ValueError:
        return default


DATABASE_URL = str(os.getenv("FULA_DATABASE_URL", "sqlite:///./data/manifests.db")).strip()
API_PORT = _int_env("FULA_API_PORT", 8002)
BIND_HOST = str(os.getenv("FULA_BIND_HOST", "0.0.0.0")).strip()
BASE_URL = str(os.getenv("FULA_BASE_URL", "http://127.0.0.1:8002")).strip()

# Ledger adapter
SUBMISSION_TIMEOUT_SECONDS = _float_env("FULA_SUBMISSION_TIMEOUT_SECONDS", 30.0)
SCAN_PAGE_SIZE = _int_env("FULA_SCAN_PAGE_SIZE", 1000)

# Identifier bounds
MAX_CID_LENGTH = _int_env("FULA_MAX_CID_LENGTH", 512)
MAX_POOL_ID = 2**32 - 1
MAX_REPLICATION_FACTOR = 2**16 - 1
MAX_CYCLE_COUNT = 2**16 - 1
MIN_ACTIVE_DAYS = -(2**31)
MAX_ACTIVE_DAYS = 2**31 - 1

LOG_LEVEL = str(os.getenv("FULA_LOG_LEVEL", "INFO")).strip()
LOG_FILE = os.getenv("FULA_LOG_FILE") or None
