from __future__ import annotations
import os


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw.strip())
    except ValueError:
        return default


DEFAULT_THRESHOLDS: dict[str, int] = {
    "low_threshold": 10,
    "moderate_threshold": 16,
    "high_threshold": 19,
}
THRESHOLD_MIN: int = 1
THRESHOLD_MAX: int = 100

DEFAULT_SELECTION_MODE: str = "single"

BRANCH_REQUIRED_ROLES: tuple[str, ...] = ("compliance",)
ADMIN_ROLES: tuple[str, ...] = ("admin",)
HEAD_OFFICE_BRANCH_ID: int = 1

SUBJECT_NAME_MAX: int = 255

AUDIT_EXPORT_ENABLED: bool = True
REST_TIMEOUT_SEC: float = 10.0

# // env overrides for staging/ops
AUDIT_EXPORT_ENABLED = _env_bool("AUDIT_EXPORT_ENABLED", AUDIT_EXPORT_ENABLED)
REST_TIMEOUT_SEC = _env_float("REST_TIMEOUT_SEC", REST_TIMEOUT_SEC)
THRESHOLD_MAX = _env_int("THRESHOLD_MAX", THRESHOLD_MAX)
HEAD_OFFICE_BRANCH_ID = _env_int("HEAD_OFFICE_BRANCH_ID", HEAD_OFFICE_BRANCH_ID)
