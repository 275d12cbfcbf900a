import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(encoding='utf-8')  # do not print secrets

DEFAULT_DATABASE_URL = "sqlite:///./statportal.db"


def _get_deployment_mode() -> str:
    """Get deployment mode from environment."""
    return os.getenv("DEPLOYMENT_MODE", "local").lower()


def _get_database_url() -> str:
    """Get database URL based on deployment mode."""
    mode = _get_deployment_mode()
    if mode == "local":
        local_url = os.getenv("DATABASE_URL_LOCAL")
        if local_url:
            return local_url
        docker_url = os.getenv("DATABASE_URL", "")
        if "postgres:5432" in docker_url:
            return docker_url.replace("postgres:5432", "localhost:5432")
    return os.getenv("DATABASE_URL", "") or DEFAULT_DATABASE_URL


def _read_runtime_yaml() -> dict:
    p = BASE_DIR / "config" / "runtime.yaml"
    if p.exists():
        with p.open("r", encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
            if isinstance(data, dict):
                return data
    return {}


def _int_setting(env_key: str, fallback) -> int:
    raw = os.getenv(env_key)
    if raw is None or raw.strip() == "":
        return int(fallback)
    return int(raw)


def load_settings() -> dict:
    rt = _read_runtime_yaml()

    data_cfg = rt.get("data") or {}
    bulk_cfg = rt.get("bulk_import") or {}
    auth_cfg = rt.get("auth") or {}

    success_policy = (
        os.getenv("BULK_IMPORT_SUCCESS_POLICY")
        or bulk_cfg.get("success_policy")
        or "lenient"
    ).strip().lower()

    settings = {
        # deployment configuration
        "DEPLOYMENT_MODE": _get_deployment_mode(),
        "LOG_LEVEL": (os.getenv("LOG_LEVEL") or rt.get("log_level") or "INFO").upper(),
        "ALLOWED_ORIGINS": os.getenv("ALLOWED_ORIGINS", ""),
        # data rules (env overrides runtime.yaml)
        "MIN_DATA_YEAR": _int_setting("MIN_DATA_YEAR", data_cfg.get("min_year", 2000)),
        "MAX_YEARS_AHEAD": _int_setting("MAX_YEARS_AHEAD", data_cfg.get("max_years_ahead", 5)),
        "BULK_IMPORT_MAX_ROWS": _int_setting("BULK_IMPORT_MAX_ROWS", bulk_cfg.get("max_rows", 5000)),
        "BULK_IMPORT_SUCCESS_POLICY": success_policy,  # lenient | strict
        "JWT_ALGORITHM": os.getenv("JWT_ALGORITHM") or auth_cfg.get("jwt_algorithm", "HS256"),
        # secrets (env ONLY)
        "DATABASE_URL": _get_database_url(),
        "JWT_SECRET_KEY": os.getenv("JWT_SECRET_KEY", ""),
    }
    return settings


settings = load_settings()
