import os
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from src.core.exceptions import ConfigError

REQUIRED_KEYS = ("TURNSTILE_SECRET", "TURNSTILE_SITEKEY")


class Settings(BaseModel):
    """Runtime configuration, validated once at startup."""

    backend: Literal["local", "s3"] = "local"
    local_path: Path = Path("./uploads")
    s3_bucket: str = "go-upload"
    s3_prefix: str = "uploads"
    aws_region: str | None = None

    turnstile_secret: str = Field(min_length=1)
    turnstile_sitekey: str = Field(min_length=1)

    upload_timeout: float = Field(default=240.0, ge=0)
    read_timeout: float = Field(default=300.0, gt=0)

    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8080

    log_level: str = "INFO"
    log_dir: Path | None = Path("logs")


def _env(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value


def load_settings(env_file: str | None = None) -> Settings:
    """Build settings from the environment (and a .env file, if present)."""
    if not load_dotenv(env_file):
        logger.info("No .env file found, continuing...")

    missing = [key for key in REQUIRED_KEYS if _env(key) is None]
    if missing:
        msg = f"Missing required config: {', '.join(missing)}"
        raise ConfigError(message=msg, details={"missing": missing})

    if _env("BACKEND") is None:
        logger.info("BACKEND environment variable not set, using local backend")
    if _env("LOCAL_PATH") is None:
        logger.info("LOCAL_PATH environment variable not set, using default: ./uploads")

    raw = {
        "backend": _env("BACKEND"),
        "local_path": _env("LOCAL_PATH"),
        "s3_bucket": _env("S3_BUCKET"),
        "s3_prefix": os.getenv("S3_PREFIX"),
        "aws_region": _env("AWS_REGION"),
        "turnstile_secret": _env("TURNSTILE_SECRET"),
        "turnstile_sitekey": _env("TURNSTILE_SITEKEY"),
        "upload_timeout": _env("UPLOAD_TIMEOUT_SECONDS"),
        "read_timeout": _env("READ_TIMEOUT_SECONDS"),
        "host": _env("HOST"),
        "port": _env("PORT"),
        "log_level": _env("LOG_LEVEL"),
    }
    values = {key: value for key, value in raw.items() if value is not None}

    # An explicitly empty LOG_DIR turns file logging off
    log_dir = os.getenv("LOG_DIR")
    if log_dir is not None:
        values["log_dir"] = log_dir or None

    try:
        settings = Settings.model_validate(values)
    except ValidationError as e:
        msg = f"Invalid configuration: {e}"
        raise ConfigError(message=msg) from e

    logger.info(
        f"Config ready: backend={settings.backend}, "
        f"upload_timeout={settings.upload_timeout}s, read_timeout={settings.read_timeout}s"
    )
    return settings
