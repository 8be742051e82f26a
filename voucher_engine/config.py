import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache

from dotenv import load_dotenv

# Load .env file with explicit UTF-8 encoding
load_dotenv(encoding="utf-8")


DEFAULT_CODE_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _list_env(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    database_url: str = "sqlite:///./voucher_engine.db"

    # claim lifetime once a customer takes a voucher
    claim_expiry_days: int = 30

    cache_default_ttl: int = 3600

    voucher_jwt_secret: str | None = None
    voucher_jwt_algorithm: str = "HS256"
    voucher_short_code_length: int = 8
    voucher_code_alphabet: str = DEFAULT_CODE_ALPHABET

    log_level: str = "INFO"
    cors_origins: list[str] = field(
        default_factory=lambda: [
            "http://localhost:3000",
            "https://localhost:3000",
            "http://127.0.0.1:3000",
            "https://127.0.0.1:3000",
        ]
    )


def load_settings() -> Settings:
    defaults = Settings()
    return Settings(
        database_url=os.getenv("DATABASE_URL") or defaults.database_url,
        claim_expiry_days=_int_env("CLAIM_EXPIRY_DAYS", defaults.claim_expiry_days),
        cache_default_ttl=_int_env("CACHE_DEFAULT_TTL", defaults.cache_default_ttl),
        voucher_jwt_secret=os.getenv("VOUCHER_JWT_SECRET") or None,
        voucher_jwt_algorithm=os.getenv("VOUCHER_JWT_ALGORITHM") or defaults.voucher_jwt_algorithm,
        voucher_short_code_length=_int_env("VOUCHER_SHORT_CODE_LENGTH", defaults.voucher_short_code_length),
        voucher_code_alphabet=os.getenv("VOUCHER_CODE_ALPHABET") or defaults.voucher_code_alphabet,
        log_level=(os.getenv("LOG_LEVEL") or defaults.log_level).upper(),
        cors_origins=_list_env("CORS_ORIGINS", defaults.cors_origins),
    )


@lru_cache
def get_settings() -> Settings:
    return load_settings()


def configure_logging(settings: Settings | None = None) -> None:
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
