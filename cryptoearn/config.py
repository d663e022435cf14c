import logging
import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional

logger = logging.getLogger(__name__)

ENV_PREFIX = "CRYPTOEARN_"


@dataclass(frozen=True)
class Settings:
    jwt_secret: str = "dev-secret-change-me-in-production"
    jwt_algorithm: str = "HS256"
    token_ttl_seconds: int = 86400
    bcrypt_rounds: int = 10
    max_claim_amount: Decimal = Decimal("100")
    enforce_cooldowns: bool = False
    enforce_method_bounds: bool = False
    min_address_length: int = 10
    settlement_delay_seconds: float = 5.0
    earnings_history_limit: int = 50
    price_update_seconds: float = 30.0
    cors_origins: tuple[str, ...] = ("*",)
    log_requests: bool = True


def _env(name: str) -> Optional[str]:
    raw = os.getenv(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def _is_truthy(v: str) -> bool:
    return v.lower() in {"1", "true", "yes", "y", "on"}


def _parse(name: str, default, cast):
    raw = _env(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except (TypeError, ValueError, InvalidOperation):
        logger.warning("Ignoring malformed %s%s=%r, using %r", ENV_PREFIX, name, raw, default)
        return default


def load_settings() -> Settings:
    """
    Build Settings from CRYPTOEARN_* environment variables.

    Unset or malformed values fall back to the defaults declared on Settings.
    """
    d = Settings()
    origins = _env("CORS_ORIGINS")
    return Settings(
        jwt_secret=_env("JWT_SECRET") or d.jwt_secret,
        jwt_algorithm=_env("JWT_ALGORITHM") or d.jwt_algorithm,
        token_ttl_seconds=_parse("TOKEN_TTL", d.token_ttl_seconds, int),
        bcrypt_rounds=_parse("BCRYPT_ROUNDS", d.bcrypt_rounds, int),
        max_claim_amount=_parse("MAX_CLAIM_AMOUNT", d.max_claim_amount, Decimal),
        enforce_cooldowns=_parse("ENFORCE_COOLDOWNS", d.enforce_cooldowns, _is_truthy),
        enforce_method_bounds=_parse("ENFORCE_METHOD_BOUNDS", d.enforce_method_bounds, _is_truthy),
        min_address_length=_parse("MIN_ADDRESS_LENGTH", d.min_address_length, int),
        settlement_delay_seconds=_parse("SETTLEMENT_DELAY", d.settlement_delay_seconds, float),
        earnings_history_limit=_parse("EARNINGS_LIMIT", d.earnings_history_limit, int),
        price_update_seconds=_parse("PRICE_INTERVAL", d.price_update_seconds, float),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()) if origins else d.cors_origins,
        log_requests=_parse("LOG_REQUESTS", d.log_requests, _is_truthy),
    )
