import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qsl

from flask import Request

INIT_DATA_HEADER = "X-Telegram-Init-Data"

MISSING_INIT_DATA = "missing_init_data"
MISSING_HASH = "missing_hash"
INVALID_HASH = "invalid_hash"
EXPIRED_INIT_DATA = "expired_init_data"


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    reason: Optional[str] = None
    user: Optional[dict] = None
    data: dict[str, str] = field(default_factory=dict)


def build_data_check_string(pairs: dict[str, str]) -> str:
    return "\n".join(f"{k}={v}" for k, v in sorted(pairs.items()))


def calculate_hash(data_check_string: str, bot_token: str) -> str:
    # Telegram signs with the literal "WebAppData" as key and the token as message.
    secret = hmac.new(b"WebAppData", bot_token.encode("utf-8"), hashlib.sha256).digest()
    return hmac.new(secret, data_check_string.encode("utf-8"), hashlib.sha256).hexdigest()


def _parse_user(user_raw: Optional[str]) -> Optional[dict]:
    if not user_raw:
        return None
    try:
        user = json.loads(user_raw)
    except json.JSONDecodeError:
        return None
    return user if isinstance(user, dict) else None


def validate_init_data(
    init_data: str,
    bot_token: str,
    max_age_seconds: int = 0,
    now: Optional[int] = None,
) -> ValidationResult:
    """Check a Mini App launch payload signed by Telegram for this bot.

    Invalid input is reported through ``ValidationResult.reason`` and never raised.
    ``max_age_seconds`` of 0 turns the ``auth_date`` freshness check off.
    """
    if not init_data or not bot_token:
        return ValidationResult(False, MISSING_INIT_DATA)
    pairs = dict(parse_qsl(init_data, keep_blank_values=True))
    provided_hash = pairs.pop("hash", None)
    if not provided_hash:
        return ValidationResult(False, MISSING_HASH)

    calculated_hash = calculate_hash(build_data_check_string(pairs), bot_token)
    if not hmac.compare_digest(calculated_hash.encode("ascii"), provided_hash.encode("utf-8")):
        return ValidationResult(False, INVALID_HASH)

    auth_date_raw = pairs.get("auth_date", "")
    if max_age_seconds and max_age_seconds > 0 and auth_date_raw.isdigit():
        current = int(time.time()) if now is None else int(now)
        if current - int(auth_date_raw) > max_age_seconds:
            return ValidationResult(False, EXPIRED_INIT_DATA)

    return ValidationResult(True, user=_parse_user(pairs.get("user")), data=pairs)


def extract_init_data(request: Request) -> str:
    init_data = request.headers.get(INIT_DATA_HEADER, "")
    if init_data:
        return init_data
    body = request.get_json(silent=True)
    if isinstance(body, dict) and isinstance(body.get("initData"), str):
        return body["initData"]
    return request.args.get("initData", "")


def authenticate_request(request: Request, bot_token: str, max_age_seconds: int) -> ValidationResult:
    result = validate_init_data(extract_init_data(request), bot_token, max_age_seconds)
    if not result.valid:
        logging.info("initData rejected: %s", result.reason)
    return result
