"""Digital signatures for QR payloads.

A signature is ``"<digest>.<unix-seconds>"``. Two digest schemes exist:

* ``legacy`` - a 32-bit rolling hash over the UTF-16 code units of
  ``"<payload>|<secret>|<seconds>"``, rendered as signed hex. It is not
  cryptographic; cards already in circulation carry it.
* ``hmac`` - HMAC-SHA256 over the same message, hex encoded.

Verification picks the scheme from the digest itself, so both kinds of
stored signatures keep validating whichever scheme issues new ones.
"""
from dataclasses import dataclass
import hashlib
import hmac
import json
import logging
import re
import time

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

SCHEME_LEGACY = 'legacy'
SCHEME_HMAC = 'hmac'

_HMAC_DIGEST_RE = re.compile(r'^[0-9a-f]{64}$')
_LEGACY_DIGEST_RE = re.compile(r'^-?[0-9a-f]{1,8}$')


@dataclass(frozen=True)
class Signed:
    digest: str
    timestamp: int

    @property
    def scheme(self) -> str:
        return SCHEME_HMAC if _HMAC_DIGEST_RE.match(self.digest) else SCHEME_LEGACY

    def __str__(self):
        return f"{self.digest}.{self.timestamp}"

    def __bool__(self):
        return True


@dataclass(frozen=True)
class Unsigned:
    """Signing failed; persisted as an empty signature."""
    reason: str

    def __str__(self):
        return ''

    def __bool__(self):
        return False


def config_value(key: str, default=None):
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def serialize_payload(data) -> str:
    if isinstance(data, str):
        return data
    if hasattr(data, 'to_dict'):
        data = data.to_dict()
    return json.dumps(data, separators=(',', ':'), ensure_ascii=False)


def rolling_hash(message: str) -> str:
    h = 0
    raw = message.encode('utf-16-le')
    for i in range(0, len(raw), 2):
        unit = raw[i] | (raw[i + 1] << 8)
        h = ((h << 5) - h + unit) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return f"-{-h:x}" if h < 0 else f"{h:x}"


def _digest(payload: str, secret: str, timestamp: int, scheme: str) -> str:
    message = f"{payload}|{secret}|{timestamp}"
    if scheme == SCHEME_HMAC:
        return hmac.new(secret.encode(), message.encode(), hashlib.sha256).hexdigest()
    if scheme == SCHEME_LEGACY:
        return rolling_hash(message)
    raise ValueError(f"unknown signature scheme {scheme!r}")


def _resolve_secret(secret: str | None) -> str:
    secret = secret if secret is not None else config_value('QR_SECRET_KEY')
    if not secret:
        raise ValueError('QR_SECRET_KEY is not configured')
    return secret


def create_digital_signature(data, secret: str | None = None, timestamp: int | None = None,
                             scheme: str | None = None) -> Signed | Unsigned:
    """Sign ``data`` at ``timestamp`` (unix seconds, default now).

    Never raises: any failure is logged and returned as ``Unsigned`` so
    card issuance is not blocked on signing.
    """
    try:
        ts = int(time.time()) if timestamp is None else int(timestamp)
        scheme = scheme or config_value('QR_SIGNATURE_SCHEME', SCHEME_LEGACY)
        digest = _digest(serialize_payload(data), _resolve_secret(secret), ts, scheme)
        return Signed(digest, ts)
    except Exception as e:
        logger.error("Error creating digital signature: %s", e)
        return Unsigned(str(e))


def parse_signature(value) -> Signed | None:
    if isinstance(value, Signed):
        return value
    if not isinstance(value, str):
        return None
    parts = value.split('.')
    if len(parts) != 2:
        return None
    digest, ts = parts
    if not (_HMAC_DIGEST_RE.match(digest) or _LEGACY_DIGEST_RE.match(digest)):
        return None
    try:
        return Signed(digest, int(ts))
    except ValueError:
        return None


def is_expired(timestamp: int, max_age_seconds: int, now: float | None = None) -> bool:
    """True iff more than ``max_age_seconds`` have passed since ``timestamp`` (unix seconds)."""
    now = time.time() if now is None else now
    return now - timestamp > max_age_seconds


def verify_digital_signature(data, signature, secret: str | None = None,
                             max_age_seconds: int | None = None, now: float | None = None) -> bool:
    signed = parse_signature(signature)
    if signed is None:
        return False
    if max_age_seconds is None:
        days = config_value('QR_SIGNATURE_EXPIRY_DAYS')
        max_age_seconds = days * 86400 if days else None
    if max_age_seconds is not None and is_expired(signed.timestamp, max_age_seconds, now):
        logger.info("QR code signature has expired (signed at %s)", signed.timestamp)
        return False
    try:
        expected = _digest(serialize_payload(data), _resolve_secret(secret), signed.timestamp, signed.scheme)
    except Exception as e:
        logger.error("Error validating QR code signature: %s", e)
        return False
    return hmac.compare_digest(expected, signed.digest)
