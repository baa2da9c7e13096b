"""Runtime checks for scanned or submitted QR payloads.

Nothing in here raises on bad input: guards answer ``False``, validators
answer ``None`` (or the caller's fallback) and the underlying error is
only logged.
"""
from collections.abc import Mapping
from functools import lru_cache
import json
import logging

from .card_number import parse_card_number
from .payloads import (
    QrCodeType,
    CustomerQrCodeData,
    LoyaltyCardQrCodeData,
    PromoCodeQrCodeData,
    build_customer_payload,
    build_unknown_payload,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = {
    QrCodeType.CUSTOMER: ('customerId',),
    QrCodeType.LOYALTY_CARD: ('cardId', 'customerId', 'programId', 'businessId'),
    QrCodeType.PROMO_CODE: ('code', 'businessId'),
}

# Discriminants written by older clients and repair scripts
LEGACY_TYPES = {
    'CUSTOMER': QrCodeType.CUSTOMER,
    'CUSTOMER_CARD': QrCodeType.CUSTOMER,
    'customer_card': QrCodeType.CUSTOMER,
    'LOYALTY_CARD': QrCodeType.LOYALTY_CARD,
    'loyalty_card': QrCodeType.LOYALTY_CARD,
    'PROMO_CODE': QrCodeType.PROMO_CODE,
    'promo_code': QrCodeType.PROMO_CODE,
}

_KNOWN_TYPES = {t.value for t in QrCodeType}
_LEGACY_MARKERS = ('id', 'customerId', 'timestamp')


def _as_mapping(value):
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    return value if isinstance(value, Mapping) else None


def _present(obj: Mapping, key: str) -> bool:
    v = obj.get(key)
    if v is None or isinstance(v, bool):
        return False
    if isinstance(v, str):
        return v.strip() != ''
    return isinstance(v, (int, float))


def _classify_obj(obj: Mapping) -> str | None:
    t = obj.get('type')
    for qr_type, required in REQUIRED_FIELDS.items():
        if t == qr_type.value:
            return qr_type.value if all(_present(obj, k) for k in required) else None
    return None


@lru_cache(maxsize=1024)
def _classify_cached(key: str) -> str | None:
    return _classify_obj(json.loads(key))


def _classify(value) -> str | None:
    obj = _as_mapping(value)
    if obj is None:
        return None
    try:
        key = json.dumps(obj, sort_keys=True)
    except (TypeError, ValueError):
        return _classify_obj(obj)
    return _classify_cached(key)


def clear_validation_cache():
    _classify_cached.cache_clear()


def validation_cache_info():
    return _classify_cached.cache_info()


def is_qr_code_data(value) -> bool:
    obj = _as_mapping(value)
    if obj is None:
        return False
    t = obj.get('type')
    if isinstance(t, str) and t in _KNOWN_TYPES:
        return True
    return any(k in obj for k in _LEGACY_MARKERS)


def is_customer_qr_code_data(value) -> bool:
    return _classify(value) == QrCodeType.CUSTOMER.value


def is_loyalty_card_qr_code_data(value) -> bool:
    return _classify(value) == QrCodeType.LOYALTY_CARD.value


def is_promo_code_qr_code_data(value) -> bool:
    return _classify(value) == QrCodeType.PROMO_CODE.value


def _split(obj: Mapping, known: tuple) -> dict:
    return {k: v for k, v in obj.items() if k not in known and k != 'type'}


def _customer_from(obj: Mapping) -> CustomerQrCodeData:
    known = ('customerId', 'name', 'email', 'businessId', 'cardNumber', 'cardType', 'timestamp')
    return CustomerQrCodeData(
        customer_id=obj['customerId'],
        timestamp=obj.get('timestamp'),
        name=obj.get('name'),
        email=obj.get('email'),
        business_id=obj.get('businessId'),
        card_number=obj.get('cardNumber'),
        card_type=obj.get('cardType'),
        extra=_split(obj, known),
    )


def _loyalty_card_from(obj: Mapping) -> LoyaltyCardQrCodeData:
    known = ('cardId', 'customerId', 'programId', 'businessId', 'points', 'cardNumber',
             'programName', 'businessName', 'timestamp')
    return LoyaltyCardQrCodeData(
        card_id=obj['cardId'],
        customer_id=obj['customerId'],
        program_id=obj['programId'],
        business_id=obj['businessId'],
        timestamp=obj.get('timestamp'),
        points=obj.get('points'),
        card_number=obj.get('cardNumber'),
        program_name=obj.get('programName'),
        business_name=obj.get('businessName'),
        extra=_split(obj, known),
    )


def _promo_from(obj: Mapping) -> PromoCodeQrCodeData:
    known = ('code', 'businessId', 'discount', 'expiryDate', 'timestamp')
    return PromoCodeQrCodeData(
        code=obj['code'],
        business_id=obj['businessId'],
        timestamp=obj.get('timestamp'),
        discount=obj.get('discount'),
        expiry_date=obj.get('expiryDate'),
        extra=_split(obj, known),
    )


_BUILDERS = (
    (is_customer_qr_code_data, _customer_from),
    (is_loyalty_card_qr_code_data, _loyalty_card_from),
    (is_promo_code_qr_code_data, _promo_from),
)


def validate_qr_code_data(value):
    """Return the typed payload for ``value``, or None if it matches no variant."""
    try:
        obj = _as_mapping(value)
        if obj is None:
            return None
        for guard, build in _BUILDERS:
            if guard(obj):
                return build(obj)
        return None
    except Exception as e:
        logger.error("Error validating QR code data: %s", e)
        return None


def validate_with_fallback(value, predicate, fallback=None):
    try:
        return value if predicate(value) else fallback
    except Exception as e:
        logger.error("Validation error with fallback: %s", e)
        return fallback


def normalize_payload(obj: Mapping) -> dict:
    """Map legacy discriminants onto the canonical ones."""
    out = dict(obj)
    t = out.get('type')
    if isinstance(t, str) and t in LEGACY_TYPES:
        out['type'] = LEGACY_TYPES[t].value
    if out.get('type') == QrCodeType.CUSTOMER.value and 'customerId' not in out and 'id' in out:
        out['customerId'] = out['id']
    return out


def parse_scanned_payload(raw):
    """Decode the text read from a QR code into a payload variant.

    Recognised JSON payloads and bare card numbers are returned typed;
    anything else is kept as ``UnknownQrCodeData`` carrying the raw text.
    """
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8', errors='replace')
    if not isinstance(raw, str):
        if isinstance(raw, Mapping):
            raw = normalize_payload(raw)
        return validate_qr_code_data(raw) or build_unknown_payload(str(raw))
    text = raw.strip()

    body = parse_card_number(text)
    if body is not None:
        return build_customer_payload(str(int(body)), card_number=text.upper())

    try:
        decoded = json.loads(text)
    except ValueError:
        decoded = None
    if isinstance(decoded, Mapping):
        payload = validate_qr_code_data(normalize_payload(decoded))
        if payload is not None:
            return payload
    logger.info("Unrecognised QR payload kept as unknown (%d chars)", len(text))
    return build_unknown_payload(raw)
