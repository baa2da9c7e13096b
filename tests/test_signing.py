import re

from loyalty_qr.services.payloads import build_customer_payload
from loyalty_qr.services.signing import (
    SCHEME_HMAC, SCHEME_LEGACY, Signed, Unsigned,
    create_digital_signature, is_expired, parse_signature, rolling_hash, serialize_payload,
    verify_digital_signature,
)

PAYLOAD = {'type': 'customer', 'customerId': '1', 'timestamp': 1700000000000}
T0 = 1700000000
DAY = 86400


def test_rolling_hash_known_values():
    assert rolling_hash('') == '0'
    assert rolling_hash('a') == '61'
    assert rolling_hash('ab') == 'c21'
    assert rolling_hash('é') == 'e9'


def test_rolling_hash_uses_utf16_code_units():
    # U+1F600 is hashed as its surrogate pair D83D DE00
    assert rolling_hash('\U0001F600') == '1b0d63'


def test_rolling_hash_stays_within_32_bits():
    h = rolling_hash('x' * 500)
    assert re.match(r'^-?[0-9a-f]{1,8}$', h)


def test_serialize_payload_is_compact():
    assert serialize_payload({'a': 1, 'b': 'é'}) == '{"a":1,"b":"é"}'
    assert serialize_payload('raw text') == 'raw text'
    assert serialize_payload(build_customer_payload('1', timestamp=5)) == \
        '{"type":"customer","customerId":"1","timestamp":5}'


def test_signature_suffix_is_timestamp():
    sig = create_digital_signature(PAYLOAD, secret='s3cret', timestamp=T0)
    assert isinstance(sig, Signed)
    assert sig.scheme == SCHEME_LEGACY
    assert str(sig).endswith(f".{T0}")


def test_signature_depends_on_timestamp():
    a = create_digital_signature(PAYLOAD, secret='s3cret', timestamp=T0)
    b = create_digital_signature(PAYLOAD, secret='s3cret', timestamp=T0 + 1)
    assert str(a) != str(b)


def test_verify_roundtrip():
    sig = str(create_digital_signature(PAYLOAD, secret='s3cret', timestamp=T0))
    assert verify_digital_signature(PAYLOAD, sig, secret='s3cret', max_age_seconds=DAY, now=T0 + 60)


def test_verify_rejects_tampering():
    sig = str(create_digital_signature(PAYLOAD, secret='s3cret', timestamp=T0))
    tampered = dict(PAYLOAD, customerId='2')
    assert not verify_digital_signature(tampered, sig, secret='s3cret', max_age_seconds=DAY, now=T0)
    assert not verify_digital_signature(PAYLOAD, sig, secret='other', max_age_seconds=DAY, now=T0)
    digest = sig.split('.')[0]
    assert not verify_digital_signature(PAYLOAD, f"{digest}.{T0 + 5}", secret='s3cret',
                                        max_age_seconds=DAY, now=T0 + 5)


def test_verify_rejects_expired():
    sig = str(create_digital_signature(PAYLOAD, secret='s3cret', timestamp=T0))
    assert not verify_digital_signature(PAYLOAD, sig, secret='s3cret', max_age_seconds=DAY,
                                        now=T0 + 25 * 3600)


def test_verify_rejects_malformed():
    for bad in (None, '', 'abc', 'abc.def', 'zz.123', 'a.b.c', 42):
        assert not verify_digital_signature(PAYLOAD, bad, secret='s3cret', max_age_seconds=DAY, now=T0)


def test_is_expired():
    assert not is_expired(T0, DAY, now=T0 + DAY)
    assert is_expired(T0, DAY, now=T0 + DAY + 1)


def test_missing_secret_outside_app_is_unsigned():
    sig = create_digital_signature(PAYLOAD)
    assert isinstance(sig, Unsigned)
    assert not sig
    assert str(sig) == ''


def test_unknown_scheme_is_unsigned():
    sig = create_digital_signature(PAYLOAD, secret='s3cret', scheme='md5')
    assert isinstance(sig, Unsigned)
    assert 'md5' in sig.reason


def test_hmac_scheme():
    sig = create_digital_signature(PAYLOAD, secret='s3cret', timestamp=T0, scheme=SCHEME_HMAC)
    assert sig.scheme == SCHEME_HMAC
    assert len(sig.digest) == 64
    assert verify_digital_signature(PAYLOAD, str(sig), secret='s3cret', max_age_seconds=DAY, now=T0)
    assert not verify_digital_signature(dict(PAYLOAD, customerId='9'), str(sig), secret='s3cret',
                                        max_age_seconds=DAY, now=T0)


def test_parse_signature():
    assert parse_signature('-1a2b.1700000000') == Signed('-1a2b', 1700000000)
    assert parse_signature('1a2b') is None


def test_uses_app_secret_and_scheme(app):
    sig = create_digital_signature(PAYLOAD)
    assert sig.scheme == SCHEME_LEGACY
    assert verify_digital_signature(PAYLOAD, str(sig))
    assert not verify_digital_signature(PAYLOAD, str(sig), secret='another-secret')

    app.config['QR_SIGNATURE_SCHEME'] = SCHEME_HMAC
    sig = create_digital_signature(PAYLOAD)
    assert sig.scheme == SCHEME_HMAC
    assert verify_digital_signature(PAYLOAD, str(sig))


def test_app_expiry_window(app):
    app.config['QR_SIGNATURE_EXPIRY_DAYS'] = 1
    sig = str(create_digital_signature(PAYLOAD, timestamp=T0))
    assert verify_digital_signature(PAYLOAD, sig, now=T0 + 3600)
    assert not verify_digital_signature(PAYLOAD, sig, now=T0 + 2 * DAY)
