import json

from loyalty_qr.services.payloads import (
    CustomerQrCodeData, LoyaltyCardQrCodeData, PromoCodeQrCodeData, QrCodeType, UnknownQrCodeData,
    build_customer_payload, build_loyalty_card_payload, build_promo_payload, ensure_id,
)
from loyalty_qr.services.validation import (
    clear_validation_cache, is_customer_qr_code_data, is_loyalty_card_qr_code_data,
    is_promo_code_qr_code_data, is_qr_code_data, normalize_payload, parse_scanned_payload,
    validate_qr_code_data, validate_with_fallback, validation_cache_info,
)

CUSTOMER = {'type': 'customer', 'customerId': '12', 'name': 'Ada', 'timestamp': 1700000000000}
LOYALTY = {'type': 'loyaltyCard', 'cardId': 3, 'customerId': 12, 'programId': 7, 'businessId': 2,
           'timestamp': 1700000000000}
PROMO = {'type': 'promoCode', 'code': 'WELCOME10', 'businessId': 2, 'timestamp': 1700000000000}


def test_customer_guard():
    assert is_customer_qr_code_data(CUSTOMER)
    assert not is_customer_qr_code_data(dict(CUSTOMER, customerId=''))
    assert not is_customer_qr_code_data(dict(CUSTOMER, customerId='   '))
    assert not is_customer_qr_code_data(dict(CUSTOMER, customerId=None))
    assert not is_customer_qr_code_data(dict(CUSTOMER, customerId=True))
    assert not is_customer_qr_code_data(LOYALTY)


def test_loyalty_card_guard():
    assert is_loyalty_card_qr_code_data(LOYALTY)
    missing = {k: v for k, v in LOYALTY.items() if k != 'programId'}
    assert not is_loyalty_card_qr_code_data(missing)


def test_promo_guard():
    assert is_promo_code_qr_code_data(PROMO)
    assert not is_promo_code_qr_code_data(dict(PROMO, businessId=None))


def test_guards_reject_non_objects():
    for value in (None, 'customer', 42, ['customer'], True):
        assert not is_customer_qr_code_data(value)
        assert not is_qr_code_data(value)


def test_is_qr_code_data():
    assert is_qr_code_data({'type': 'unknown', 'rawData': 'x'})
    assert is_qr_code_data({'id': 5})
    assert is_qr_code_data({'timestamp': 1})
    assert not is_qr_code_data({'foo': 'bar'})
    assert not is_qr_code_data({'type': 'coupon'})


def test_validate_returns_typed_payloads():
    c = validate_qr_code_data(CUSTOMER)
    assert isinstance(c, CustomerQrCodeData)
    assert c.customer_id == '12' and c.name == 'Ada'

    lc = validate_qr_code_data(LOYALTY)
    assert isinstance(lc, LoyaltyCardQrCodeData)
    assert (lc.card_id, lc.program_id, lc.business_id) == (3, 7, 2)

    p = validate_qr_code_data(PROMO)
    assert isinstance(p, PromoCodeQrCodeData)
    assert p.code == 'WELCOME10'


def test_validate_rejects_everything_else():
    assert validate_qr_code_data(None) is None
    assert validate_qr_code_data('{"type":"customer"}') is None
    assert validate_qr_code_data({'type': 'customer'}) is None
    assert validate_qr_code_data({'type': 'unknown', 'rawData': 'x'}) is None


def test_validate_keeps_extra_fields():
    data = dict(CUSTOMER, tier='gold')
    payload = validate_qr_code_data(data)
    assert payload.extra == {'tier': 'gold'}
    assert payload.to_dict() == data


def test_validate_with_fallback():
    assert validate_with_fallback(CUSTOMER, is_customer_qr_code_data) is CUSTOMER
    assert validate_with_fallback(PROMO, is_customer_qr_code_data, 'nope') == 'nope'

    def boom(value):
        raise RuntimeError('predicate failed')

    assert validate_with_fallback(CUSTOMER, boom, 'fallback') == 'fallback'


def test_payload_builders():
    assert build_customer_payload(1, timestamp=5).to_dict() == \
        {'type': 'customer', 'customerId': 1, 'timestamp': 5}
    assert build_loyalty_card_payload(3, 1, 7, 2, points=0, timestamp=5).to_dict() == \
        {'type': 'loyaltyCard', 'cardId': 3, 'customerId': 1, 'programId': 7, 'businessId': 2,
         'points': 0, 'timestamp': 5}
    assert build_promo_payload('X', 2, timestamp=5).to_dict() == \
        {'type': 'promoCode', 'code': 'X', 'businessId': 2, 'timestamp': 5}
    assert build_customer_payload(1).timestamp > 1_600_000_000_000
    assert ensure_id(None) == '0'
    assert ensure_id(42) == '42'


def test_normalize_legacy_types():
    assert normalize_payload({'type': 'CUSTOMER_CARD', 'id': 5}) == \
        {'type': 'customer', 'id': 5, 'customerId': 5}
    assert normalize_payload({'type': 'loyalty_card'})['type'] == 'loyaltyCard'
    assert normalize_payload({'type': 'PROMO_CODE'})['type'] == 'promoCode'
    assert normalize_payload({'type': 'mystery'})['type'] == 'mystery'


def test_parse_scanned_card_number():
    payload = parse_scanned_payload('gc-000042-6')
    assert isinstance(payload, CustomerQrCodeData)
    assert payload.customer_id == '42'
    assert payload.card_number == 'GC-000042-6'


def test_parse_scanned_json():
    assert isinstance(parse_scanned_payload(json.dumps(LOYALTY)), LoyaltyCardQrCodeData)
    legacy = parse_scanned_payload(json.dumps({'type': 'CUSTOMER_CARD', 'id': 5, 'timestamp': 1}))
    assert isinstance(legacy, CustomerQrCodeData)
    assert legacy.customer_id == 5
    assert isinstance(parse_scanned_payload(json.dumps(PROMO).encode()), PromoCodeQrCodeData)


def test_parse_scanned_unknown():
    for raw in ('hello', 'GC-000042-5', '{"type":"customer"}', '[1,2]'):
        payload = parse_scanned_payload(raw)
        assert isinstance(payload, UnknownQrCodeData)
        assert payload.type is QrCodeType.UNKNOWN
        assert payload.raw_data == raw


def test_validation_cache():
    clear_validation_cache()
    assert validation_cache_info().currsize == 0
    is_customer_qr_code_data(CUSTOMER)
    is_customer_qr_code_data(dict(CUSTOMER))
    info = validation_cache_info()
    assert info.hits >= 1
    clear_validation_cache()
    assert validation_cache_info().currsize == 0


def test_guards_tolerate_unhashable_type():
    for value in ({'type': []}, {'type': {}}):
        assert not is_qr_code_data(value)
    for value in ({'type': []}, {'type': {}}, {'type': ['customer'], 'customerId': '1'}):
        assert not is_customer_qr_code_data(value)
        assert validate_qr_code_data(value) is None
        assert isinstance(parse_scanned_payload(value), UnknownQrCodeData)


def test_parse_scanned_mapping_normalizes_legacy_types():
    customer = parse_scanned_payload({'type': 'CUSTOMER_CARD', 'customerId': 5})
    assert isinstance(customer, CustomerQrCodeData)
    assert customer.customer_id == 5
    card = parse_scanned_payload(dict(LOYALTY, type='loyalty_card'))
    assert isinstance(card, LoyaltyCardQrCodeData)
    promo = parse_scanned_payload(dict(PROMO, type='PROMO_CODE'))
    assert isinstance(promo, PromoCodeQrCodeData)
    assert isinstance(parse_scanned_payload({'type': 'mystery'}), UnknownQrCodeData)
