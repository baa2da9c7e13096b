import pytest

from loyalty_qr.services.card_number import (
    generate_consistent_card_number, is_valid_card_number, parse_card_number,
)


@pytest.mark.parametrize('user_id,expected', [
    (4, 'GC-000004-4'),
    ('4', 'GC-000004-4'),
    (7.0, 'GC-000007-7'),
    ('user-42', 'GC-000042-6'),
    (123456789, 'GC-123456-1'),
    ('', 'GC-000000-0'),
])
def test_generate_card_number(user_id, expected):
    assert generate_consistent_card_number(user_id) == expected


def test_card_number_is_deterministic():
    assert generate_consistent_card_number(9876) == generate_consistent_card_number('9876')


def test_long_ids_share_a_prefix():
    # only the first six digits are kept
    assert generate_consistent_card_number(1234561) == generate_consistent_card_number(1234569)


def test_parse_card_number():
    assert parse_card_number('GC-000042-6') == '000042'
    assert parse_card_number(' gc-000042-6 ') == '000042'
    assert parse_card_number('GC-000042-5') is None
    assert parse_card_number('GC-42-6') is None
    assert parse_card_number(42) is None


def test_generated_numbers_validate():
    for user_id in (1, 99, 31337, 'abc123'):
        assert is_valid_card_number(generate_consistent_card_number(user_id))


def test_only_ascii_digits_count():
    # Arabic-Indic four and two
    assert generate_consistent_card_number('٤٢') == 'GC-000000-0'
    assert generate_consistent_card_number('id-٤٢-7') == 'GC-000007-7'
    assert parse_card_number('GC-0000٤٢-6') is None
