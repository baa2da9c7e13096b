import re

CARD_PREFIX = 'GC'
_CARD_RE = re.compile(r'^GC-([0-9]{6})-([0-9])$')


def _checksum(digits: str) -> int:
    return sum(int(d) for d in digits) % 10


def generate_consistent_card_number(user_id) -> str:
    """Derive the printed card number for a user id.

    Format is ``GC-XXXXXX-C``: the first six digits of the id (left-padded
    with zeros) and their digit sum mod 10. Ids longer than six digits are
    truncated, so distinct ids can share a number; the database unique
    constraint is what keeps issued numbers apart.
    """
    if isinstance(user_id, float) and user_id.is_integer():
        user_id = int(user_id)
    digits = re.sub(r'[^0-9]', '', str(user_id))
    short_id = digits[:6].rjust(6, '0')
    return f"{CARD_PREFIX}-{short_id}-{_checksum(short_id)}"


def parse_card_number(value) -> str | None:
    if not isinstance(value, str):
        return None
    m = _CARD_RE.match(value.strip().upper())
    if not m or int(m.group(2)) != _checksum(m.group(1)):
        return None
    return m.group(1)


def is_valid_card_number(value) -> bool:
    return parse_card_number(value) is not None
