"""QR payload variants.

Every QR code issued by the platform encodes one of four payload shapes,
told apart by the ``type`` discriminant. The dataclasses below are the
typed form; ``to_dict()`` produces the camelCase JSON that goes into the
QR image and the ``qr_data`` column.
"""
from dataclasses import dataclass, field
from enum import Enum
import time


class QrCodeType(str, Enum):
    CUSTOMER = 'customer'
    LOYALTY_CARD = 'loyaltyCard'
    PROMO_CODE = 'promoCode'
    UNKNOWN = 'unknown'


def now_ms() -> int:
    return int(time.time() * 1000)


def ensure_id(value) -> str:
    if value is None:
        return '0'
    return str(value)


def _compact(d: dict) -> dict:
    return {k: v for k, v in d.items() if v is not None}


@dataclass
class CustomerQrCodeData:
    customer_id: str | int
    timestamp: int | None
    name: str | None = None
    email: str | None = None
    business_id: str | int | None = None
    card_number: str | None = None
    card_type: str | None = None
    extra: dict = field(default_factory=dict)

    type = QrCodeType.CUSTOMER

    def to_dict(self) -> dict:
        return {
            'type': self.type.value,
            **_compact({
                'customerId': self.customer_id,
                'name': self.name,
                'email': self.email,
                'businessId': self.business_id,
                'cardNumber': self.card_number,
                'cardType': self.card_type,
            }),
            **self.extra,
            **_compact({'timestamp': self.timestamp}),
        }


@dataclass
class LoyaltyCardQrCodeData:
    card_id: str | int
    customer_id: str | int
    program_id: str | int
    business_id: str | int
    timestamp: int | None
    points: int | None = None
    card_number: str | None = None
    program_name: str | None = None
    business_name: str | None = None
    extra: dict = field(default_factory=dict)

    type = QrCodeType.LOYALTY_CARD

    def to_dict(self) -> dict:
        return {
            'type': self.type.value,
            'cardId': self.card_id,
            'customerId': self.customer_id,
            'programId': self.program_id,
            'businessId': self.business_id,
            **_compact({
                'cardNumber': self.card_number,
                'programName': self.program_name,
                'businessName': self.business_name,
                'points': self.points,
            }),
            **self.extra,
            **_compact({'timestamp': self.timestamp}),
        }


@dataclass
class PromoCodeQrCodeData:
    code: str
    business_id: str | int
    timestamp: int | None
    discount: float | None = None
    expiry_date: str | None = None
    extra: dict = field(default_factory=dict)

    type = QrCodeType.PROMO_CODE

    def to_dict(self) -> dict:
        return {
            'type': self.type.value,
            'code': self.code,
            'businessId': self.business_id,
            **_compact({'discount': self.discount, 'expiryDate': self.expiry_date}),
            **self.extra,
            **_compact({'timestamp': self.timestamp}),
        }


@dataclass
class UnknownQrCodeData:
    raw_data: str
    timestamp: int | None

    type = QrCodeType.UNKNOWN

    def to_dict(self) -> dict:
        return {'type': self.type.value, 'rawData': self.raw_data, **_compact({'timestamp': self.timestamp})}


QrCodeData = CustomerQrCodeData | LoyaltyCardQrCodeData | PromoCodeQrCodeData | UnknownQrCodeData


def build_customer_payload(customer_id, *, name=None, email=None, business_id=None,
                           card_number=None, card_type=None, timestamp: int | None = None) -> CustomerQrCodeData:
    return CustomerQrCodeData(
        customer_id=customer_id,
        timestamp=now_ms() if timestamp is None else timestamp,
        name=name,
        email=email,
        business_id=business_id,
        card_number=card_number,
        card_type=card_type,
    )


def build_loyalty_card_payload(card_id, customer_id, program_id, business_id, *, points=None,
                               card_number=None, program_name=None, business_name=None,
                               timestamp: int | None = None) -> LoyaltyCardQrCodeData:
    return LoyaltyCardQrCodeData(
        card_id=card_id,
        customer_id=customer_id,
        program_id=program_id,
        business_id=business_id,
        timestamp=now_ms() if timestamp is None else timestamp,
        points=points,
        card_number=card_number,
        program_name=program_name,
        business_name=business_name,
    )


def build_promo_payload(code: str, business_id, *, discount=None, expiry_date=None,
                        timestamp: int | None = None) -> PromoCodeQrCodeData:
    return PromoCodeQrCodeData(
        code=code,
        business_id=business_id,
        timestamp=now_ms() if timestamp is None else timestamp,
        discount=discount,
        expiry_date=expiry_date,
    )


def build_unknown_payload(raw_data: str, *, timestamp: int | None = None) -> UnknownQrCodeData:
    return UnknownQrCodeData(raw_data=raw_data, timestamp=now_ms() if timestamp is None else timestamp)
