"""Issuance and lifecycle of stored QR codes.

A stored QR code (``CustomerQrCode``) pairs a payload with its signature,
image URL and status. Payloads are never patched: repairs regenerate the
payload, signature and image together and overwrite the row.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import logging
import secrets
import uuid

from flask import current_app

from ..errors import InvalidQrPayload, QrCodeInactive, QrCodeNotFound
from ..models import (
    db, Business, Customer, LoyaltyCard, LoyaltyProgram, PromoCode, CustomerQrCode,
    QR_TYPE_CUSTOMER_CARD, QR_TYPE_LOYALTY_CARD,
    STATUS_ACTIVE, STATUS_EXPIRED, STATUS_REPLACED, STATUS_REVOKED,
)
from .card_number import generate_consistent_card_number
from .payloads import build_customer_payload, build_loyalty_card_payload, build_promo_payload
from .qr import generate_qr_image_url
from .signing import create_digital_signature, verify_digital_signature

logger = logging.getLogger(__name__)

VERIFICATION_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'  # no 0/O, 1/I


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(dt: datetime | None) -> datetime | None:
    # SQLite hands timezone-aware columns back naive
    if dt is not None and dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def generate_verification_code(length: int = 6) -> str:
    return ''.join(secrets.choice(VERIFICATION_ALPHABET) for _ in range(length))


def render_image_url(data) -> str | None:
    try:
        return generate_qr_image_url(data).url
    except Exception as e:
        logger.error("Error generating QR code image URL: %s", e)
        return None


def sign(data) -> str:
    signature = create_digital_signature(data)
    if not signature:
        logger.warning("QR payload stored unsigned: %s", signature.reason)
    return str(signature)


def _expiry() -> datetime:
    return utcnow() + timedelta(days=current_app.config.get('QR_CODE_EXPIRY_DAYS', 365))


def _new_row(customer_id: int, qr_type: str, data: dict, business_id: int | None = None,
             is_primary: bool = False) -> CustomerQrCode:
    row = CustomerQrCode(
        qr_unique_id=str(uuid.uuid4()),
        customer_id=customer_id,
        business_id=business_id,
        qr_data=data,
        qr_image_url=render_image_url(data),
        qr_type=qr_type,
        status=STATUS_ACTIVE,
        verification_code=generate_verification_code(),
        is_primary=is_primary,
        expiry_date=_expiry(),
        digital_signature=sign(data),
    )
    db.session.add(row)
    db.session.flush()
    return row


def customer_payload(customer: Customer) -> dict:
    return build_customer_payload(
        customer.id,
        name=customer.name,
        email=customer.email,
        card_number=generate_consistent_card_number(customer.id),
        card_type='STANDARD',
    ).to_dict()


def loyalty_card_payload(card: LoyaltyCard) -> dict:
    program = db.session.get(LoyaltyProgram, card.program_id)
    business = db.session.get(Business, card.business_id)
    return build_loyalty_card_payload(
        card.id,
        card.customer_id,
        card.program_id,
        card.business_id,
        points=card.points,
        card_number=generate_consistent_card_number(card.customer_id),
        program_name=program.name if program else None,
        business_name=business.name if business else None,
    ).to_dict()


def get_primary_qr_code(customer_id: int) -> CustomerQrCode | None:
    return (CustomerQrCode.query
            .filter_by(customer_id=customer_id, qr_type=QR_TYPE_CUSTOMER_CARD,
                       is_primary=True, status=STATUS_ACTIVE)
            .order_by(CustomerQrCode.id.desc())
            .first())


def issue_customer_qr_code(customer: Customer) -> CustomerQrCode:
    """Issue a new primary customer card and demote any previous primary."""
    row = _new_row(customer.id, QR_TYPE_CUSTOMER_CARD, customer_payload(customer), is_primary=True)
    (CustomerQrCode.query
     .filter(CustomerQrCode.customer_id == customer.id,
             CustomerQrCode.qr_type == QR_TYPE_CUSTOMER_CARD,
             CustomerQrCode.id != row.id)
     .update({'is_primary': False}, synchronize_session=False))
    db.session.commit()
    logger.info("Issued primary QR code %s for customer %s", row.qr_unique_id, customer.id)
    return row


def get_or_create_primary_qr_code(customer: Customer) -> CustomerQrCode:
    return get_primary_qr_code(customer.id) or issue_customer_qr_code(customer)


def _card_rows(card: LoyaltyCard, status: str | None = STATUS_ACTIVE) -> list[CustomerQrCode]:
    q = CustomerQrCode.query.filter_by(customer_id=card.customer_id, qr_type=QR_TYPE_LOYALTY_CARD)
    if status:
        q = q.filter_by(status=status)
    return [row for row in q.all() if str((row.qr_data or {}).get('cardId')) == str(card.id)]


def issue_loyalty_card_qr_code(card: LoyaltyCard) -> CustomerQrCode:
    """Issue a QR code for ``card``; earlier active codes of the card become REPLACED."""
    previous = _card_rows(card)
    row = _new_row(card.customer_id, QR_TYPE_LOYALTY_CARD, loyalty_card_payload(card),
                   business_id=card.business_id)
    for old in previous:
        old.status = STATUS_REPLACED
    db.session.commit()
    logger.info("Issued QR code %s for loyalty card %s", row.qr_unique_id, card.id)
    return row


def ensure_loyalty_card_qr_code(card: LoyaltyCard) -> CustomerQrCode:
    rows = _card_rows(card)
    return rows[0] if rows else issue_loyalty_card_qr_code(card)


def build_promo_qr(promo: PromoCode) -> dict:
    payload = build_promo_payload(
        promo.code,
        promo.business_id,
        discount=promo.discount,
        expiry_date=promo.expires_at.isoformat() if promo.expires_at else None,
    ).to_dict()
    return {'payload': payload, 'signature': sign(payload), 'image_url': render_image_url(payload)}


@dataclass
class FixReport:
    customer_id: int
    primary: str = 'ok'  # ok|created|regenerated
    cards_issued: list[int] = field(default_factory=list)
    images_repaired: list[int] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.primary != 'ok' or bool(self.cards_issued or self.images_repaired)


def _primary_is_sound(row: CustomerQrCode, customer: Customer) -> bool:
    data = row.qr_data if isinstance(row.qr_data, dict) else {}
    return (data.get('type') == 'customer'
            and bool(data.get('customerId'))
            and data.get('cardNumber') == generate_consistent_card_number(customer.id)
            and bool(row.qr_image_url) and row.qr_image_url.startswith('http')
            and verify_digital_signature(data, row.digital_signature))


def fix_customer_qr_code(customer: Customer) -> FixReport:
    """Bring a customer's QR codes back into a scannable state.

    Creates a missing primary card, regenerates a malformed one, issues QR
    codes for active loyalty cards without one and fills in missing images.
    """
    report = FixReport(customer.id)
    primary = get_primary_qr_code(customer.id)
    if primary is None:
        issue_customer_qr_code(customer)
        report.primary = 'created'
    elif not _primary_is_sound(primary, customer):
        data = customer_payload(customer)
        primary.qr_data = data
        primary.digital_signature = sign(data)
        primary.qr_image_url = render_image_url(data)
        primary.updated_at = utcnow()
        db.session.commit()
        report.primary = 'regenerated'

    cards = LoyaltyCard.query.filter_by(customer_id=customer.id, is_active=True).all()
    for card in cards:
        rows = _card_rows(card)
        if not rows:
            issue_loyalty_card_qr_code(card)
            report.cards_issued.append(card.id)
            continue
        row = rows[0]
        if not row.qr_image_url:
            row.qr_image_url = render_image_url(row.qr_data)
            if row.qr_image_url:
                report.images_repaired.append(card.id)
    db.session.commit()
    if report.changed:
        logger.info("Fixed QR codes for customer %s: %s", customer.id, report)
    return report


def get_qr_code(qr_unique_id: str) -> CustomerQrCode:
    row = CustomerQrCode.query.filter_by(qr_unique_id=qr_unique_id).first()
    if row is None:
        raise QrCodeNotFound(f"QR code {qr_unique_id} not found")
    return row


def verify_and_track(qr_unique_id: str, scanned_by) -> CustomerQrCode:
    """Check a stored code before honouring a scan and count the use."""
    if not qr_unique_id:
        raise InvalidQrPayload('missing QR code identifier')
    try:
        scanner_id = int(scanned_by)
    except (TypeError, ValueError):
        scanner_id = 0
    if scanner_id <= 0:
        raise InvalidQrPayload('invalid scanner id')

    row = get_qr_code(qr_unique_id)
    if row.status != STATUS_ACTIVE:
        raise QrCodeInactive(f"QR code is {row.status.lower()}")
    now = utcnow()
    if row.expiry_date and as_utc(row.expiry_date) < now:
        row.status = STATUS_EXPIRED
        row.is_primary = False
        db.session.commit()
        raise QrCodeInactive('QR code is expired')
    if not verify_digital_signature(row.qr_data, row.digital_signature):
        raise InvalidQrPayload('QR code signature validation failed')

    row.uses_count = (row.uses_count or 0) + 1
    row.last_used_at = now
    db.session.commit()
    return row


def revoke_qr_code(qr_unique_id: str, reason: str | None = None) -> CustomerQrCode:
    row = get_qr_code(qr_unique_id)
    row.status = STATUS_REVOKED
    row.is_primary = False
    row.revoked_reason = reason
    row.revoked_at = utcnow()
    db.session.commit()
    logger.info("Revoked QR code %s: %s", qr_unique_id, reason or 'no reason given')
    return row


def get_qr_code_integrity(qr_unique_id: str) -> dict:
    row = CustomerQrCode.query.filter_by(qr_unique_id=qr_unique_id).first()
    if row is None:
        return {'valid': False, 'qrCodeId': qr_unique_id, 'status': 'NOT_FOUND', 'usesCount': 0,
                'message': 'QR code not found in database'}
    valid = row.status == STATUS_ACTIVE
    return {
        'valid': valid,
        'qrCodeId': qr_unique_id,
        'status': row.status,
        'lastUsed': row.last_used_at.isoformat() if row.last_used_at else None,
        'usesCount': row.uses_count or 0,
        'signatureValid': verify_digital_signature(row.qr_data, row.digital_signature),
        'message': 'QR code is valid' if valid else f"QR code status: {row.status}",
    }


def serialize_qr_code(row: CustomerQrCode) -> dict:
    return {
        'qr_unique_id': row.qr_unique_id,
        'customer_id': row.customer_id,
        'business_id': row.business_id,
        'qr_type': row.qr_type,
        'status': row.status,
        'is_primary': row.is_primary,
        'qr_data': row.qr_data,
        'qr_image_url': row.qr_image_url,
        'digital_signature': row.digital_signature,
        'verification_code': row.verification_code,
        'uses_count': row.uses_count or 0,
        'expiry_date': row.expiry_date.isoformat() if row.expiry_date else None,
    }
