import logging
from datetime import datetime
from flask import current_app
from sqlalchemy import case, func
from sqlalchemy.exc import SQLAlchemyError

from ..errors import (
    BusinessMismatch, DuplicateScan, InvalidQrPayload, QrCodeError, QrCodeInactive, QrCodeNotFound,
)
from ..models import db, Business, Customer, LoyaltyCard, LoyaltyProgram, PromoCode, QrScanLog
from .payloads import QrCodeType
from .qr_codes import utcnow, as_utc
from .rate_limit import check_rate_ip, claim_scan, release_scan
from .signing import serialize_payload
from .validation import parse_scanned_payload

logger = logging.getLogger(__name__)

SCAN_TYPES = {
    QrCodeType.CUSTOMER: 'CUSTOMER_CARD',
    QrCodeType.LOYALTY_CARD: 'LOYALTY_CARD',
    QrCodeType.PROMO_CODE: 'PROMO_CODE',
    QrCodeType.UNKNOWN: 'UNKNOWN',
}


def _int_id(value, what: str) -> int:
    try:
        v = int(value)
    except (TypeError, ValueError):
        raise InvalidQrPayload(f"invalid {what}")
    if v <= 0:
        raise InvalidQrPayload(f"invalid {what}")
    return v


def _log_scan(**fields):
    # A failed log write must not undo or block the scan
    try:
        db.session.add(QrScanLog(**fields))
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error("Error logging QR scan: %s", e)


def _active_program(business: Business) -> LoyaltyProgram:
    program = (LoyaltyProgram.query
               .filter_by(business_id=business.id, status='active')
               .order_by(LoyaltyProgram.id)
               .first())
    if program is None:
        raise QrCodeNotFound('no active loyalty program for this business')
    return program


def _customer(customer_id) -> Customer:
    customer = db.session.get(Customer, _int_id(customer_id, 'customer id'))
    if customer is None:
        raise QrCodeNotFound('customer not found')
    return customer


def _card_for_customer_scan(payload, business: Business):
    customer = _customer(payload.customer_id)
    program = _active_program(business)
    card = LoyaltyCard.query.filter_by(customer_id=customer.id, program_id=program.id).first()
    if card is None:
        card = LoyaltyCard(customer_id=customer.id, business_id=business.id, program_id=program.id, points=0)
        db.session.add(card)
        db.session.flush()
        logger.info("Enrolled customer %s in program %s on first scan", customer.id, program.id)
    elif not card.is_active:
        raise QrCodeInactive('loyalty card is inactive')
    return customer, program, card


def _card_for_loyalty_scan(payload, business: Business):
    program = db.session.get(LoyaltyProgram, _int_id(payload.program_id, 'program id'))
    if program is None:
        raise QrCodeNotFound('loyalty program not found')
    if program.business_id != business.id:
        raise BusinessMismatch('this QR code belongs to a different business')
    customer = _customer(payload.customer_id)
    card = db.session.get(LoyaltyCard, _int_id(payload.card_id, 'card id'))
    if card is None or card.customer_id != customer.id or card.program_id != program.id:
        raise InvalidQrPayload('loyalty card does not match QR code')
    if not card.is_active:
        raise QrCodeInactive('loyalty card is inactive')
    return customer, program, card


def _promo(payload, business: Business) -> PromoCode:
    promo = PromoCode.query.filter_by(code=payload.code).first()
    if promo is None:
        raise QrCodeNotFound('promo code not found')
    if promo.business_id != business.id:
        raise BusinessMismatch('this promo code belongs to a different business')
    if promo.status != 'active':
        raise QrCodeInactive(f"promo code is {promo.status}")
    if promo.expires_at and as_utc(promo.expires_at) < utcnow():
        raise QrCodeInactive('promo code is expired')
    return promo


def process_scan(raw, business_id, points=None, ip: str | None = None) -> dict:
    """Handle one scan made by ``business_id``.

    Customer and loyalty-card codes award ``points`` on the matching card;
    promo codes are checked but award nothing. Every outcome is written to
    ``QrScanLog``; failures are raised as ``QrCodeError``.
    """
    business = db.session.get(Business, _int_id(business_id, 'business id'))
    if business is None:
        raise QrCodeNotFound('business not found')
    if ip:
        check_rate_ip(ip)
    points = current_app.config.get('SCAN_POINTS_DEFAULT', 10) if points is None else points
    if isinstance(points, bool) or not isinstance(points, int) or points < 0:
        raise InvalidQrPayload('invalid points')

    payload = parse_scanned_payload(raw)
    scanned_data = raw if isinstance(raw, str) else serialize_payload(raw)
    log = {'scan_type': SCAN_TYPES[payload.type], 'scanned_by': business.id,
           'scanned_data': scanned_data[:2000], 'ip': ip}

    claimed = None
    try:
        if payload.type is QrCodeType.PROMO_CODE:
            promo = _promo(payload, business)
            if not claim_scan(f"promo:{promo.id}", business.id):
                raise DuplicateScan('promo code was just scanned')
            claimed = f"promo:{promo.id}"
            db.session.commit()
            _log_scan(success=True, promo_code_id=promo.id, **log)
            return {'success': True, 'type': payload.type.value, 'code': promo.code,
                    'discount': promo.discount, 'message': 'Promo code is valid'}

        if payload.type is QrCodeType.CUSTOMER:
            customer, program, card = _card_for_customer_scan(payload, business)
        elif payload.type is QrCodeType.LOYALTY_CARD:
            customer, program, card = _card_for_loyalty_scan(payload, business)
        else:
            raise InvalidQrPayload('unrecognised QR code')

        if not claim_scan(f"customer:{customer.id}", business.id):
            raise DuplicateScan('customer was just scanned')
        claimed = f"customer:{customer.id}"
        card.points = (card.points or 0) + points
        db.session.commit()
    except QrCodeError as e:
        db.session.rollback()
        customer_id = str(getattr(payload, 'customer_id', ''))
        _log_scan(success=False, error_message=str(e),
                  customer_id=int(customer_id) if customer_id.isdigit() else None, **log)
        logger.info("Scan by business %s rejected: %s", business.id, e)
        raise
    except SQLAlchemyError as e:
        # free the de-dup key, nothing was saved
        db.session.rollback()
        if claimed:
            release_scan(claimed, business.id)
        _log_scan(success=False, error_message=f"database error: {e.__class__.__name__}", **log)
        logger.exception("Scan by business %s could not be saved", business.id)
        raise

    _log_scan(success=True, customer_id=customer.id, program_id=program.id, points_awarded=points, **log)
    logger.info("Awarded %s points to customer %s on card %s", points, customer.id, card.id)
    return {
        'success': True,
        'type': payload.type.value,
        'message': f"{points} points awarded successfully",
        'pointsAwarded': points,
        'customerId': customer.id,
        'customerName': customer.name,
        'programName': program.name,
        'cardId': card.id,
        'balance': card.points,
    }


def get_scan_stats(business_id: int, start: datetime | None = None, end: datetime | None = None) -> dict:
    q = db.session.query(
        func.count(QrScanLog.id),
        func.sum(case((QrScanLog.success.is_(True), 1), else_=0)),
        func.sum(case((QrScanLog.success.is_(False), 1), else_=0)),
        func.sum(func.coalesce(QrScanLog.points_awarded, 0)),
    ).filter(QrScanLog.scanned_by == business_id)
    if start is not None:
        q = q.filter(QrScanLog.created_at >= start)
    if end is not None:
        q = q.filter(QrScanLog.created_at <= end)
    total, ok, failed, pts = q.one()
    return {
        'totalScans': int(total or 0),
        'successfulScans': int(ok or 0),
        'failedScans': int(failed or 0),
        'totalPointsAwarded': int(pts or 0),
    }


def recent_scans(business_id: int, limit: int = 50) -> list[dict]:
    rows = (QrScanLog.query.filter_by(scanned_by=business_id)
            .order_by(QrScanLog.id.desc()).limit(limit).all())
    return [{
        'scan_type': s.scan_type,
        'success': s.success,
        'customer_id': s.customer_id,
        'points_awarded': s.points_awarded,
        'error_message': s.error_message,
        'scanned_data': s.scanned_data,
        'created_at': s.created_at.isoformat() if s.created_at else None,
    } for s in rows]
