from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import func
import time, os

QR_TYPE_CUSTOMER_CARD = 'CUSTOMER_CARD'
QR_TYPE_LOYALTY_CARD = 'LOYALTY_CARD'

STATUS_ACTIVE = 'ACTIVE'
STATUS_REVOKED = 'REVOKED'
STATUS_EXPIRED = 'EXPIRED'
STATUS_REPLACED = 'REPLACED'


def _gen_bigint_id():
    """Generate a sortable 64-bit int: millis timestamp << 16 | 16 bits randomness."""
    return (int(time.time() * 1000) << 16) | int.from_bytes(os.urandom(2), 'big')

db = SQLAlchemy()

class Business(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(32), default='active')
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

class Customer(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

class LoyaltyProgram(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('business.id'), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(32), default='active')
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())

class LoyaltyCard(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customer.id'), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey('business.id'), nullable=False)
    program_id = db.Column(db.Integer, db.ForeignKey('loyalty_program.id'), nullable=False)
    points = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (db.UniqueConstraint('customer_id', 'program_id', name='uq_card_customer_program'),)

class PromoCode(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey('business.id'), nullable=False)
    code = db.Column(db.String(64), nullable=False, unique=True)
    discount = db.Column(db.Float)
    expires_at = db.Column(db.DateTime(timezone=True))
    status = db.Column(db.String(32), default='active')

class CustomerQrCode(db.Model):
    __tablename__ = 'customer_qrcodes'

    id = db.Column(db.BigInteger, primary_key=True, default=_gen_bigint_id)
    qr_unique_id = db.Column(db.String(36), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customer.id'), nullable=False)
    business_id = db.Column(db.Integer, db.ForeignKey('business.id'))
    qr_data = db.Column(db.JSON, nullable=False)
    qr_image_url = db.Column(db.Text)
    qr_type = db.Column(db.String(32), nullable=False)  # CUSTOMER_CARD|LOYALTY_CARD
    status = db.Column(db.String(32), nullable=False, default=STATUS_ACTIVE)
    verification_code = db.Column(db.String(6), nullable=False)
    is_primary = db.Column(db.Boolean, nullable=False, default=False)
    uses_count = db.Column(db.Integer, nullable=False, default=0)
    last_used_at = db.Column(db.DateTime(timezone=True))
    expiry_date = db.Column(db.DateTime(timezone=True))
    digital_signature = db.Column(db.Text)
    revoked_reason = db.Column(db.Text)
    revoked_at = db.Column(db.DateTime(timezone=True))
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
    updated_at = db.Column(db.DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class QrScanLog(db.Model):
    __tablename__ = 'qr_scan_logs'

    id = db.Column(db.BigInteger, primary_key=True, default=_gen_bigint_id)
    scan_type = db.Column(db.String(32))  # CUSTOMER_CARD|LOYALTY_CARD|PROMO_CODE|UNKNOWN
    scanned_by = db.Column(db.Integer)
    customer_id = db.Column(db.Integer)
    program_id = db.Column(db.Integer)
    promo_code_id = db.Column(db.Integer)
    points_awarded = db.Column(db.Integer)
    success = db.Column(db.Boolean, nullable=False, default=False)
    scanned_data = db.Column(db.Text)
    error_message = db.Column(db.Text)
    ip = db.Column(db.String(64))
    created_at = db.Column(db.DateTime(timezone=True), server_default=func.now())
