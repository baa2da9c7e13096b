from flask import Blueprint, jsonify, request, current_app, send_file
from datetime import datetime
from functools import wraps
import io
from .models import db, Customer, LoyaltyCard, PromoCode
from .services.qr import make_qr_bytes
from .services.qr_codes import (
    build_promo_qr, ensure_loyalty_card_qr_code, fix_customer_qr_code, get_or_create_primary_qr_code,
    issue_customer_qr_code, issue_loyalty_card_qr_code, revoke_qr_code, serialize_qr_code, verify_and_track,
)
from .services.scans import get_scan_stats, recent_scans
from .services.validation import clear_validation_cache

bp = Blueprint('admin', __name__)

def require_admin_key(view):
    @wraps(view)
    def wrapped(*args, **kwargs):
        # Simple API-key auth
        api_key = request.headers.get('X-Admin-Key') or request.args.get('key')
        if not api_key or api_key != (current_app.config.get('ADMIN_API_KEY') or ''):
            return jsonify({'error': 'unauthorized'}), 401
        return view(*args, **kwargs)
    return wrapped

def _body() -> dict:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}

def _get_or_404(model, ident):
    obj = db.session.get(model, ident)
    if obj is None:
        return None, (jsonify({'error': 'not_found'}), 404)
    return obj, None

def _qr_response(row, status=200):
    # Return JSON, or the PNG itself when asked
    accept = request.headers.get('Accept', '')
    if 'image/png' in accept:
        png = make_qr_bytes(row.qr_data)
        return send_file(
            io.BytesIO(png), mimetype='image/png', as_attachment=False,
            download_name=f"qr_{row.qr_unique_id}.png", etag=False,
        ), status
    return jsonify({'ok': True, 'qr_code': serialize_qr_code(row)}), status

@bp.get('/ping')
def ping():
    return jsonify({'admin': 'ok'})

@bp.post('/customers/<int:customer_id>/qr')
@require_admin_key
def issue_customer_qr(customer_id: int):
    customer, err = _get_or_404(Customer, customer_id)
    if err:
        return err
    data = _body()
    if data.get('regenerate'):
        return _qr_response(issue_customer_qr_code(customer), 201)
    return _qr_response(get_or_create_primary_qr_code(customer))

@bp.post('/customers/<int:customer_id>/qr/fix')
@require_admin_key
def fix_customer_qr(customer_id: int):
    customer, err = _get_or_404(Customer, customer_id)
    if err:
        return err
    report = fix_customer_qr_code(customer)
    return jsonify({
        'ok': True,
        'changed': report.changed,
        'primary': report.primary,
        'cards_issued': report.cards_issued,
        'images_repaired': report.images_repaired,
    })

@bp.post('/loyalty-cards/<int:card_id>/qr')
@require_admin_key
def issue_card_qr(card_id: int):
    card, err = _get_or_404(LoyaltyCard, card_id)
    if err:
        return err
    data = _body()
    if data.get('regenerate'):
        return _qr_response(issue_loyalty_card_qr_code(card), 201)
    return _qr_response(ensure_loyalty_card_qr_code(card))

@bp.post('/promo-qr')
@require_admin_key
def promo_qr():
    data = _body()
    promo = PromoCode.query.filter_by(code=(data.get('code') or '').strip()).first()
    if promo is None:
        return jsonify({'error': 'not_found'}), 404
    return jsonify({'ok': True, **build_promo_qr(promo)})

@bp.post('/qr/<qr_unique_id>/revoke')
@require_admin_key
def revoke(qr_unique_id: str):
    data = _body()
    row = revoke_qr_code(qr_unique_id, data.get('reason'))
    return jsonify({'ok': True, 'qr_code': serialize_qr_code(row)})

@bp.post('/qr/<qr_unique_id>/verify')
@require_admin_key
def verify(qr_unique_id: str):
    data = _body()
    row = verify_and_track(qr_unique_id, data.get('scanned_by'))
    return jsonify({'ok': True, 'qr_code': serialize_qr_code(row)})

@bp.get('/businesses/<int:business_id>/scan-stats')
@require_admin_key
def scan_stats(business_id: int):
    try:
        start = datetime.fromisoformat(request.args['start']) if request.args.get('start') else None
        end = datetime.fromisoformat(request.args['end']) if request.args.get('end') else None
    except ValueError:
        return jsonify({'error': 'bad_date'}), 400
    return jsonify({
        'stats': get_scan_stats(business_id, start, end),
        'recent': recent_scans(business_id, limit=request.args.get('limit', 20, type=int)),
    })

@bp.post('/validation-cache/clear')
@require_admin_key
def clear_cache():
    clear_validation_cache()
    return jsonify({'ok': True})
