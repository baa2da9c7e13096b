from flask import Blueprint, request, jsonify
from .services.card_number import generate_consistent_card_number
from .services.payloads import QrCodeType
from .services.qr_codes import get_qr_code_integrity
from .services.scans import process_scan
from .services.validation import parse_scanned_payload, validate_qr_code_data

bp = Blueprint('api', __name__)

def _json_object():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    return data if isinstance(data, dict) else None

@bp.post('/qr/validate')
def validate():
    data = _json_object()
    if data is None:
        return jsonify({'error': 'bad_request'}), 400
    if 'raw' in data:
        payload = parse_scanned_payload(data['raw'])
        if payload.type is QrCodeType.UNKNOWN:
            payload = None
    else:
        payload = validate_qr_code_data(data.get('payload'))
    if payload is None:
        return jsonify({'valid': False, 'type': QrCodeType.UNKNOWN.value, 'data': None})
    return jsonify({'valid': True, 'type': payload.type.value, 'data': payload.to_dict()})

@bp.post('/qr/scan')
def scan():
    data = _json_object()
    if data is None:
        return jsonify({'error': 'bad_request'}), 400
    if 'raw' not in data:
        return jsonify({'error': 'missing_raw'}), 400
    result = process_scan(
        data['raw'],
        data.get('business_id'),
        points=data.get('points'),
        ip=request.remote_addr or '0.0.0.0',
    )
    return jsonify(result)

@bp.get('/qr/<qr_unique_id>/status')
def status(qr_unique_id: str):
    result = get_qr_code_integrity(qr_unique_id)
    return jsonify(result), (404 if result['status'] == 'NOT_FOUND' else 200)

@bp.get('/card-number/<user_id>')
def card_number(user_id: str):
    return jsonify({'user_id': user_id, 'card_number': generate_consistent_card_number(user_id)})
