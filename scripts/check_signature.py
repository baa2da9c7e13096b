#!/usr/bin/env python3
import sys, json, time, pathlib

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from loyalty_qr.services.signing import parse_signature, verify_digital_signature

# Usage: python scripts/check_signature.py <PAYLOAD_JSON|@file> <SIGNATURE> <QR_SECRET_KEY> [MAX_AGE_DAYS]
# Checks a stored payload/signature pair offline and reports its age

def err(msg):
    print(f"ERROR: {msg}")
    sys.exit(1)

if len(sys.argv) < 4:
    err("Usage: check_signature.py <PAYLOAD_JSON|@file> <SIGNATURE> <QR_SECRET_KEY> [MAX_AGE_DAYS]")

raw = sys.argv[1]
if raw.startswith('@'):
    with open(raw[1:], 'r') as f:
        raw = f.read()
try:
    payload = json.loads(raw)
except ValueError as e:
    err(f"payload is not JSON: {e}")

signed = parse_signature(sys.argv[2].strip())
if signed is None:
    err("malformed signature, expected <digest>.<unix-seconds>")

max_age_days = int(sys.argv[4]) if len(sys.argv) > 4 else 180
age = int(time.time()) - signed.timestamp
print(json.dumps({
    'scheme': signed.scheme,
    'signed_at': signed.timestamp,
    'age_s': age,
    'expired': age > max_age_days * 86400,
    'valid': verify_digital_signature(payload, signed, secret=sys.argv[3], max_age_seconds=max_age_days * 86400),
}, indent=2))
