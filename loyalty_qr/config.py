import os


def _flag(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() not in ('0', 'false', 'no', 'off')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///local.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    USE_REDIS = _flag('USE_REDIS', '1')
    ADMIN_API_KEY = os.environ.get('ADMIN_API_KEY')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Signing
    QR_SECRET_KEY = os.environ.get('QR_SECRET_KEY', 'loyalty-qr-dev-key')
    QR_SIGNATURE_SCHEME = os.environ.get('QR_SIGNATURE_SCHEME', 'legacy')  # legacy|hmac
    QR_SIGNATURE_EXPIRY_DAYS = int(os.environ.get('QR_SIGNATURE_EXPIRY_DAYS', '180'))
    QR_CODE_EXPIRY_DAYS = int(os.environ.get('QR_CODE_EXPIRY_DAYS', '365'))

    # External image rendering
    QR_IMAGE_API_URL = os.environ.get('QR_IMAGE_API_URL', 'https://api.qrserver.com/v1/create-qr-code/')
    QR_IMAGE_SIZE = int(os.environ.get('QR_IMAGE_SIZE', '300'))
    QR_IMAGE_ECC = os.environ.get('QR_IMAGE_ECC', 'M')
    QR_IMAGE_PROBE = _flag('QR_IMAGE_PROBE', '1')
    QR_IMAGE_PROBE_TIMEOUT = float(os.environ.get('QR_IMAGE_PROBE_TIMEOUT', '5'))

    # Scanning
    SCAN_POINTS_DEFAULT = int(os.environ.get('SCAN_POINTS_DEFAULT', '10'))
    SCAN_DEDUP_SECONDS = int(os.environ.get('SCAN_DEDUP_SECONDS', '30'))
    SCAN_RATE_LIMIT = int(os.environ.get('SCAN_RATE_LIMIT', '60'))

    def __init__(self):
        # Optional fallbacks to support Secret Files on Render (/etc/secrets)
        if (not self.SECRET_KEY) or self.SECRET_KEY == 'dev':
            self.SECRET_KEY = _read_secret('/etc/secrets/secret_key') or self.SECRET_KEY
        if (not self.QR_SECRET_KEY) or self.QR_SECRET_KEY == 'loyalty-qr-dev-key':
            self.QR_SECRET_KEY = _read_secret('/etc/secrets/qr_secret_key') or self.QR_SECRET_KEY
        self.QR_SIGNATURE_SCHEME = (self.QR_SIGNATURE_SCHEME or 'legacy').lower()


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    USE_REDIS = False
    ADMIN_API_KEY = 'test-key'
    QR_SECRET_KEY = 'test-secret'
    QR_IMAGE_PROBE = False
    SCAN_RATE_LIMIT = 1000

    def __init__(self):
        self.QR_SIGNATURE_SCHEME = 'legacy'


def _read_secret(path: str) -> str | None:
    try:
        with open(path, 'r') as f:
            return f.read().strip() or None
    except OSError:
        return None
