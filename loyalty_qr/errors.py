class QrCodeError(ValueError):
    """Base class for QR issuance and scan failures.

    ``code`` is the machine-readable value returned to API clients and
    ``status`` the HTTP status the blueprints answer with.
    """
    code = 'qr_error'
    status = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)


class InvalidQrPayload(QrCodeError):
    code = 'invalid_payload'


class QrCodeNotFound(QrCodeError):
    code = 'not_found'
    status = 404


class QrCodeInactive(QrCodeError):
    code = 'inactive'
    status = 403


class BusinessMismatch(QrCodeError):
    code = 'business_mismatch'
    status = 403


class DuplicateScan(QrCodeError):
    code = 'duplicate_scan'
    status = 409


class RateLimitExceeded(QrCodeError):
    code = 'rate_exceeded'
    status = 429
