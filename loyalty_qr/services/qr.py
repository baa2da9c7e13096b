from dataclasses import dataclass
from urllib.parse import quote, urlencode
import io
import logging

import qrcode
import requests

from .signing import serialize_payload, config_value

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_API_URL = 'https://api.qrserver.com/v1/create-qr-code/'


@dataclass(frozen=True)
class VerifiedImageUrl:
    url: str
    verified = True


@dataclass(frozen=True)
class UnverifiedImageUrl:
    """The URL was built but the rendering service did not confirm it."""
    url: str
    reason: str
    verified = False


def build_qr_image_url(data, size: int | None = None, ecc: str | None = None) -> str:
    base = config_value('QR_IMAGE_API_URL') or DEFAULT_IMAGE_API_URL
    size = size or config_value('QR_IMAGE_SIZE', 300)
    query = urlencode({
        'size': f"{size}x{size}",
        'data': serialize_payload(data),
        'ecc': ecc or config_value('QR_IMAGE_ECC', 'M'),
    }, quote_via=quote)
    return f"{base}?{query}"


def generate_qr_image_url(data, size: int | None = None, probe: bool | None = None):
    """Build the external image URL for ``data`` and optionally probe it.

    A failed probe still yields the URL, wrapped as ``UnverifiedImageUrl``.
    """
    url = build_qr_image_url(data, size)
    if probe is None:
        probe = config_value('QR_IMAGE_PROBE', True)
    if not probe:
        return UnverifiedImageUrl(url, 'probe disabled')
    try:
        r = requests.head(url, timeout=config_value('QR_IMAGE_PROBE_TIMEOUT', 5), allow_redirects=True)
        r.raise_for_status()
    except requests.RequestException as e:
        logger.warning("Error verifying QR code URL: %s", e)
        return UnverifiedImageUrl(url, str(e))
    return VerifiedImageUrl(url)


def make_qr_bytes(data) -> bytes:
    """Return QR PNG bytes for the provided payload."""
    img = qrcode.make(serialize_payload(data))
    buf = io.BytesIO()
    img.save(buf, format='PNG')
    return buf.getvalue()
