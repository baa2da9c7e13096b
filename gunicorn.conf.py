import multiprocessing
import os

wsgi_app = "loyalty_qr:create_app()"

# Scan and issuance requests are short; a few threads per worker is enough
workers = int(os.environ.get("WEB_CONCURRENCY", (multiprocessing.cpu_count() * 2) + 1))
threads = 2
worker_class = "gthread"
preload_app = True
bind = f":{os.environ.get('PORT', '8000')}"
# Heroku/Render style proxy headers
forwarded_allow_ips = "*"
# Outbound probes to the QR image service are bounded by QR_IMAGE_PROBE_TIMEOUT
timeout = 60
keepalive = 75
accesslog = "-"
errorlog = "-"
loglevel = os.environ.get("LOG_LEVEL", "info").lower()
