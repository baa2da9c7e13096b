import logging
from dotenv import load_dotenv

load_dotenv()

from flask import Flask, jsonify
from werkzeug.middleware.proxy_fix import ProxyFix
from flask_migrate import Migrate
from .config import Config
from .errors import QrCodeError
from .models import db


def _configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
    logging.getLogger('loyalty_qr').setLevel(level)


def create_app(config=None):
    app = Flask(__name__)
    app.config.from_object(config or Config())
    _configure_logging(app)
    db.init_app(app)
    Migrate(app, db)
    # Trust reverse proxy headers (Render/Heroku)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    with app.app_context():
        db.create_all()

    from .routes_api import bp as api_bp
    from .routes_admin import bp as admin_bp
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(admin_bp, url_prefix='/admin')

    @app.errorhandler(QrCodeError)
    def qr_error(e):
        return jsonify({'error': e.code, 'message': str(e)}), e.status

    @app.get('/health')
    def health():
        return {'ok': True}

    return app
