import pytest

from loyalty_qr import create_app
from loyalty_qr.config import TestConfig
from loyalty_qr.models import db, Business, Customer, LoyaltyProgram, LoyaltyCard, PromoCode
from loyalty_qr.services import rate_limit
from loyalty_qr.services.validation import clear_validation_cache


@pytest.fixture
def app():
    app = create_app(TestConfig())
    rate_limit.reset()
    clear_validation_cache()
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()
    rate_limit.reset()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers():
    return {'X-Admin-Key': TestConfig.ADMIN_API_KEY}


@pytest.fixture
def business(app):
    b = Business(name='Demo Coffee')
    db.session.add(b)
    db.session.commit()
    return b


@pytest.fixture
def program(business):
    p = LoyaltyProgram(business_id=business.id, name='Coffee Club')
    db.session.add(p)
    db.session.commit()
    return p


@pytest.fixture
def customer(app):
    c = Customer(name='Ada Lovelace', email='ada@example.com')
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def card(customer, program):
    c = LoyaltyCard(customer_id=customer.id, business_id=program.business_id, program_id=program.id, points=20)
    db.session.add(c)
    db.session.commit()
    return c


@pytest.fixture
def promo(business):
    p = PromoCode(business_id=business.id, code='WELCOME10', discount=10)
    db.session.add(p)
    db.session.commit()
    return p
