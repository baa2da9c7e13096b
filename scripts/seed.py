import os, sys, pathlib
# Ensure project root is on PYTHONPATH when running directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from loyalty_qr import create_app
from loyalty_qr.models import db, Business, Customer, LoyaltyProgram, LoyaltyCard, PromoCode
from loyalty_qr.services.qr_codes import issue_customer_qr_code, issue_loyalty_card_qr_code

app = create_app()
with app.app_context():
    b = Business(name='Demo Coffee'); db.session.add(b)
    db.session.flush()
    p = LoyaltyProgram(business_id=b.id, name='Coffee Club'); db.session.add(p)
    c = Customer(name='Demo Customer', email=os.environ.get('SEED_EMAIL', 'demo@example.com')); db.session.add(c)
    db.session.add(PromoCode(business_id=b.id, code='WELCOME10', discount=10))
    db.session.flush()
    card = LoyaltyCard(customer_id=c.id, business_id=b.id, program_id=p.id); db.session.add(card)
    db.session.commit()

    primary = issue_customer_qr_code(c)
    card_qr = issue_loyalty_card_qr_code(card)
    print('business_id:', b.id)
    print('customer card:', primary.qr_data['cardNumber'], primary.qr_unique_id)
    print('loyalty card QR:', card_qr.qr_unique_id)
    print('image:', primary.qr_image_url)
