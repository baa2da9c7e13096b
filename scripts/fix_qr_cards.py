#!/usr/bin/env python3
import sys, argparse, logging, pathlib

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from loyalty_qr import create_app
from loyalty_qr.models import db, Customer
from loyalty_qr.services.qr_codes import fix_customer_qr_code

# Regenerate missing or malformed customer QR codes, then make sure every
# active loyalty card has a scannable code of its own.

logger = logging.getLogger('fix_qr_cards')


def parse_args():
    p = argparse.ArgumentParser(description='Repair customer and loyalty-card QR codes')
    p.add_argument('--customer', type=int, action='append', help='only this customer id (repeatable)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    fixed = failed = 0
    with app.app_context():
        q = Customer.query.order_by(Customer.id)
        if args.customer:
            q = q.filter(Customer.id.in_(args.customer))
        customers = q.all()
        logger.info("Found %d customers to process", len(customers))
        for customer in customers:
            try:
                report = fix_customer_qr_code(customer)
            except Exception:
                db.session.rollback()
                logger.exception("Error fixing QR code for customer %s", customer.id)
                failed += 1
                continue
            if report.changed:
                fixed += 1
                print(f"customer {customer.id}: primary={report.primary} "
                      f"cards_issued={report.cards_issued} images_repaired={report.images_repaired}")
    print(f"Done. {fixed} customers changed, {failed} failed, {len(customers) - fixed - failed} already fine.")
    sys.exit(1 if failed else 0)


if __name__ == '__main__':
    main()
