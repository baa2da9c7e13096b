#!/usr/bin/env python3
import os, sys, io, csv, argparse, pathlib
import requests
from PIL import Image, ImageDraw, ImageFont

# Fetch customers' primary QR cards through the admin API and lay them out
# as printable cards. Outputs: PNGs, CSV, and optional A4 PDF sheet.

def parse_args():
    p = argparse.ArgumentParser(description='Print customer loyalty cards using the admin API')
    p.add_argument('customers', type=int, nargs='+', help='customer ids')
    p.add_argument('--base-url', default=os.environ.get('BASE_URL', 'http://localhost:5000'), help='Service base URL')
    p.add_argument('--admin-key', default=os.environ.get('ADMIN_API_KEY'), help='X-Admin-Key (env ADMIN_API_KEY)')
    p.add_argument('--title', default=os.environ.get('CARD_TITLE', 'Loyalty Card'), help='title printed on each card')
    p.add_argument('--out', default='out/cards', help='output directory (default: out/cards)')
    p.add_argument('--no-pdf', action='store_true', help='skip generating a combined A4 PDF sheet')
    return p.parse_args()


def fetch_card(base_url: str, key: str, customer_id: int):
    url = f"{base_url.rstrip('/')}/admin/customers/{customer_id}/qr"
    headers = {'X-Admin-Key': key, 'Accept': 'application/json'}
    r = requests.post(url, headers=headers, json={}, timeout=30)
    if r.status_code != 200:
        raise RuntimeError(f"customer {customer_id}: {r.status_code} {r.text[:200]}")
    qr_code = r.json()['qr_code']
    png = requests.post(url, headers={**headers, 'Accept': 'image/png'}, json={}, timeout=30)
    png.raise_for_status()
    return qr_code, png.content


def _centered(draw, y, text, font, width, fill):
    left, top, right, bottom = draw.textbbox((0, 0), text, font=font)
    draw.text(((width - (right - left)) // 2, y), text, fill=fill, font=font)


def make_card(qr_png_bytes: bytes, title: str, name: str, card_number: str, card_px=(800, 1000)) -> Image.Image:
    W, H = card_px
    bg = Image.new('RGB', (W, H), color=(255, 255, 255))
    draw = ImageDraw.Draw(bg)
    qr = Image.open(io.BytesIO(qr_png_bytes)).convert('RGB')
    qr_size = min(W - 120, int(H * 0.5))
    qr = qr.resize((qr_size, qr_size), Image.LANCZOS)
    qr_y = 180
    bg.paste(qr, ((W - qr_size) // 2, qr_y))
    try:
        font_title = ImageFont.truetype('Arial.ttf', 42)
        font_sub = ImageFont.truetype('Arial.ttf', 28)
        font_number = ImageFont.truetype('Arial.ttf', 40)
    except OSError:
        font_title = font_sub = font_number = ImageFont.load_default()
    _centered(draw, 30, title, font_title, W, (0, 0, 0))
    _centered(draw, 100, name, font_sub, W, (30, 30, 30))
    _centered(draw, qr_y + qr_size + 40, card_number, font_number, W, (0, 0, 0))
    return bg


def save_pdf_sheet(images: list[Image.Image], out_pdf: pathlib.Path, cols=2, rows=3, margin=50):
    if not images:
        return
    # A4 at 300 DPI ≈ 2480x3508 px
    page_w, page_h = 2480, 3508
    card_w = (page_w - margin * (cols + 1)) // cols
    card_h = (page_h - margin * (rows + 1)) // rows
    per_page = cols * rows
    pages = []
    for start in range(0, len(images), per_page):
        page = Image.new('RGB', (page_w, page_h), color=(255, 255, 255))
        for n, card in enumerate(images[start:start + per_page]):
            r, c = divmod(n, cols)
            page.paste(card.resize((card_w, card_h), Image.LANCZOS),
                       (margin + c * (card_w + margin), margin + r * (card_h + margin)))
        pages.append(page)
    pages[0].save(out_pdf, save_all=True, append_images=pages[1:], resolution=300)


def main():
    args = parse_args()
    if not args.admin_key:
        print('ERROR: missing --admin-key or env ADMIN_API_KEY', file=sys.stderr)
        sys.exit(1)
    out_root = pathlib.Path(args.out)
    png_dir = out_root / 'png'
    png_dir.mkdir(parents=True, exist_ok=True)

    rows, cards = [], []
    for i, customer_id in enumerate(args.customers):
        try:
            qr_code, png_bytes = fetch_card(args.base_url, args.admin_key, customer_id)
        except (requests.RequestException, RuntimeError) as e:
            print(f"[{i+1}/{len(args.customers)}] ERROR: {e}", file=sys.stderr)
            sys.exit(2)
        data = qr_code['qr_data']
        card = make_card(png_bytes, args.title, data.get('name', ''), data.get('cardNumber', ''))
        png_path = png_dir / f"card_{customer_id}.png"
        card.save(png_path)
        cards.append(card)
        rows.append({'customer_id': customer_id, 'card_number': data.get('cardNumber'),
                     'qr_unique_id': qr_code['qr_unique_id'], 'png': str(png_path.relative_to(out_root))})
        print(f"[{i+1}/{len(args.customers)}] {data.get('cardNumber')}")

    csv_path = out_root / 'cards.csv'
    with open(csv_path, 'w', newline='') as f:
        w = csv.DictWriter(f, fieldnames=['customer_id', 'card_number', 'qr_unique_id', 'png'])
        w.writeheader()
        w.writerows(rows)

    if not args.no_pdf:
        save_pdf_sheet(cards, out_root / 'cards.pdf')
        print(f"✅ Wrote PDF: {out_root / 'cards.pdf'}")
    print(f"✅ Done. CSV: {csv_path}\nPNG dir: {png_dir}")


if __name__ == '__main__':
    main()
