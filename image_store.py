# image_store.py: promo images are kept as Base64 inside MongoDB
import base64
import os
import random
from datetime import datetime
from io import BytesIO

import certifi
import requests
from PIL import Image, ImageDraw, ImageFont
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from werkzeug.utils import secure_filename

from logger import jlog

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}

# Personalised band under the base image
BAND_HEIGHT = 180
BAND_COLOR = (209, 122, 34, 255)
TEXT_COLOR = (0, 0, 0, 255)
FONT_SIZE = 64
MIN_FONT_SIZE = 16
FONT_STEP = 4
LINE_SPACING = 4
TEXT_PADDING = 30
NAME_OFFSET = 30
MOBILE_OFFSET = 100


# ===== HTTP session (certifi CA, retries, UA) =====
def _make_session() -> requests.Session:
    s = requests.Session()
    s.verify = certifi.where()
    s.headers.update({"User-Agent": "PromoApp/1.0 (+server)"})
    retries = Retry(
        total=3,
        backoff_factor=0.6,
        status_forcelist=[429, 500, 502, 503, 504],
        allowed_methods={"GET"},
        raise_on_status=False,
    )
    s.mount("https://", HTTPAdapter(max_retries=retries))
    s.mount("http://", HTTPAdapter(max_retries=retries))
    return s


_http = _make_session()


def allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def mime_type_for(filename: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower()
    return MIME_TYPES.get(ext, "image/jpeg")


def promo_filename(original_name: str) -> str:
    ext = os.path.splitext(secure_filename(original_name or ""))[1].lower() or ".png"
    stamp = int(datetime.utcnow().timestamp() * 1000)
    return f"promo-base-{stamp}-{random.randint(0, 10**9)}{ext}"


def encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode(image_data: str) -> bytes:
    return base64.b64decode(image_data)


def data_url(image_data: str, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{image_data}"


def fetch_remote(url: str, timeout=30):
    """Download an image (e.g. a Cloudinary URL); returns (bytes, mime_type)."""
    resp = _http.get(url, timeout=timeout)
    resp.raise_for_status()
    content_type = (resp.headers.get("Content-Type") or "").split(";")[0].strip()
    if not content_type.startswith("image/"):
        content_type = mime_type_for(url.split("?", 1)[0])
    jlog("remote_image_fetched", url=url, status=resp.status_code, bytes=len(resp.content))
    return resp.content, content_type


def _font(size=FONT_SIZE):
    try:
        return ImageFont.truetype("DejaVuSans-Bold.ttf", size)
    except OSError:
        return ImageFont.load_default(size=size)


def _text_width(draw, text, font):
    left, _, right, _ = draw.textbbox((0, 0), text, font=font)
    return right - left


def _line_height(draw, font):
    _, top, _, bottom = draw.textbbox((0, 0), "Ag", font=font)
    return bottom - top


def _split_word(draw, word, max_width, font):
    chunks, current = [], ""
    for ch in word:
        if current and _text_width(draw, current + ch, font) > max_width:
            chunks.append(current)
            current = ch
        else:
            current += ch
    if current:
        chunks.append(current)
    return chunks


def wrap_text(draw, text, max_width, font):
    """Break ``text`` into lines no wider than ``max_width``; over-long words are split."""
    lines, current = [], ""
    for word in (text or "").split():
        pieces = [word]
        if _text_width(draw, word, font) > max_width:
            pieces = _split_word(draw, word, max_width, font)
        for piece in pieces:
            candidate = f"{current} {piece}" if current else piece
            if current and _text_width(draw, candidate, font) > max_width:
                lines.append(current)
                current = piece
            else:
                current = candidate
    if current:
        lines.append(current)
    return lines


def fit_text(draw, text, max_width, max_height):
    """Wrapped lines and the largest font (down to MIN_FONT_SIZE) whose block fits the box."""
    size = FONT_SIZE
    while True:
        font = _font(size)
        lines = wrap_text(draw, text, max_width, font)
        height = len(lines) * _line_height(draw, font) + max(len(lines) - 1, 0) * LINE_SPACING
        if height <= max_height or size <= MIN_FONT_SIZE:
            return lines, font
        size = max(size - FONT_STEP, MIN_FONT_SIZE)


def _draw_block(draw, text, top, width, max_height):
    usable = width - TEXT_PADDING * 2
    lines, font = fit_text(draw, text, usable, max_height)
    y = top
    for line in lines:
        x = TEXT_PADDING + max((usable - _text_width(draw, line, font)) / 2, 0)
        draw.text((x, y), line, fill=TEXT_COLOR, font=font)
        y += _line_height(draw, font) + LINE_SPACING


def personalize(image_bytes: bytes, display_name: str, mobile: str) -> bytes:
    """Extend the base image with a coloured band carrying the member's name and mobile; PNG bytes out."""
    base = Image.open(BytesIO(image_bytes)).convert("RGBA")
    width, height = base.size

    canvas = Image.new("RGBA", (width, height + BAND_HEIGHT), BAND_COLOR)
    canvas.paste(base, (0, 0))

    draw = ImageDraw.Draw(canvas)
    _draw_block(draw, display_name, height + NAME_OFFSET, width, MOBILE_OFFSET - NAME_OFFSET)
    _draw_block(draw, mobile, height + MOBILE_OFFSET, width, BAND_HEIGHT - MOBILE_OFFSET)

    out = BytesIO()
    canvas.save(out, format="PNG")
    return out.getvalue()
