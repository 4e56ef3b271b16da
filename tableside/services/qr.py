import base64
import secrets
from io import BytesIO

import qrcode

from tableside.config import settings


def new_session_token() -> str:
    # 24 random bytes -> 32 url-safe characters
    return secrets.token_urlsafe(24)


def table_join_url(table_id: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/customer/table/new/{table_id}"


def session_url(token: str) -> str:
    return f"{settings.PUBLIC_BASE_URL.rstrip('/')}/customer/table/{token}"


def qr_data_url(url: str) -> str:
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(url)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
