import io
import logging

import qrcode
from PIL import Image

logger = logging.getLogger(__name__)


def render_qr_png(data: str, *, size_px: int = 1024, border: int = 4) -> bytes:
    """
    Render a sticker QR code as PNG bytes.

    ``data`` is the canonical landing URL, never the bare key, so any phone
    camera opens the web app. ECC M keeps the module count low at small
    print sizes.
    """
    if not data:
        raise ValueError("QR payload must not be empty")

    qr = qrcode.QRCode(
        version=None,  # Auto
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=border,  # Quiet zone (standard is 4 modules)
    )
    qr.add_data(data)
    qr.make(fit=True)

    qr_img = qr.make_image(fill_color="black", back_color="white").convert('RGB')
    qr_img = qr_img.resize((size_px, size_px), resample=Image.Resampling.NEAREST)

    out = io.BytesIO()
    qr_img.save(out, format='PNG')
    logger.debug(f"[QR] Rendered {size_px}px sticker image (version {qr.version})")
    return out.getvalue()
