import io
import base64
import qrcode


def make_qr_data_url(text: str, box_size: int = 10, border: int = 4) -> str:
    """Render ``text`` as a QR code and return it as a PNG data URL."""
    qr = qrcode.QRCode(box_size=box_size, border=border)
    qr.add_data(text)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffered = io.BytesIO()
    img.save(buffered, format="PNG")
    qr_b64 = base64.b64encode(buffered.getvalue()).decode("ascii")
    return f"data:image/png;base64,{qr_b64}"
