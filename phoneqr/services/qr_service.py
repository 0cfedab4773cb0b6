import base64
import io
import json
from dataclasses import dataclass

import qrcode

from phoneqr.core.config import settings

PAYLOAD_TYPE = "phone_verification"


@dataclass(frozen=True)
class ScanPayload:
    session_id: str
    phone: str
    timestamp: int | None = None


class QRService:
    @staticmethod
    def build_payload(session_id: str, phone: str, timestamp: int) -> str:
        """
        Serializes the verification payload to compact JSON.
        This exact string is what ends up inside the QR image.
        """
        data = {
            "type": PAYLOAD_TYPE,
            "session_id": session_id,
            "phone": phone,
            "timestamp": timestamp,
        }
        return json.dumps(data, separators=(",", ":"))

    @staticmethod
    def create_qr_image(data_str: str) -> str:
        """
        Creates a QR code image and returns it as a PNG data URI
        """
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=settings.QR_BOX_SIZE,
            border=settings.QR_BORDER,
        )
        qr.add_data(data_str)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffered = io.BytesIO()
        img.save(buffered, format="PNG")
        img_str = base64.b64encode(buffered.getvalue()).decode()
        return f"data:image/png;base64,{img_str}"

    @staticmethod
    def parse_payload(payload_str: str) -> ScanPayload | None:
        """
        Parses a decoded QR string.
        Returns None for anything that is not a phone verification payload
        """
        try:
            data = json.loads(payload_str)
        except (TypeError, ValueError):
            return None

        if not isinstance(data, dict) or data.get("type") != PAYLOAD_TYPE:
            return None

        session_id = data.get("session_id")
        phone = data.get("phone")
        if not isinstance(session_id, str) or not isinstance(phone, str):
            return None
        if not session_id or not phone:
            return None

        timestamp = data.get("timestamp")
        if not isinstance(timestamp, int) or isinstance(timestamp, bool):
            timestamp = None
        return ScanPayload(session_id=session_id, phone=phone, timestamp=timestamp)
