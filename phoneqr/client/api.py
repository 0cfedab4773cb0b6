# HTTP client for the verification API, used by the scanner flow and scan.py.

import logging
from dataclasses import dataclass

import requests

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Any failed call: transport error, bad JSON, or success=false."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class IssuedQR:
    session_id: str
    qr_code: str
    phone: str
    expires_in: str


@dataclass
class SessionStatus:
    phone: str
    verified: bool
    verified_at: int | None
    created_at: int


@dataclass
class Confirmation:
    phone: str
    message: str
    verified_at: int | None


def _safe_json(resp) -> dict:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class VerifyApiClient:
    def __init__(self, base_url: str, http=None, timeout: float = 5.0, verify_tls: bool = True):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.verify_tls = verify_tls
        self._http = http if http is not None else requests.Session()

    def _call(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        if isinstance(self._http, requests.Session):
            kwargs["verify"] = self.verify_tls
        try:
            resp = self._http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning(f"{method} {path} failed: {exc}")
            raise ApiError("Could not reach the server") from exc

        data = _safe_json(resp)
        if resp.status_code >= 400 or not data.get("success"):
            message = data.get("error") or f"Request failed with status {resp.status_code}"
            raise ApiError(message, status_code=resp.status_code)
        return data

    def issue(self, phone: str) -> IssuedQR:
        data = self._call("POST", "/api/generate-qr", json={"phone": phone})
        return IssuedQR(
            session_id=data["session_id"],
            qr_code=data["qr_code"],
            phone=data["phone"],
            expires_in=data.get("expires_in", ""),
        )

    def status(self, session_id: str) -> SessionStatus:
        data = self._call("GET", f"/api/session/{session_id}")
        return SessionStatus(
            phone=data["phone"],
            verified=bool(data["verified"]),
            verified_at=data.get("verified_at"),
            created_at=data["created_at"],
        )

    def confirm(self, session_id: str, scanned_phone: str) -> Confirmation:
        data = self._call(
            "POST",
            "/api/verify-scan",
            json={"session_id": session_id, "scanned_phone": scanned_phone},
        )
        return Confirmation(
            phone=data["phone"],
            message=data.get("message", ""),
            verified_at=data.get("verified_at"),
        )

    def sessions(self) -> dict:
        return self._call("GET", "/api/sessions")

    def server_status(self) -> dict:
        return self._call("GET", "/api/status")
