import logging
import re
import time
from dataclasses import dataclass

from phoneqr.core.config import settings
from phoneqr.core.exceptions import (
    InternalError,
    InvalidPhone,
    InvalidRequest,
    PhoneMismatch,
    SessionNotFound,
)
from phoneqr.services.event_log import log_event
from phoneqr.services.qr_service import QRService
from phoneqr.services.sessions import MarkOutcome, PhoneSession, SessionStore

"""VerificationService: issue, confirm and poll phone verification sessions"""


logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


@dataclass
class IssuedSession:
    session_id: str
    qr_code: str
    phone: str


@dataclass
class ConfirmResult:
    phone: str
    verified_at: int | None
    already_verified: bool = False


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class VerificationService:
    def __init__(self, store: SessionStore):
        self.store = store

    @staticmethod
    def normalize_phone(raw_phone) -> str:
        """
        Reduces user input to "+<digits>".
        Raises InvalidPhone unless the digit count is within the configured range.
        """
        if not isinstance(raw_phone, str):
            raise InvalidPhone()

        digits = _NON_DIGITS.sub("", raw_phone)
        if not settings.PHONE_MIN_DIGITS <= len(digits) <= settings.PHONE_MAX_DIGITS:
            raise InvalidPhone()
        return f"+{digits}"

    def issue(self, raw_phone) -> IssuedSession:
        """
        Creates a session for the phone and renders its QR code.
        Returns what the browser needs to show the code and poll for status.
        """
        started = time.perf_counter()
        try:
            phone = self.normalize_phone(raw_phone)
        except InvalidPhone:
            logger.warning(f"Issue rejected: invalid phone input {raw_phone!r}")
            log_event("issue", "", "invalid_phone", _elapsed_ms(started))
            raise

        try:
            session = self.store.create(phone)
            payload = QRService.build_payload(session.session_id, phone, self.store.now_ms())
            qr_code = QRService.create_qr_image(payload)
        except Exception as exc:
            logger.exception(f"QR generation failed for phone={phone}")
            log_event("issue", "", "error", _elapsed_ms(started))
            raise InternalError("Failed to create QR code") from exc

        logger.info(f"Session created: session_id={session.session_id}, phone={phone}")
        log_event("issue", session.session_id, "created", _elapsed_ms(started))
        return IssuedSession(session_id=session.session_id, qr_code=qr_code, phone=phone)

    def status(self, s_id: str) -> PhoneSession:
        session = self.store.get(s_id)
        if session is None:
            logger.warning(f"Status check failed: session_id={s_id} not found")
            raise SessionNotFound()
        return session

    def confirm(self, s_id: str, scanned_phone: str) -> ConfirmResult:
        """
        Confirms a scanned payload against the stored session.

        An already verified session succeeds again with its stored phone,
        whatever phone was scanned this time.
        """
        if not s_id or not scanned_phone:
            raise InvalidRequest()

        started = time.perf_counter()
        session = self.store.get(s_id)
        if session is None:
            logger.warning(f"Scan failed: session_id={s_id} not found")
            log_event("confirm", s_id, "not_found", _elapsed_ms(started))
            raise SessionNotFound("Session not found")

        if session.verified:
            logger.info(f"Scan repeated: session_id={s_id} already verified")
            log_event("confirm", s_id, "already_verified", _elapsed_ms(started))
            return ConfirmResult(session.phone, session.verified_at, already_verified=True)

        if scanned_phone != session.phone:
            logger.warning(f"Scan failed: session_id={s_id} phone mismatch")
            log_event("confirm", s_id, "mismatch", _elapsed_ms(started))
            raise PhoneMismatch()

        result = self.store.mark_verified(s_id)
        if result.outcome == MarkOutcome.NOT_FOUND:
            # Expired between the read and the flip
            logger.warning(f"Scan failed: session_id={s_id} expired during confirmation")
            log_event("confirm", s_id, "not_found", _elapsed_ms(started))
            raise SessionNotFound("Session not found")

        verified = result.session
        if result.outcome == MarkOutcome.ALREADY_VERIFIED:
            log_event("confirm", s_id, "already_verified", _elapsed_ms(started))
            return ConfirmResult(verified.phone, verified.verified_at, already_verified=True)

        logger.info(f"Phone verified: phone={verified.phone}, session_id={s_id}")
        log_event("confirm", s_id, "verified", _elapsed_ms(started))
        return ConfirmResult(verified.phone, verified.verified_at)

    def sweep(self) -> int:
        started = time.perf_counter()
        removed = self.store.sweep()
        if removed:
            logger.info(f"Sweep removed {removed} expired sessions")
            log_event("sweep", "", f"removed={removed}", _elapsed_ms(started))
        return removed
