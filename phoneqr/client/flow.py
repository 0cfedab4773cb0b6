# Client-side verification flow: Entry -> AwaitingScan -> Scanning -> Confirmed.
# Polling and scanning run on background threads that stop on an Event;
# the scanning thread always releases its camera on exit.

import logging
import threading
from enum import Enum
from typing import Callable

from phoneqr.client.api import ApiError, IssuedQR
from phoneqr.client.formatting import digits_only, format_phone_display
from phoneqr.core.config import settings
from phoneqr.services.qr_service import QRService

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    ENTRY = "entry"
    AWAITING_SCAN = "awaiting_scan"
    SCANNING = "scanning"
    CONFIRMED = "confirmed"


class VerificationFlow:
    def __init__(
        self,
        api,
        camera_factory: Callable,
        decoder: Callable,
        poll_interval: float = settings.POLL_INTERVAL_MS / 1000,
        frame_interval: float = 0.1,
        join_timeout: float = 10.0,
        on_change: Callable | None = None,
    ):
        self.api = api
        self.camera_factory = camera_factory
        self.decoder = decoder
        self.poll_interval = poll_interval
        self.frame_interval = frame_interval
        self.join_timeout = join_timeout
        self.on_change = on_change

        self.state = FlowState.ENTRY
        self.display_text = ""
        self.session: IssuedQR | None = None
        self.error: str | None = None
        self.confirmed_phone: str | None = None
        self.confirmed_by_scan = False

        self._digits = ""
        self._changed = threading.Condition(threading.RLock())
        self._poll_stop: threading.Event | None = None
        self._poll_thread: threading.Thread | None = None
        self._scan_stop: threading.Event | None = None
        self._scan_thread: threading.Thread | None = None

    # -- state helpers

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _halt_polling(self) -> list[threading.Thread]:
        threads = []
        if self._poll_stop is not None:
            self._poll_stop.set()
            threads.append(self._poll_thread)
        self._poll_stop = self._poll_thread = None
        return threads

    def _halt_scanning(self) -> list[threading.Thread]:
        threads = []
        if self._scan_stop is not None:
            self._scan_stop.set()
            threads.append(self._scan_thread)
        self._scan_stop = self._scan_thread = None
        return threads

    def _join(self, threads: list[threading.Thread]) -> None:
        current = threading.current_thread()
        for thread in threads:
            if thread is not None and thread is not current:
                thread.join(self.join_timeout)

    def _set_error(self, message: str, stop: threading.Event) -> None:
        with self._changed:
            if stop.is_set():
                return
            self.error = message
            self._changed.notify_all()
        self._notify()

    def _confirm(self, phone: str, stop: threading.Event, by_scan: bool) -> None:
        with self._changed:
            if stop.is_set() or self.state == FlowState.CONFIRMED:
                return
            self.state = FlowState.CONFIRMED
            self.confirmed_phone = phone
            self.confirmed_by_scan = by_scan
            self.error = None
            threads = self._halt_scanning() + self._halt_polling()
            self._changed.notify_all()
        self._join(threads)
        logger.info(f"Phone {phone} confirmed")
        self._notify()

    def wait_for_state(self, state: FlowState, timeout: float | None = None) -> bool:
        with self._changed:
            return self._changed.wait_for(lambda: self.state == state, timeout)

    # -- Entry

    def edit_phone(self, text: str) -> str:
        with self._changed:
            if self.state != FlowState.ENTRY:
                return self.display_text
            self._digits = digits_only(text)
            self.display_text = format_phone_display(text)
            return self.display_text

    def submit(self) -> bool:
        with self._changed:
            if self.state != FlowState.ENTRY:
                return False
            digits = self._digits

        if not settings.PHONE_MIN_DIGITS <= len(digits) <= settings.PHONE_MAX_DIGITS:
            with self._changed:
                self.error = "Enter a valid phone number (8-15 digits)"
            self._notify()
            return False

        try:
            issued = self.api.issue(digits)
        except ApiError as exc:
            with self._changed:
                self.error = exc.message
            self._notify()
            return False

        with self._changed:
            if self.state != FlowState.ENTRY:
                return False
            self.session = issued
            self.error = None
            self.state = FlowState.AWAITING_SCAN
            self._start_polling(issued.session_id)
            self._changed.notify_all()
        self._notify()
        return True

    # -- AwaitingScan

    def _start_polling(self, session_id: str) -> None:
        stop = threading.Event()
        thread = threading.Thread(
            target=self._poll_loop, args=(session_id, stop), name="verify-poll", daemon=True
        )
        self._poll_stop, self._poll_thread = stop, thread
        thread.start()

    def _poll_loop(self, session_id: str, stop: threading.Event) -> None:
        while not stop.wait(self.poll_interval):
            try:
                status = self.api.status(session_id)
            except ApiError as exc:
                logger.warning(f"Status poll for {session_id} failed: {exc.message}")
                continue
            if status.verified:
                self._confirm(status.phone, stop, by_scan=False)
                return

    # -- Scanning

    def start_scanning(self) -> bool:
        with self._changed:
            if self.state in (FlowState.SCANNING, FlowState.CONFIRMED):
                return False
            self.state = FlowState.SCANNING
            self.error = None
            stop = threading.Event()
            thread = threading.Thread(target=self._scan_loop, args=(stop,), name="verify-scan", daemon=True)
            self._scan_stop, self._scan_thread = stop, thread
            thread.start()
            self._changed.notify_all()
        self._notify()
        return True

    def _decode(self, frame) -> str | None:
        try:
            return self.decoder(frame)
        except Exception:
            logger.exception("QR decode failed on a frame")
            return None

    def _scan_loop(self, stop: threading.Event) -> None:
        try:
            camera = self.camera_factory()
        except Exception as exc:
            logger.warning(f"Camera unavailable: {exc}")
            self._set_error(f"Camera unavailable: {exc}", stop)
            return

        last_rejected = None
        try:
            while not stop.is_set():
                frame = camera.read()
                text = self._decode(frame) if frame is not None else None
                if text and text != last_rejected:
                    payload = QRService.parse_payload(text)
                    if payload is None:
                        last_rejected = text
                    else:
                        try:
                            result = self.api.confirm(payload.session_id, payload.phone)
                        except ApiError as exc:
                            self._set_error(exc.message, stop)
                            # Transport errors are retried on the next frame
                            if exc.status_code is not None:
                                last_rejected = text
                        else:
                            self._confirm(result.phone, stop, by_scan=True)
                            return
                stop.wait(self.frame_interval)
        finally:
            camera.release()

    def cancel_scanning(self) -> None:
        with self._changed:
            if self.state != FlowState.SCANNING:
                return
            self.state = FlowState.AWAITING_SCAN if self.session else FlowState.ENTRY
            threads = self._halt_scanning()
            self._changed.notify_all()
        self._join(threads)
        self._notify()

    # -- navigation

    def reset(self) -> None:
        with self._changed:
            self.state = FlowState.ENTRY
            self.session = None
            self.display_text = ""
            self._digits = ""
            self.error = None
            self.confirmed_phone = None
            self.confirmed_by_scan = False
            threads = self._halt_scanning() + self._halt_polling()
            self._changed.notify_all()
        self._join(threads)
        self._notify()

    def close(self) -> None:
        with self._changed:
            threads = self._halt_scanning() + self._halt_polling()
        self._join(threads)
