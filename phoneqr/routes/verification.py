# Phone verification routes: QR issuance, session polling, scan
# confirmation, and diagnostics.

import sys
import time
from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from phoneqr.core.config import settings
from phoneqr.services.verification_service import VerificationService

try:
    import resource
except ImportError:  # Windows
    resource = None

router = APIRouter(prefix="/api", tags=["verification"])


class GenerateQRReq(BaseModel):
    phone: str | None = None


class GenerateQRResp(BaseModel):
    success: bool = True
    session_id: str
    qr_code: str
    phone: str
    expires_in: str


class SessionResp(BaseModel):
    success: bool = True
    phone: str
    verified: bool
    verified_at: int | None
    created_at: int


class VerifyScanReq(BaseModel):
    session_id: str | None = None
    scanned_phone: str | None = None


class VerifyScanResp(BaseModel):
    success: bool = True
    message: str
    phone: str
    verified_at: int | None


class SessionInfo(BaseModel):
    session_id: str
    phone: str
    verified: bool
    created_at: str
    verified_at: str | None
    age_seconds: int


class SessionsResp(BaseModel):
    success: bool = True
    count: int
    total_in_memory: int
    sessions: list[SessionInfo]


class ServerStatusResp(BaseModel):
    success: bool = True
    status: str
    uptime: str
    active_sessions: int
    memory_usage: str


def get_service(request: Request) -> VerificationService:
    return request.app.state.verification_service


def _local_time(epoch_ms: int) -> str:
    return datetime.fromtimestamp(epoch_ms / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _peak_memory_mb() -> int:
    """Peak resident set size of this process, in MB."""
    if resource is None:
        return 0
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # macOS reports bytes, Linux and the BSDs kilobytes
    if sys.platform == "darwin":
        peak /= 1024
    return round(peak / 1024)


@router.post("/generate-qr", response_model=GenerateQRResp)
def generate_qr(req: GenerateQRReq, service: VerificationService = Depends(get_service)):
    # Create a session and render its QR code
    issued = service.issue(req.phone)
    return GenerateQRResp(
        session_id=issued.session_id,
        qr_code=issued.qr_code,
        phone=issued.phone,
        expires_in=settings.expires_in_text,
    )


@router.get("/session/{session_id}", response_model=SessionResp)
def session_status(session_id: str, service: VerificationService = Depends(get_service)):
    # First device polls for the verified flip
    s = service.status(session_id)
    return SessionResp(
        phone=s.phone,
        verified=s.verified,
        verified_at=s.verified_at,
        created_at=s.created_at,
    )


@router.post("/verify-scan", response_model=VerifyScanResp)
def verify_scan(req: VerifyScanReq, service: VerificationService = Depends(get_service)):
    # Second device submits what it decoded from the QR code
    result = service.confirm(req.session_id, req.scanned_phone)
    message = "Phone number already verified" if result.already_verified else "Phone number verified"
    return VerifyScanResp(message=message, phone=result.phone, verified_at=result.verified_at)


@router.get("/sessions", response_model=SessionsResp)
def list_sessions(service: VerificationService = Depends(get_service)):
    now = service.store.now_ms()
    live = service.store.live_sessions()
    sessions = [
        SessionInfo(
            session_id=s.session_id,
            phone=s.phone,
            verified=s.verified,
            created_at=_local_time(s.created_at),
            verified_at=_local_time(s.verified_at) if s.verified_at else None,
            age_seconds=round(s.age_ms(now) / 1000),
        )
        for s in live
    ]
    return SessionsResp(count=len(sessions), total_in_memory=len(service.store), sessions=sessions)


@router.get("/status", response_model=ServerStatusResp)
def server_status(request: Request, service: VerificationService = Depends(get_service)):
    uptime = round(time.monotonic() - request.app.state.started_at)
    return ServerStatusResp(
        status="Server is running",
        uptime=f"{uptime} sec",
        active_sessions=len(service.store),
        memory_usage=f"{_peak_memory_mb()} MB peak",
    )
