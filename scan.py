import argparse
import base64
import logging
import sys

from phoneqr.client.api import VerifyApiClient
from phoneqr.client.camera import OpenCVCamera, OpenCVDecoder
from phoneqr.client.flow import FlowState, VerificationFlow


def parse_args():
    parser = argparse.ArgumentParser(description="Issue or scan phone verification QR codes")
    parser.add_argument("--server", default="https://127.0.0.1:3000", help="Base URL of the verification server")
    parser.add_argument("--camera", type=int, default=0, help="Camera device index")
    parser.add_argument("--phone", help="Issue a QR code for this phone and wait for it to be scanned")
    parser.add_argument("--qr-out", default="verification_qr.png", help="Where to save the issued QR code")
    parser.add_argument("--insecure", action="store_true", help="Accept the server's self-signed certificate")
    return parser.parse_args()


def save_data_uri(data_uri: str, path: str):
    _, encoded = data_uri.split(",", 1)
    with open(path, "wb") as f:
        f.write(base64.b64decode(encoded))


def report(flow: VerificationFlow):
    if flow.error:
        print(f"❌ {flow.error}")


def main():
    args = parse_args()
    logging.basicConfig(level=logging.INFO)

    api = VerifyApiClient(args.server, verify_tls=not args.insecure)
    flow = VerificationFlow(
        api,
        camera_factory=lambda: OpenCVCamera(args.camera),
        decoder=OpenCVDecoder(),
        on_change=report,
    )

    try:
        if args.phone:
            print(f"📱 Phone as displayed: {flow.edit_phone(args.phone)}")
            if not flow.submit():
                sys.exit(1)
            save_data_uri(flow.session.qr_code, args.qr_out)
            print(f"🔳 QR code saved to {args.qr_out} (session {flow.session.session_id})")
            print(f"⏳ Waiting for a scan, valid for {flow.session.expires_in}...")
        else:
            print("📷 Point the camera at a verification QR code (Ctrl+C to stop)")
            flow.start_scanning()

        while not flow.wait_for_state(FlowState.CONFIRMED, timeout=1.0):
            pass
        print(f"✅ Phone {flow.confirmed_phone} verified")
    except KeyboardInterrupt:
        print("\n🛑 Stopped")
    finally:
        flow.close()


if __name__ == "__main__":
    main()
