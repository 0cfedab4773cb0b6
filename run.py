import os
import socket
import subprocess
import sys

import uvicorn

from phoneqr.core.config import settings


def get_lan_ip():
    try:
        # Connect to a public DNS server to determine the route
        s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        s.connect(("8.8.8.8", 80))
        ip = s.getsockname()[0]
        s.close()
        return ip
    except OSError:
        return "127.0.0.1"


def generate_self_signed_cert(cert_file="cert.pem", key_file="key.pem", lan_ip="127.0.0.1"):
    if os.path.exists(cert_file) and os.path.exists(key_file):
        print("✅ Using existing SSL certificates.")
        return

    print("🔑 Generating self-signed SSL certificates for HTTPS...")
    try:
        subprocess.check_call([
            "openssl", "req", "-x509", "-newkey", "rsa:2048", "-keyout", key_file,
            "-out", cert_file, "-days", "365", "-nodes",
            "-subj", "/CN=localhost",
            "-addext", f"subjectAltName=DNS:localhost,IP:127.0.0.1,IP:{lan_ip}",
        ])
        print("✅ Certificates generated.")
    except FileNotFoundError:
        print("⚠️ OpenSSL not found. Generating with the 'cryptography' package instead.")
        generate_cert_python(cert_file, key_file, lan_ip)
    except subprocess.CalledProcessError as e:
        print(f"❌ Failed to generate certs: {e}")
        sys.exit(1)


def generate_cert_python(cert_file, key_file, lan_ip):
    import datetime
    import ipaddress

    from cryptography import x509
    from cryptography.hazmat.primitives import hashes, serialization
    from cryptography.hazmat.primitives.asymmetric import rsa
    from cryptography.x509.oid import NameOID

    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    subject = issuer = x509.Name([
        x509.NameAttribute(NameOID.COMMON_NAME, "localhost"),
    ])
    now = datetime.datetime.now(datetime.timezone.utc)
    alt_names = [
        x509.DNSName("localhost"),
        x509.IPAddress(ipaddress.ip_address("127.0.0.1")),
    ]
    if lan_ip != "127.0.0.1":
        alt_names.append(x509.IPAddress(ipaddress.ip_address(lan_ip)))

    cert = x509.CertificateBuilder().subject_name(subject).issuer_name(issuer).public_key(
        key.public_key()
    ).serial_number(
        x509.random_serial_number()
    ).not_valid_before(
        now
    ).not_valid_after(
        now + datetime.timedelta(days=365)
    ).add_extension(
        x509.SubjectAlternativeName(alt_names),
        critical=False,
    ).sign(key, hashes.SHA256())

    with open(key_file, "wb") as f:
        f.write(key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        ))
    with open(cert_file, "wb") as f:
        f.write(cert.public_bytes(serialization.Encoding.PEM))

    print("✅ Certificates generated using Python cryptography.")


def main():
    lan_ip = get_lan_ip()
    port = settings.PORT

    cert_file = "cert.pem"
    key_file = "key.pem"

    generate_self_signed_cert(cert_file, key_file, lan_ip)

    url = f"https://{lan_ip}:{port}"
    print("\n" + "=" * 60)
    print("🚀 SERVER STARTING")
    print(f"📡 LAN URL:  {url}  (open this on the phone that scans)")
    print(f"🏠 Local:    https://127.0.0.1:{port}")
    print(f"📊 Status:   https://127.0.0.1:{port}/api/status")
    print(f"🔍 Sessions: https://127.0.0.1:{port}/api/sessions")
    print("-" * 60)
    print("⚠️  NOTE: You will see a security warning in the browser")
    print("    because the certificate is self-signed.")
    print("    Browsers only allow camera access over HTTPS, so proceed anyway.")
    print("=" * 60 + "\n")

    uvicorn.run(
        "phoneqr.main:app",
        host=settings.HOST,
        port=port,
        ssl_keyfile=key_file,
        ssl_certfile=cert_file,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
