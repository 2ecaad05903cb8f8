# Tilecraft/tilecraft/utils.py
import io
import os
import socket
import qrcode


def get_local_ip():
    """LAN address printed in the join banner. SERVER_IP overrides discovery."""
    env_ip = os.environ.get('SERVER_IP')
    if env_ip:
        return env_ip

    # connect() on UDP only picks a route, nothing is sent
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("8.8.8.8", 80))
            ip = s.getsockname()[0]
            if ip and not ip.startswith('127.'):
                return ip
    except OSError:
        pass

    return '127.0.0.1'


def qr_ascii(url: str) -> str:
    """Render a URL as a terminal QR code so phones can join quickly."""
    qr = qrcode.QRCode(border=1)
    qr.add_data(url)
    qr.make(fit=True)
    buf = io.StringIO()
    qr.print_ascii(out=buf)
    return buf.getvalue()
