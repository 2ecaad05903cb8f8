from tilecraft.utils import get_local_ip, qr_ascii


def test_server_ip_override(monkeypatch):
    monkeypatch.setenv('SERVER_IP', '10.1.2.3')
    assert get_local_ip() == '10.1.2.3'


def test_qr_ascii_renders_text():
    art = qr_ascii('http://10.1.2.3:3000')
    assert isinstance(art, str)
    assert len(art.splitlines()) > 10
