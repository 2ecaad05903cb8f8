# Tilecraft/main.py
import logging
import signal
import sys
from tilecraft.config import get_setting
from tilecraft import server
from tilecraft.utils import get_local_ip, qr_ascii


def _shutdown(signum, frame):
    logging.getLogger('tilecraft').info(
        'Received %s, saving game state and shutting down...', signal.Signals(signum).name)
    server.engine.store.save()
    sys.exit(0)


def main():
    logging.basicConfig(
        level=str(get_setting('logging', 'level', 'INFO')).upper(),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # Restore the world; every loaded player starts inactive
    server.engine.store.load()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    ip = get_local_ip()
    url = f"http://{ip}:{get_setting('server', 'port', 3000)}"
    print(f"Server reachable at: {url}")
    print(qr_ascii(url))

    server.run_server()


if __name__ == "__main__":
    main()
