import logging
import os
import socket

from sc_explorer.logging_config import configure_logging
from sc_explorer.ui.dash_app import create_dash_app

configure_logging()
logger = logging.getLogger("sc_explorer.app")

app = create_dash_app(os.getenv("SC_EXPLORER_CONFIG", "config"))
server = app.server


def find_free_port(start_port: int, attempts: int = 100) -> int:
    """First port from start_port on that nothing is listening on."""
    for port in range(start_port, start_port + attempts):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            if s.connect_ex(("localhost", port)) != 0:
                return port
    return start_port


if __name__ == "__main__":
    preferred_port = int(os.getenv("PORT", "8051"))
    port = find_free_port(preferred_port)
    debug = os.getenv("DEBUG", "0") == "1"

    if port != preferred_port:
        logger.warning("port_taken", extra={"preferred": preferred_port, "port": port})
    logger.info("explorer_starting", extra={"port": port, "debug": debug})

    app.run(host="0.0.0.0", port=port, debug=debug)
