#!/usr/bin/env python3
"""
Simple runner for the Asset Map server
Picks a free local port and runs without the reloader
"""

import logging
import os
import socket

# Ensure Flask debug is off
os.environ.pop('FLASK_DEBUG', None)

from app import create_app


def choose_port(preferred: int = 5001, attempts: int = 20) -> int:
    """Return a free TCP port on localhost, preferring `preferred`."""
    for offset in range(attempts):
        port = preferred + offset
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            try:
                s.bind(("127.0.0.1", port))
                return port
            except OSError:
                continue
    return preferred


if __name__ == '__main__':
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    flask_app = create_app()
    try:
        preferred = int(os.getenv('PORT') or '5001')
    except ValueError:
        preferred = 5001
    port = choose_port(preferred)

    print(f"Asset Map running on http://localhost:{port}")
    print("Configure assets at /configure, then open / for the map. Ctrl+C to stop.")

    flask_app.run(debug=False, port=port, host='127.0.0.1', use_reloader=False)
