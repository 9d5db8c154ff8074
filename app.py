#!/usr/bin/env python3
"""
Print Bridge - LAN print server for an attached ESC/POS thermal printer.

Other devices on the network POST receipt jobs to this host; jobs are printed
one at a time in submission order.
"""

import argparse
import logging

from print_bridge import create_app

DEFAULT_PORT = 12345


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the Print Bridge server")
    parser.add_argument("--host", default="0.0.0.0", help="Interface to bind (default: all)")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help=f"Port to listen on (default: {DEFAULT_PORT})")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    app = create_app()
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    engine = app.extensions["print_bridge"]
    app.logger.info("Starting Print Bridge on http://%s:%d", args.host, args.port)
    app.logger.info("Submit jobs with POST /api/v1/jobs; press Ctrl+C to stop")
    try:
        app.run(host=args.host, port=args.port, debug=False, threaded=True)
    finally:
        engine.stop()


if __name__ == "__main__":
    main()
