"""
Arrivals Web API - Startup Script
"""

import argparse
import logging
import sys

from arrivals.config import load_config
from arrivals.logging_setup import setup_logging
from arrivals.service import ServiceRunner, build_coordinator
from web.app import create_app

logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Amenitiz arrivals API server")
    parser.add_argument("--config", default=None, help="Config file path (optional)")
    parser.add_argument("--port", type=int, help="Override listening port")
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    config = load_config(args.config)
    setup_logging(config.log_file)

    port = args.port or config.server.port
    runner = ServiceRunner(build_coordinator(config))
    app, socketio = create_app(runner)

    logger.info(f"Server starting on http://{config.server.host}:{port}")
    logger.info("Available endpoints:")
    logger.info("  GET  /api/guests   - Get all guests")
    logger.info("  GET  /api/rooms    - Get guests by room")
    logger.info("  GET  /api/status   - Get server status")
    logger.info("  GET  /api/health   - Health check")
    logger.info("  POST /api/refresh  - Force refresh")
    logger.info("  POST /api/2fa      - Submit 2FA code")

    runner.start(schedule=True)
    try:
        socketio.run(
            app,
            host=config.server.host,
            port=port,
            use_reloader=False,
            allow_unsafe_werkzeug=True,
        )
    except OSError as e:
        logger.error(f"Could not bind {config.server.host}:{port}: {e}")
        return 1
    finally:
        runner.stop()
    return 0


if __name__ == '__main__':
    sys.exit(main())
