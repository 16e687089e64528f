"""Onsite Atlas Badge Designer - Entry Point."""

import logging
import os
import sys

# Ensure the app directory is on the import path
app_dir = os.path.dirname(os.path.abspath(__file__))
if app_dir not in sys.path:
    sys.path.insert(0, app_dir)

from config import FLASK_DEBUG, LOG_LEVEL, PORT
from web.app import app


def configure_logging():
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main():
    configure_logging()
    logging.getLogger("OnsiteAtlas").info("Badge Designer - http://localhost:%d", PORT)
    app.run(host="127.0.0.1", port=PORT, debug=FLASK_DEBUG)


if __name__ == "__main__":
    main()
