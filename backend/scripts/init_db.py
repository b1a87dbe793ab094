#!/usr/bin/env python3
"""
Create the WareFlow schema and seed the default roles.

Usage:
    cd backend && python scripts/init_db.py
"""
import sys
import logging
from pathlib import Path

from dotenv import load_dotenv

BACKEND_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(BACKEND_DIR))
load_dotenv(BACKEND_DIR / '.env')

from app.core.database import init_db  # noqa: E402
from app.core.request_logging import configure_logging  # noqa: E402


def main():
    configure_logging("INFO")
    logger = logging.getLogger("init_db")

    try:
        init_db()
        logger.info("✅ Database ready")
    except Exception as e:
        logger.error(f"❌ Database initialisation failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
