#!/usr/bin/env python3
"""Run script for slotplan."""

import logging

import uvicorn

from slotplan.database.database import init_db

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    init_db()
    uvicorn.run(
        "slotplan.api.app:app",
        host="0.0.0.0",
        port=8000,
        reload=True
    )
