"""Test package for turntalk unit and loopback integration tests."""

import logging

logging.getLogger("asyncio").setLevel(logging.ERROR)
