"""Pytest configuration and fixtures."""
import os
import sys
from pathlib import Path

# Ensure backend root is on path when running pytest from repo root or backend
backend = Path(__file__).resolve().parent.parent
if str(backend) not in sys.path:
    sys.path.insert(0, str(backend))

# Keep the per-IP limiter out of the way of the whole test session
os.environ.setdefault("RATE_LIMIT", "10000/minute")
