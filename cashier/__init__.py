"""
cashier - HTTP front door for rakepool escrows

Verifies wallet signatures, then hands the caller's address to the escrow
program. The cashier never computes fees or moves funds itself.
"""

from .server import app

__all__ = ["app"]
