# =======================================================================================
# nsems/__init__.py - Package Initialization
# =======================================================================================
"""
NSEMS Token Core - rotating identity tokens with offline-first verification

Holders show a short-lived ``identifier|window|signature`` token (as a QR
code); scan points verify it against the authority when reachable and against
their local cache otherwise, then sync every outcome back to the authority.
"""

__version__ = "1.0.0"
__author__ = "NSEMS Team"
