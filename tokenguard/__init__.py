"""TokenGuard - JWT issuance, revocation ledger and verification gate"""

__version__ = "0.1.0"
