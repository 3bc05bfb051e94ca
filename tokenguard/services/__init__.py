"""Token lifecycle services: revocation ledger, verification gate, reaper"""
from tokenguard.services.gate import GateFailure, GateResult, Principal, VerificationGate
from tokenguard.services.remote_checker import HTTPRevocationChecker
from tokenguard.services.revocation import (
    InvalidationStatus,
    RequestContext,
    RevocationService,
)
from tokenguard.services.revocation_store import (
    InMemoryRevocationStore,
    RevocationEntry,
    RevocationReason,
    RevocationStore,
    SQLRevocationStore,
)
from tokenguard.services.users import UserRepository

__all__ = [
    "GateFailure",
    "GateResult",
    "Principal",
    "VerificationGate",
    "HTTPRevocationChecker",
    "InvalidationStatus",
    "RequestContext",
    "RevocationService",
    "InMemoryRevocationStore",
    "RevocationEntry",
    "RevocationReason",
    "RevocationStore",
    "SQLRevocationStore",
    "UserRepository",
]
