"""High-level exchange operations"""

from .orchestrator import AccountLocks, CancelToken, TransactionOrchestrator

__all__ = ["AccountLocks", "CancelToken", "TransactionOrchestrator"]
