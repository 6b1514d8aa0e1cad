"""
FraxSwap Client - allowance-aware swap and liquidity operations for a FraxSwap exchange
"""

from .core.connection import Web3Manager
from .core.config import Config
from .core.session import Session, get_session
from .core.exceptions import FraxSwapError, ConfigError, ConnectionError, NotConnected
from .operations.orchestrator import TransactionOrchestrator

__version__ = "0.1.0"
__all__ = [
    "Web3Manager",
    "Config",
    "Session",
    "get_session",
    "FraxSwapError",
    "ConfigError",
    "ConnectionError",
    "NotConnected",
    "TransactionOrchestrator",
]
