"""Core module - configuration, connection, session, types, and exceptions"""

from .config import Config, TokenRegistry
from .connection import Web3Manager
from .session import Session, get_session
from .types import (
    Address,
    Amount,
    GasEstimate,
    OperationKind,
    OperationOutcome,
    OperationRequest,
    OperationState,
)
from .exceptions import (
    FraxSwapError,
    ConfigError,
    ConnectionError,
    NotConnected,
    ReadFailure,
    ApprovalRejected,
    ApprovalReverted,
    EstimationFailure,
    ActionRejected,
    ActionReverted,
)

__all__ = [
    "Config",
    "TokenRegistry",
    "Web3Manager",
    "Session",
    "get_session",
    "Address",
    "Amount",
    "GasEstimate",
    "OperationKind",
    "OperationOutcome",
    "OperationRequest",
    "OperationState",
    "FraxSwapError",
    "ConfigError",
    "ConnectionError",
    "NotConnected",
    "ReadFailure",
    "ApprovalRejected",
    "ApprovalReverted",
    "EstimationFailure",
    "ActionRejected",
    "ActionReverted",
]
