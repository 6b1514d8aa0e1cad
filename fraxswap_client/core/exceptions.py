"""Custom exceptions for the FraxSwap client"""


class FraxSwapError(Exception):
    """Base exception for all FraxSwap client errors"""

    def __init__(self, message="", token=None, tx_hash=None):
        super().__init__(message)
        self.token = token
        self.tx_hash = tx_hash


class ConfigError(FraxSwapError):
    """Configuration-related errors"""
    pass


class ConnectionError(FraxSwapError):
    """Web3 connection errors"""
    pass


class InvalidAddressError(FraxSwapError, ValueError):
    """Value is not a valid 20-byte hex address"""
    pass


class InvalidAmountError(FraxSwapError, ValueError):
    """Value is not a non-negative base-unit integer"""
    pass


class NotConnected(FraxSwapError):
    """No wallet account is connected"""
    pass


class ReadFailure(FraxSwapError):
    """Allowance or balance read failed (network/provider error)"""
    pass


class ApprovalRejected(FraxSwapError):
    """Signer declined the approve transaction"""
    pass


class ApprovalReverted(FraxSwapError):
    """Approve transaction failed on-chain or never confirmed"""
    pass


class EstimationFailure(FraxSwapError):
    """Gas estimation failed, the action would currently revert"""
    pass


class ActionRejected(FraxSwapError):
    """Signer declined the exchange transaction"""
    pass


class ActionReverted(FraxSwapError):
    """Exchange transaction failed on-chain or never confirmed"""
    pass


class StaleEstimateError(FraxSwapError):
    """Gas estimate was produced for a different call"""
    pass


class OperationCancelled(FraxSwapError):
    """Operation was cancelled between steps"""
    pass


class OperationInProgress(FraxSwapError):
    """Another operation holds the account lock"""
    pass


class TransactionRejected(FraxSwapError):
    """Wallet provider refused to sign or send (nothing was broadcast)"""
    pass


class TransactionReverted(FraxSwapError):
    """Transaction was broadcast but did not succeed"""
    pass
