"""Value types shared by the contract clients and the orchestrator"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, localcontext
from enum import Enum
from typing import Any, List, Optional, Tuple

from web3 import Web3

from .exceptions import FraxSwapError, InvalidAddressError, InvalidAmountError

MAX_UINT256 = 2 ** 256 - 1


class Address(str):
    """Checksummed on-chain address"""

    def __new__(cls, value):
        if isinstance(value, Address):
            return value
        if not isinstance(value, str) or not Web3.is_address(value):
            raise InvalidAddressError(f"Invalid address: {value!r}")
        return super().__new__(cls, Web3.to_checksum_address(value))


class Amount(int):
    """Token amount in base units (smallest indivisible unit)"""

    def __new__(cls, value):
        if isinstance(value, Amount):
            return value
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidAmountError(
                f"Amount must be an integer number of base units, got {value!r}"
            )
        if value < 0:
            raise InvalidAmountError(f"Amount must be non-negative, got {value}")
        if value > MAX_UINT256:
            raise InvalidAmountError(f"Amount does not fit in uint256: {value}")
        return super().__new__(cls, value)

    @classmethod
    def from_human(cls, value, decimals):
        """
        Convert a human-readable amount to base units.

        Args:
            value: Decimal string or number (e.g. "1.5")
            decimals: Token decimals

        Raises:
            InvalidAmountError: If the value is negative, not a number, or has
                more fractional digits than the token supports
        """
        # uint256 needs 78 significant digits
        with localcontext() as ctx:
            ctx.prec = 80
            try:
                scaled = Decimal(str(value)).scaleb(decimals)
            except InvalidOperation:
                raise InvalidAmountError(f"Not a number: {value!r}")
        if not scaled.is_finite() or scaled != scaled.to_integral_value():
            raise InvalidAmountError(
                f"{value} has more than {decimals} decimal places"
            )
        return cls(int(scaled))

    def to_human(self, decimals):
        """Convert base units to a Decimal in token units"""
        with localcontext() as ctx:
            ctx.prec = 80
            return Decimal(int(self)).scaleb(-decimals)


class OperationKind(Enum):
    SWAP = "swap"
    ADD_LIQUIDITY = "addLiquidity"
    REMOVE_LIQUIDITY = "removeLiquidity"
    CLAIM_REWARDS = "claimRewards"


class OperationState(Enum):
    IDLE = "idle"
    ALLOWANCE_CHECK = "allowance_check"
    APPROVING = "approving"
    ESTIMATING = "estimating"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    FAILED = "failed"


def check_position_id(value):
    """Validate a position identifier (uint256)"""
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= MAX_UINT256:
        raise InvalidAmountError(f"Position id must be a uint256, got {value!r}")
    return value


@dataclass(frozen=True)
class OperationRequest:
    """
    A user-initiated exchange operation with fully-resolved addresses and
    base-unit amounts.

    Use the factory classmethods; they validate the fields each kind needs.
    """

    kind: OperationKind
    token_in: Optional[Address] = None
    token_out: Optional[Address] = None
    amount: Optional[Amount] = None
    position_id: Optional[int] = None
    reward_token: Optional[Address] = None

    @classmethod
    def swap(cls, token_in, token_out, amount_in, position_id):
        return cls(
            OperationKind.SWAP,
            token_in=Address(token_in),
            token_out=Address(token_out),
            amount=Amount(amount_in),
            position_id=check_position_id(position_id),
        )

    @classmethod
    def add_liquidity(cls, token_in, token_out, amount_in):
        return cls(
            OperationKind.ADD_LIQUIDITY,
            token_in=Address(token_in),
            token_out=Address(token_out),
            amount=Amount(amount_in),
        )

    @classmethod
    def remove_liquidity(cls, position_id, token_in, token_out, amount):
        return cls(
            OperationKind.REMOVE_LIQUIDITY,
            token_in=Address(token_in),
            token_out=Address(token_out),
            amount=Amount(amount),
            position_id=check_position_id(position_id),
        )

    @classmethod
    def claim_rewards(cls, position_id, reward_token):
        return cls(
            OperationKind.CLAIM_REWARDS,
            position_id=check_position_id(position_id),
            reward_token=Address(reward_token),
        )

    @property
    def spent_tokens(self) -> Tuple[Address, ...]:
        """Tokens the operation moves out of the wallet, in check order"""
        if self.kind in (OperationKind.SWAP, OperationKind.ADD_LIQUIDITY):
            return (self.token_in,)
        if self.kind is OperationKind.REMOVE_LIQUIDITY:
            return (self.token_in, self.token_out)
        return ()

    @property
    def call_args(self) -> Tuple[Any, ...]:
        """Positional arguments of the exchange contract call"""
        if self.kind is OperationKind.SWAP:
            return (self.token_in, self.amount, self.token_out, self.position_id)
        if self.kind is OperationKind.ADD_LIQUIDITY:
            return (self.token_in, self.token_out, self.amount)
        if self.kind is OperationKind.REMOVE_LIQUIDITY:
            return (self.position_id, self.token_in, self.token_out)
        return (self.position_id, self.reward_token)


@dataclass(frozen=True)
class GasEstimate:
    """Gas estimate bound to the exact call it was produced for"""

    gas: int
    method: str
    args: Tuple[Any, ...]
    sender: Address

    def matches(self, method, args, sender):
        return (
            self.method == method
            and tuple(self.args) == tuple(args)
            and self.sender == sender
        )


@dataclass
class OperationOutcome:
    """Result of one orchestrated operation, confirmed or failed"""

    kind: OperationKind
    state: OperationState
    history: List[OperationState] = field(default_factory=list)
    gas_estimate: Optional[GasEstimate] = None
    tx_hash: Optional[str] = None
    approvals: List[str] = field(default_factory=list)
    error: Optional[FraxSwapError] = None

    @property
    def ok(self):
        return self.state is OperationState.CONFIRMED

    @property
    def reason(self):
        """Failure class name, e.g. 'ApprovalRejected' (None when confirmed)"""
        return type(self.error).__name__ if self.error is not None else None

    def to_dict(self):
        result = {
            "operation": self.kind.value,
            "status": self.state.value,
            "history": [s.value for s in self.history],
            "gas_estimate": self.gas_estimate.gas if self.gas_estimate else None,
            "tx_hash": self.tx_hash,
            "approvals": list(self.approvals),
        }
        if self.error is not None:
            result["error"] = {
                "reason": self.reason,
                "message": str(self.error),
                "token": self.error.token,
                "tx_hash": self.error.tx_hash,
            }
        return result
