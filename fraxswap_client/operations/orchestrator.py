"""Allowance-then-action sequencing for exchange operations"""

import logging
import threading

from ..contracts.erc20 import ERC20
from ..contracts.exchange import Exchange
from ..core.config import Config
from ..core.exceptions import (
    FraxSwapError,
    NotConnected,
    OperationCancelled,
    OperationInProgress,
)
from ..core.session import get_session
from ..core.types import OperationKind, OperationOutcome, OperationRequest, OperationState

logger = logging.getLogger(__name__)


class CancelToken:
    """
    Stops an operation before its next step.

    Already-signed transactions are not retracted.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def cancelled(self):
        return self._event.is_set()


class AccountLocks:
    """
    One lock per account so two operations cannot interleave.

    Locks are kept for the life of the registry; a process only ever sees
    the few accounts its wallet provider exposes.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def for_account(self, account):
        with self._guard:
            return self._locks.setdefault(account, threading.Lock())


_account_locks = AccountLocks()


def _tx_hash(receipt):
    return receipt.transactionHash.hex()


def _swap_request(token_in, token_out, amount_in, position_id):
    if position_id is None:
        position_id = Config().default_position_id
    return OperationRequest.swap(token_in, token_out, amount_in, position_id)


class TransactionOrchestrator:
    """
    Runs every exchange operation through
    IDLE -> ALLOWANCE_CHECK -> [APPROVING] -> ESTIMATING -> SUBMITTING -> CONFIRMED,
    failing to FAILED from any step.

    Failures come back as a failed OperationOutcome, never as an exception.
    """

    def __init__(self, manager=None, session=None, exchange=None, token_factory=None,
                 locks=None, lock_timeout=None):
        """
        Args:
            manager: Web3Manager used to build the default clients
            session: Session holding the connected account (process-wide if None)
            exchange: Exchange client (built from manager if None)
            token_factory: Callable(address) -> ERC20 client
            locks: AccountLocks registry (process-wide if None)
            lock_timeout: Seconds to wait for the account lock (None = wait forever)
        """
        self.manager = manager
        self.session = session or get_session()
        self.exchange = exchange or Exchange(manager)
        self.token_factory = token_factory or (lambda address: ERC20(self.manager, address))
        self.locks = locks or _account_locks
        self.lock_timeout = lock_timeout

    @property
    def spender(self):
        return self.exchange.address

    def execute(self, request, cancel=None):
        """
        Run one operation to completion.

        Args:
            request: OperationRequest with resolved addresses and base-unit amounts
            cancel: Optional CancelToken checked after every network call

        Returns:
            OperationOutcome
        """
        outcome = OperationOutcome(
            kind=request.kind,
            state=OperationState.IDLE,
            history=[OperationState.IDLE],
        )

        try:
            account = self.session.require_account()
        except NotConnected as e:
            return self._fail(outcome, e)

        lock = self.locks.for_account(account)
        timeout = -1 if self.lock_timeout is None else self.lock_timeout
        if not lock.acquire(timeout=timeout):
            return self._fail(
                outcome, OperationInProgress(f"Another operation is running for {account}")
            )

        try:
            self._run(request, account, outcome, cancel)
        except FraxSwapError as e:
            self._fail(outcome, e)
        finally:
            lock.release()

        return outcome

    def _run(self, request, account, outcome, cancel):
        tokens = request.spent_tokens
        if tokens:
            self._enter(outcome, OperationState.ALLOWANCE_CHECK)
            short = []
            for address in tokens:
                token = self.token_factory(address)
                allowance = token.get_allowance(account, self.spender)
                self._checkpoint(account, cancel)
                if allowance < request.amount:
                    short.append(token)

            for token in short:
                self._enter(outcome, OperationState.APPROVING)
                receipt = token.approve(account, self.spender, request.amount)
                outcome.approvals.append(_tx_hash(receipt))
                self._checkpoint(account, cancel)

        self._enter(outcome, OperationState.ESTIMATING)
        estimate = self.exchange.estimate_cost(request, account)
        outcome.gas_estimate = estimate
        self._checkpoint(account, cancel)

        self._enter(outcome, OperationState.SUBMITTING)
        receipt = self.exchange.submit(request, account, estimate)
        outcome.tx_hash = _tx_hash(receipt)

        self._enter(outcome, OperationState.CONFIRMED)
        logger.info("%s confirmed: %s (estimated gas %d)", request.kind.value, outcome.tx_hash, estimate.gas)

    def _checkpoint(self, account, cancel):
        if cancel is not None and cancel.cancelled:
            raise OperationCancelled("Operation cancelled")
        if self.session.account != account:
            raise NotConnected(f"Account {account} is no longer connected")

    def _enter(self, outcome, state):
        logger.debug("%s: %s -> %s", outcome.kind.value, outcome.state.value, state.value)
        outcome.state = state
        outcome.history.append(state)

    def _fail(self, outcome, error):
        logger.warning(
            "%s failed during %s: %s: %s",
            outcome.kind.value, outcome.state.value, type(error).__name__, error,
        )
        outcome.error = error
        self._enter(outcome, OperationState.FAILED)
        return outcome

    def _execute_built(self, kind, factory, args, cancel):
        try:
            request = factory(*args)
        except FraxSwapError as e:
            outcome = OperationOutcome(
                kind=kind, state=OperationState.IDLE, history=[OperationState.IDLE]
            )
            return self._fail(outcome, e)
        return self.execute(request, cancel)

    def swap(self, token_in, token_out, amount_in, position_id=None, cancel=None):
        """Swap amount_in (base units) of token_in for token_out"""
        return self._execute_built(
            OperationKind.SWAP, _swap_request, (token_in, token_out, amount_in, position_id), cancel
        )

    def add_liquidity(self, token_in, token_out, amount_in, cancel=None):
        """Deposit amount_in (base units) of token_in paired with token_out"""
        return self._execute_built(
            OperationKind.ADD_LIQUIDITY, OperationRequest.add_liquidity, (token_in, token_out, amount_in), cancel
        )

    def remove_liquidity(self, position_id, token_in, token_out, amount, cancel=None):
        """Withdraw a position; both tokens need at least `amount` allowance"""
        return self._execute_built(
            OperationKind.REMOVE_LIQUIDITY, OperationRequest.remove_liquidity, (position_id, token_in, token_out, amount), cancel
        )

    def claim_rewards(self, position_id, reward_token, cancel=None):
        """Claim a position's rewards in reward_token"""
        return self._execute_built(
            OperationKind.CLAIM_REWARDS, OperationRequest.claim_rewards, (position_id, reward_token), cancel
        )
