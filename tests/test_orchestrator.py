"""
Tests for fraxswap_client/operations/orchestrator.py

Covers:
- Call sequencing for swap, add/remove liquidity, claim rewards
- Approve-only-when-short rule
- Abort on approval, estimation, and submission failures
- Not-connected, cancellation, account change, and account locking
"""

import pytest
from unittest.mock import MagicMock

from web3 import Web3

from fraxswap_client.contracts.exchange import Exchange
from fraxswap_client.core.config import Config
from fraxswap_client.core.connection import Web3Manager
from fraxswap_client.core.exceptions import (
    ActionRejected,
    ActionReverted,
    ApprovalRejected,
    ApprovalReverted,
    EstimationFailure,
    ReadFailure,
)
from fraxswap_client.core.session import Session
from fraxswap_client.core.types import (
    Amount,
    GasEstimate,
    OperationKind,
    OperationRequest,
    OperationState,
)
from fraxswap_client.operations.orchestrator import (
    AccountLocks,
    CancelToken,
    TransactionOrchestrator,
)

from conftest import EXCHANGE, OTHER, OWNER, TOKEN_A, TOKEN_B, make_receipt


class FakeToken:
    def __init__(self, address, calls, allowance=0, read_error=None, approve_error=None,
                 on_read=None):
        self.address = address
        self.calls = calls
        self.allowance = allowance
        self.read_error = read_error
        self.approve_error = approve_error
        self.on_read = on_read

    def get_allowance(self, owner, spender):
        self.calls.append(("allowance", self.address))
        assert spender == EXCHANGE
        if self.on_read:
            self.on_read()
        if self.read_error:
            raise self.read_error
        return Amount(self.allowance)

    def approve(self, owner, spender, amount):
        self.calls.append(("approve", self.address, amount))
        if self.approve_error:
            raise self.approve_error
        # approve overwrites
        self.allowance = amount
        return make_receipt(f"0xapprove{self.address[-4:]}")


class FakeExchange:
    address = EXCHANGE

    def __init__(self, calls, gas=42000, estimate_error=None, submit_error=None):
        self.calls = calls
        self.gas = gas
        self.estimate_error = estimate_error
        self.submit_error = submit_error
        self.submitted_with = None

    def estimate_cost(self, request, account):
        self.calls.append(("estimate", request.kind.value))
        if self.estimate_error:
            raise self.estimate_error
        return GasEstimate(self.gas, request.kind.value, request.call_args, account)

    def submit(self, request, account, gas):
        self.calls.append((request.kind.value,))
        self.submitted_with = gas
        assert gas.matches(request.kind.value, request.call_args, account)
        if self.submit_error:
            raise self.submit_error
        return make_receipt("0xaction")


class Harness:
    def __init__(self, allowances=None, **exchange_kwargs):
        self.calls = []
        self.tokens = {}
        for address, allowance in (allowances or {}).items():
            self.tokens[address] = FakeToken(address, self.calls, allowance)
        self.exchange = FakeExchange(self.calls, **exchange_kwargs)
        self.session = Session()
        provider = MagicMock()
        provider.request_accounts.return_value = [OWNER]
        self.session.connect(provider)
        self.locks = AccountLocks()
        self.orchestrator = TransactionOrchestrator(
            session=self.session,
            exchange=self.exchange,
            token_factory=self.token,
            locks=self.locks,
            lock_timeout=0,
        )

    def token(self, address):
        if address not in self.tokens:
            self.tokens[address] = FakeToken(address, self.calls)
        return self.tokens[address]


# ---------------------------------------------------------------------------
# Sequencing scenarios
# ---------------------------------------------------------------------------


class TestSequencing:
    """Exact call order for each operation kind."""

    def test_swap_with_sufficient_allowance_skips_approve(self):
        h = Harness({TOKEN_A: 1000})
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1)

        assert outcome.ok
        assert h.calls == [("allowance", TOKEN_A), ("estimate", "swap"), ("swap",)]
        assert outcome.approvals == []
        assert outcome.history == [
            OperationState.IDLE,
            OperationState.ALLOWANCE_CHECK,
            OperationState.ESTIMATING,
            OperationState.SUBMITTING,
            OperationState.CONFIRMED,
        ]

    def test_swap_with_zero_allowance_approves_exact_amount(self):
        h = Harness({TOKEN_A: 0})
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1)

        assert outcome.ok
        assert h.calls == [
            ("allowance", TOKEN_A),
            ("approve", TOKEN_A, 500),
            ("estimate", "swap"),
            ("swap",),
        ]
        assert OperationState.APPROVING in outcome.history
        assert len(outcome.approvals) == 1

    def test_remove_liquidity_approves_only_short_token(self):
        h = Harness({TOKEN_A: 10, TOKEN_B: 0})
        outcome = h.orchestrator.remove_liquidity(4, TOKEN_A, TOKEN_B, 10)

        assert outcome.ok
        assert h.calls == [
            ("allowance", TOKEN_A),
            ("allowance", TOKEN_B),
            ("approve", TOKEN_B, 10),
            ("estimate", "removeLiquidity"),
            ("removeLiquidity",),
        ]

    def test_remove_liquidity_approves_both_in_order(self):
        h = Harness({TOKEN_A: 0, TOKEN_B: 3})
        outcome = h.orchestrator.remove_liquidity(4, TOKEN_A, TOKEN_B, 10)

        assert outcome.ok
        assert [c for c in h.calls if c[0] == "approve"] == [
            ("approve", TOKEN_A, 10),
            ("approve", TOKEN_B, 10),
        ]
        assert outcome.history.count(OperationState.APPROVING) == 2

    def test_claim_rewards_has_no_allowance_steps(self):
        h = Harness()
        outcome = h.orchestrator.claim_rewards(4, TOKEN_B)

        assert outcome.ok
        assert h.calls == [("estimate", "claimRewards"), ("claimRewards",)]
        assert OperationState.ALLOWANCE_CHECK not in outcome.history

    def test_add_liquidity_checks_only_token_in(self):
        h = Harness({TOKEN_A: 0, TOKEN_B: 0})
        outcome = h.orchestrator.add_liquidity(TOKEN_A, TOKEN_B, 25)

        assert outcome.ok
        assert h.calls == [
            ("allowance", TOKEN_A),
            ("approve", TOKEN_A, 25),
            ("estimate", "addLiquidity"),
            ("addLiquidity",),
        ]

    @pytest.mark.parametrize("allowance,amount,approves", [
        (0, 1, True),
        (499, 500, True),
        (500, 500, False),
        (501, 500, False),
        (10 ** 30, 10 ** 18, False),
        (10 ** 18 - 1, 10 ** 18, True),
    ])
    def test_approve_iff_allowance_below_amount(self, allowance, amount, approves):
        h = Harness({TOKEN_A: allowance})
        outcome = h.orchestrator.add_liquidity(TOKEN_A, TOKEN_B, amount)

        assert outcome.ok
        approvals = [c for c in h.calls if c[0] == "approve"]
        assert bool(approvals) is approves
        if approves:
            # approve precedes the action and carries the compared amount
            assert approvals == [("approve", TOKEN_A, amount)]
            assert h.calls.index(approvals[0]) < h.calls.index(("addLiquidity",))

    def test_reports_estimate_used_for_submission(self):
        h = Harness({TOKEN_A: 1000}, gas=77777)
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 5, position_id=1)

        assert outcome.gas_estimate.gas == 77777
        assert outcome.gas_estimate is h.exchange.submitted_with
        assert outcome.tx_hash == "0xaction"

    def test_swap_uses_configured_default_position(self):
        h = Harness({TOKEN_A: 1000})
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 5)

        assert outcome.ok
        assert outcome.gas_estimate.args[3] == 7

    def test_malformed_default_position_is_an_outcome(self, config_dir):
        (config_dir / "exchange.json").write_text('{"default_position_id": "first"}')
        Config.reset()
        h = Harness({TOKEN_A: 1000})
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 5)

        assert outcome.reason == "ConfigError"
        assert h.calls == []

    def test_execute_accepts_prebuilt_request(self):
        h = Harness({TOKEN_A: 1000})
        request = OperationRequest.swap(TOKEN_A, TOKEN_B, 5, 2)
        outcome = h.orchestrator.execute(request)

        assert outcome.ok
        assert outcome.kind is OperationKind.SWAP


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------


class TestFailures:
    """Each failure stops the remaining steps and comes back as an outcome."""

    @pytest.mark.parametrize("error", [
        ApprovalRejected("declined"),
        ApprovalReverted("reverted", tx_hash="0xbad"),
    ])
    def test_approval_failure_blocks_estimate_and_action(self, error):
        h = Harness({TOKEN_A: 0})
        h.tokens[TOKEN_A].approve_error = error
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1)

        assert not outcome.ok
        assert outcome.state is OperationState.FAILED
        assert outcome.error is error
        assert outcome.reason == type(error).__name__
        assert h.calls == [("allowance", TOKEN_A), ("approve", TOKEN_A, 500)]
        assert outcome.history[-2:] == [OperationState.APPROVING, OperationState.FAILED]

    def test_first_approval_failure_skips_second_token(self):
        h = Harness({TOKEN_A: 0, TOKEN_B: 0})
        h.tokens[TOKEN_A].approve_error = ApprovalRejected("declined")
        outcome = h.orchestrator.remove_liquidity(1, TOKEN_A, TOKEN_B, 10)

        assert outcome.reason == "ApprovalRejected"
        assert ("approve", TOKEN_B, 10) not in h.calls

    def test_read_failure_is_not_treated_as_zero(self):
        h = Harness({TOKEN_A: 0})
        h.tokens[TOKEN_A].read_error = ReadFailure("rpc down")
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1)

        assert outcome.reason == "ReadFailure"
        assert h.calls == [("allowance", TOKEN_A)]

    def test_estimation_failure_blocks_submission(self):
        h = Harness({TOKEN_A: 1000}, estimate_error=EstimationFailure("would revert"))
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1)

        assert outcome.reason == "EstimationFailure"
        assert ("swap",) not in h.calls
        assert outcome.gas_estimate is None

    @pytest.mark.parametrize("error", [ActionRejected("no"), ActionReverted("boom")])
    def test_action_failure_keeps_approval(self, error):
        h = Harness({TOKEN_A: 0}, submit_error=error)
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1)

        assert outcome.reason == type(error).__name__
        assert len(outcome.approvals) == 1
        # no attempt to undo the approval
        assert [c for c in h.calls if c[0] == "approve"] == [("approve", TOKEN_A, 500)]
        assert h.tokens[TOKEN_A].allowance == 500

    def test_not_connected_makes_no_calls(self):
        h = Harness({TOKEN_A: 0})
        h.session.disconnect()
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1)

        assert outcome.reason == "NotConnected"
        assert h.calls == []
        assert outcome.history == [OperationState.IDLE, OperationState.FAILED]

    def test_invalid_amount_is_an_outcome(self):
        h = Harness({TOKEN_A: 0})
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 1.5, position_id=1)

        assert outcome.reason == "InvalidAmountError"
        assert h.calls == []

    def test_out_of_range_values_are_outcomes(self):
        h = Harness({TOKEN_A: 0})

        assert h.orchestrator.swap(TOKEN_A, TOKEN_B, 2 ** 256, position_id=1).reason == "InvalidAmountError"
        assert h.orchestrator.claim_rewards(2 ** 256, TOKEN_B).reason == "InvalidAmountError"
        assert h.calls == []

    def test_out_of_range_position_with_real_contract_clients(self):
        session = Session()
        provider = MagicMock()
        provider.request_accounts.return_value = [OWNER]
        session.connect(provider)
        manager = Web3Manager(w3=Web3())
        orchestrator = TransactionOrchestrator(
            manager, session=session, exchange=Exchange(manager), locks=AccountLocks()
        )

        outcome = orchestrator.claim_rewards(2 ** 256, TOKEN_B)

        assert outcome.state is OperationState.FAILED
        assert outcome.reason == "InvalidAmountError"

    def test_later_operation_rechecks_allowance(self):
        h = Harness({TOKEN_A: 0})
        h.tokens[TOKEN_A].approve_error = ApprovalRejected("declined")
        assert not h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1).ok

        h.tokens[TOKEN_A].approve_error = None
        h.calls.clear()
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1)

        assert outcome.ok
        assert h.calls[0] == ("allowance", TOKEN_A)

    def test_to_dict_includes_error(self):
        h = Harness({TOKEN_A: 0})
        h.tokens[TOKEN_A].approve_error = ApprovalReverted("reverted", token=TOKEN_A, tx_hash="0xbad")
        data = h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1).to_dict()

        assert data["status"] == "failed"
        assert data["error"]["reason"] == "ApprovalReverted"
        assert data["error"]["tx_hash"] == "0xbad"
        assert data["error"]["token"] == TOKEN_A


# ---------------------------------------------------------------------------
# Cancellation, account changes, locking
# ---------------------------------------------------------------------------


class TestConcurrencyControls:
    """Cancel token, session checks, and per-account lock."""

    def test_cancel_stops_before_next_step(self):
        h = Harness({TOKEN_A: 0})
        cancel = CancelToken()
        h.tokens[TOKEN_A].on_read = cancel.cancel
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1, cancel=cancel)

        assert outcome.reason == "OperationCancelled"
        assert h.calls == [("allowance", TOKEN_A)]

    def test_account_change_mid_operation_fails(self):
        h = Harness({TOKEN_A: 1000})
        h.tokens[TOKEN_A].on_read = lambda: h.session.on_accounts_changed([OTHER])
        outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1)

        assert outcome.reason == "NotConnected"
        assert ("estimate", "swap") not in h.calls

    def test_busy_account_is_refused(self):
        h = Harness({TOKEN_A: 1000})
        lock = h.locks.for_account(h.session.account)
        lock.acquire()
        try:
            outcome = h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1)
        finally:
            lock.release()

        assert outcome.reason == "OperationInProgress"
        assert h.calls == []

    def test_lock_released_after_failure(self):
        h = Harness({TOKEN_A: 0})
        h.tokens[TOKEN_A].approve_error = ApprovalRejected("declined")
        h.orchestrator.swap(TOKEN_A, TOKEN_B, 500, position_id=1)

        lock = h.locks.for_account(h.session.account)
        assert lock.acquire(blocking=False)
        lock.release()

    def test_locks_are_per_account(self):
        locks = AccountLocks()
        assert locks.for_account(OWNER) is locks.for_account(OWNER)
        assert locks.for_account(OWNER) is not locks.for_account(OTHER)
