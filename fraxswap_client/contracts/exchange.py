"""Exchange contract wrapper"""

import logging

from web3.exceptions import Web3ValidationError

from ..core.config import Config
from ..core.exceptions import (
    ActionRejected,
    ActionReverted,
    EstimationFailure,
    StaleEstimateError,
    TransactionRejected,
    TransactionReverted,
)
from ..core.types import (
    Address,
    GasEstimate,
    OperationKind,
    OperationRequest,
    check_position_id,
)

logger = logging.getLogger(__name__)


class Exchange:
    """Wrapper for the exchange contract's swap and liquidity calls"""

    def __init__(self, manager, address=None):
        """
        Args:
            manager: Web3Manager instance
            address: Exchange contract address (configured address if None)
        """
        self.manager = manager
        self.config = Config()
        self.address = Address(address or self.config.exchange_address)
        self.contract = manager.get_contract(self.address, "exchange")

    def estimate_cost(self, request, account):
        """
        Estimate gas for the exact call `request` will submit.

        Raises:
            EstimationFailure: The call would revert, or the node failed
        """
        account = Address(account)
        method = request.kind.value
        args = request.call_args
        try:
            contract_func = getattr(self.contract.functions, method)(*args)
            gas = contract_func.estimate_gas({"from": account})
        except Exception as e:
            raise EstimationFailure(f"{method} would fail: {e}") from e

        logger.debug("Estimated %s%s from %s: %d gas", method, args, account, gas)
        return GasEstimate(gas=int(gas), method=method, args=args, sender=account)

    def _submit(self, method, args, account, gas):
        account = Address(account)
        if not isinstance(gas, GasEstimate) or not gas.matches(method, args, account):
            raise StaleEstimateError(f"Gas estimate does not belong to {method}{tuple(args)}")

        try:
            contract_func = getattr(self.contract.functions, method)(*args)
            receipt = self.manager.sign_and_send(
                contract_func,
                account,
                gas=gas.gas,
                operation_type=method,
                description=f"{method} on {self.address}",
            )
        except TransactionRejected as e:
            raise ActionRejected(str(e)) from e
        except TransactionReverted as e:
            raise ActionReverted(str(e), tx_hash=e.tx_hash) from e
        except Web3ValidationError as e:
            raise ActionReverted(f"Invalid {method} call: {e}") from e

        logger.info("%s confirmed in block %s", method, receipt.blockNumber)
        return receipt

    def swap(self, token_in, amount_in, token_out, position_id, account, gas):
        """Swap amount_in of token_in for token_out at the contract's price"""
        request = OperationRequest.swap(token_in, token_out, amount_in, position_id)
        return self._submit(request.kind.value, request.call_args, account, gas)

    def add_liquidity(self, token_in, token_out, amount_in, account, gas):
        """Deposit amount_in of token_in into the token_in/token_out position"""
        request = OperationRequest.add_liquidity(token_in, token_out, amount_in)
        return self._submit(request.kind.value, request.call_args, account, gas)

    def remove_liquidity(self, position_id, token_in, token_out, account, gas):
        """Withdraw the position identified by position_id"""
        args = (check_position_id(position_id), Address(token_in), Address(token_out))
        return self._submit(OperationKind.REMOVE_LIQUIDITY.value, args, account, gas)

    def claim_rewards(self, position_id, reward_token, account, gas):
        """Claim accrued rewards of a position in reward_token"""
        request = OperationRequest.claim_rewards(position_id, reward_token)
        return self._submit(request.kind.value, request.call_args, account, gas)

    def submit(self, request, account, gas):
        """Dispatch a request to the matching exchange call"""
        if request.kind is OperationKind.SWAP:
            return self.swap(
                request.token_in, request.amount, request.token_out,
                request.position_id, account, gas,
            )
        if request.kind is OperationKind.ADD_LIQUIDITY:
            return self.add_liquidity(
                request.token_in, request.token_out, request.amount, account, gas,
            )
        if request.kind is OperationKind.REMOVE_LIQUIDITY:
            return self.remove_liquidity(
                request.position_id, request.token_in, request.token_out, account, gas,
            )
        return self.claim_rewards(request.position_id, request.reward_token, account, gas)
