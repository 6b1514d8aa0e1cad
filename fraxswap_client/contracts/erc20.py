"""ERC20 token contract wrapper"""

import logging

from web3.exceptions import Web3ValidationError

from ..core.exceptions import (
    ApprovalRejected,
    ApprovalReverted,
    ReadFailure,
    TransactionRejected,
    TransactionReverted,
)
from ..core.types import Address, Amount

logger = logging.getLogger(__name__)


class ERC20:
    """Wrapper for ERC20 allowance and balance interactions"""

    def __init__(self, manager, address):
        """
        Args:
            manager: Web3Manager instance
            address: Token contract address
        """
        self.manager = manager
        self.address = Address(address)
        self.contract = manager.get_contract(self.address, "erc20")
        self._info = None

    def _read(self, what, call):
        try:
            return call()
        except Exception as e:
            raise ReadFailure(f"Failed to read {what} of {self.address}: {e}", token=self.address) from e

    @property
    def info(self):
        """Get token info (cached, display only)"""
        if self._info is None:
            self._info = {
                "address": self.address,
                "symbol": self._read("symbol", lambda: self.contract.functions.symbol().call()),
                "decimals": self._read("decimals", lambda: self.contract.functions.decimals().call()),
            }
        return self._info

    @property
    def symbol(self):
        return self.info["symbol"]

    @property
    def decimals(self):
        return self.info["decimals"]

    def balance_of(self, owner):
        """Get token balance in base units"""
        owner = Address(owner)
        return Amount(self._read("balance", lambda: self.contract.functions.balanceOf(owner).call()))

    def get_allowance(self, owner, spender):
        """
        Read the amount `spender` may move on behalf of `owner`.

        Never cached; every call goes to the chain.

        Raises:
            ReadFailure: Provider or contract call failed
        """
        owner, spender = Address(owner), Address(spender)
        allowance = Amount(self._read(
            "allowance", lambda: self.contract.functions.allowance(owner, spender).call()
        ))
        logger.debug("Allowance %s owner=%s spender=%s: %d", self.address, owner, spender, allowance)
        return allowance

    def approve(self, owner, spender, amount):
        """
        Set the allowance of `spender` to exactly `amount`, replacing any
        previous value.

        Returns:
            Transaction receipt

        Raises:
            ApprovalRejected: Signer declined
            ApprovalReverted: Transaction failed or never confirmed
        """
        owner, spender, amount = Address(owner), Address(spender), Amount(amount)
        try:
            contract_func = self.contract.functions.approve(spender, amount)
            receipt = self.manager.sign_and_send(
                contract_func,
                owner,
                operation_type="approve",
                description=f"approve {spender} for {amount} of {self.address}",
            )
        except TransactionRejected as e:
            raise ApprovalRejected(str(e), token=self.address) from e
        except TransactionReverted as e:
            raise ApprovalReverted(str(e), token=self.address, tx_hash=e.tx_hash) from e
        except Web3ValidationError as e:
            raise ApprovalReverted(f"Invalid approve call: {e}", token=self.address) from e

        logger.info("Approved %s for %d of %s", spender, amount, self.address)
        return receipt
