"""Transaction signing and submission with EIP-1559 support"""

import logging

from web3.exceptions import TimeExhausted

from ..core.exceptions import TransactionRejected, TransactionReverted
from .gas import GasManager

logger = logging.getLogger(__name__)


class TransactionBuilder:
    """Build and send EIP-1559 transactions"""

    def __init__(self, manager, gas_manager=None):
        """
        Args:
            manager: Web3Manager instance
            gas_manager: GasManager instance (created if None, loads from gas_config.json)
        """
        self.manager = manager
        self.gas_manager = gas_manager or GasManager(manager)

    def build(self, contract_func, sender, gas=None, operation_type=None, gas_buffer=1.2):
        """
        Build an EIP-1559 transaction for a contract function.

        Args:
            contract_func: Contract function to call
            sender: Sending address
            gas: Exact gas limit; when None it is estimated and buffered
            operation_type: Type of operation for fallback gas limit lookup
            gas_buffer: Multiplier applied to an internal estimate

        Returns:
            Transaction dictionary ready for signing

        Raises:
            GasPriceTooHighError: If base fee exceeds maxFeePerGas
        """
        fee_params = self.gas_manager.getFeeParams()

        if gas is None:
            estimated_gas = self.gas_manager.estimateGas(contract_func, sender, operation_type)
            gas = int(estimated_gas * gas_buffer)

        tx = {
            "from": sender,
            "nonce": self.manager.get_nonce(sender),
            "gas": int(gas),
            "maxFeePerGas": fee_params["maxFeePerGas"],
            "maxPriorityFeePerGas": fee_params["maxPriorityFeePerGas"],
            "chainId": self.manager.chain_id,
            "type": 2,
        }

        return contract_func.build_transaction(tx)

    def build_and_send(self, contract_func, sender, gas=None, operation_type=None,
                       description=None, gas_buffer=1.2):
        """
        Build, confirm, sign, and send a transaction, then wait for its receipt.

        Returns:
            Transaction receipt (status 1)

        Raises:
            TransactionRejected: Declined by the confirmation hook, no signer,
                or the fee cap was exceeded. Nothing was broadcast.
            TransactionReverted: Send failed, receipt timed out, or status 0
        """
        description = description or operation_type or "transaction"
        account = self.manager.account
        if account is None or account.address != sender:
            raise TransactionRejected(f"No signer available for {sender}")

        try:
            tx = self.build(contract_func, sender, gas, operation_type, gas_buffer)
        except TransactionRejected:
            raise
        except Exception as e:
            raise TransactionReverted(f"Could not build {description}: {e}") from e

        confirm = self.manager.confirm
        if confirm is not None and not confirm(description):
            logger.info("Signature declined: %s", description)
            raise TransactionRejected(f"User declined {description}")

        signed = account.sign_transaction(tx)
        try:
            tx_hash = self.manager.w3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as e:
            raise TransactionReverted(f"Failed to send {description}: {e}") from e

        tx_hash_hex = tx_hash.hex()
        logger.info("Sent %s: %s (gas limit %d)", description, tx_hash_hex, tx["gas"])

        try:
            receipt = self.manager.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.manager.config.tx_timeout
            )
        except TimeExhausted as e:
            raise TransactionReverted(
                f"No receipt for {description} within timeout", tx_hash=tx_hash_hex
            ) from e
        except Exception as e:
            raise TransactionReverted(
                f"Failed waiting for {description}: {e}", tx_hash=tx_hash_hex
            ) from e

        if receipt.status != 1:
            raise TransactionReverted(f"{description} reverted: {tx_hash_hex}", tx_hash=tx_hash_hex)

        return receipt
