"""Web3 connection management and wallet provider"""

import os
import logging

from web3 import Web3
from eth_account import Account
from dotenv import load_dotenv

from .config import Config
from .exceptions import ConnectionError, ConfigError
from .types import Address

logger = logging.getLogger(__name__)


class Web3Manager:
    """
    Manages the Web3 connection and the signing account.

    Acts as the wallet provider for the contract clients: it supplies the
    active account and signs and submits transactions. Keys never leave it.
    """

    def __init__(self, require_signer=False, confirm=None, w3=None):
        """
        Initialize Web3 connection.

        Args:
            require_signer: If True, loads private key for signing transactions
            confirm: Optional callable(description) -> bool asked before every
                signature; returning False declines the transaction
            w3: Pre-built Web3 instance (skips RPC_URL lookup)
        """
        load_dotenv()
        load_dotenv("wallet.env")

        self.config = Config()
        self.confirm = confirm
        if w3 is not None:
            self.w3 = w3
        else:
            self._setup_web3()

        self.account = None
        if require_signer:
            self._setup_account()

        self._tx_builder = None

    def _setup_web3(self):
        """Setup Web3 connection"""
        rpc_url = os.getenv("RPC_URL")
        if not rpc_url:
            raise ConfigError("RPC_URL not found in environment")

        timeout = self.config.tx_timeout
        self.w3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": timeout}))

        if not self.w3.is_connected():
            raise ConnectionError(f"Failed to connect to {rpc_url}")

    def _setup_account(self):
        """Setup signing account from private key"""
        private_key = os.getenv("PRIVATE_KEY")
        if not private_key:
            raise ConfigError("PRIVATE_KEY not found in wallet.env")

        try:
            self.account = Account.from_key(private_key)
        except (ValueError, TypeError) as e:
            raise ConfigError(f"Invalid PRIVATE_KEY: {e}")
        logger.debug("Loaded signer %s", self.account.address)

    @property
    def address(self):
        """Get account address (from signer or PUBLIC_KEY in wallet.env)"""
        if self.account:
            return Address(self.account.address)
        public_key = os.getenv("PUBLIC_KEY")
        return Address(public_key) if public_key else None

    @property
    def chain_id(self):
        """Get current chain ID"""
        return self.w3.eth.chain_id

    @property
    def tx_builder(self):
        if self._tx_builder is None:
            from ..utils.transactions import TransactionBuilder
            self._tx_builder = TransactionBuilder(self)
        return self._tx_builder

    def request_accounts(self):
        """Accounts this provider can sign for (empty without a signer)"""
        if self.account is None:
            return []
        return [Address(self.account.address)]

    def get_nonce(self, address=None):
        """Get pending transaction count (nonce)"""
        addr = address or self.address
        if not addr:
            raise ValueError("No address provided")
        return self.w3.eth.get_transaction_count(addr, "pending")

    def get_contract(self, address, abi_name):
        """Create contract instance"""
        abi = self.config.get_abi(abi_name)
        return self.w3.eth.contract(
            address=Address(address),
            abi=abi
        )

    def sign_and_send(self, contract_func, sender, gas=None, operation_type=None, description=None):
        """
        Sign and submit a contract call, waiting for its receipt.

        Args:
            contract_func: Bound contract function
            sender: Address signing the transaction
            gas: Exact gas limit (estimated with a fallback when None)
            operation_type: Key for gas limit fallback lookup
            description: Text shown to the confirmation hook

        Returns:
            Transaction receipt with status 1

        Raises:
            TransactionRejected: Signer declined, or nothing was signed
            TransactionReverted: Broadcast failed, timed out, or reverted
        """
        return self.tx_builder.build_and_send(
            contract_func,
            sender,
            gas=gas,
            operation_type=operation_type,
            description=description,
        )
