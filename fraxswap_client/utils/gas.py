"""EIP-1559 fee parameters with user-configurable limits"""

import json
import logging
from pathlib import Path

from ..core.exceptions import TransactionRejected

logger = logging.getLogger(__name__)


class GasPriceTooHighError(TransactionRejected):
    """Raised when current base fee exceeds the user-specified maximum"""
    pass


class GasConfig:
    """Load and manage gas configuration from JSON file"""

    DEFAULT_GAS_LIMITS = {
        "approve": 65000,
        "default": 500000,
    }

    def __init__(self, config_path=None):
        """
        Load gas configuration from JSON file.

        Args:
            config_path: Path to gas_config.json (searches default locations if None)
        """
        self._config = self._load_config(config_path)

    def _load_config(self, config_path=None):
        """Load config from file or return defaults"""
        search_paths = [
            config_path,
            Path.cwd() / "gas_config.json",
            Path.home() / ".fraxswap" / "gas_config.json",
            Path(__file__).parent.parent.parent / "gas_config.json",
        ]

        for path in search_paths:
            if path and Path(path).exists():
                with open(path) as f:
                    return json.load(f)

        return {
            "maxFeePerGas": None,
            "maxPriorityFeePerGas": 1.5,
            "gasLimit": self.DEFAULT_GAS_LIMITS.copy(),
        }

    @property
    def maxFeePerGas(self):
        """Max fee per gas in Gwei (None = no limit)"""
        return self._config.get("maxFeePerGas")

    @property
    def maxPriorityFeePerGas(self):
        """Priority fee (tip) in Gwei"""
        return self._config.get("maxPriorityFeePerGas", 1.5)

    def getGasLimit(self, operation_type):
        """Fallback gas limit for an operation type"""
        gas_limits = self._config.get("gasLimit", self.DEFAULT_GAS_LIMITS)
        return gas_limits.get(operation_type, gas_limits.get("default", 500000))


class GasManager:
    """
    EIP-1559 fee management.

    Supports:
    - maxFeePerGas: Maximum total fee per gas unit (base + priority)
    - maxPriorityFeePerGas: Tip to validators for faster inclusion
    """

    def __init__(self, manager, maxFeePerGas=None, maxPriorityFeePerGas=None, config=None):
        """
        Args:
            manager: Web3Manager instance
            maxFeePerGas: Max fee per gas in Gwei (overrides config)
            maxPriorityFeePerGas: Priority fee in Gwei (overrides config)
            config: GasConfig instance (created if None)
        """
        self.manager = manager
        self.config = config or GasConfig()

        self._maxFeePerGas = maxFeePerGas
        self._maxPriorityFeePerGas = maxPriorityFeePerGas

    @property
    def maxFeePerGas(self):
        """Get maxFeePerGas in Gwei (override > config > None)"""
        if self._maxFeePerGas is not None:
            return self._maxFeePerGas
        return self.config.maxFeePerGas

    @property
    def maxPriorityFeePerGas(self):
        """Get maxPriorityFeePerGas in Gwei (override > config)"""
        if self._maxPriorityFeePerGas is not None:
            return self._maxPriorityFeePerGas
        return self.config.maxPriorityFeePerGas

    def getGasLimit(self, operation_type=None):
        return self.config.getGasLimit(operation_type or "default")

    def getBaseFee(self):
        """Current base fee from latest block, in Wei"""
        latest_block = self.manager.w3.eth.get_block("latest")
        return latest_block.get("baseFeePerGas", 0)

    def getFeeParams(self):
        """
        Get EIP-1559 fee parameters for a transaction.

        Returns:
            Dict with maxFeePerGas, maxPriorityFeePerGas (in Wei)

        Raises:
            GasPriceTooHighError: If base fee exceeds maxFeePerGas
        """
        base_fee = self.getBaseFee()
        base_fee_gwei = base_fee / 1e9

        priority_fee_gwei = self.maxPriorityFeePerGas or 1.5
        priority_fee_wei = int(priority_fee_gwei * 1e9)

        if self.maxFeePerGas is not None:
            max_fee_gwei = self.maxFeePerGas
            max_fee_wei = int(max_fee_gwei * 1e9)

            # maxFeePerGas below the base fee can never be included
            if max_fee_wei < base_fee:
                raise GasPriceTooHighError(
                    f"Current base fee ({base_fee_gwei:.2f} Gwei) exceeds your "
                    f"maxFeePerGas ({max_fee_gwei} Gwei). Transaction cannot be included. "
                    f"Either increase maxFeePerGas or wait for lower network congestion."
                )
        else:
            max_fee_wei = int((base_fee + priority_fee_wei) * 1.2)

        return {
            "maxFeePerGas": max_fee_wei,
            "maxPriorityFeePerGas": priority_fee_wei,
        }

    def estimateGas(self, contract_func, from_address, operation_type=None):
        """
        Estimate gas for a contract function call, falling back to the
        configured limit when the node cannot estimate.

        Only used for approvals; exchange actions must estimate strictly.
        """
        fallback = self.getGasLimit(operation_type)

        try:
            return contract_func.estimate_gas({"from": from_address})
        except Exception as e:
            logger.debug("Gas estimation for %s failed (%s), using %d", operation_type, e, fallback)
            return fallback
