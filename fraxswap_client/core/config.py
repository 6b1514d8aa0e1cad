"""Configuration loading and management"""

import os
import json
from pathlib import Path
from types import MappingProxyType

from .exceptions import ConfigError, InvalidAddressError
from .types import Address


class TokenRegistry:
    """Read-only symbol -> address mapping"""

    def __init__(self, tokens):
        try:
            resolved = {symbol.upper(): Address(addr) for symbol, addr in tokens.items()}
        except InvalidAddressError as e:
            raise ConfigError(f"Invalid token registry entry: {e}")
        self._tokens = MappingProxyType(resolved)

    @property
    def tokens(self):
        return self._tokens

    def __iter__(self):
        """(symbol, address) pairs"""
        return iter(self._tokens.items())

    def resolve(self, symbol_or_address):
        """Resolve token symbol to address, or validate address"""
        token = symbol_or_address.upper()
        if token in self._tokens:
            return self._tokens[token]

        if symbol_or_address.startswith("0x") and len(symbol_or_address) == 42:
            try:
                return Address(symbol_or_address)
            except InvalidAddressError as e:
                raise ConfigError(str(e))

        raise ConfigError(f"Unknown token: {symbol_or_address}")


class Config:
    """Centralized configuration manager for shared settings"""

    _instance = None
    _tokens = None
    _exchange = None
    _abis = None

    # ABIs are inside the package (not user-configurable)
    PACKAGE_ABIS = Path(__file__).parent.parent / "abis.json"

    # Default FraxSwap deployment
    DEFAULT_EXCHANGE_ADDRESS = "0xA9276f8FE4984EDC2bB5799034d65CB5A19EFE72"
    DEFAULT_POSITION_ID = 1
    DEFAULT_TX_TIMEOUT = 120

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if Config._tokens is None:
            self._load()

    @classmethod
    def reset(cls):
        """Drop the loaded configuration so the next Config() reloads it"""
        cls._instance = None
        cls._tokens = None
        cls._exchange = None
        cls._abis = None

    def _find_config_dir(self):
        """Find config directory"""
        env_path = os.getenv("FRAXSWAP_CONFIG_DIR")
        if env_path:
            path = Path(env_path)
            if path.exists():
                return path

        locations = [
            Path.cwd() / "config",
            Path(__file__).parent.parent.parent / "config",
            Path.home() / ".fraxswap" / "config",
        ]

        for path in locations:
            if path.exists():
                return path

        raise ConfigError(f"Could not find config directory. Searched: {[str(p) for p in locations]}")

    def _load(self):
        """Load configuration files"""
        config_dir = self._find_config_dir()

        tokens_path = config_dir / "tokens.json"
        if not tokens_path.exists():
            raise ConfigError(f"tokens.json not found in {config_dir}")
        with open(tokens_path) as f:
            Config._tokens = TokenRegistry(json.load(f))

        exchange_path = config_dir / "exchange.json"
        exchange = {}
        if exchange_path.exists():
            with open(exchange_path) as f:
                exchange = json.load(f)
        Config._exchange = exchange

        if not self.PACKAGE_ABIS.exists():
            raise ConfigError(f"Shared ABIs not found: {self.PACKAGE_ABIS}")
        with open(self.PACKAGE_ABIS) as f:
            Config._abis = json.load(f)

    @property
    def tokens(self):
        """Token registry"""
        return Config._tokens

    @property
    def exchange_address(self):
        """Exchange contract address (EXCHANGE_ADDRESS env > exchange.json > default)"""
        raw = (
            os.getenv("EXCHANGE_ADDRESS")
            or Config._exchange.get("address")
            or self.DEFAULT_EXCHANGE_ADDRESS
        )
        try:
            return Address(raw)
        except InvalidAddressError as e:
            raise ConfigError(f"Invalid exchange address: {e}")

    @property
    def default_position_id(self):
        """Position id used by swap when the caller gives none"""
        raw = Config._exchange.get("default_position_id", self.DEFAULT_POSITION_ID)
        try:
            return int(raw)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid default_position_id: {raw}")

    @property
    def tx_timeout(self):
        """Seconds to wait for a transaction receipt"""
        raw = os.getenv("TX_TIMEOUT") or Config._exchange.get("tx_timeout")
        if raw is None:
            return self.DEFAULT_TX_TIMEOUT
        try:
            return float(raw)
        except ValueError:
            raise ConfigError(f"Invalid TX_TIMEOUT: {raw}")

    def get_abi(self, name):
        """Get ABI by name"""
        if name in Config._abis:
            return Config._abis[name]
        raise ConfigError(f"ABI not found: {name}")

    def get_token_address(self, symbol_or_address):
        """Resolve token symbol to address, or validate address"""
        return self.tokens.resolve(symbol_or_address)
