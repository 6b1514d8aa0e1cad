"""Contract wrappers for ERC20 tokens and the exchange"""

from .erc20 import ERC20
from .exchange import Exchange

__all__ = ["ERC20", "Exchange"]
