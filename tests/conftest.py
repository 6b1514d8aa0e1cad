"""
Shared test fixtures for the FraxSwap client tests.

Provides:
- An isolated config directory (tokens.json / exchange.json)
- Well-known addresses
- Receipt factory
"""

import json
import pytest
from unittest.mock import MagicMock

from fraxswap_client.core.config import Config

OWNER = "0x" + "1" * 40
EXCHANGE = "0x" + "2" * 40
TOKEN_A = "0x" + "3" * 40
TOKEN_B = "0x" + "4" * 40
OTHER = "0x" + "5" * 40


def make_receipt(tx_hash="0xfeed", status=1, block=100):
    receipt = MagicMock()
    receipt.status = status
    receipt.blockNumber = block
    receipt.transactionHash.hex.return_value = tx_hash
    return receipt


@pytest.fixture(autouse=True)
def config_dir(tmp_path, monkeypatch):
    """Point Config at a throwaway config directory."""
    path = tmp_path / "config"
    path.mkdir()
    (path / "tokens.json").write_text(json.dumps({"AAA": TOKEN_A, "bbb": TOKEN_B}))
    (path / "exchange.json").write_text(json.dumps({
        "address": EXCHANGE,
        "default_position_id": 7,
    }))
    monkeypatch.setenv("FRAXSWAP_CONFIG_DIR", str(path))
    monkeypatch.delenv("EXCHANGE_ADDRESS", raising=False)
    monkeypatch.delenv("TX_TIMEOUT", raising=False)
    Config.reset()
    yield path
    Config.reset()
