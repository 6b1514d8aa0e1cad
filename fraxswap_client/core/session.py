"""Connected-account session state"""

import logging
import threading

from .exceptions import NotConnected
from .types import Address

logger = logging.getLogger(__name__)


class Session:
    """
    Holds the connected account for the process.

    The account is set on connect and cleared on disconnect or when the
    provider reports an account change. The orchestrator only reads it.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._account = None
        self._provider = None

    @property
    def account(self):
        """Connected account, or None when not connected"""
        return self._account

    @property
    def provider(self):
        return self._provider

    @property
    def is_connected(self):
        return self._account is not None

    def connect(self, provider):
        """
        Connect through a wallet provider.

        Raises:
            NotConnected: If the provider exposes no account
        """
        accounts = provider.request_accounts()
        if not accounts:
            raise NotConnected("Wallet provider returned no accounts")
        with self._lock:
            self._account = Address(accounts[0])
            self._provider = provider
        logger.info("Connected account %s", self._account)
        return self._account

    def disconnect(self):
        with self._lock:
            previous = self._account
            self._account = None
            self._provider = None
        if previous is not None:
            logger.info("Disconnected account %s", previous)

    def on_accounts_changed(self, accounts):
        """Provider event: the signer switched accounts or locked"""
        if not accounts:
            self.disconnect()
            return
        with self._lock:
            previous = self._account
            self._account = Address(accounts[0])
        logger.info("Account changed %s -> %s", previous, self._account)

    def require_account(self):
        account = self._account
        if account is None:
            raise NotConnected("No wallet connected")
        return account


_session = Session()


def get_session():
    """Process-wide session"""
    return _session
