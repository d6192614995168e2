"""Shared addresses, timestamps and test tokens for the ledger tests."""

from stakeledger.core.contracts.erc20 import ERC20Token

GENESIS_TIME = 1_700_000_000
DAY = 86400

OWNER = "0x" + "0a" * 20
ALICE = "0x" + "a1" * 20
BOB = "0x" + "b0" * 20
CAROL = "0x" + "c0" * 20


class CallbackToken(ERC20Token):
    """Token that runs a one-shot callback before moving funds."""

    callback = None

    def _fire(self):
        if self.callback is not None:
            hook, self.callback = self.callback, None
            hook()

    def transfer(self, sender, recipient, amount):
        self._fire()
        return super().transfer(sender, recipient, amount)

    def transfer_from(self, spender, from_addr, to_addr, amount):
        self._fire()
        return super().transfer_from(spender, from_addr, to_addr, amount)


class RefusingToken(ERC20Token):
    """Token whose pushes report failure instead of raising."""

    def transfer(self, sender, recipient, amount):
        return False
