"""
Test configuration and fixtures
"""
import sys
from pathlib import Path

# Add src and the tests directory to Python path
tests_root = Path(__file__).parent
src_path = tests_root.parent / "src"

sys.path.insert(0, str(tests_root))
sys.path.insert(0, str(src_path))

import pytest

from stakeledger.core.contracts.erc20 import ERC20Token
from stakeledger.core.environment import Clock, ExecutionEnvironment
from stakeledger_tests.fixtures import GENESIS_TIME, OWNER


@pytest.fixture
def env():
    """Environment with a manual clock at GENESIS_TIME."""
    return ExecutionEnvironment(Clock(start_time=GENESIS_TIME))


@pytest.fixture
def token():
    return ERC20Token(name="Stake Token", symbol="STK", owner=OWNER)


@pytest.fixture
def reward_token():
    return ERC20Token(name="Reward Token", symbol="RWD", owner=OWNER)


@pytest.fixture
def fund():
    """Mint ``amount`` to ``holder`` and approve ``spender`` for it."""

    def _fund(token, holder, amount, spender=None):
        token.mint(OWNER, holder, amount)
        if spender is not None:
            token.approve(holder, spender, token.allowance(holder, spender) + amount)

    return _fund
