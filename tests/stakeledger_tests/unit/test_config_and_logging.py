"""
Unit tests for configuration loading, structured logging, access control
and address helpers.
"""

import json
import logging

import pytest

from stakeledger.core.access_control import Ownable
from stakeledger.core.addresses import derive_address, is_zero_address, validate_address
from stakeledger.core.config import EnvironmentType, LedgerConfig
from stakeledger.core.constants import ZERO_ADDRESS
from stakeledger.core.exceptions import (
    ConfigurationError,
    InvalidInputError,
    UnauthorizedError,
)
from stakeledger.core.logging_config import get_logger, setup_logging
from stakeledger_tests.fixtures import ALICE, BOB, GENESIS_TIME, OWNER


class TestLedgerConfig:
    def test_defaults(self):
        config = LedgerConfig.from_env({})
        assert config.environment is EnvironmentType.DEVELOPMENT
        assert config.log_level == "INFO"
        assert config.log_file is None
        assert config.start_time is None
        assert not config.build_clock().is_manual

    def test_reads_prefixed_variables(self, tmp_path):
        config = LedgerConfig.from_env(
            {
                "STAKELEDGER_ENVIRONMENT": "Production",
                "STAKELEDGER_LOG_LEVEL": "debug",
                "STAKELEDGER_LOG_FILE": str(tmp_path / "ledger.log"),
                "STAKELEDGER_START_TIME": str(GENESIS_TIME),
            }
        )
        assert config.environment is EnvironmentType.PRODUCTION
        assert config.log_level == "DEBUG"
        assert config.log_file.endswith("ledger.log")

        clock = config.build_clock()
        assert clock.is_manual
        assert clock.now() == GENESIS_TIME

    def test_reads_process_environment(self, monkeypatch):
        monkeypatch.setenv("STAKELEDGER_LOG_LEVEL", "WARNING")
        assert LedgerConfig.from_env().log_level == "WARNING"

    @pytest.mark.parametrize(
        "environ",
        [
            {"STAKELEDGER_ENVIRONMENT": "qa"},
            {"STAKELEDGER_LOG_LEVEL": "LOUD"},
            {"STAKELEDGER_START_TIME": "yesterday"},
            {"STAKELEDGER_START_TIME": "-5"},
        ],
    )
    def test_invalid_values(self, environ):
        with pytest.raises(ConfigurationError):
            LedgerConfig.from_env(environ)


class TestStructuredLogging:
    def test_json_lines_written_to_file(self, tmp_path):
        log_file = tmp_path / "logs" / "ledger.log"
        logger = setup_logging(
            name="stakeledger.tests.json",
            log_file=str(log_file),
            level="INFO",
            environment="staging",
            enable_console=False,
        )
        logger.info(
            "pool created",
            extra={"event": "pool.created", "extra_fields": {"pool": "alpha"}},
        )
        for handler in logger.handlers:
            handler.close()

        record = json.loads(log_file.read_text().splitlines()[-1])
        assert record["message"] == "pool created"
        assert record["event"] == "pool.created"
        assert record["pool"] == "alpha"
        assert record["environment"] == "staging"
        assert record["service"] == "stakeledger"
        assert record["level"] == "info"
        assert record["timestamp"]
        assert "extra_fields" not in record
        assert record["source"]["function"] == "test_json_lines_written_to_file"

    def test_setup_replaces_handlers(self):
        logger = setup_logging(name="stakeledger.tests.handlers", level="DEBUG")
        logger = setup_logging(name="stakeledger.tests.handlers", level="DEBUG")
        assert len(logger.handlers) == 1
        assert logger.level == logging.DEBUG

    def test_get_logger_configures_once(self):
        first = get_logger("stakeledger.tests.once")
        second = get_logger("stakeledger.tests.once", level="ERROR")
        assert first is second
        assert second.level == logging.INFO


class TestOwnable:
    def test_owner_passes(self):
        gate = Ownable(owner=OWNER.upper().replace("0X", "0x"))
        assert gate.owner == OWNER
        gate.require_owner(OWNER, "set_reward_rate")

    def test_non_owner_rejected(self):
        gate = Ownable(owner=OWNER)
        with pytest.raises(UnauthorizedError, match="set_reward_rate"):
            gate.require_owner(ALICE, "set_reward_rate")
        assert not gate.is_owner(None)

    def test_transfer_ownership(self):
        gate = Ownable(owner=OWNER)
        gate.transfer_ownership(OWNER, BOB)
        assert gate.is_owner(BOB)
        with pytest.raises(UnauthorizedError):
            gate.transfer_ownership(OWNER, ALICE)

    def test_zero_owner_rejected(self):
        with pytest.raises(InvalidInputError):
            Ownable(owner=ZERO_ADDRESS)


class TestAddresses:
    @pytest.mark.parametrize("address", [None, "", ZERO_ADDRESS, 42])
    def test_invalid_addresses(self, address):
        with pytest.raises(InvalidInputError):
            validate_address(address, "beneficiary")

    def test_validate_normalizes(self):
        assert validate_address("0xABC", "caller") == "0xabc"

    def test_zero_address_detection(self):
        assert is_zero_address(ZERO_ADDRESS.upper())
        assert not is_zero_address(ALICE)

    def test_derived_addresses_are_stable(self):
        assert derive_address("pool:1") == derive_address("pool:1")
        assert derive_address("pool:1") != derive_address("pool:2")
        assert len(derive_address("pool:1")) == 42
