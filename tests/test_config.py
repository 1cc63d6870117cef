"""Tests for environment settings."""

import pytest

from cert_verifier.config import Settings, load_settings
from cert_verifier.content import DEFAULT_GATEWAY
from cert_verifier.errors import ConfigError

from conftest import CONTRACT, RPC_URL


class TestLoadSettings:
    """Tests for load_settings."""

    def test_defaults(self):
        settings = load_settings({})
        assert settings.rpc_url is None
        assert settings.deploy_block is None
        assert settings.ipfs_gateway == DEFAULT_GATEWAY
        assert settings.concurrency == 5
        assert settings.log_level == "warning"

    def test_values(self):
        settings = load_settings(
            {
                "CERT_RPC_URL": RPC_URL,
                "CERT_CONTRACT_ADDRESS": CONTRACT,
                "CERT_DEPLOY_BLOCK": "5123456",
                "CERT_TIMEOUT": "7.5",
                "CERT_CONCURRENCY": "3",
                "CERT_LOG_LEVEL": "DEBUG",
            }
        )
        assert settings.deploy_block == 5_123_456
        assert settings.timeout == 7.5
        assert settings.concurrency == 3
        assert settings.log_level == "debug"

    @pytest.mark.parametrize(
        "name,value",
        [
            ("CERT_DEPLOY_BLOCK", "latest"),
            ("CERT_CONCURRENCY", "0"),
            ("CERT_TIMEOUT", "-1"),
            ("CERT_LOG_LEVEL", "verbose"),
        ],
    )
    def test_invalid_values(self, name, value):
        with pytest.raises(ValueError, match=name):
            load_settings({name: value})

    def test_reader_requires_rpc_url(self):
        with pytest.raises(ConfigError, match="RPC URL"):
            Settings(contract_address=CONTRACT).registry_reader()

    def test_reader_requires_contract(self):
        with pytest.raises(ConfigError, match="contract"):
            Settings(rpc_url=RPC_URL).registry_reader()


class TestOverrides:
    """Tests for command-line overrides passed to load_settings."""

    def test_override_wins_over_environment(self):
        settings = load_settings(
            {"CERT_TIMEOUT": "7.5", "CERT_RPC_URL": "https://env.example.com"},
            timeout=2.0,
            rpc_url=RPC_URL,
        )
        assert settings.timeout == 2.0
        assert settings.rpc_url == RPC_URL

    def test_none_means_not_given(self):
        settings = load_settings({"CERT_CONCURRENCY": "3"}, concurrency=None, deploy_block=None)
        assert settings.concurrency == 3
        assert settings.deploy_block is None

    def test_override_skips_bad_environment_value(self):
        settings = load_settings({"CERT_TIMEOUT": "soon"}, timeout=4.0)
        assert settings.timeout == 4.0

    def test_overrides_are_validated(self):
        with pytest.raises(ValueError, match="CERT_CONCURRENCY"):
            load_settings({}, concurrency=0)

    def test_deploy_block_zero_allowed(self):
        assert load_settings({}, deploy_block=0).deploy_block == 0

    def test_unknown_override(self):
        with pytest.raises(TypeError):
            load_settings({}, rpc="x")
