r"""
Tests for micro_bench.config module.
"""

import pytest

from micro_bench.config import (
    DEFAULT_PROFILE,
    DEFAULT_RPC_ADDRESS,
    ENV_PREFIX,
    PROFILES,
    get_env,
    get_profile,
    parse_address,
)


class TestProfiles:
    def test_profiles_defined(self):
        assert "quick" in PROFILES
        assert "standard" in PROFILES
        assert "thorough" in PROFILES

    def test_standard_profile(self):
        profile = PROFILES["standard"]
        assert profile.name == "standard"
        assert profile.trials == 100
        assert profile.calibration_seconds == 2.0
        assert profile.probe == 2
        assert profile.target == 0.01

    def test_profiles_ordered_by_effort(self):
        quick, standard, thorough = PROFILES["quick"], PROFILES["standard"], PROFILES["thorough"]
        assert quick.trials < standard.trials < thorough.trials
        assert quick.calibration_seconds < standard.calibration_seconds < thorough.calibration_seconds

    def test_default_profile(self):
        assert DEFAULT_PROFILE == "standard"


class TestGetProfile:
    def test_get_valid_profile(self):
        assert get_profile("quick").name == "quick"

    def test_get_invalid_profile(self):
        with pytest.raises(ValueError, match="Unknown profile"):
            get_profile("invalid")


class TestGetEnv:
    def test_get_env_not_set(self):
        assert get_env("TEST_NOT_SET") is None

    def test_get_env_with_default(self):
        assert get_env("TEST_NOT_SET", default="default_value") == "default_value"

    def test_get_env_set(self, monkeypatch):
        monkeypatch.setenv(f"{ENV_PREFIX}TEST_VAR", "test_value")
        assert get_env("TEST_VAR") == "test_value"

    def test_env_prefix(self):
        assert ENV_PREFIX == "MICRO_BENCH_"


class TestParseAddress:
    def test_default_address(self):
        assert parse_address(DEFAULT_RPC_ADDRESS) == ("127.0.0.1", 9998)

    def test_tcp_scheme(self):
        assert parse_address("tcp://localhost:1234") == ("localhost", 1234)

    def test_empty_host(self):
        assert parse_address(":9998") == ("127.0.0.1", 9998)

    @pytest.mark.parametrize("address", ["localhost", "localhost:", "localhost:http"])
    def test_invalid(self, address):
        with pytest.raises(ValueError, match="expected host:port"):
            parse_address(address)
