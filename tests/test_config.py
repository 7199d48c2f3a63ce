"""
sentimentpool/tests/test_config.py

Tests for configuration, identities and error codes.
"""

import pytest

from sentimentpool.config import (
    EngineConfig,
    EngineContext,
    DEFAULT_MIN_STAKE_AMOUNT,
    DEFAULT_PERIOD_DURATION,
)
from sentimentpool.errors import (
    ErrorCode,
    AuthorizationError,
    CustodyError,
    NotFoundError,
    PreconditionError,
    StateConflictError,
    ValidationError,
)
from sentimentpool.identity import Identity


class TestIdentity:
    """Test the Identity value type."""

    def test_equality_and_hashing(self):
        assert Identity("alice") == Identity("alice")
        assert Identity("alice") != Identity("bob")
        assert {Identity("alice"): 1}[Identity("alice")] == 1

    def test_str(self):
        assert str(Identity("alice")) == "alice"

    @pytest.mark.parametrize("value", ["", "a:b"])
    def test_rejects_bad_values(self, value):
        with pytest.raises(ValueError):
            Identity(value)


class TestEngineConfig:
    """Test EngineConfig."""

    def test_defaults(self):
        config = EngineConfig(authority=Identity("oracle"))
        assert config.min_stake_amount == DEFAULT_MIN_STAKE_AMOUNT
        assert config.period_duration == DEFAULT_PERIOD_DURATION
        assert config.accuracy_threshold == 80

    def test_is_authority(self):
        config = EngineConfig(authority=Identity("oracle"))
        assert config.is_authority(Identity("oracle"))
        assert not config.is_authority(Identity("alice"))

    def test_rejects_non_positive_stake(self):
        with pytest.raises(ValueError):
            EngineConfig(authority=Identity("oracle"), min_stake_amount=0)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("SENTIMENTPOOL_AUTHORITY", "oracle")
        monkeypatch.setenv("SENTIMENTPOOL_MIN_STAKE", "500")
        monkeypatch.delenv("SENTIMENTPOOL_PERIOD_DURATION", raising=False)

        config = EngineConfig.from_env()

        assert config.authority == Identity("oracle")
        assert config.min_stake_amount == 500
        assert config.period_duration == DEFAULT_PERIOD_DURATION

    def test_from_env_explicit_authority_wins(self, monkeypatch):
        monkeypatch.setenv("SENTIMENTPOOL_AUTHORITY", "oracle")
        config = EngineConfig.from_env(authority=Identity("admin"))
        assert config.authority == Identity("admin")

    def test_from_env_missing_authority(self, monkeypatch):
        monkeypatch.delenv("SENTIMENTPOOL_AUTHORITY", raising=False)
        with pytest.raises(ValueError, match="SENTIMENTPOOL_AUTHORITY"):
            EngineConfig.from_env()

    def test_from_env_bad_integer(self, monkeypatch):
        monkeypatch.setenv("SENTIMENTPOOL_AUTHORITY", "oracle")
        monkeypatch.setenv("SENTIMENTPOOL_MIN_STAKE", "lots")
        with pytest.raises(ValueError, match="SENTIMENTPOOL_MIN_STAKE"):
            EngineConfig.from_env()

    def test_to_dict(self):
        data = EngineConfig(authority=Identity("oracle"), min_stake_amount=10).to_dict()
        assert data["authority"] == "oracle"
        assert data["min_stake_amount"] == 10


class TestEngineContext:
    """Test EngineContext."""

    def test_initial_values(self):
        context = EngineContext()
        assert context.current_period == 1
        assert context.total_staked == 0

    def test_from_dict(self):
        context = EngineContext.from_dict({"current_period": 4, "total_staked": 300})
        assert context == EngineContext(current_period=4, total_staked=300)


class TestErrorCodes:
    """Error codes are stable."""

    def test_code_values(self):
        assert ErrorCode.OWNER_ONLY == 100
        assert ErrorCode.INVALID_SENTIMENT == 101
        assert ErrorCode.ALREADY_SUBMITTED == 102
        assert ErrorCode.INSUFFICIENT_STAKE == 103
        assert ErrorCode.PERIOD_NOT_ENDED == 104
        assert ErrorCode.NO_SUBMISSION == 105
        assert ErrorCode.ALREADY_FINALIZED == 106
        assert ErrorCode.NOT_FINALIZED == 107
        assert ErrorCode.CUSTODY_FAILED == 108

    def test_default_codes(self):
        assert AuthorizationError("x").code == ErrorCode.OWNER_ONLY
        assert ValidationError("x").code == ErrorCode.INVALID_SENTIMENT
        assert StateConflictError("x").code == ErrorCode.ALREADY_SUBMITTED
        assert NotFoundError("x").code == ErrorCode.NO_SUBMISSION
        assert PreconditionError("x").code == ErrorCode.NOT_FINALIZED
        assert CustodyError("x").code == ErrorCode.CUSTODY_FAILED

    def test_to_dict(self):
        error = StateConflictError("done already", ErrorCode.ALREADY_FINALIZED)
        assert error.to_dict() == {
            "error": "done already",
            "code": 106,
            "name": "already_finalized",
        }
