"""Tests for machina.core.errors module."""

import pytest

from machina.core.errors import (
    CacheLookupError,
    CacheStoreError,
    CacheWriteError,
    ConfigError,
    DependencyNotFoundError,
    ErrorCategory,
    ErrorContext,
    GarbageCollectionError,
    HashError,
    InvalidConfigError,
    MachineDefinitionError,
    MachineError,
    MachineNotFoundError,
    MachineTimeoutError,
    UndeclaredExitError,
    ValidationError,
    categorize_error,
)


class TestErrorContext:
    """Test ErrorContext dataclass."""

    def test_create_empty_context(self):
        """Create context with no fields set."""
        ctx = ErrorContext()
        assert ctx.machine is None
        assert ctx.hash is None
        assert ctx.metadata == {}
        assert ctx.to_dict() == {}

    def test_to_dict_includes_set_fields_and_metadata(self):
        ctx = ErrorContext(machine="add", hash="abc", metadata={"attempt": 2})
        d = ctx.to_dict()
        assert d["machine"] == "add"
        assert d["hash"] == "abc"
        assert d["attempt"] == 2
        assert "exit" not in d


class TestMachineError:
    """Test the base error."""

    def test_defaults(self):
        error = MachineError("Something went wrong")
        assert error.message == "Something went wrong"
        assert error.category == ErrorCategory.INTERNAL
        assert error.retryable is False
        assert error.cause is None

    def test_cause_is_chained(self):
        original = ConnectionError("store offline")
        error = CacheWriteError("create() failed", cause=original)
        assert error.cause is original
        assert error.__cause__ is original

    def test_with_context_is_fluent(self):
        error = CacheLookupError("find() failed").with_context(machine="add", hash="h1", operation="find", attempt=3)
        assert isinstance(error, CacheLookupError)
        assert error.context.machine == "add"
        assert error.context.hash == "h1"
        assert error.context.operation == "find"
        assert error.context.metadata == {"attempt": 3}

    def test_to_dict(self):
        error = CacheWriteError("create() failed", cause=ValueError("bad")).with_context(machine="add")
        d = error.to_dict()
        assert d["error_type"] == "CacheWriteError"
        assert d["category"] == "STORAGE"
        assert d["retryable"] is True
        assert d["context"] == {"machine": "add"}
        assert d["cause"] == "ValueError('bad')"

    def test_repr(self):
        assert repr(ConfigError("nope")) == "ConfigError('nope', category=CONFIG)"


class TestHierarchy:
    """Errors land in the category their handling depends on."""

    @pytest.mark.parametrize(
        "error,base,category",
        [
            (InvalidConfigError("ttl", -1), ConfigError, ErrorCategory.CONFIG),
            (MachineDefinitionError("no fn"), ConfigError, ErrorCategory.CONFIG),
            (HashError("cycle"), ValidationError, ErrorCategory.VALIDATION),
            (CacheLookupError("x"), CacheStoreError, ErrorCategory.STORAGE),
            (CacheWriteError("x"), CacheStoreError, ErrorCategory.STORAGE),
            (GarbageCollectionError("x"), CacheStoreError, ErrorCategory.STORAGE),
            (DependencyNotFoundError("numpyy", "add"), MachineError, ErrorCategory.DEPENDENCY),
            (MachineNotFoundError("add"), MachineError, ErrorCategory.DEPENDENCY),
            (MachineTimeoutError(1.5, "add"), MachineError, ErrorCategory.EXECUTION),
            (UndeclaredExitError("oops", "add"), MachineError, ErrorCategory.EXECUTION),
        ],
    )
    def test_category(self, error, base, category):
        assert isinstance(error, base)
        assert error.category == category
        assert categorize_error(error) == category

    def test_store_errors_are_retryable(self):
        assert CacheStoreError("x").retryable is True
        assert ConfigError("x").retryable is False

    def test_foreign_exception_is_unknown(self):
        assert categorize_error(KeyError("k")) == ErrorCategory.UNKNOWN


class TestSpecificErrors:
    def test_invalid_config_default_message(self):
        error = InvalidConfigError("ttl", -5)
        assert error.key == "ttl"
        assert error.value == -5
        assert "ttl" in error.message

    def test_dependency_not_found_context(self):
        error = DependencyNotFoundError("left_pad", "format")
        assert error.name == "left_pad"
        assert error.context.machine == "format"
        assert error.context.metadata["dependency"] == "left_pad"
        assert "left_pad" in str(error)

    def test_machine_not_found_lists_available(self):
        error = MachineNotFoundError("sub", available=["add", "mul"])
        assert "add, mul" in str(error)
        assert "none" in str(MachineNotFoundError("sub"))

    def test_timeout_keeps_duration(self):
        error = MachineTimeoutError(0.25, "slow")
        assert error.timeout == 0.25
        assert error.retryable is True

    def test_undeclared_exit_context(self):
        error = UndeclaredExitError("teapot", "brew")
        assert error.context.exit == "teapot"
        assert error.context.machine == "brew"

    def test_hash_error_path(self):
        assert HashError("bad key", path="1").to_dict()["path"] == "1"
        assert "path" not in HashError("bad").to_dict()
