"""
Unit Tests for configuration, exceptions and logging
"""
import json
import logging

import pytest
from pydantic import ValidationError

from livepreview.core.config import Settings, parse_name_list, settings
from livepreview.core.exceptions import (
    BackendInitError,
    BuildFailure,
    LivePreviewError,
    ModuleLoadError,
    QueueError,
    RepairError,
)
from livepreview.core.logging_config import (
    ContextualFormatter,
    JSONFormatter,
    LivePreviewLogger,
    generate_build_id,
    get_build_id,
    logger,
    set_build_id,
    set_project_id,
)
from livepreview.services.bundler.models import BundleError


class TestSettings:
    """Test environment-driven settings"""

    @pytest.mark.parametrize("value,expected", [
        (["a", "b"], ["a", "b"]),
        ('["dist", "build"]', ["dist", "build"]),
        ("node_modules, .git,, dist", ["node_modules", ".git", "dist"]),
        ("[broken, json", ["[broken", "json"]),
        (None, []),
    ])
    def test_parse_name_list(self, value, expected):
        assert parse_name_list(value) == expected

    def test_skip_dirs(self):
        assert "node_modules" in settings.PREVIEW_SKIP_DIRS
        assert Settings(PREVIEW_SKIP_DIRS_STR="out").PREVIEW_SKIP_DIRS == ["out"]

    def test_test_environment_loaded(self):
        assert settings.ENVIRONMENT == "test"
        assert not settings.ANTHROPIC_API_KEY

    @pytest.mark.parametrize("field,value", [
        ("GHOST_FIX_MIN_CONFIDENCE", 1.5),
        ("RETRY_JITTER", -0.1),
        ("RETRY_MAX_ATTEMPTS", 0),
        ("RETRY_CONCURRENCY", 0),
        ("GHOST_FIX_MAX_ROUNDS", 0),
    ])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            Settings(**{field: value})

    def test_dev_mode(self):
        assert Settings(ENVIRONMENT="development").is_dev_mode()
        assert Settings(ENVIRONMENT="production", DEBUG=True).is_dev_mode()
        assert not Settings(ENVIRONMENT="production", DEBUG=False).is_dev_mode()


class TestExceptions:
    """Test the LivePreviewError hierarchy"""

    def test_build_failure_summarizes_errors(self):
        error = BuildFailure([BundleError(text="Unexpected token }"), BundleError(text="Unterminated string literal")])
        assert error.message == "Unexpected token } (+1 more)"
        assert error.to_dict() == {
            "code": "BUILD_FAILED",
            "message": "Unexpected token } (+1 more)",
            "details": {"error_count": 2},
        }
        assert len(error.errors) == 2

    def test_build_failure_single_and_empty(self):
        assert BuildFailure([BundleError(text="boom")]).message == "boom"
        assert BuildFailure([]).message == "Build failed"

    def test_codes(self):
        assert BackendInitError().code == "BACKEND_INIT_FAILED"
        assert ModuleLoadError("a.ts").details == {"path": "a.ts"}
        assert RepairError("no reply", target_file="App.tsx").details == {"target_file": "App.tsx"}
        assert RepairError("no reply").details == {}
        assert QueueError("x").code == "QUEUE_ERROR"

    def test_hierarchy(self):
        for error in (BackendInitError(), BuildFailure([]), ModuleLoadError("a"), RepairError("x"), QueueError("x")):
            assert isinstance(error, LivePreviewError)
        assert str(ModuleLoadError("a.ts")) == "File not found: a.ts"


class TestLogging:
    """Test the custom logger and formatters"""

    def test_logger_class(self):
        assert isinstance(logger, LivePreviewLogger)
        assert logger.name == "livepreview"

    def test_build_id(self):
        build_id = generate_build_id()
        assert len(build_id) == 8
        set_build_id(build_id)
        try:
            assert get_build_id() == build_id
        finally:
            set_build_id("")

    def test_fix_event_fields(self, caplog):
        with caplog.at_level(logging.INFO, logger="livepreview"):
            logger.log_fix_event("import-missing", "scheduled", "App.tsx")

        record = caplog.records[-1]
        assert record.getMessage() == "Fix import-missing: scheduled (App.tsx)"
        assert record.event_type == "fix"
        assert record.target_file == "App.tsx"

    def test_failed_build_logs_warning(self, caplog):
        with caplog.at_level(logging.INFO, logger="livepreview"):
            logger.log_build_event("bundle", False, entry_point="App.tsx", error_count=2)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.getMessage() == "Build bundle: failed entry=App.tsx errors=2"

    def test_performance_threshold(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="livepreview"):
            logger.log_performance("bundle", 1500.0)
            logger.log_performance("bundle", 10.0)

        slow, fast = caplog.records[-2:]
        assert slow.levelno == logging.WARNING
        assert slow.exceeded_threshold is True
        assert fast.levelno == logging.DEBUG

    def test_json_formatter(self):
        record = logging.LogRecord("livepreview", logging.INFO, __file__, 1, "hello", None, None)
        record.event_type = "fix"
        set_build_id("abcd1234")
        try:
            data = json.loads(JSONFormatter().format(record))
        finally:
            set_build_id("")

        assert data["message"] == "hello"
        assert data["event_type"] == "fix"
        assert data["build_id"] == "abcd1234"

    def test_contextual_formatter_placeholder(self):
        record = logging.LogRecord("livepreview", logging.INFO, __file__, 1, "hi", None, None)
        assert ContextualFormatter("%(build_id)s|%(message)s").format(record) == "-|hi"

    def test_contextual_formatter_project_id(self):
        record = logging.LogRecord("livepreview", logging.INFO, __file__, 1, "hi", None, None)
        set_project_id("demo-app")
        try:
            assert ContextualFormatter("[%(project_id)s] %(message)s").format(record) == "[demo-app] hi"
        finally:
            set_project_id("")
