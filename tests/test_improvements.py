"""
Tests for the cross-cutting pieces of the application.

Covers input validation, error handling, logging and configuration.
"""

import json
import logging
import os
import tempfile
import warnings

import pytest
from sqlalchemy.exc import IntegrityError as SQLIntegrityError
from sqlalchemy.exc import OperationalError

from app.domain.schemas import (
    AssessmentContextInput,
    BaseValidationSchema,
    FindingsInput,
    PracticeRatingsBatchInput,
    RatingRowInput,
    validate_input,
)
from app.infrastructure.config import (
    ApplicationConfig,
    DatabaseConfig,
    LoggingConfig,
    ServerConfig,
    get_settings,
    load_settings_from_file,
    override_settings,
    reset_settings,
)
from app.infrastructure.db import is_database_configured
from app.infrastructure.exceptions import (
    ConnectionError,
    DatabaseError,
    IntegrityError,
    MultipleValidationError,
    UnknownAspectError,
    ValidationError,
    create_user_friendly_error_message,
    handle_database_error,
    log_error_details,
)
from app.infrastructure.logging import (
    LogContext,
    configure_logging,
    context_filter,
    get_logger,
    setup_logging,
)


class TestPydanticValidation:
    """Test input validation using Pydantic models."""

    def test_context_validation_success(self):
        """Test a valid project/date pair."""
        result = validate_input(
            AssessmentContextInput, {"project_name": "Acme", "assessment_date": "2024-01-01"}
        )

        assert result.success is True
        assert result.data == {"project_name": "Acme", "assessment_date": "2024-01-01"}

    def test_context_validation_failure(self):
        """Test missing project name and malformed date."""
        result = validate_input(
            AssessmentContextInput, {"project_name": "", "assessment_date": "2024-13-40"}
        )

        assert result.success is False
        fields = {error.field: error.message for error in result.errors}
        assert fields["project_name"] == "Project name is required"
        assert "ISO date" in fields["assessment_date"]

    def test_missing_fields_are_reported(self):
        """Test that absent fields fail rather than defaulting."""
        result = validate_input(AssessmentContextInput, {})

        assert result.success is False
        assert {error.field for error in result.errors} == {"project_name", "assessment_date"}

    def test_project_name_length_cap(self):
        result = validate_input(
            AssessmentContextInput, {"project_name": "x" * 21, "assessment_date": "2024-01-01"}
        )
        assert result.success is False

    def test_rating_row_canonicalises_rating(self):
        """Test that rating names are mapped to stored values."""
        result = validate_input(
            RatingRowInput,
            {"pillar_title": "Strategy", "practice_name": "Scalability", "rating": "SOMEWHAT_IN_PLACE"},
        )

        assert result.success is True
        assert result.data["rating"] == "Somewhat in Place"

    def test_rating_row_rejects_unknown_values(self):
        result = validate_input(
            RatingRowInput,
            {"pillar_title": "Finance", "practice_name": "Budget", "rating": "Fully in Place"},
        )

        assert result.success is False
        assert {error.field for error in result.errors} == {"pillar_title", "rating"}

    def test_batch_rejects_duplicates(self):
        row = {"pillar_title": "Strategy", "practice_name": "Scalability", "rating": None}
        result = validate_input(
            PracticeRatingsBatchInput,
            {"project_name": "Acme", "assessment_date": "2024-01-01", "ratings": [row, row]},
        )
        assert result.success is False
        assert "Duplicate" in result.errors[0].message

    def test_input_sanitization(self):
        """Test that markup is stripped from identifiers."""
        result = validate_input(
            AssessmentContextInput,
            {"project_name": "  <script>alert('xss')</script><b>Acme</b>\x00 ", "assessment_date": "2024-01-01"},
        )

        assert result.success is True
        assert result.data["project_name"] == "Acme"

    def test_findings_are_kept_verbatim(self):
        """Test that free text keeps markup-like characters and entities."""
        text = "Latency < 5ms at p50 but > 20ms at p99; R&amp;D owns <b>it</b>"
        result = validate_input(FindingsInput, {"findings": f"  {text}\x00\x07  "})

        assert result.success is True
        assert result.data["findings"] == text

    def test_findings_keep_newlines(self):
        result = validate_input(RatingRowInput, {
            "pillar_title": "Strategy",
            "practice_name": "Scalability",
            "findings": "Line one\n\tLine two",
        })
        assert result.data["findings"] == "Line one\n\tLine two"

    def test_schema_config_uses_model_config(self):
        """Test that schemas configure pydantic through model_config."""
        assert "Config" not in vars(BaseValidationSchema)
        assert BaseValidationSchema.model_config["str_strip_whitespace"] is True

        with warnings.catch_warnings():
            warnings.simplefilter("error")

            class NoteInput(BaseValidationSchema):
                note: str

        assert NoteInput(note="  <i>kept</i> ").note == "kept"

    def test_findings_length_limit(self):
        result = validate_input(FindingsInput, {"findings": "x" * 2001})
        assert result.success is False
        assert "2000" in result.errors[0].message


class TestErrorHandling:
    """Test error handling and user-friendly messages."""

    def test_validation_error_creation(self):
        """Test ValidationError creation and properties."""
        error = ValidationError("project_name", "Project name is required", "")

        assert error.field == "project_name"
        assert error.reason == "Project name is required"
        assert "Project name is required" in str(error)
        assert error.user_message == "Invalid project name: Project name is required"
        assert "field" in error.details

    def test_multiple_validation_errors(self):
        error = MultipleValidationError(
            [ValidationError("project_name", "is required"), ValidationError("assessment_date", "is required")]
        )
        assert "project name" in error.user_message
        assert "assessment date" in error.user_message
        assert len(error.details["errors"]) == 2

    def test_database_error_handling(self):
        """Test database error conversion."""
        original_error = SQLIntegrityError("statement", {}, Exception("UNIQUE constraint failed"))
        db_error = handle_database_error(original_error, "test_operation")

        assert isinstance(db_error, IntegrityError)
        assert db_error.constraint == "unique"
        assert "integrity" in db_error.user_message.lower()

    def test_not_null_violation(self):
        original_error = SQLIntegrityError(
            "statement", {}, Exception("NOT NULL constraint failed: ratings.pillar_title")
        )
        db_error = handle_database_error(original_error, "upsert ratings")

        assert isinstance(db_error, IntegrityError)
        assert "required value is missing" in db_error.user_message

    def test_connection_failure(self):
        original_error = OperationalError("statement", {}, Exception("unable to open database file"))
        assert isinstance(handle_database_error(original_error), ConnectionError)

    def test_other_failures_keep_operation(self):
        db_error = handle_database_error(RuntimeError("disk I/O error"), "upsert ratings")
        assert type(db_error) is DatabaseError
        assert db_error.operation == "upsert ratings"
        assert db_error.user_message == "Unable to save your changes. Please try again."

    def test_database_errors_pass_through(self):
        error = DatabaseError("boom", "fetch ratings")
        assert handle_database_error(error) is error

    def test_user_friendly_error_messages(self):
        """Test creation of user-friendly error messages."""
        friendly_msg = create_user_friendly_error_message(UnknownAspectError("Juggling", "Collaboration"))
        assert "Juggling" in friendly_msg
        assert "Collaboration" in friendly_msg

        # Test generic error
        friendly_msg = create_user_friendly_error_message(ValueError("Some technical error"))
        assert "try again" in friendly_msg.lower()

    def test_error_details_for_logging(self):
        details = log_error_details(DatabaseError("boom", "upsert ratings"), {"rows": 8})
        assert details["error_type"] == "DatabaseError"
        assert details["context"] == {"rows": 8}
        assert details["error_details"] == {"operation": "upsert ratings"}


class TestLogging:
    """Test logging implementation."""

    def test_logger_namespace(self):
        """Test that loggers live under the app namespace."""
        assert get_logger("test_module").name == "app.test_module"
        assert get_logger("app.domain.services").name == "app.domain.services"

    def test_logging_configuration(self):
        """Test logging setup with a file handler."""
        with tempfile.TemporaryDirectory() as temp_dir:
            log_file = os.path.join(temp_dir, "test.log")
            try:
                setup_logging(level="DEBUG", log_file=log_file, structured=True)

                logger = get_logger("test")
                with LogContext(project_name="Acme", assessment_date="2024-01-01"):
                    logger.info("Test message")

                assert os.path.exists(log_file)
                with open(log_file, encoding="utf-8") as f:
                    entries = [json.loads(line) for line in f if line.strip()]
                entry = next(e for e in entries if e["message"] == "Test message")
                assert entry["project_name"] == "Acme"
                assert entry["assessment_date"] == "2024-01-01"
            finally:
                configure_logging()

    def test_log_level_setting_takes_effect(self, monkeypatch):
        """Test that LOG_LEVEL drives the configured app logger level."""
        monkeypatch.setenv("LOG_LEVEL", "debug")
        reset_settings()
        try:
            configure_logging()
            assert get_settings().logging.level == "DEBUG"
            assert logging.getLogger("app").level == logging.DEBUG
            assert get_logger("domain.services").isEnabledFor(logging.DEBUG)
        finally:
            monkeypatch.delenv("LOG_LEVEL")
            reset_settings()
            configure_logging()
        assert logging.getLogger("app").level == logging.WARNING

    def test_log_file_setting_adds_file_handler(self, monkeypatch, tmp_path):
        log_file = tmp_path / "logs" / "ratings.log"
        monkeypatch.setenv("LOG_FILE_PATH", str(log_file))
        reset_settings()
        try:
            configure_logging()
            get_logger("test").warning("Written to file")
            for handler in logging.getLogger("app").handlers:
                handler.flush()
            entries = [json.loads(line) for line in log_file.read_text(encoding="utf-8").splitlines()]
            assert any(e["message"] == "Written to file" for e in entries)
        finally:
            monkeypatch.delenv("LOG_FILE_PATH")
            reset_settings()
            configure_logging()

    def test_testing_environment_defaults(self):
        config = get_settings().logging
        assert config.level == "WARNING"
        assert config.file_path is None
        assert config.console_enabled is False

    def test_explicit_config(self):
        try:
            configure_logging(LoggingConfig(level="ERROR", file_path=None, console_enabled=False))
            assert logging.getLogger("app").level == logging.ERROR
        finally:
            configure_logging()

    def test_log_context_restores_previous(self):
        """Test that nested contexts unwind correctly."""
        with LogContext(project_name="Acme"):
            with LogContext(practice_name="Infrastructure"):
                assert context_filter.context["practice_name"] == "Infrastructure"
            assert "practice_name" not in context_filter.context
            assert context_filter.context["project_name"] == "Acme"
        assert "project_name" not in context_filter.context


class TestConfiguration:
    """Test centralized configuration management."""

    def test_database_config_sqlite(self):
        """Test SQLite database configuration."""
        with tempfile.TemporaryDirectory() as temp_dir:
            config = DatabaseConfig(backend="sqlite", sqlite_path=os.path.join(temp_dir, "test.db"))

            url = config.get_connection_url()
            assert url.startswith("sqlite:///")
            assert "test.db" in url
            assert config.get_engine_options()["connect_args"] == {"check_same_thread": False}

    def test_database_config_memory(self):
        config = DatabaseConfig(backend="sqlite", sqlite_path=":memory:")
        assert config.is_memory
        assert config.get_connection_url() == "sqlite:///:memory:"

    def test_database_config_postgresql(self):
        """Test PostgreSQL database configuration."""
        config = DatabaseConfig(
            backend="postgresql",
            postgres_host="localhost",
            postgres_user="test",
            postgres_password="pass",
            postgres_database="testdb",
        )

        url = config.get_connection_url()
        assert url.startswith("postgresql+psycopg://")
        assert "test:pass@localhost" in url
        assert url.endswith("/testdb")
        assert "connect_args" not in config.get_engine_options()

    def test_database_configuration_validation(self):
        """Test database configuration validation."""
        with pytest.raises(ValueError):
            DatabaseConfig(backend="mysql")

        with pytest.raises(ValueError):
            DatabaseConfig(backend="postgresql", postgres_user="")

    def test_threshold_defaults(self):
        config = ApplicationConfig()
        assert config.thresholds == {"largely_threshold": 70.0, "somewhat_threshold": 30.0}
        assert config.project_name_max_length == 20

    def test_threshold_ordering_is_enforced(self):
        with pytest.raises(ValueError):
            ApplicationConfig(largely_threshold_percent=30, somewhat_threshold_percent=30)

    def test_debug_not_allowed_in_production(self):
        with pytest.raises(ValueError):
            ApplicationConfig(environment="production", debug=True)

    def test_server_defaults(self):
        server = ServerConfig()
        assert server.bind_address == "127.0.0.1:8000"

    def test_settings_override(self, monkeypatch):
        """Test settings override functionality."""
        # Registered so monkeypatch removes them afterwards
        monkeypatch.setenv("APP_LARGELY_THRESHOLD_PERCENT", "70")
        monkeypatch.setenv("APP_SOMEWHAT_THRESHOLD_PERCENT", "30")

        test_settings = override_settings(
            app_largely_threshold_percent=80, app_somewhat_threshold_percent=40
        )

        assert test_settings.app.thresholds == {"largely_threshold": 80.0, "somewhat_threshold": 40.0}
        assert get_settings() is test_settings

    def test_load_settings_from_file(self, monkeypatch, tmp_path):
        monkeypatch.setenv("APP_LARGELY_THRESHOLD_PERCENT", "70")
        config_file = tmp_path / "settings.json"
        config_file.write_text(json.dumps({"app": {"largely_threshold_percent": 75}}))

        settings = load_settings_from_file(str(config_file))
        assert settings.app.largely_threshold_percent == 75.0

    def test_load_settings_rejects_other_formats(self, tmp_path):
        config_file = tmp_path / "settings.yaml"
        config_file.write_text("app: {}")
        with pytest.raises(ValueError):
            load_settings_from_file(str(config_file))

        with pytest.raises(FileNotFoundError):
            load_settings_from_file(str(tmp_path / "missing.json"))


class TestIntegration:
    """Integration checks across configuration, logging and validation."""

    def test_end_to_end_validation_and_error_handling(self):
        """Test complete flow with validation, error handling, and logging."""
        settings = get_settings()
        assert settings.app.environment in ["development", "testing", "production"]

        assert isinstance(is_database_configured(), bool)

        logger = get_logger("integration_test")
        logger.info("Integration test running")

        result = validate_input(
            AssessmentContextInput, {"project_name": "Integration", "assessment_date": "2024-06-30"}
        )
        assert result.success is True

    def test_configuration_integration(self, monkeypatch, tmp_path):
        """Test that all configuration sections work together."""
        monkeypatch.setenv("LOG_FILE_PATH", str(tmp_path / "app.log"))
        settings = get_settings()

        assert settings.app is not None
        assert settings.database is not None
        assert settings.logging is not None
        assert settings.server is not None

        env_info = settings.get_environment_info()
        assert "environment" in env_info
        assert "version" in env_info
        assert env_info["thresholds"] == {"largely": 70.0, "somewhat": 30.0}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
