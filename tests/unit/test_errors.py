# =============================================================================
# tests/unit/test_errors.py
# Unit Tests for the exception hierarchy and error handlers
# =============================================================================

import logging

import pytest

from seatbook_core.errors import (
    AuthenticationError,
    ConflictError,
    ErrorContext,
    NetworkError,
    RemoteServiceError,
    SeatBookError,
    ValidationError,
    handle_error,
    is_network_error,
    is_retryable,
    safe_execute,
)
from seatbook_core.logging import LogContext


@pytest.fixture
def patched_st(monkeypatch, mock_streamlit):
    import seatbook_core.errors.handlers as handlers
    monkeypatch.setattr(handlers, "st", mock_streamlit)
    return mock_streamlit


class TestClassification:
    """Retryable vs terminal errors"""

    def test_transport_errors_retryable(self):
        assert is_retryable(NetworkError("refused"))
        assert is_retryable(RemoteServiceError("boom"))
        assert is_network_error(NetworkError("refused"))
        assert not is_network_error(RemoteServiceError("boom"))

    def test_domain_errors_terminal(self):
        assert not is_retryable(ConflictError("Shift already booked"))
        assert not is_retryable(ValidationError("Missing"))
        assert not is_retryable(ValueError("plain"))

    def test_authentication_not_recoverable(self):
        assert not AuthenticationError("Token expired").recoverable

    def test_details_and_str(self):
        error = ConflictError("Shift already booked", seat_number=3, shift_name="Morning")
        assert error.details == {"seat_number": 3, "shift_name": "Morning"}
        assert str(error).startswith("[BOOK_409] Shift already booked")
        assert error.to_dict()["error_type"] == "ConflictError"


class TestHandlers:

    def test_handle_error_shows_message(self, patched_st):
        handle_error(ValidationError("Capacity must be a positive number"))
        patched_st.error.assert_called_once_with("Error: Capacity must be a positive number")

    def test_handle_error_critical(self, patched_st):
        handle_error(AuthenticationError("Token expired"))
        assert "Critical Error" in patched_st.error.call_args.args[0]

    def test_handle_error_silent(self, patched_st):
        handle_error(ValueError("x"), show_user_message=False)
        patched_st.error.assert_not_called()

    def test_safe_execute_default(self, patched_st):
        def boom():
            raise NetworkError("refused")

        assert safe_execute(boom, default=[]) == []
        with pytest.raises(NetworkError):
            safe_execute(boom, reraise=True)

    def test_error_context_swallows_and_records(self, patched_st):
        with ErrorContext("Booking seat") as ctx:
            raise ConflictError("Shift already booked")

        assert isinstance(ctx.error, ConflictError)
        patched_st.error.assert_called_once()

    def test_error_context_unrecoverable_reraises(self, patched_st):
        with pytest.raises(SeatBookError):
            with ErrorContext("Loading", recoverable=False):
                raise SeatBookError("broken")

    def test_error_context_success(self, patched_st):
        with ErrorContext("Sync", show_success=True, success_message="Done") as ctx:
            pass
        assert ctx.error is None
        patched_st.success.assert_called_once_with("Done")


class TestLogContext:

    def test_logs_start_and_completion(self, caplog):
        logger = logging.getLogger("seatbook_core.test")
        with caplog.at_level(logging.INFO, logger="seatbook_core.test"):
            with LogContext(logger, "Reconciling library lib-1"):
                pass
        messages = [r.getMessage() for r in caplog.records]
        assert messages[0] == "Reconciling library lib-1... started"
        assert messages[1].startswith("Reconciling library lib-1... completed")

    def test_does_not_suppress(self):
        with pytest.raises(KeyError):
            with LogContext(logging.getLogger("seatbook_core.test"), "x"):
                raise KeyError("y")


class TestSetupLogging:

    @pytest.fixture
    def logging_config(self, monkeypatch):
        import seatbook_core.logging.config as config

        root = logging.getLogger()
        sync = logging.getLogger(config.SYNC_LOGGER)
        saved = (list(root.handlers), root.level, list(sync.handlers))
        monkeypatch.setattr(config, "_configured", False)
        monkeypatch.delenv(config.LEVEL_ENV_VAR, raising=False)
        yield config
        for handler in root.handlers + sync.handlers:
            if handler not in saved[0] + saved[2]:
                handler.close()
        root.handlers[:] = saved[0]
        root.setLevel(saved[1])
        sync.handlers[:] = saved[2]

    def test_writes_app_and_sync_logs(self, logging_config, tmp_path):
        logging_config.setup_logging(log_dir=tmp_path)
        logging.getLogger("seatbook_core.offline.operation_queue").info("Replayed #1")

        names = sorted(p.name.split("_")[0] for p in tmp_path.iterdir())
        assert names == ["seatbook", "sync"]
        sync_log = next(tmp_path.glob("sync_*.log"))
        assert "Replayed #1" in sync_log.read_text()

    def test_level_from_environment(self, logging_config, monkeypatch):
        monkeypatch.setenv(logging_config.LEVEL_ENV_VAR, "warning")
        logging_config.setup_logging(log_to_file=False)
        assert logging.getLogger().level == logging.WARNING

    def test_rerun_only_adjusts_level(self, logging_config):
        logging_config.setup_logging(log_to_file=False)
        handlers = list(logging.getLogger().handlers)

        logging_config.setup_logging("DEBUG", log_to_file=False)

        assert logging.getLogger().handlers == handlers
        assert logging.getLogger().level == logging.DEBUG

    def test_unknown_level_name_defaults_to_info(self, logging_config):
        logging_config.setup_logging("chatty", log_to_file=False)
        assert logging.getLogger().level == logging.INFO
