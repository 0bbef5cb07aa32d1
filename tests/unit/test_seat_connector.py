# =============================================================================
# tests/unit/test_seat_connector.py
# Unit Tests for the HTTP booking connector
# =============================================================================

import pytest
import requests

from seatbook_core.api import APIConfig, SeatBookAPIConnector
from seatbook_core.errors import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    NetworkError,
    NotFoundError,
    RemoteServiceError,
    ValidationError,
    is_retryable,
)


@pytest.fixture
def connector(mock_session):
    connector = SeatBookAPIConnector(APIConfig(
        api_name="seatbook",
        base_url="https://api.example.com/api/",
        api_key="token-123",
    ))
    connector.session = mock_session
    return connector


class TestSeatBookAPIConnector:

    def test_bearer_header(self):
        connector = SeatBookAPIConnector(APIConfig(api_name="seatbook", base_url="https://x", api_key="abc"))
        assert connector.session.headers["Authorization"] == "Bearer abc"

        connector.set_token(None)
        assert "Authorization" not in connector.session.headers

    def test_get_seats_parses_and_sorts(self, connector, mock_session, make_response):
        mock_session.request.return_value = make_response(200, {
            "library": {"_id": "lib-1", "managerId": "m", "name": "L", "capacity": 2},
            "seats": [
                {"seatNumber": 2, "shifts": []},
                {"seatNumber": 1, "shifts": [
                    {"name": "Morning", "startTime": "08:00", "endTime": "12:00", "studentId": "stu-1"},
                ]},
            ],
        })

        library, seats = connector.get_seats("lib-1")

        assert library.name == "L"
        assert [s.seat_number for s in seats] == [1, 2]
        assert seats[0].library_id == "lib-1"
        kwargs = mock_session.request.call_args.kwargs
        assert kwargs["method"] == "GET"
        assert kwargs["url"] == "https://api.example.com/api/seats/lib-1"
        assert kwargs["json"] is None

    def test_book_sends_payload(self, connector, mock_session, make_response):
        mock_session.request.return_value = make_response(201, {"message": "Seat booked"})
        payload = {"name": "Asha", "shiftName": "Morning", "operationId": "op-1"}

        assert connector.book_seat("lib-1", 3, payload) == {"message": "Seat booked"}
        kwargs = mock_session.request.call_args.kwargs
        assert kwargs["url"].endswith("/seats/lib-1/3/book")
        assert kwargs["json"] == payload

    def test_delete_quotes_shift_name(self, connector, mock_session, make_response):
        mock_session.request.return_value = make_response(200, {"message": "Booking deleted successfully"})
        connector.delete_booking("lib-1", 3, "Late Night")
        assert mock_session.request.call_args.kwargs["url"].endswith("/book/Late%20Night")

    def test_empty_body(self, connector, mock_session, make_response):
        mock_session.request.return_value = make_response(204)
        assert connector.request("DELETE", "/seats/lib-1/1/book/Morning") == {}

    @pytest.mark.parametrize("status, message, expected", [
        (400, "Shift already booked for this seat", ConflictError),
        (400, "Missing required fields. Please provide name, Date Of Joining, contact, and shift.", ValidationError),
        (401, "Invalid token", AuthenticationError),
        (403, "Access denied: This library does not belong to you", AuthorizationError),
        (404, "Seat not found", NotFoundError),
        (500, "Server error", RemoteServiceError),
    ])
    def test_status_mapping(self, connector, mock_session, make_response, status, message, expected):
        mock_session.request.return_value = make_response(status, {"message": message})

        with pytest.raises(expected) as exc_info:
            connector.request("GET", "/seats/lib-1/1")

        assert exc_info.value.message == message
        assert exc_info.value.status_code == status

    def test_reason_used_without_body(self, connector, mock_session, make_response):
        mock_session.request.return_value = make_response(502, None, reason="Bad Gateway")
        with pytest.raises(RemoteServiceError) as exc_info:
            connector.get_my_library()
        assert exc_info.value.message == "Bad Gateway"
        assert is_retryable(exc_info.value)

    def test_timeout_is_network_error(self, connector, mock_session):
        mock_session.request.side_effect = requests.exceptions.Timeout("read timed out")
        with pytest.raises(NetworkError) as exc_info:
            connector.get_my_library()
        assert exc_info.value.details["timed_out"] is True

    def test_connection_error_is_network_error(self, connector, mock_session):
        mock_session.request.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(NetworkError) as exc_info:
            connector.book_seat("lib-1", 1, {})
        assert "timed_out" not in exc_info.value.details

    def test_test_connection_without_library(self, connector, mock_session, make_response):
        mock_session.request.return_value = make_response(404, {"message": "No library found"})
        assert connector.test_connection()["status"] == "success"
