"""
Unit tests for the exception hierarchy
"""

import pytest

from rally2trello import (
    ConfigurationError,
    RallyAPIError,
    RallyAuthenticationError,
    RallyNotFoundError,
    RallyResponseError,
    TrelloAPIError,
    TrelloAuthenticationError,
    TrelloNotFoundError,
    TrelloRateLimitError,
    TrelloServerError,
    UnknownTagError,
)


class TestCustomExceptions:
    """Test custom exception classes"""

    def test_trello_api_error_base_exception(self):
        """Should create base TrelloAPIError with metadata"""
        error = TrelloAPIError("Test error", status_code=400, response_text="Bad request")

        assert str(error) == "Test error"
        assert error.status_code == 400
        assert error.response_text == "Bad request"

    @pytest.mark.parametrize(
        "error_class",
        [TrelloAuthenticationError, TrelloNotFoundError, TrelloRateLimitError, TrelloServerError],
    )
    def test_trello_subclasses(self, error_class):
        error = error_class("failed", status_code=500)
        assert isinstance(error, TrelloAPIError)
        assert error.status_code == 500

    def test_rally_api_error_base_exception(self):
        error = RallyAPIError("Query failed", status_code=200, response_text="{}")

        assert str(error) == "Query failed"
        assert error.status_code == 200
        assert error.response_text == "{}"

    @pytest.mark.parametrize(
        "error_class", [RallyAuthenticationError, RallyNotFoundError, RallyResponseError]
    )
    def test_rally_subclasses(self, error_class):
        error = error_class("failed")
        assert isinstance(error, RallyAPIError)
        assert error.status_code is None

    def test_rally_and_trello_errors_are_distinct(self):
        assert not issubclass(RallyAPIError, TrelloAPIError)
        assert not issubclass(TrelloAPIError, RallyAPIError)

    def test_configuration_error_keeps_every_problem(self):
        """Should expose each problem and join them in the message"""
        error = ConfigurationError(["first problem", "second problem"])

        assert error.errors == ["first problem", "second problem"]
        assert str(error) == "first problem\nsecond problem"

    def test_unknown_tag_error(self):
        error = UnknownTagError("marquee")

        assert isinstance(error, ValueError)
        assert error.tag == "marquee"
        assert str(error) == "Unsupported HTML tag: <marquee>"
