"""Custom exception classes for rally2trello.

This module defines the exception hierarchy for Trello API errors,
Rally WSAPI errors, configuration problems and markup conversion.
"""

from __future__ import annotations


class ConfigurationError(Exception):
    """Raised when required configuration values are missing or invalid.

    All problems are collected before raising so the user can fix them
    in one pass instead of discovering them one at a time.

    Attributes:
        errors: Every problem found, in the order they were checked

    Example:
        >>> try:
        ...     config.ensure_complete()
        ... except ConfigurationError as e:
        ...     for problem in e.errors:
        ...         print(problem)
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("\n".join(self.errors))


class TrelloAPIError(Exception):
    """Base exception for Trello API errors"""

    def __init__(
        self, message: str, status_code: int | None = None, response_text: str | None = None
    ):
        self.status_code = status_code
        self.response_text = response_text
        super().__init__(message)


class TrelloAuthenticationError(TrelloAPIError):
    """Raised when API credentials are invalid or expired (401/403)"""

    pass


class TrelloNotFoundError(TrelloAPIError):
    """Raised when a board, list, or card is not found (404)"""

    pass


class TrelloRateLimitError(TrelloAPIError):
    """Raised when Trello rejects a request for exceeding its rate limit (429)"""

    pass


class TrelloServerError(TrelloAPIError):
    """Raised when Trello's servers return an error (500/502/503/504)"""

    pass


class RallyAPIError(Exception):
    """Base exception for Rally WSAPI errors.

    Rally reports some failures with HTTP 200 and an ``Errors`` list inside
    the ``QueryResult`` envelope; those are raised as this class with the
    status code of the response.
    """

    def __init__(
        self, message: str, status_code: int | None = None, response_text: str | None = None
    ):
        self.status_code = status_code
        self.response_text = response_text
        super().__init__(message)


class RallyAuthenticationError(RallyAPIError):
    """Raised when the Rally API key is rejected (401/403)"""

    pass


class RallyNotFoundError(RallyAPIError):
    """Raised when a workspace, project or endpoint cannot be found"""

    pass


class RallyResponseError(RallyAPIError):
    """Raised when a Rally response is missing fields we depend on.

    This can occur when:
    - The body is not JSON or lacks the ``QueryResult`` envelope
    - A work item record has no FormattedID, Name or ObjectID
    - The Project reference cannot be turned into an ObjectID
    """

    pass


class UnknownTagError(ValueError):
    """Raised by the HTML converter for unsupported tags in ``raise`` mode"""

    def __init__(self, tag: str):
        self.tag = tag
        super().__init__(f"Unsupported HTML tag: <{tag}>")
