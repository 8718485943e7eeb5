"""Import Rally iteration user stories and defects into Trello as cards."""

from __future__ import annotations

__version__ = "0.1.0"

# Import CLI
from rally2trello.cli import main

# Import configuration loading
from rally2trello.config import Config, RallyConfig, TrelloConfig, load_config

# Import exceptions
from rally2trello.exceptions import (
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

# Import reconciliation engine
from rally2trello.importer import CardImporter, ImportResult

# Import logging configuration
from rally2trello.logging_config import setup_logging

# Import HTML to markdown conversion
from rally2trello.markdown import html_to_markdown

# Import typed records
from rally2trello.models import Board, Card, EntityKind, TrelloList, WorkItem

# Import API clients
from rally2trello.rally_client import RallyClient
from rally2trello.trello_client import TrelloClient

__all__ = [
    # Core classes
    "CardImporter",
    "ImportResult",
    "RallyClient",
    "TrelloClient",
    "html_to_markdown",
    "setup_logging",
    # Configuration
    "Config",
    "RallyConfig",
    "TrelloConfig",
    "load_config",
    # Records
    "Board",
    "Card",
    "EntityKind",
    "TrelloList",
    "WorkItem",
    # Exceptions
    "ConfigurationError",
    "RallyAPIError",
    "RallyAuthenticationError",
    "RallyNotFoundError",
    "RallyResponseError",
    "TrelloAPIError",
    "TrelloAuthenticationError",
    "TrelloNotFoundError",
    "TrelloRateLimitError",
    "TrelloServerError",
    "UnknownTagError",
    # CLI
    "main",
]
