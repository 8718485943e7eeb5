"""Trello API client for resolving boards and lists and creating cards."""

from __future__ import annotations

import logging
from typing import Any, cast

import requests

from rally2trello.exceptions import (
    TrelloAPIError,
    TrelloAuthenticationError,
    TrelloNotFoundError,
    TrelloRateLimitError,
    TrelloServerError,
)
from rally2trello.models import Board, Card, TrelloList

logger = logging.getLogger(__name__)

TRELLO_PAGE_LIMIT = 1000


class TrelloClient:
    """Read and write Trello boards, lists and cards

    One requests.Session is held for the lifetime of the client. Calls are
    issued one at a time and are never retried; errors propagate to the caller.
    """

    def __init__(
        self,
        api_key: str,
        token: str,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.token = token
        self.base_url = "https://api.trello.com/1"
        self.session = session or requests.Session()
        self.timeout = timeout

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> TrelloClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(self, endpoint: str, params: dict | None = None, method: str = "GET") -> Any:
        """Make authenticated request to Trello API"""
        url = f"{self.base_url}/{endpoint}"
        auth_params = {"key": self.api_key, "token": self.token}
        # Card descriptions can be long, so writes send their fields as a form body
        data = None
        if method == "GET":
            if params:
                auth_params.update(params)
        else:
            data = params

        try:
            response = self.session.request(
                method, url, params=auth_params, data=data, timeout=self.timeout
            )
            response.raise_for_status()

        except requests.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else 0
            response_text = e.response.text if e.response is not None else ""

            if status_code == 401:
                raise TrelloAuthenticationError(
                    "Invalid API credentials. Check trello.developer_key and trello.user_token "
                    "(or TRELLO_API_KEY and TRELLO_TOKEN).\n"
                    "Get credentials at: https://trello.com/power-ups/admin",
                    status_code=status_code,
                    response_text=response_text,
                ) from e
            elif status_code == 403:
                raise TrelloAuthenticationError(
                    f"Access forbidden to resource: {endpoint}\n"
                    "Your API token may not have write permission on this board.",
                    status_code=status_code,
                    response_text=response_text,
                ) from e
            elif status_code == 404:
                raise TrelloNotFoundError(
                    f"Resource not found: {endpoint}",
                    status_code=status_code,
                    response_text=response_text,
                ) from e
            elif status_code == 429:
                raise TrelloRateLimitError(
                    "Trello rate limit exceeded.\n"
                    "Trello's API rate limit: 100 requests per 10 seconds. "
                    "Wait a few minutes and run the import again.",
                    status_code=status_code,
                    response_text=response_text,
                ) from e
            elif status_code >= 500:
                raise TrelloServerError(
                    f"Trello server error (HTTP {status_code}) for {endpoint}.\n"
                    "Trello's servers may be experiencing issues. Try again later.",
                    status_code=status_code,
                    response_text=response_text,
                ) from e
            raise TrelloAPIError(
                f"HTTP {status_code} error for {endpoint}: {response_text[:200]}",
                status_code=status_code,
                response_text=response_text,
            ) from e

        except requests.RequestException as e:
            raise TrelloAPIError(
                f"Network error talking to Trello: {str(e)}\n"
                "Check your internet connection and try again.",
            ) from e

        try:
            return cast(Any, response.json())
        except ValueError as e:
            raise TrelloAPIError(
                f"Trello returned a non-JSON response for {endpoint}",
                status_code=response.status_code,
                response_text=response.text[:200],
            ) from e

    def _paginated_request(self, endpoint: str, params: dict | None = None) -> list[dict]:
        """Make paginated requests to handle Trello's 1000-item limit

        Trello API limits responses to 1000 items. This method pages backwards
        using the 'before' parameter until a short page is returned.
        """
        all_items: list[dict] = []
        request_params = params.copy() if params else {}
        request_params["limit"] = TRELLO_PAGE_LIMIT

        while True:
            page_items = self._request(endpoint, request_params)

            if not isinstance(page_items, list):
                raise TrelloAPIError(f"Expected a list from {endpoint}, got {type(page_items)}")

            if not page_items:
                break

            all_items.extend(page_items)

            if len(page_items) < TRELLO_PAGE_LIMIT:
                break

            last_item_id = page_items[-1].get("id")
            if not last_item_id:
                break

            request_params["before"] = last_item_id

        return all_items

    def validate_credentials(self) -> None:
        """Verify the key and token are accepted

        Raises:
            TrelloAuthenticationError: If API credentials are invalid
            TrelloAPIError: If other API errors occur
        """
        self._request("members/me", {"fields": "id,username"})

    def list_boards(self) -> list[Board]:
        """List the open boards visible to the authenticated user"""
        boards = self._request("members/me/boards", {"fields": "name,url", "filter": "open"})
        return [Board.from_api(board) for board in cast(list[dict], boards)]

    def create_board(self, name: str) -> Board:
        return Board.from_api(self._request("boards", {"name": name}, method="POST"))

    def find_board(self, name: str) -> Board | None:
        """Return the first open board named exactly ``name``, or None"""
        return next((board for board in self.list_boards() if board.name == name), None)

    def resolve_or_create_board(self, name: str) -> Board:
        """Return the first board named ``name``, creating it if none exists

        Names are compared exactly (case and whitespace matter).
        """
        if not name:
            raise ValueError("Board name cannot be empty")

        board = self.find_board(name)
        if board is None:
            logger.info(f"Creating board '{name}'")
            board = self.create_board(name)
        return board

    def get_lists(self, board: Board) -> list[TrelloList]:
        """Get all open lists on the board"""
        lists = self._request(f"boards/{board.id}/lists", {"fields": "name,idBoard"})
        return [TrelloList.from_api(lst, board_id=board.id) for lst in cast(list[dict], lists)]

    def create_list(self, name: str, board: Board) -> TrelloList:
        created = self._request("lists", {"name": name, "idBoard": board.id}, method="POST")
        return TrelloList.from_api(created, board_id=board.id)

    def find_list(self, name: str, board: Board) -> TrelloList | None:
        return next((lst for lst in self.get_lists(board) if lst.name == name), None)

    def resolve_or_create_list(self, name: str, board: Board) -> TrelloList:
        """Return the first list on ``board`` named ``name``, creating it if none exists"""
        if not name:
            raise ValueError("List name cannot be empty")

        trello_list = self.find_list(name, board)
        if trello_list is None:
            logger.info(f"Creating list '{name}'")
            trello_list = self.create_list(name, board)
        return trello_list

    def list_cards(self, board: Board) -> list[Card]:
        """Get every card on the board regardless of list (supports >1000 cards)"""
        cards = self._paginated_request(
            f"boards/{board.id}/cards", {"fields": "name,idList,desc,url"}
        )
        return [Card.from_api(card) for card in cards]

    def add_attachment(self, card: Card, url: str, name: str) -> dict:
        params = {"url": url, "name": name}
        return cast(dict, self._request(f"cards/{card.id}/attachments", params, method="POST"))

    def create_card(
        self,
        name: str,
        description: str,
        trello_list: TrelloList,
        attachment_url: str,
        attachment_label: str,
    ) -> Card:
        """Create a card on a list and attach a URL to it

        The two calls are not transactional. If attaching fails the card
        stays on the board without its link and the error propagates.
        """
        created = self._request(
            "cards",
            {"idList": trello_list.id, "name": name, "desc": description},
            method="POST",
        )
        card = Card.from_api(created)
        self.add_attachment(card, attachment_url, attachment_label)
        return card
