"""Rally WSAPI client for fetching an iteration's user stories and defects."""

from __future__ import annotations

import logging
from typing import Any

import requests

from rally2trello import __version__
from rally2trello.exceptions import (
    RallyAPIError,
    RallyAuthenticationError,
    RallyNotFoundError,
    RallyResponseError,
)
from rally2trello.models import EntityKind, WorkItem

logger = logging.getLogger(__name__)

DEFAULT_RALLY_URL = "https://rally1.rallydev.com"
WORK_ITEM_FIELDS = "Name,FormattedID,Project,ObjectID,Description,PlanEstimate,AcceptanceCriteria"
# One bounded page; larger iterations are truncated
PAGE_SIZE = 1000


def quote_query_value(value: str) -> str:
    """Quote a value for use inside a WSAPI query expression"""
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class RallyClient:
    """Query Rally work items scoped to one workspace and project

    Workspace and project are configured by name and resolved to WSAPI refs
    on first use. The refs are kept for the lifetime of the client.
    """

    def __init__(
        self,
        api_key: str,
        workspace: str,
        project: str,
        base_url: str = DEFAULT_RALLY_URL,
        session: requests.Session | None = None,
        timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.workspace = workspace
        self.project = project
        self.base_url = base_url.rstrip("/")
        self.api_url = f"{self.base_url}/slm/webservice/v2.0"
        self.session = session or requests.Session()
        self.timeout = timeout
        self.headers = {
            "ZSESSIONID": api_key,
            "X-RallyIntegrationVendor": "Trello",
            "X-RallyIntegrationName": "Trello Import",
            "X-RallyIntegrationVersion": __version__,
        }
        self._workspace_ref: str | None = None
        self._project_ref: str | None = None

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> RallyClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(self, endpoint: str, params: dict | None = None) -> dict[str, Any]:
        """Make an authenticated WSAPI query and return its QueryResult envelope"""
        url = f"{self.api_url}/{endpoint}"
        try:
            response = self.session.get(
                url, params=params, headers=self.headers, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else 0
            response_text = e.response.text if e.response is not None else ""
            if status_code in (401, 403):
                raise RallyAuthenticationError(
                    "Rally rejected the API key. Check rally.api_key in config.yml "
                    "or the RALLY_API_KEY environment variable.",
                    status_code=status_code,
                    response_text=response_text,
                ) from e
            if status_code == 404:
                raise RallyNotFoundError(
                    f"Rally endpoint not found: {endpoint}",
                    status_code=status_code,
                    response_text=response_text,
                ) from e
            raise RallyAPIError(
                f"HTTP {status_code} error for {endpoint}: {response_text[:200]}",
                status_code=status_code,
                response_text=response_text,
            ) from e
        except requests.RequestException as e:
            raise RallyAPIError(
                f"Network error talking to Rally: {str(e)}\n"
                "Check your internet connection and try again."
            ) from e

        try:
            body = response.json()
        except ValueError as e:
            raise RallyResponseError(
                f"Rally returned a non-JSON response for {endpoint}",
                status_code=response.status_code,
                response_text=response.text[:200],
            ) from e

        result = body.get("QueryResult") if isinstance(body, dict) else None
        if not isinstance(result, dict):
            raise RallyResponseError(
                f"Rally response for {endpoint} has no QueryResult",
                status_code=response.status_code,
                response_text=response.text[:200],
            )

        errors = result.get("Errors") or []
        if errors:
            raise RallyAPIError(
                f"Rally query on {endpoint} failed: {'; '.join(str(e) for e in errors)}",
                status_code=response.status_code,
                response_text=response.text[:200],
            )
        for warning in result.get("Warnings") or []:
            logger.debug("Rally warning for %s: %s", endpoint, warning)

        return result

    def _find_ref(self, endpoint: str, name: str, params: dict | None = None) -> str:
        query_params = {"query": f"(Name = {quote_query_value(name)})", "fetch": "Name,ObjectID"}
        if params:
            query_params.update(params)
        results = self._request(endpoint, query_params).get("Results") or []
        for result in results:
            if result.get("Name") == name and result.get("_ref"):
                return str(result["_ref"])
        raise RallyNotFoundError(f"Rally {endpoint} '{name}' not found or not accessible")

    @property
    def workspace_ref(self) -> str:
        if self._workspace_ref is None:
            self._workspace_ref = self._find_ref("workspace", self.workspace)
            logger.debug("Resolved workspace '%s' to %s", self.workspace, self._workspace_ref)
        return self._workspace_ref

    @property
    def project_ref(self) -> str:
        if self._project_ref is None:
            self._project_ref = self._find_ref(
                "project", self.project, {"workspace": self.workspace_ref}
            )
            logger.debug("Resolved project '%s' to %s", self.project, self._project_ref)
        return self._project_ref

    def fetch_work_items(self, kind: EntityKind, iteration: str) -> list[WorkItem]:
        """Fetch the work items of one kind scheduled in an iteration

        Args:
            kind: EntityKind.STORY or EntityKind.DEFECT
            iteration: Exact iteration name

        Returns:
            Work items ordered by FormattedID descending; empty if none match.
            At most PAGE_SIZE items are returned.

        Raises:
            ValueError: If iteration is empty
            RallyAPIError: On any HTTP, network or query failure
        """
        if not iteration:
            raise ValueError("iteration cannot be empty")

        result = self._request(
            kind.wsapi_type,
            {
                "workspace": self.workspace_ref,
                "project": self.project_ref,
                "query": f"(Iteration.Name = {quote_query_value(iteration)})",
                "fetch": WORK_ITEM_FIELDS,
                "order": "FormattedID desc",
                "start": 1,
                "pagesize": PAGE_SIZE,
            },
        )
        records = result.get("Results") or []
        total = result.get("TotalResultCount", len(records))
        if isinstance(total, int) and total > len(records):
            logger.warning(
                f"⚠️  Iteration '{iteration}' has {total} {kind.plural}; "
                f"only the first {len(records)} are imported"
            )

        return [WorkItem.from_api(record, kind) for record in records]

    def stories_for_iteration(self, iteration: str) -> list[WorkItem]:
        return self.fetch_work_items(EntityKind.STORY, iteration)

    def defects_for_iteration(self, iteration: str) -> list[WorkItem]:
        return self.fetch_work_items(EntityKind.DEFECT, iteration)
