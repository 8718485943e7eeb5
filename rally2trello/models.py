"""Typed records for Rally work items and Trello boards, lists and cards.

API payloads are turned into these records at the client boundary so the
rest of the code never reaches into raw JSON.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from rally2trello.exceptions import RallyResponseError, TrelloAPIError


class EntityKind(Enum):
    """Rally work item kinds that can be imported as cards"""

    STORY = "story"
    DEFECT = "defect"

    @property
    def wsapi_type(self) -> str:
        """Collection name used in Rally WSAPI URLs"""
        return "hierarchicalrequirement" if self is EntityKind.STORY else "defect"

    @property
    def route(self) -> str:
        """Token used by Rally's web UI routing in detail page URLs"""
        return "userstory" if self is EntityKind.STORY else "defect"

    @property
    def attachment_label(self) -> str:
        return "Rally User Story" if self is EntityKind.STORY else "Rally Defect"

    @property
    def plural(self) -> str:
        return "user stories" if self is EntityKind.STORY else "defects"


def _object_id_from_ref(ref: str) -> int:
    """Extract the trailing ObjectID from a WSAPI ``_ref`` URL"""
    tail = ref.rstrip("/").rsplit("/", 1)[-1]
    # Some refs carry a format suffix, e.g. .../project/123.js
    tail = tail.split(".", 1)[0]
    try:
        return int(tail)
    except ValueError:
        raise RallyResponseError(f"Cannot read an ObjectID from ref: {ref}") from None


def _convert(value: Any, to: Callable[[Any], Any], label: str) -> Any:
    try:
        return to(value)
    except (TypeError, ValueError):
        raise RallyResponseError(f"Rally returned a malformed {label}: {value!r}") from None


@dataclass(frozen=True)
class WorkItem:
    """One Rally user story or defect, as fetched for a single run"""

    formatted_id: str
    name: str
    object_id: int
    project_id: int
    kind: EntityKind
    description: str = ""
    acceptance_criteria: str = ""
    plan_estimate: float | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any], kind: EntityKind) -> WorkItem:
        """Build a WorkItem from a WSAPI result record

        Args:
            payload: One entry of ``QueryResult.Results``
            kind: Which collection the record was fetched from

        Raises:
            RallyResponseError: If a required field is missing or malformed
        """
        missing = [
            field for field in ("FormattedID", "Name", "ObjectID") if payload.get(field) is None
        ]
        if missing:
            raise RallyResponseError(
                f"Rally {kind.value} record is missing {', '.join(missing)}: "
                f"{str(payload)[:200]}"
            )

        project = payload.get("Project")
        if not isinstance(project, dict):
            raise RallyResponseError(
                f"Rally {kind.value} {payload['FormattedID']} has no Project reference"
            )
        if project.get("ObjectID") is not None:
            project_id = _convert(project["ObjectID"], int, "Project.ObjectID")
        elif project.get("_ref"):
            project_id = _object_id_from_ref(project["_ref"])
        else:
            raise RallyResponseError(
                f"Rally {kind.value} {payload['FormattedID']} has an empty Project reference"
            )

        estimate = payload.get("PlanEstimate")
        return cls(
            formatted_id=str(payload["FormattedID"]),
            name=str(payload["Name"]),
            object_id=_convert(payload["ObjectID"], int, "ObjectID"),
            project_id=project_id,
            kind=kind,
            description=payload.get("Description") or "",
            acceptance_criteria=payload.get("AcceptanceCriteria") or "",
            plan_estimate=(
                _convert(estimate, float, "PlanEstimate") if estimate is not None else None
            ),
        )


def _require(payload: dict[str, Any], resource: str, *fields: str) -> None:
    missing = [field for field in fields if not payload.get(field)]
    if missing:
        raise TrelloAPIError(
            f"Trello {resource} response is missing {', '.join(missing)}",
            response_text=str(payload)[:200],
        )


@dataclass(frozen=True)
class Board:
    id: str
    name: str
    url: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> Board:
        _require(payload, "board", "id", "name")
        return cls(id=payload["id"], name=payload["name"], url=payload.get("url"))


@dataclass(frozen=True)
class TrelloList:
    id: str
    name: str
    board_id: str

    @classmethod
    def from_api(cls, payload: dict[str, Any], board_id: str | None = None) -> TrelloList:
        _require(payload, "list", "id", "name")
        return cls(
            id=payload["id"],
            name=payload["name"],
            board_id=payload.get("idBoard") or board_id or "",
        )


@dataclass(frozen=True)
class Card:
    """A Trello card; its name is the deduplication key across the board"""

    id: str
    name: str
    list_id: str
    desc: str = ""
    url: str | None = None

    @classmethod
    def from_api(cls, payload: dict[str, Any]) -> Card:
        _require(payload, "card", "id")
        return cls(
            id=payload["id"],
            name=payload.get("name", ""),
            list_id=payload.get("idList", ""),
            desc=payload.get("desc", ""),
            url=payload.get("url"),
        )
