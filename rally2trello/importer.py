"""Import Rally work items into a Trello list without duplicating cards."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field

from rally2trello.markdown import html_to_markdown
from rally2trello.models import Board, Card, TrelloList, WorkItem
from rally2trello.rally_client import DEFAULT_RALLY_URL
from rally2trello.trello_client import TrelloClient

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    """What an import did: cards created, names skipped, names planned (dry run)"""

    created: list[Card] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    planned: list[str] = field(default_factory=list)

    def merge(self, other: ImportResult) -> ImportResult:
        return ImportResult(
            created=self.created + other.created,
            skipped=self.skipped + other.skipped,
            planned=self.planned + other.planned,
        )


def format_estimate(estimate: float | None) -> str:
    """Render a plan estimate; whole numbers lose their trailing .0"""
    if estimate is None:
        return ""
    if float(estimate).is_integer():
        return str(int(estimate))
    return str(estimate)


class CardImporter:
    """Create a Trello card for every Rally work item that lacks one

    A card is considered present when any card on the board, in any list,
    has exactly the same name. The board's cards are read once per run; cards
    created during the run are not added to that snapshot, so two work items
    producing the same name in one run both get a card.
    """

    def __init__(
        self,
        trello: TrelloClient,
        converter: Callable[[str], str] = html_to_markdown,
        rally_base_url: str = DEFAULT_RALLY_URL,
        dry_run: bool = False,
    ):
        self.trello = trello
        self.converter = converter
        self.rally_base_url = rally_base_url.rstrip("/")
        self.dry_run = dry_run

    def card_name(self, item: WorkItem) -> str:
        return f"{item.formatted_id}: {item.name}"

    def card_description(self, item: WorkItem) -> str:
        description = self.converter(item.description)
        acceptance_criteria = self.converter(item.acceptance_criteria)
        return (
            f"[{format_estimate(item.plan_estimate)}]: \n {description} \n "
            f"Acceptance Criteria: {acceptance_criteria}"
        )

    def deep_link_url(self, item: WorkItem, project_id: int) -> str:
        return (
            f"{self.rally_base_url}/#/{project_id}d/detail/{item.kind.route}/{item.object_id}"
        )

    def import_work_items(
        self,
        items: Sequence[WorkItem],
        trello_list: TrelloList,
        existing_cards: Sequence[Card],
    ) -> ImportResult:
        """Create cards on ``trello_list`` for items missing from ``existing_cards``

        Args:
            items: Work items of one kind, in the order they should be processed
            trello_list: Target list for new cards
            existing_cards: Snapshot of the board's cards taken before the run

        Returns:
            ImportResult describing created, skipped and planned cards
        """
        result = ImportResult()
        if not items:
            logger.info("No work items to import")
            return result

        # Every item in one query shares the project scope
        project_id = items[0].project_id
        existing_names = {card.name for card in existing_cards}

        for item in items:
            name = self.card_name(item)
            if name in existing_names:
                logger.info(f"Card '{name}' already exists")
                result.skipped.append(name)
                continue

            description = self.card_description(item)
            url = self.deep_link_url(item, project_id)

            if self.dry_run:
                logger.info(f"[DRY RUN] Would create card: {name}")
                logger.debug(f"  Link: {url}")
                result.planned.append(name)
                continue

            logger.info(f"Creating card: {name}")
            card = self.trello.create_card(
                name, description, trello_list, url, item.kind.attachment_label
            )
            result.created.append(card)

        return result

    def run(
        self,
        stories: Sequence[WorkItem],
        defects: Sequence[WorkItem],
        board: Board,
        trello_list: TrelloList,
        include_defects: bool = False,
    ) -> ImportResult:
        """Import defects (when enabled) and then stories onto the board

        The board's cards are fetched exactly once, before any card is created.
        A board without an id has not been created yet (dry run) and has no cards.
        """
        existing_cards = self.trello.list_cards(board) if board.id else []
        logger.debug(f"Board '{board.name}' has {len(existing_cards)} existing cards")

        result = ImportResult()
        if include_defects and defects:
            logger.info(f"Importing {len(defects)} defects")
            result = result.merge(self.import_work_items(defects, trello_list, existing_cards))

        logger.info(f"Importing {len(stories)} user stories")
        result = result.merge(self.import_work_items(stories, trello_list, existing_cards))

        logger.info("")
        if self.dry_run:
            logger.info(
                f"🎯 Dry run complete. Would create {len(result.planned)} cards, "
                f"{len(result.skipped)} already exist"
            )
        else:
            logger.info(
                f"✅ Import complete. Created {len(result.created)} cards, "
                f"{len(result.skipped)} already existed"
            )
        return result
