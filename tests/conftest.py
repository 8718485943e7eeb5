"""
Shared pytest fixtures for rally2trello tests
"""

import itertools
import json
import logging
import sys
from pathlib import Path

import pytest

# Add parent directory to path to import rally2trello module
sys.path.insert(0, str(Path(__file__).parent.parent))

from rally2trello import Board, Card, EntityKind, TrelloList, WorkItem


@pytest.fixture
def fixtures_dir():
    """Return path to test fixtures directory"""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def rally_stories_fixture(fixtures_dir):
    """Load a Rally user story query response"""
    with open(fixtures_dir / "rally_stories.json") as f:
        return json.load(f)


@pytest.fixture
def rally_defects_fixture(fixtures_dir):
    """Load a Rally defect query response"""
    with open(fixtures_dir / "rally_defects.json") as f:
        return json.load(f)


@pytest.fixture
def trello_board_fixture(fixtures_dir):
    """Load boards, lists and cards for a Trello member"""
    with open(fixtures_dir / "trello_board.json") as f:
        return json.load(f)


def make_work_item(
    formatted_id="US123",
    name="Login page",
    object_id=90123,
    project_id=5551212,
    kind=EntityKind.STORY,
    description="<p>Add login</p>",
    acceptance_criteria="<p>Must work</p>",
    plan_estimate=5.0,
):
    return WorkItem(
        formatted_id=formatted_id,
        name=name,
        object_id=object_id,
        project_id=project_id,
        kind=kind,
        description=description,
        acceptance_criteria=acceptance_criteria,
        plan_estimate=plan_estimate,
    )


class FakeTrello:
    """In-memory stand-in for TrelloClient that records every write"""

    def __init__(self, boards=None, lists=None, cards=None):
        self.boards = list(boards or [])
        self.lists = list(lists or [])
        self.cards = list(cards or [])
        self.created_boards = []
        self.created_lists = []
        self.created_cards = []
        self.list_cards_calls = 0
        self._ids = itertools.count(1)

    def list_cards(self, board):
        self.list_cards_calls += 1
        return list(self.cards)

    def create_card(self, name, description, trello_list, attachment_url, attachment_label):
        card = Card(id=f"card{next(self._ids)}", name=name, list_id=trello_list.id, desc=description)
        self.cards.append(card)
        self.created_cards.append(
            {
                "name": name,
                "description": description,
                "list_id": trello_list.id,
                "attachment_url": attachment_url,
                "attachment_label": attachment_label,
            }
        )
        return card


@pytest.fixture
def work_item():
    return make_work_item


@pytest.fixture
def board():
    return Board(id="board_team", name="Team Board")


@pytest.fixture
def todo_list():
    return TrelloList(id="list_todo", name="To Do", board_id="board_team")


@pytest.fixture
def fake_trello():
    return FakeTrello()


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Undo setup_logging() so caplog keeps seeing rally2trello records"""
    yield
    logger = logging.getLogger("rally2trello")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
