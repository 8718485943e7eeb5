"""
Unit tests for typed Rally and Trello records
"""

import pytest

from rally2trello import (
    Board,
    Card,
    EntityKind,
    RallyResponseError,
    TrelloAPIError,
    TrelloList,
    WorkItem,
)


class TestEntityKind:
    def test_story_tokens(self):
        assert EntityKind.STORY.wsapi_type == "hierarchicalrequirement"
        assert EntityKind.STORY.route == "userstory"
        assert EntityKind.STORY.attachment_label == "Rally User Story"

    def test_defect_tokens(self):
        assert EntityKind.DEFECT.wsapi_type == "defect"
        assert EntityKind.DEFECT.route == "defect"
        assert EntityKind.DEFECT.attachment_label == "Rally Defect"


class TestWorkItemFromApi:
    """Test WSAPI record validation at the boundary"""

    def payload(self, **overrides):
        record = {
            "ObjectID": 90123,
            "FormattedID": "US123",
            "Name": "Login page",
            "Description": "<p>Add login</p>",
            "AcceptanceCriteria": "<p>Must work</p>",
            "PlanEstimate": 5.0,
            "Project": {"_ref": "https://rally1.rallydev.com/slm/webservice/v2.0/project/5551212"},
        }
        record.update(overrides)
        return record

    def test_parses_complete_record(self):
        item = WorkItem.from_api(self.payload(), EntityKind.STORY)
        assert item == WorkItem(
            formatted_id="US123",
            name="Login page",
            object_id=90123,
            project_id=5551212,
            kind=EntityKind.STORY,
            description="<p>Add login</p>",
            acceptance_criteria="<p>Must work</p>",
            plan_estimate=5.0,
        )

    def test_project_object_id_preferred(self):
        """Should use Project.ObjectID when Rally includes it"""
        item = WorkItem.from_api(
            self.payload(Project={"_ref": "https://x/project/1", "ObjectID": 42}),
            EntityKind.STORY,
        )
        assert item.project_id == 42

    def test_project_ref_with_format_suffix(self):
        item = WorkItem.from_api(
            self.payload(Project={"_ref": "https://x/slm/webservice/v2.0/project/77.js"}),
            EntityKind.STORY,
        )
        assert item.project_id == 77

    def test_null_rich_text_becomes_empty(self):
        item = WorkItem.from_api(
            self.payload(Description=None, AcceptanceCriteria=None, PlanEstimate=None),
            EntityKind.DEFECT,
        )
        assert item.description == ""
        assert item.acceptance_criteria == ""
        assert item.plan_estimate is None

    def test_missing_required_fields(self):
        payload = self.payload()
        del payload["FormattedID"]
        del payload["ObjectID"]

        with pytest.raises(RallyResponseError, match="missing FormattedID, ObjectID"):
            WorkItem.from_api(payload, EntityKind.STORY)

    def test_missing_project(self):
        with pytest.raises(RallyResponseError, match="no Project reference"):
            WorkItem.from_api(self.payload(Project=None), EntityKind.STORY)

    def test_unreadable_project_ref(self):
        with pytest.raises(RallyResponseError, match="Cannot read an ObjectID"):
            WorkItem.from_api(
                self.payload(Project={"_ref": "https://x/project/abc"}), EntityKind.STORY
            )

    @pytest.mark.parametrize(
        "overrides,label",
        [
            ({"PlanEstimate": "big"}, "PlanEstimate"),
            ({"PlanEstimate": {"value": 3}}, "PlanEstimate"),
            ({"ObjectID": "not-a-number"}, "ObjectID"),
            ({"Project": {"ObjectID": "abc"}}, "Project.ObjectID"),
        ],
    )
    def test_malformed_numbers_raise_response_error(self, overrides, label):
        """Should report unreadable numeric fields as a Rally response problem"""
        with pytest.raises(RallyResponseError, match=f"malformed {label}"):
            WorkItem.from_api(self.payload(**overrides), EntityKind.STORY)

    def test_numeric_strings_accepted(self):
        item = WorkItem.from_api(self.payload(ObjectID="90123", PlanEstimate="2.5"), EntityKind.STORY)
        assert item.object_id == 90123
        assert item.plan_estimate == 2.5

    def test_work_items_are_immutable(self):
        item = WorkItem.from_api(self.payload(), EntityKind.STORY)
        with pytest.raises(AttributeError):
            item.name = "changed"  # type: ignore[misc]


class TestTrelloRecords:
    def test_board_from_api(self):
        assert Board.from_api({"id": "b1", "name": "Team", "url": "u"}) == Board("b1", "Team", "u")

    def test_board_requires_id_and_name(self):
        with pytest.raises(TrelloAPIError, match="missing id"):
            Board.from_api({"name": "Team"})

    def test_list_falls_back_to_given_board(self):
        assert TrelloList.from_api({"id": "l1", "name": "To Do"}, board_id="b1").board_id == "b1"

    def test_card_from_api(self):
        card = Card.from_api({"id": "c1", "name": "US1: A", "idList": "l1", "desc": "d"})
        assert card == Card(id="c1", name="US1: A", list_id="l1", desc="d")
