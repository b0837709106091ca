"""Tests for the branch controller."""

from collections.abc import Callable
from unittest.mock import MagicMock

import pytest

from ponder.branches.branch import (
    CatchAllBranch,
    CustomBranch,
    NLUBranch,
    NLUDirectBranch,
    ServerBranch,
    TextBranch,
    TextDirectBranch,
)
from ponder.branches.controller import BranchController
from ponder.config.settings import Settings
from ponder.exceptions import ConditionError
from ponder.models import EnterMessage, LeaveMessage, TextMessage, TopicMessage, User


@pytest.fixture
def controller(settings: Settings) -> BranchController:
    return BranchController(settings=settings)


class TestBranchBuilders:
    """Tests for adding each type of branch."""

    def test_builders_use_categories(self, controller: BranchController) -> None:
        """Each builder adds to the collection for its type."""
        callback = MagicMock()
        text = controller.text({"is": "hi"}, callback)
        direct = controller.direct({"is": "hi"}, callback)
        custom = controller.custom(lambda m: True, callback)
        nlu = controller.nlu({"intent": {"id": "hi"}}, callback)
        direct_nlu = controller.direct_nlu({"intent": {"id": "hi"}}, callback)
        custom_nlu = controller.custom_nlu(lambda m: True, callback)
        server = controller.server({"a": 1}, callback)
        catch_all = controller.catch_all(callback)

        assert isinstance(controller.listen[text], TextBranch)
        assert isinstance(controller.listen[direct], TextDirectBranch)
        assert isinstance(controller.listen[custom], CustomBranch)
        assert isinstance(controller.understand[nlu], NLUBranch)
        assert isinstance(controller.understand[direct_nlu], NLUDirectBranch)
        assert isinstance(controller.understand[custom_nlu], CustomBranch)
        assert isinstance(controller.serve[server], ServerBranch)
        assert isinstance(controller.act[catch_all], CatchAllBranch)

    def test_options_passed(self, controller: BranchController) -> None:
        """Branch options and condition options are applied."""
        branch_id = controller.text({"is": "hi"}, MagicMock(), id="greet", force=True, ignore_case=False)
        branch = controller.listen["greet"]
        assert branch_id == "greet"
        assert branch.force
        assert not branch.conditions.options.ignore_case

    def test_direct_uses_settings(self, controller: BranchController) -> None:
        """Direct branches use the controller settings for the bot name."""
        branch_id = controller.direct({"is": "hi"}, MagicMock())
        assert controller.listen[branch_id].settings is controller.settings

    def test_invalid_condition(self, controller: BranchController) -> None:
        """Invalid conditions raise."""
        with pytest.raises(ConditionError):
            controller.text({"nope": "x"}, MagicMock())

    @pytest.mark.parametrize(
        ("builder", "message_type"),
        [("enter", EnterMessage), ("leave", LeaveMessage), ("topic", TopicMessage)],
    )
    def test_event_builders(
        self, controller: BranchController, builder: str, message_type: type
    ) -> None:
        """Event builders match their event type only."""
        branch_id = getattr(controller, builder)(MagicMock())
        branch = controller.listen[branch_id]
        user = User(id="u1")
        assert branch.custom_matcher(message_type(user=user))
        assert not branch.custom_matcher(TextMessage(user=user, text="hi"))


class TestBranchCollections:
    """Tests for managing collections."""

    def test_remove(self, controller: BranchController) -> None:
        """Branches are removed by ID."""
        branch_id = controller.text({"is": "hi"}, MagicMock())
        assert controller.remove(branch_id)
        assert not controller.remove(branch_id)
        assert not controller.exist()

    def test_forced(self, controller: BranchController) -> None:
        """Only forced branches remain in a category."""
        controller.nlu({"intent": {"id": "a"}}, MagicMock(), id="unforced")
        controller.nlu({"intent": {"id": "b"}}, MagicMock(), id="forced", force=True)
        assert controller.forced("understand") == 1
        assert list(controller.understand) == ["forced"]

    def test_exist(self, controller: BranchController) -> None:
        """Existence checks one or all categories."""
        assert not controller.exist()
        controller.catch_all(MagicMock())
        assert controller.exist()
        assert controller.exist("act")
        assert not controller.exist("listen")

    def test_unknown_category(self, controller: BranchController) -> None:
        """Unknown categories are rejected."""
        with pytest.raises(ValueError):
            controller.collection("speak")  # type: ignore[arg-type]

    def test_copy_is_independent(self, controller: BranchController) -> None:
        """Removing from a copy leaves the source intact."""
        branch_id = controller.text({"is": "hi"}, MagicMock())
        copy = BranchController(controller)
        copy.remove(branch_id)
        controller.text({"is": "hey"}, MagicMock(), id="later")

        assert branch_id in controller.listen
        assert "later" not in copy.listen
        assert copy.settings is controller.settings

    def test_reset(self, controller: BranchController) -> None:
        """Reset removes every branch."""
        controller.text({"is": "hi"}, MagicMock())
        controller.catch_all(MagicMock())
        controller.reset()
        assert not controller.exist()

    def test_default_settings(self, mock_toml_files: Callable, test_config_dir, monkeypatch) -> None:
        """Without given settings the loaded settings are used."""
        mock_toml_files({"default.toml": "name = 'robo'"})
        monkeypatch.setenv("PONDER_CONFIG_DIR", str(test_config_dir))
        assert BranchController().settings.name == "robo"
