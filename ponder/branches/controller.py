"""Collections of branches by the thought stage that processes them."""

import re
from collections.abc import Mapping
from typing import Any

from ponder.branches.branch import (
    CATEGORIES,
    Branch,
    Callback,
    CatchAllBranch,
    Category,
    CustomBranch,
    Matcher,
    NLUBranch,
    NLUDirectBranch,
    ServerBranch,
    TextBranch,
    TextDirectBranch,
)
from ponder.conditions import ConditionInput, ConditionOptions, Conditions
from ponder.config import get_settings
from ponder.config.settings import Settings
from ponder.exceptions import ConditionError
from ponder.models.message import EnterMessage, LeaveMessage, Message, TopicMessage
from ponder.nlu import CriteriaInput
from ponder.observability.logging import get_logger

logger = get_logger(__name__)

CONDITION_OPTIONS = ("match_word", "ignore_case", "ignore_punctuation")


class BranchController:
    """Branches held in four collections keyed by branch ID.

    - ``listen``     text and custom branches, matched before NLU
    - ``understand`` NLU branches, matched after NLU results are attached
    - ``serve``      server request branches
    - ``act``        catch-all branches, matched when nothing else did

    Creating a controller from another copies its collections, so removing
    branches from the copy leaves the original intact. The branches
    themselves are shared.
    """

    def __init__(
        self,
        source: "BranchController | None" = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or (source._settings if source else None)
        self.listen: dict[str, Branch] = dict(source.listen) if source else {}
        self.understand: dict[str, Branch] = dict(source.understand) if source else {}
        self.serve: dict[str, Branch] = dict(source.serve) if source else {}
        self.act: dict[str, Branch] = dict(source.act) if source else {}

    def __repr__(self) -> str:
        counts = ", ".join(f"{c}={len(self.collection(c))}" for c in CATEGORIES)
        return f"BranchController({counts})"

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            self._settings = get_settings()
        return self._settings

    def collection(self, category: Category) -> dict[str, Branch]:
        """The collection of branches for a category."""
        if category not in CATEGORIES:
            raise ValueError(f"Unknown branch category: {category}")
        return getattr(self, category)

    def add(self, branch: Branch, category: Category | None = None) -> str:
        """Add a branch to its own category unless another is given."""
        category = category or branch.category
        self.collection(category)[branch.id] = branch
        logger.debug("branch_added", branch_id=branch.id, branch_type=branch.type, category=category)
        return branch.id

    def remove(self, branch_id: str, category: Category | None = None) -> bool:
        """Remove a branch by ID from one or every category."""
        removed = False
        for name in (category,) if category else CATEGORIES:
            removed = self.collection(name).pop(branch_id, None) is not None or removed
        return removed

    def forced(self, category: Category) -> int:
        """Remove branches of a category that are not forced.

        Returns the number of branches remaining.
        """
        collection = self.collection(category)
        for branch_id in [i for i, b in collection.items() if not b.force]:
            del collection[branch_id]
        return len(collection)

    def exist(self, category: Category | None = None) -> bool:
        """Whether there are any branches in one or all categories."""
        if category:
            return bool(self.collection(category))
        return any(self.collection(c) for c in CATEGORIES)

    def reset(self) -> None:
        """Remove all branches."""
        for category in CATEGORIES:
            self.collection(category).clear()

    # Builders, each returns the ID of the new branch

    def _conditions(self, condition: ConditionInput | Conditions, options: dict[str, Any]) -> Conditions:
        if isinstance(condition, Conditions):
            return condition
        settings = {k: options.pop(k) for k in CONDITION_OPTIONS if k in options}
        try:
            return Conditions(condition, ConditionOptions(**settings))
        except ConditionError:
            logger.error("branch_conditions_invalid", condition=repr(condition))
            raise

    def text(
        self,
        condition: ConditionInput | Conditions,
        callback: Callback,
        **options: Any,
    ) -> str:
        """Branch matching message text against conditions or expressions."""
        conditions = self._conditions(condition, options)
        return self.add(TextBranch(conditions, callback, **options))

    def direct(
        self,
        condition: ConditionInput | Conditions,
        callback: Callback,
        **options: Any,
    ) -> str:
        """Branch matching text addressed to the bot by name."""
        conditions = self._conditions(condition, options)
        return self.add(TextDirectBranch(conditions, callback, self.settings, **options))

    def custom(self, matcher: Matcher, callback: Callback, **options: Any) -> str:
        """Branch matching with a custom function of the message."""
        return self.add(CustomBranch(matcher, callback, **options))

    def catch_all(self, callback: Callback, **options: Any) -> str:
        """Branch for messages that nothing else matched."""
        return self.add(CatchAllBranch(callback, **options))

    def nlu(
        self,
        criteria: Mapping[str, CriteriaInput],
        callback: Callback,
        **options: Any,
    ) -> str:
        """Branch matching NLU results against criteria."""
        return self.add(NLUBranch(criteria, callback, **options))

    def direct_nlu(
        self,
        criteria: Mapping[str, CriteriaInput],
        callback: Callback,
        **options: Any,
    ) -> str:
        """Branch matching NLU results of text addressed to the bot."""
        return self.add(NLUDirectBranch(criteria, callback, self.settings, **options))

    def custom_nlu(self, matcher: Matcher, callback: Callback, **options: Any) -> str:
        """Custom branch matched in the understand stage, after NLU."""
        options.setdefault("category", "understand")
        return self.add(CustomBranch(matcher, callback, **options))

    def server(
        self,
        criteria: Mapping[str, Any | re.Pattern[str]],
        callback: Callback,
        **options: Any,
    ) -> str:
        """Branch matching server request data."""
        return self.add(ServerBranch(criteria, callback, **options))

    def enter(self, callback: Callback, **options: Any) -> str:
        """Branch for users entering a room."""
        return self.custom(_is_type(EnterMessage), callback, **options)

    def leave(self, callback: Callback, **options: Any) -> str:
        """Branch for users leaving a room."""
        return self.custom(_is_type(LeaveMessage), callback, **options)

    def topic(self, callback: Callback, **options: Any) -> str:
        """Branch for room topic changes."""
        return self.custom(_is_type(TopicMessage), callback, **options)


def _is_type(message_type: type[Message]) -> Matcher:
    def matcher(message: Message) -> bool:
        return isinstance(message, message_type)

    return matcher
