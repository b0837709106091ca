"""Branches pair a matcher with a callback run when input matches.

Matching never changes the branch in a way that affects later matching.
Each match is recorded on the state being processed, so a branch held by
the global controller can be evaluated for many messages at once. The
``match``/``matched`` attributes only reflect the most recent evaluation
and are kept for inspection.
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, Literal

from ponder.branches.direct import strip_direct
from ponder.conditions import Conditions
from ponder.config.settings import Settings
from ponder.exceptions import MiddlewareError
from ponder.models.message import CatchAllMessage, Message, TextMessage
from ponder.nlu import CriteriaInput
from ponder.observability.logging import get_logger
from ponder.observability.metrics import BRANCH_MATCHES
from ponder.utils import MISSING, counter, resolve, value_at_path

if TYPE_CHECKING:
    from ponder.middleware import Middleware
    from ponder.state import State

logger = get_logger(__name__)

Category = Literal["listen", "understand", "serve", "act"]
CATEGORIES: tuple[Category, ...] = ("listen", "understand", "serve", "act")

Callback = Callable[["State"], Awaitable[Any] | Any]
DoneCallback = Callable[[bool], Awaitable[Any] | Any]
Matcher = Callable[[Message], Awaitable[Any] | Any]

class Branch(ABC):
    """Base branch, subclasses implement ``matcher``.

    Args:
        callback: Called with the state when the branch matches
        id: Unique ID, generated if not given
        force: Run even if the state already matched
        category: Controller collection, defaults per branch type
        **meta: Extra options kept for the callback or middleware to use
    """

    default_category: Category = "listen"

    def __init__(
        self,
        callback: Callback,
        id: str | None = None,
        force: bool = False,
        category: Category | None = None,
        **meta: Any,
    ) -> None:
        self.callback = callback
        self.id = id or counter("branch")
        self.force = force
        self.category: Category = category or self.default_category
        self.meta = meta
        self.match: Any = None
        self.matched = False

    def __repr__(self) -> str:
        return f"{self.type}(id={self.id!r}, category={self.category!r}, force={self.force})"

    @property
    def type(self) -> str:
        return type(self).__name__

    @abstractmethod
    def matcher(self, message: Message) -> Awaitable[Any] | Any:
        """Return a truthy result if the message matches."""

    async def execute(
        self,
        state: "State",
        middleware: "Middleware",
        done: DoneCallback | None = None,
    ) -> "State":
        """Match the state's input and run the callback through middleware.

        Skipped if the state already matched, unless the branch is forced.
        ``done`` is called with True once middleware finished, even if a piece
        interrupted before the callback, or False if the input did not match
        or middleware failed.
        """
        if state.matched and not self.force:
            return state

        match = await resolve(self.matcher(state.input))
        self.match = match
        self.matched = bool(match)

        if not self.matched:
            await self._finish(done, False)
            return state

        state.set_matching_branch(self, match)
        BRANCH_MATCHES.labels(category=self.category).inc()
        logger.debug("branch_matched", branch_id=self.id, branch_type=self.type, category=self.category)

        try:
            await middleware.execute(state, self._run_callback)
        except MiddlewareError as err:
            logger.error("branch_middleware_failed", branch_id=self.id, error=err.message)
            await self._finish(done, False)
        else:
            await self._finish(done, True)
        return state

    async def _run_callback(self, state: "State") -> None:
        logger.debug("branch_callback", branch_id=self.id)
        await resolve(self.callback(state))

    @staticmethod
    async def _finish(done: DoneCallback | None, success: bool) -> None:
        if done is not None:
            await resolve(done(success))


class TextBranch(Branch):
    """Matches the text of a message against conditions."""

    def __init__(
        self,
        conditions: Conditions,
        callback: Callback,
        **options: Any,
    ) -> None:
        super().__init__(callback, **options)
        self.conditions = conditions

    def matcher(self, message: Message) -> Any:
        result = self.conditions.exec(str(message))
        if result.success:
            logger.debug("text_branch_matched", branch_id=self.id)
            return result
        return None


class TextDirectBranch(TextBranch):
    """Matches text addressed to the bot, with the name prefix removed.

    Conditions run against the rest of the text, so ``"bot hello"`` meets
    ``{"is": "hello"}``.
    """

    def __init__(
        self,
        conditions: Conditions,
        callback: Callback,
        settings: Settings,
        **options: Any,
    ) -> None:
        super().__init__(conditions, callback, **options)
        self.settings = settings

    def matcher(self, message: Message) -> Any:
        if not isinstance(message, TextMessage):
            return None
        body = strip_direct(message.text, self.settings)
        if body is None:
            return None
        return super().matcher(message.clone(text=body))


class NLUBranch(Branch):
    """Matches NLU results attached to a text message.

    Every kind of criteria must be met.
    """

    default_category: Category = "understand"

    def __init__(
        self,
        criteria: Mapping[str, CriteriaInput],
        callback: Callback,
        **options: Any,
    ) -> None:
        super().__init__(callback, **options)
        self.criteria = dict(criteria)

    def matcher(self, message: Message) -> Any:
        nlu = getattr(message, "nlu", None)
        if nlu is None:
            logger.error("nlu_branch_without_nlu", branch_id=self.id)
            return None
        match = nlu.match_all_criteria(self.criteria)
        if match:
            logger.debug("nlu_branch_matched", branch_id=self.id)
        return match


class NLUDirectBranch(NLUBranch):
    """Matches NLU results of text addressed to the bot."""

    def __init__(
        self,
        criteria: Mapping[str, CriteriaInput],
        callback: Callback,
        settings: Settings,
        **options: Any,
    ) -> None:
        super().__init__(criteria, callback, **options)
        self.settings = settings

    def matcher(self, message: Message) -> Any:
        if strip_direct(str(message), self.settings) is None:
            return None
        return super().matcher(message)


class CustomBranch(Branch):
    """Matches using any function of the message, sync or async.

    A truthy return value is the match result.
    """

    def __init__(
        self,
        matcher: Matcher,
        callback: Callback,
        **options: Any,
    ) -> None:
        super().__init__(callback, **options)
        self.custom_matcher = matcher

    async def matcher(self, message: Message) -> Any:
        return await resolve(self.custom_matcher(message))


class ServerMatch(dict[str, Any]):
    """Values matched at each data path.

    Always truthy, matching a request without data yields an empty match.
    """

    def __bool__(self) -> bool:
        return True


class ServerBranch(Branch):
    """Matches server request data against criteria keyed by dot path.

    Criteria values may be an expression searched in the value at the path,
    or a value equal to it directly or as a string. Matches if any path
    matches. Empty criteria match only requests without data.
    """

    default_category: Category = "serve"

    def __init__(
        self,
        criteria: Mapping[str, Any],
        callback: Callback,
        **options: Any,
    ) -> None:
        super().__init__(callback, **options)
        self.criteria = dict(criteria)

    def matcher(self, message: Message) -> ServerMatch | None:
        data = getattr(message, "data", None)
        if not self.criteria:
            return ServerMatch() if not data else None
        if not data:
            logger.error("server_branch_without_data", branch_id=self.id)
            return None

        match = ServerMatch()
        for path, criterion in self.criteria.items():
            value = value_at_path(data, path)
            if value is MISSING:
                continue
            if isinstance(criterion, re.Pattern):
                found = criterion.search(str(value))
                if found:
                    match[path] = found
            elif criterion == value or str(criterion) == value:
                match[path] = value

        if len(match):
            logger.debug("server_branch_matched", branch_id=self.id, paths=list(match))
            return match
        return None


class CatchAllBranch(Branch):
    """Matches messages that no other branch matched."""

    default_category: Category = "act"

    def matcher(self, message: Message) -> Any:
        if isinstance(message, CatchAllMessage):
            logger.debug("catch_all_matched", branch_id=self.id)
            return message
        return None
