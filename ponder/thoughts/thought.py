"""A single named stage of processing a state."""

import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from ponder.exceptions import MiddlewareError
from ponder.middleware import Middleware
from ponder.observability.logging import get_logger
from ponder.observability.metrics import record_stage
from ponder.utils import resolve, utc_now

if TYPE_CHECKING:
    from ponder.branches.branch import Branch
    from ponder.state import State

logger = get_logger(__name__)

Validate = Callable[[], Awaitable[bool] | bool]
Action = Callable[[bool], Awaitable[Any] | Any]


def _always_valid() -> bool:
    return True


def _no_action(success: bool) -> None:  # noqa: ARG001
    return None


class Thought:
    """A stage that validates, runs middleware or branches, then acts.

    Without branches, the stage succeeds when its middleware completes.
    With branches, each is executed in order through the middleware until
    the state is done, succeeding if the state matched. On success the
    stage's completion time is recorded on the state, once.

    ``action`` is always called with the outcome, unless the state exited.
    Exceptions from ``validate`` and ``action`` propagate.
    """

    def __init__(
        self,
        name: str,
        state: "State",
        middleware: Middleware,
        validate: Validate | None = None,
        action: Action | None = None,
        branches: "dict[str, Branch] | None" = None,
    ) -> None:
        self.name = name
        self.state = state
        self.middleware = middleware
        self.validate: Validate = validate or _always_valid
        self.action: Action = action or _no_action
        self.branches = branches

    async def process(self) -> None:
        state = self.state
        if state.exit:
            return

        started = time.perf_counter()
        success = await self._run()
        if success and self.name not in state.processed:
            state.processed[self.name] = utc_now()
        record_stage(self.name, success, time.perf_counter() - started)

        try:
            await resolve(self.action(success))
        except Exception as e:
            logger.error("thought_action_failed", stage=self.name, error=str(e))
            raise

    async def _run(self) -> bool:
        state = self.state
        if self.branches is not None:
            if not self.branches:
                logger.debug("thought_skipped", stage=self.name, reason="no_branches")
                return False
            if state.done:
                logger.debug("thought_skipped", stage=self.name, reason="done")
                return False

        try:
            valid = await resolve(self.validate())
        except Exception as e:
            logger.error("thought_validate_failed", stage=self.name, error=str(e))
            raise
        if not valid:
            return False

        logger.debug(
            "thought_processing",
            stage=self.name,
            branches=len(self.branches) if self.branches is not None else None,
        )

        if self.branches is None:
            return await self._run_middleware()

        for branch in list(self.branches.values()):
            if state.done:
                break
            await branch.execute(state, self.middleware)
        return state.matched

    async def _run_middleware(self) -> bool:
        completed = False

        def complete(_state: "State") -> None:
            nonlocal completed
            completed = True

        try:
            await self.middleware.execute(self.state, complete)
        except MiddlewareError as e:
            logger.warning("thought_middleware_failed", stage=self.name, error=e.message)
            return False
        return completed
