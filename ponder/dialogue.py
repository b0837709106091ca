"""Dialogues isolate an audience into their own branches for a while.

While a user (or room) is engaged in a dialogue, their input is matched
against the dialogue's branches instead of the bot's global branches. Each
turn offers a fresh set of branches, which callbacks populate through
``state.branches``. A dialogue closes when a turn adds no new branches, or
when the audience does not respond within the timeout.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, Literal

from ponder.branches.controller import BranchController
from ponder.config.settings import Settings
from ponder.exceptions import DialogueError
from ponder.observability.logging import get_logger
from ponder.observability.metrics import ACTIVE_DIALOGUES
from ponder.utils import counter, resolve

if TYPE_CHECKING:
    from ponder.state import State

logger = get_logger(__name__)

Audience = Literal["direct", "user", "room"]
Hook = Callable[["State"], Awaitable[Any] | Any]


class Dialogue:
    """A timeout-bound set of branches for one audience.

    Args:
        controller: Registry the dialogue engages with
        timeout: Seconds to wait for input, 0 to never expire
        timeout_text: Sent to the audience on expiry, None sends nothing
        timeout_method: Envelope method for the timeout text
        id: Unique ID, generated if not given
        audience: ``direct`` (user in room), ``user`` (user in any room) or
            ``room`` (anyone in room)
        default_branches: Copied into every new set of branches
        on_open: Called with the state when opened
        on_close: Called with the state when closed
        on_timeout: Called with the state on expiry, replaces sending the
            timeout text
    """

    def __init__(
        self,
        controller: "DialogueController",
        timeout: float | None = None,
        timeout_text: str | None = None,
        timeout_method: str | None = None,
        id: str | None = None,
        audience: Audience = "direct",
        default_branches: BranchController | None = None,
        on_open: Hook | None = None,
        on_close: Hook | None = None,
        on_timeout: Hook | None = None,
    ) -> None:
        settings = controller.settings
        self.controller = controller
        self.timeout = settings.dialogue_timeout if timeout is None else timeout
        self.timeout_text = timeout_text or settings.dialogue_timeout_text
        self.timeout_method = timeout_method or settings.dialogue_timeout_method
        self.id = id or counter("dialogue")
        self.audience: Audience = audience
        self.default_branches = default_branches
        self.branch_history: list[BranchController] = []
        self.state: State | None = None
        self.on_open = on_open
        self.on_close = on_close
        self.on_timeout: Hook = on_timeout or self.respond_timeout
        self._timer: asyncio.TimerHandle | None = None
        self._expiry_task: asyncio.Task[bool] | None = None

    def __repr__(self) -> str:
        return f"Dialogue(id={self.id!r}, audience={self.audience!r}, timeout={self.timeout})"

    @property
    def clock_running(self) -> bool:
        return self._timer is not None

    async def respond_timeout(self, state: "State") -> None:
        """Send the timeout text to the audience."""
        if not self.timeout_text:
            return
        try:
            await state.respond_via(self.timeout_method, self.timeout_text)
        except Exception as e:
            logger.error("dialogue_timeout_response_failed", dialogue_id=self.id, error=str(e))

    async def _call_hook(self, name: str, hook: Hook | None) -> None:
        if hook is None or self.state is None:
            return
        try:
            await resolve(hook(self.state))
        except Exception as e:
            logger.error("dialogue_hook_failed", dialogue_id=self.id, hook=name, error=str(e))
            raise

    async def open(self, state: "State") -> "Dialogue":
        """Call the open hook then engage the audience of the state."""
        self.state = state
        await self._call_hook("open", self.on_open)
        self.bind(state)
        logger.info("dialogue_opened", dialogue_id=self.id, audience=self.audience)
        return self

    def bind(self, state: "State") -> None:
        """Engage the audience of the state without calling hooks."""
        self.state = state
        state.dialogue = self
        self.controller.engage(state, self)

    async def close(self) -> bool:
        """Stop the clock, call the close hook and disengage.

        Returns False if the dialogue was never opened.
        """
        if self.state is None:
            logger.debug("dialogue_closed_unopened", dialogue_id=self.id)
            return False
        self.stop_clock()
        await self._call_hook("close", self.on_close)
        self.controller.disengage(self.state, self)
        logger.info("dialogue_closed", dialogue_id=self.id, matched=self.state.matched)
        return True

    def start_clock(self, seconds: float | None = None) -> asyncio.TimerHandle | None:
        """(Re)start the countdown to expiry, cancelling any running one.

        Raises:
            DialogueError: If the dialogue has no state to time out
        """
        if self.state is None:
            raise DialogueError(f"Timeout started without state: {self.id}", self.id)
        self.stop_clock()
        seconds = self.timeout if seconds is None else seconds
        if seconds == 0:
            return None
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(seconds, self._expire)
        return self._timer

    def stop_clock(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self) -> None:
        self._timer = None
        logger.info("dialogue_timed_out", dialogue_id=self.id, timeout=self.timeout)
        self._expiry_task = asyncio.get_running_loop().create_task(self._timed_out())
        self._expiry_task.add_done_callback(self._expired)

    async def _timed_out(self) -> bool:
        try:
            await self._call_hook("timeout", self.on_timeout)
        finally:
            closed = await self.close()
        return closed

    def _expired(self, task: "asyncio.Task[bool]") -> None:
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error("dialogue_expiry_failed", dialogue_id=self.id, error=str(error))

    @property
    def branches(self) -> BranchController:
        """Current branches, accessing them counts as activity."""
        self.start_clock()
        if not self.branch_history:
            self.branch_history.append(self._new_branches())
        return self.branch_history[-1]

    def _new_branches(self) -> BranchController:
        return BranchController(self.default_branches, settings=self.controller.settings)

    def progress_branches(self) -> BranchController | None:
        """Start a fresh set of branches, returning the previous set."""
        previous = self.branch_history[-1] if self.branch_history else None
        self.branch_history.append(self._new_branches())
        return previous

    def revert_branches(self) -> BranchController:
        """Drop the latest set of branches, returning to the previous set."""
        if self.branch_history:
            self.branch_history.pop()
        return self.branches


class DialogueController:
    """Registry of the dialogue engaged by each audience.

    At most one dialogue is engaged per audience key. Engaging another
    dialogue under the same key replaces the first and stops its clock.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.current: dict[str, Dialogue] = {}

    def create(self, **options: Any) -> Dialogue:
        """New dialogue using this registry and default settings."""
        return Dialogue(self, **options)

    def audiences(self, state: "State") -> dict[Audience, str]:
        """Audience keys for the sender of the state's message."""
        message = state.message
        if message is None:
            raise DialogueError("Dialogue audience requires a state with a message")
        return {
            "direct": f"{message.user.id}_{message.room.id}",
            "user": message.user.id,
            "room": message.room.id,
        }

    def audience_engaged(self, audience_id: str) -> bool:
        return audience_id in self.current

    def engaged_id(self, state: "State") -> str | None:
        """Key the state's audience is engaged under, most specific first."""
        if state.message is None:
            return None
        audiences = self.audiences(state)
        for audience in ("direct", "user", "room"):
            if self.audience_engaged(audiences[audience]):
                return audiences[audience]
        return None

    def engaged(self, state: "State") -> Dialogue | None:
        audience_id = self.engaged_id(state)
        return self.current.get(audience_id) if audience_id else None

    def engage(self, state: "State", dialogue: Dialogue) -> None:
        audience_id = self.audiences(state)[dialogue.audience]
        previous = self.current.get(audience_id)
        if previous is not None and previous is not dialogue:
            previous.stop_clock()
            logger.info(
                "dialogue_replaced",
                audience_id=audience_id,
                previous_id=previous.id,
                dialogue_id=dialogue.id,
            )
        self.current[audience_id] = dialogue
        ACTIVE_DIALOGUES.set(len(self.current))

    def disengage(self, state: "State", dialogue: Dialogue | None = None) -> None:
        """Remove the engaged dialogue, only if it is the given dialogue."""
        if dialogue is not None:
            audience_id = self.audiences(state)[dialogue.audience]
            if self.current.get(audience_id) is not dialogue:
                return
        else:
            audience_id = self.engaged_id(state)
        if audience_id is not None:
            del self.current[audience_id]
            ACTIVE_DIALOGUES.set(len(self.current))

    def reset(self) -> None:
        """Stop every clock and disengage all audiences."""
        for dialogue in self.current.values():
            dialogue.stop_clock()
        self.current.clear()
        ACTIVE_DIALOGUES.set(0)
