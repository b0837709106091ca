"""State threaded through every stage of a thought sequence."""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any

from ponder.exceptions import DialogueError, PonderError
from ponder.models.envelope import Envelope
from ponder.models.message import CatchAllMessage, Message
from ponder.models.user import User
from ponder.observability.logging import get_logger

if TYPE_CHECKING:
    from ponder.bot import Bot
    from ponder.branches.branch import Branch
    from ponder.branches.controller import BranchController
    from ponder.conditions import Conditions
    from ponder.dialogue import Dialogue

logger = get_logger(__name__)


@dataclass
class BranchMatch:
    """A branch that matched this state and the value its matcher returned."""

    branch: "Branch"
    match: Any


class State:
    """Mutable record of processing one incoming message or outgoing dispatch.

    The message given at creation is kept for the life of the state. The act
    stage may substitute a catch-all wrapper as the ``input`` branches match
    against, leaving ``message`` itself untouched.

    ``done`` only ever changes from False to True. Assigning False after
    finishing is ignored.
    """

    def __init__(
        self,
        bot: "Bot | None" = None,
        message: Message | None = None,
        envelopes: list[Envelope] | None = None,
        context: dict[str, Any] | None = None,
        **extra: Any,
    ) -> None:
        self.bot = bot
        self._message = message
        self._input: Message | None = None
        self._done = False
        self.envelopes: list[Envelope] | None = envelopes
        self.context = context
        self.processed: dict[str, datetime] = {}
        self.matching: list[BranchMatch] = []
        self.exit = False
        self.sequence: str | None = None
        self.method: str | None = None
        self.dialogue: "Dialogue | None" = None
        self.extra: dict[str, Any] = dict(extra)

    def __repr__(self) -> str:
        return (
            f"State(sequence={self.sequence!r}, message={self.message!r}, "
            f"matched={self.matched}, done={self.done}, exit={self.exit})"
        )

    @property
    def message(self) -> Message | None:
        return self._message

    @property
    def input(self) -> Message | None:
        """The message branches match against."""
        return self._input or self._message

    def wrap_catch_all(self) -> None:
        """Present the message to branches as unmatched by anything else."""
        if self._message is not None and self._input is None:
            self._input = CatchAllMessage(self._message)

    @property
    def done(self) -> bool:
        return self._done

    @done.setter
    def done(self, value: bool) -> None:
        if value:
            self._done = True

    def finish(self) -> "State":
        """Stop any further branch processing this run."""
        self._done = True
        return self

    def ignore(self) -> "State":
        """Abort all remaining stages."""
        logger.debug("state_ignored")
        self.exit = True
        return self

    # Matching

    def set_matching_branch(self, branch: "Branch", match: Any) -> None:
        """Record a branch match, ignoring falsy match results."""
        if not match:
            return
        self.matching.append(BranchMatch(branch, match))

    def get_matching_branch(self, key: str | int | None = None) -> "Branch | None":
        """Get a matched branch by ID or position, the last matched by default."""
        if not self.matching:
            return None
        if key is None:
            return self.matching[-1].branch
        if isinstance(key, int):
            return self.matching[key].branch if -len(self.matching) <= key < len(self.matching) else None
        return next((m.branch for m in self.matching if m.branch.id == key), None)

    @property
    def matching_branch(self) -> "Branch | None":
        return self.get_matching_branch()

    @property
    def matched(self) -> bool:
        return bool(self.matching)

    @property
    def resolved(self) -> bool:
        """Matched by a branch other than a catch-all act branch."""
        return self.matched and self.matching[-1].branch.category != "act"

    @property
    def match(self) -> Any:
        """Match result of the last matched branch."""
        return self.matching[-1].match if self.matching else None

    @property
    def conditions(self) -> "Conditions | None":
        """Conditions of the last matched branch, if it has any."""
        branch = self.matching_branch
        return getattr(branch, "conditions", None) if branch else None

    # Envelopes

    def pending_envelope(self) -> Envelope | None:
        """First envelope not yet dispatched."""
        if not self.envelopes:
            return None
        return next((e for e in self.envelopes if e.responded is None), None)

    def dispatched_envelope(self) -> Envelope | None:
        """First envelope already dispatched."""
        if not self.envelopes:
            return None
        return next((e for e in self.envelopes if e.responded is not None), None)

    def respond_envelope(self, **options: Any) -> Envelope:
        """Get the pending envelope, creating one addressed to the sender."""
        pending = self.pending_envelope()
        if pending is None:
            if self.envelopes is None:
                self.envelopes = []
            pending = Envelope.for_state(self, **options)
            self.envelopes.append(pending)
        return pending

    @property
    def envelope(self) -> Envelope:
        return self.respond_envelope()

    async def respond(self, *strings: str) -> "State":
        """Compose strings into the pending envelope and dispatch it."""
        self.respond_envelope().compose(*strings)
        if self.bot is None:
            raise PonderError("State has no bot to respond with")
        return await self.bot.thoughts.respond(self)

    async def respond_via(self, method: str, *strings: str) -> "State":
        """Respond using a specific adapter method."""
        self.respond_envelope().via(method)
        return await self.respond(*strings)

    # Collaborators

    @property
    def branches(self) -> "BranchController":
        """Branches of this state's dialogue, opening one if needed.

        Branches added here only apply to the next input from the same
        audience.
        """
        if self.dialogue is None:
            if self.bot is None:
                raise DialogueError("State has no bot to create a dialogue with")
            self.dialogue = self.bot.dialogues.create()
        self.dialogue.bind(self)
        return self.dialogue.branches

    @property
    def user(self) -> User | None:
        """Remembered record of the message sender."""
        if self._message is None:
            return None
        if self.bot is None:
            return self._message.user
        return self.bot.memory.user_by_id(self._message.user.id, self._message.user)

    def to_record(self) -> dict[str, Any]:
        """Plain data for storage, without the bot or dialogue references."""
        return {
            "sequence": self.sequence,
            "method": self.method,
            "done": self.done,
            "exit": self.exit,
            "message": self._message.model_dump(mode="json") if self._message else None,
            "envelopes": [e.model_dump(mode="json") for e in self.envelopes or []],
            "processed": {name: ts.isoformat() for name, ts in self.processed.items()},
            "matching": [
                {"id": m.branch.id, "category": m.branch.category} for m in self.matching
            ],
            "context": self.context,
            "extra": self.extra,
        }
