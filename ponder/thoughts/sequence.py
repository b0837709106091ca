"""Sequences of thought stages and the rules connecting them.

- ``receive``  hear, listen, understand, act, remember
- ``serve``    hear, serve, act, remember
- ``respond``  respond
- ``dispatch`` respond, remember
"""

from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from ponder.branches.controller import BranchController
from ponder.exceptions import SequenceError
from ponder.models.message import TextMessage
from ponder.nlu import NLU
from ponder.observability.logging import get_logger
from ponder.observability.metrics import ENVELOPES_DISPATCHED
from ponder.state import State
from ponder.thoughts.thought import Thought
from ponder.utils import utc_now

if TYPE_CHECKING:
    from ponder.bot import Bot

logger = get_logger(__name__)

SEQUENCES: dict[str, tuple[str, ...]] = {
    "receive": ("hear", "listen", "understand", "act", "remember"),
    "serve": ("hear", "serve", "act", "remember"),
    "respond": ("respond",),
    "dispatch": ("respond", "remember"),
}


class Thoughts:
    """Runs a sequence of stages for one state.

    Works on a copy of the given branches (the bot's global branches by
    default), so stages can remove branches that should not run again
    without changing the original collections.
    """

    def __init__(
        self,
        state: State,
        bot: "Bot",
        branches: BranchController | None = None,
    ) -> None:
        self.state = state
        self.bot = bot
        self.branches = BranchController(branches if branches is not None else bot.branches)
        middlewares = bot.middlewares

        def stage(name: str, **options: Any) -> Thought:
            return Thought(name, state, middlewares.get(name), **options)

        self.processes: dict[str, Thought] = {
            "hear": stage("hear", action=self._hear_action),
            "listen": stage(
                "listen", branches=self.branches.listen, action=self._listen_action
            ),
            "understand": stage(
                "understand",
                branches=self.branches.understand,
                validate=self._understand_validate,
            ),
            "serve": stage("serve", branches=self.branches.serve),
            "act": stage("act", branches=self.branches.act, validate=self._act_validate),
            "respond": stage(
                "respond", validate=self._respond_validate, action=self._respond_action
            ),
            "remember": stage(
                "remember", validate=self._remember_validate, action=self._remember_action
            ),
        }

    async def start(self, sequence: str) -> State:
        """Process each stage of a sequence in order.

        Raises:
            SequenceError: If the sequence is unknown
        """
        if sequence not in SEQUENCES:
            raise SequenceError(f"Invalid sequence: {sequence}", sequence)
        if self.state.sequence is None:
            self.state.sequence = sequence
        for name in SEQUENCES[sequence]:
            await self.processes[name].process()
        return self.state

    # Ignore all further branches if hear was interrupted
    def _hear_action(self, success: bool) -> None:
        if not success:
            self.state.finish()

    # Only process forced understand branches if listen matched
    def _listen_action(self, success: bool) -> None:
        if success:
            self.branches.forced("understand")

    async def _understand_validate(self) -> bool:
        """Attach NLU results to the message if it needs understanding."""
        message = self.state.message
        nlu = self.bot.adapters.nlu
        min_length = self.bot.settings.get("nlu-min-length") or 0
        if nlu is None:
            logger.debug("understand_skipped", reason="no_nlu_adapter")
        elif not isinstance(message, TextMessage):
            logger.debug("understand_skipped", reason="not_text")
        elif not message.text.strip():
            logger.debug("understand_skipped", reason="empty_text")
        elif len(message.text.strip()) < min_length:
            logger.debug("understand_skipped", reason="text_too_short", min_length=min_length)
        else:
            try:
                results = await nlu.process(message)
            except Exception as e:
                logger.error("nlu_process_failed", adapter=nlu.name, error=str(e))
                return False
            if not results:
                logger.error("nlu_process_empty", adapter=nlu.name)
                return False
            try:
                message.nlu = NLU().add_results(results)
            except (TypeError, ValueError, ValidationError) as e:
                logger.error("nlu_process_invalid", adapter=nlu.name, error=str(e))
                return False
            logger.info("nlu_processed", results=message.nlu.print_results())
            return True
        return False

    async def _act_validate(self) -> bool:
        """Present the message as a catch-all to the remaining act branches.

        After a match, only forced act branches remain.
        """
        if self.state.matched:
            logger.debug("act_clearing_unforced", matched=True)
            self.branches.forced("act")
        if not self.branches.exist("act"):
            logger.debug("act_skipped", reason="no_act_branches")
            return False
        self.state.wrap_catch_all()
        return True

    # Connect response envelope to last matched branch
    async def _respond_validate(self) -> bool:
        if self.bot.adapters.message is None:
            logger.error("respond_without_message_adapter")
            return False
        envelope = self.state.pending_envelope()
        if envelope is None:
            return False
        branch = self.state.matching_branch
        if branch is not None:
            envelope.branch_id = branch.id
        return True

    async def _respond_action(self, success: bool) -> None:
        if not success:
            return
        adapter = self.bot.adapters.message
        envelope = self.state.respond_envelope()
        try:
            await adapter.dispatch(envelope)
        except Exception as e:
            logger.error(
                "envelope_dispatch_failed",
                envelope_id=envelope.id,
                adapter=adapter.name,
                error=str(e),
            )
            return
        envelope.responded = utc_now()
        ENVELOPES_DISPATCHED.labels(method=envelope.method).inc()
        logger.debug("envelope_dispatched", envelope_id=envelope.id, method=envelope.method)

    async def _remember_validate(self) -> bool:
        state = self.state
        if state.sequence == "respond":
            logger.debug("remember_skipped", reason="respond")
            return False
        if self.bot.adapters.storage is None:
            logger.debug("remember_skipped", reason="no_storage_adapter")
            return False
        logger.debug("remembering", matched=state.matched)
        if state.matched and state.message is not None:
            self.bot.memory.user_by_id(state.message.user.id, state.message.user)
        return True

    async def _remember_action(self, success: bool) -> None:
        if not success:
            return
        try:
            await self.bot.store.keep("states", self.state)
        except Exception as e:
            logger.error("remember_failed", error=str(e))
