"""Entry points starting thought sequences for a bot."""

from typing import TYPE_CHECKING, Any

from ponder.branches.controller import BranchController
from ponder.models.envelope import Envelope
from ponder.models.message import Message, ServerMessage
from ponder.observability.logging import (
    bind_message_context,
    clear_message_context,
    get_logger,
)
from ponder.state import State
from ponder.thoughts.sequence import Thoughts

if TYPE_CHECKING:
    from ponder.bot import Bot

logger = get_logger(__name__)


class ThoughtController:
    """Starts the sequence for each kind of input or output."""

    def __init__(self, bot: "Bot") -> None:
        self.bot = bot

    async def receive(
        self,
        message: Message,
        branches: BranchController | None = None,
    ) -> State:
        """Process an incoming message from the chat platform."""
        bind_message_context(message)
        try:
            logger.info("message_received", message_type=message.type)
            state = State(bot=self.bot, message=message)
            return await self._run(state, "receive", branches)
        finally:
            clear_message_context()

    async def serve(
        self,
        message: ServerMessage,
        context: dict[str, Any] | None = None,
        branches: BranchController | None = None,
    ) -> State:
        """Process data received from a server request."""
        bind_message_context(message)
        try:
            logger.info("server_request_received", message_type=message.type)
            state = State(bot=self.bot, message=message, context=context)
            return await self._run(state, "serve", branches)
        finally:
            clear_message_context()

    async def respond(self, state: State) -> State:
        """Dispatch the pending envelope of a processed state."""
        branch = state.matching_branch
        logger.info("responding", branch_id=branch.id if branch else None)
        return await Thoughts(state, self.bot).start("respond")

    async def dispatch(self, envelope: Envelope) -> State:
        """Send an envelope that was not prompted by a message."""
        logger.info("dispatching", envelope_id=envelope.id, method=envelope.method)
        state = State(bot=self.bot, envelopes=[envelope])
        return await Thoughts(state, self.bot).start("dispatch")

    async def _run(
        self,
        state: State,
        sequence: str,
        branches: BranchController | None,
    ) -> State:
        """Run a sequence, within the engaged dialogue if there is one.

        The dialogue's current branches are used for this input while a
        fresh set collects branches for the next. If nothing resolved the
        input, or the sequence raised, the fresh set is dropped. If it
        resolved and added no new branches, the dialogue is complete and
        closes.
        """
        dialogue = self.bot.dialogues.engaged(state)
        progressed = False
        if dialogue is not None and branches is None:
            dialogue.bind(state)
            branches = dialogue.progress_branches()
            progressed = True
            logger.debug("dialogue_progressed", dialogue_id=dialogue.id)

        try:
            final = await Thoughts(state, self.bot, branches).start(sequence)
        except BaseException:
            if progressed and dialogue is not None:
                dialogue.revert_branches()
                logger.warning("dialogue_reverted_on_error", dialogue_id=dialogue.id)
            raise

        if progressed and dialogue is not None:
            if not final.resolved:
                dialogue.revert_branches()
                logger.debug("dialogue_reverted", dialogue_id=dialogue.id)
            elif not dialogue.branches.exist():
                await dialogue.close()
        return final
