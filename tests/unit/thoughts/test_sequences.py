"""Tests for thought sequences and the rules between stages."""

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from ponder.adapters.stores.inmemory import InMemoryStorageAdapter
from ponder.bot import Bot
from ponder.exceptions import SequenceError
from ponder.models import CatchAllMessage, Envelope, ServerMessage, User
from ponder.state import State
from ponder.thoughts.sequence import SEQUENCES, Thoughts


class TestSequenceStart:
    """Tests for starting sequences."""

    @pytest.mark.asyncio
    async def test_unknown_sequence(self, bot: Bot, make_state: Callable[..., State]) -> None:
        """Unknown sequences are rejected."""
        with pytest.raises(SequenceError) as exc_info:
            await Thoughts(make_state(), bot).start("ponder")
        assert exc_info.value.sequence == "ponder"

    @pytest.mark.asyncio
    async def test_receive_stage_order(self, bot: Bot, make_state: Callable[..., State]) -> None:
        """Stages run in sequence order."""
        order: list[str] = []
        for stage in ("hear", "listen", "understand", "act", "remember", "serve"):
            bot.middlewares.register(stage, lambda s, next, done, stage=stage: order.append(stage))
        bot.branches.custom(lambda m: True, MagicMock(), force=True)
        bot.branches.nlu({"intent": {"id": "x"}}, MagicMock(), force=True)
        bot.branches.catch_all(MagicMock(), force=True)

        state = await Thoughts(make_state(), bot).start("receive")

        assert state.sequence == "receive"
        assert order == ["hear", "listen", "act"]
        assert SEQUENCES["receive"] == ("hear", "listen", "understand", "act", "remember")

    @pytest.mark.asyncio
    async def test_branches_copied(self, bot: Bot, make_state: Callable[..., State]) -> None:
        """Stages do not remove branches from the bot."""
        bot.branches.text({"is": "hello"}, MagicMock())
        bot.branches.nlu({"intent": {"id": "x"}}, MagicMock(), id="unforced")
        await Thoughts(make_state("hello"), bot).start("receive")
        assert "unforced" in bot.branches.understand


class TestHear:
    """Tests for the hear stage."""

    @pytest.mark.asyncio
    async def test_interrupted_hear_stops_branches(
        self, bot: Bot, make_state: Callable[..., State]
    ) -> None:
        """Interrupting hear middleware stops all branch processing."""
        callback = MagicMock()
        catch_all = MagicMock()
        bot.middlewares.hear(lambda s, next, done: done())
        bot.branches.text({"is": "hello"}, callback)
        bot.branches.catch_all(catch_all)

        state = await Thoughts(make_state("hello"), bot).start("receive")

        assert state.done
        callback.assert_not_called()
        catch_all.assert_not_called()

    @pytest.mark.asyncio
    async def test_ignore_skips_all_stages(
        self, bot: Bot, make_state: Callable[..., State], storage: InMemoryStorageAdapter
    ) -> None:
        """Ignoring the state in hear aborts every later stage."""
        bot.middlewares.hear(lambda s, next, done: s.ignore())
        state = await Thoughts(make_state("hello"), bot).start("receive")
        assert state.exit
        assert set(state.processed) == {"hear"}
        assert await storage.find("states", {}) == []


class TestListenAndUnderstand:
    """Tests for listen and understand stages."""

    @pytest.mark.asyncio
    async def test_listen_match_strips_unforced_understand(
        self, bot: Bot, make_state: Callable[..., State], load_nlu: Callable[..., Any]
    ) -> None:
        """After a listen match only forced understand branches run."""
        load_nlu({"intent": [{"id": "greet", "score": 1}]})
        listen = MagicMock()
        unforced = MagicMock()
        forced = MagicMock()
        bot.branches.text({"contains": "hello"}, listen)
        bot.branches.nlu({"intent": {"id": "greet"}}, unforced)
        bot.branches.nlu({"intent": {"id": "greet"}}, forced, force=True)

        await Thoughts(make_state("hello there"), bot).start("receive")

        listen.assert_called_once()
        unforced.assert_not_called()
        forced.assert_called_once()

    @pytest.mark.asyncio
    async def test_understand_attaches_nlu(
        self, bot: Bot, make_state: Callable[..., State], load_nlu: Callable[..., Any]
    ) -> None:
        """NLU results are attached to the message and matched."""
        adapter = load_nlu({"intent": [{"id": "order", "score": 0.9}]})
        callback = MagicMock()
        bot.branches.nlu({"intent": {"id": "order", "score": 0.5}}, callback)

        state = await Thoughts(make_state("I want pizza"), bot).start("receive")

        assert adapter.processed == [state.message]
        assert state.message.nlu is not None
        callback.assert_called_once_with(state)
        assert "understand" in state.processed

    @pytest.mark.asyncio
    async def test_short_text_not_understood(
        self, bot: Bot, make_state: Callable[..., State], load_nlu: Callable[..., Any]
    ) -> None:
        """Text shorter than the minimum length skips NLU."""
        bot.settings.set("nlu-min-length", 20)
        adapter = load_nlu({"intent": [{"id": "order"}]})
        callback = MagicMock()
        bot.branches.nlu({"intent": {"id": "order"}}, callback)

        await Thoughts(make_state("pizza"), bot).start("receive")

        assert adapter.processed == []
        callback.assert_not_called()

    @pytest.mark.asyncio
    async def test_nlu_failure_fails_stage(
        self, bot: Bot, make_state: Callable[..., State], load_nlu: Callable[..., Any]
    ) -> None:
        """NLU adapter errors fail the stage without raising."""
        adapter = load_nlu()
        adapter.process = AsyncMock(side_effect=ConnectionError("down"))  # type: ignore[method-assign]
        callback = MagicMock()
        bot.branches.nlu({"intent": {"id": "order"}}, callback)

        state = await Thoughts(make_state("I want pizza"), bot).start("receive")

        callback.assert_not_called()
        assert "understand" not in state.processed

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "results",
        [
            {"intent": [{"id": "order"}], "topics": [{"id": "food"}]},
            {"entities": [{"id": 42, "score": 0.9}]},
        ],
    )
    async def test_invalid_nlu_results_fail_stage(
        self,
        bot: Bot,
        make_message: Callable[..., Any],
        load_nlu: Callable[..., Any],
        results: dict[str, Any],
    ) -> None:
        """Results with unknown kinds or malformed records fail the stage."""
        load_nlu(results)
        callback = MagicMock()
        fallback = MagicMock()
        bot.branches.nlu({"intent": {"id": "order"}}, callback)
        bot.branches.catch_all(fallback)

        state = await bot.receive(make_message("hello there friend"))

        callback.assert_not_called()
        fallback.assert_called_once()
        assert state.message.nlu is None
        assert "understand" not in state.processed


class TestAct:
    """Tests for the act stage."""

    @pytest.mark.asyncio
    async def test_catch_all_fires_once(self, bot: Bot, make_state: Callable[..., State]) -> None:
        """Unmatched input fires the first catch-all with a wrapped input."""
        first = MagicMock()
        second = MagicMock()
        bot.branches.text({"is": "bye"}, MagicMock())
        bot.branches.catch_all(first)
        bot.branches.catch_all(second)
        state = make_state("huh")
        message = state.message

        await Thoughts(state, bot).start("receive")

        first.assert_called_once_with(state)
        second.assert_not_called()
        assert isinstance(state.input, CatchAllMessage)
        assert state.message is message
        assert state.matched
        assert not state.resolved

    @pytest.mark.asyncio
    async def test_catch_all_skipped_after_match(
        self, bot: Bot, make_state: Callable[..., State]
    ) -> None:
        """Matched input only fires forced catch-all branches."""
        unforced = MagicMock()
        forced = MagicMock()
        bot.branches.text({"is": "hello"}, MagicMock())
        bot.branches.catch_all(unforced)
        bot.branches.catch_all(forced, force=True)

        state = await Thoughts(make_state("hello"), bot).start("receive")

        unforced.assert_not_called()
        forced.assert_called_once_with(state)

    @pytest.mark.asyncio
    async def test_no_act_branches(self, bot: Bot, make_state: Callable[..., State]) -> None:
        """Without act branches the input is not wrapped."""
        state = await Thoughts(make_state("hello"), bot).start("receive")
        assert not isinstance(state.input, CatchAllMessage)
        assert "act" not in state.processed


class TestServe:
    """Tests for the serve sequence."""

    @pytest.mark.asyncio
    async def test_server_branch(self, bot: Bot) -> None:
        """Server requests match serve branches by data."""
        callback = MagicMock()
        bot.branches.server({"event": "paid"}, callback)
        message = ServerMessage(user=User(id="u1"), data={"event": "paid"})

        state = await Thoughts(State(bot=bot, message=message), bot).start("serve")

        callback.assert_called_once_with(state)
        assert state.match == {"event": "paid"}


class TestRespondAndRemember:
    """Tests for respond and remember stages."""

    @pytest.mark.asyncio
    async def test_respond_dispatches(
        self, bot: Bot, make_state: Callable[..., State], message_adapter: Any
    ) -> None:
        """Responding from a callback dispatches with the branch ID."""
        async def reply(state: State) -> None:
            await state.respond("hi!")

        branch_id = bot.branches.text({"is": "hello"}, reply)
        state = await Thoughts(make_state("hello"), bot).start("receive")

        assert len(message_adapter.dispatched) == 1
        envelope = message_adapter.dispatched[0]
        assert envelope.strings == ["hi!"]
        assert envelope.branch_id == branch_id
        assert envelope.user.id == "u1"
        assert state.dispatched_envelope() is envelope
        assert "respond" in state.processed

    @pytest.mark.asyncio
    async def test_respond_without_adapter(self, bot: Bot, make_state: Callable[..., State]) -> None:
        """Responding without a message adapter leaves the envelope pending."""
        state = make_state("hello")
        state.respond_envelope().write("hi")
        await Thoughts(state, bot).start("respond")
        assert state.pending_envelope() is not None

    @pytest.mark.asyncio
    async def test_dispatch_failure_logged(
        self, bot: Bot, make_state: Callable[..., State], message_adapter: Any
    ) -> None:
        """A failing dispatch leaves the envelope pending."""
        message_adapter.dispatch = AsyncMock(side_effect=ConnectionError("down"))
        state = make_state("hello")
        state.respond_envelope().write("hi")
        await Thoughts(state, bot).start("respond")
        assert state.pending_envelope() is not None

    @pytest.mark.asyncio
    async def test_remember_roundtrip(
        self,
        bot: Bot,
        make_state: Callable[..., State],
        storage: InMemoryStorageAdapter,
    ) -> None:
        """Remembered states are found as their record."""
        bot.branches.text({"is": "hello"}, MagicMock(), id="greet")
        state = await Thoughts(make_state("hello", id="m1"), bot).start("receive")

        found = await bot.store.find_one("states", {"message.id": "m1"})
        assert found == state.to_record()
        assert found["matching"] == [{"id": "greet", "category": "listen"}]
        assert await bot.store.find("states", {"matching.0.id": "greet"}) == [found]
        assert "u1" in bot.memory.users

    @pytest.mark.asyncio
    async def test_remember_without_storage(self, bot: Bot, make_state: Callable[..., State]) -> None:
        """Without storage nothing is remembered."""
        state = await Thoughts(make_state("hello"), bot).start("receive")
        assert "remember" not in state.processed

    @pytest.mark.asyncio
    async def test_dispatch_sequence(
        self, bot: Bot, message_adapter: Any, storage: InMemoryStorageAdapter
    ) -> None:
        """Unprompted envelopes are sent and remembered."""
        envelope = Envelope(strings=["news"]).to_room_id("r1")
        state = await Thoughts(State(bot=bot, envelopes=[envelope]), bot).start("dispatch")

        assert message_adapter.dispatched == [envelope]
        assert envelope.responded is not None
        assert await storage.find("states", {"sequence": "dispatch"}) == [state.to_record()]
