"""Middleware stacks for each thought stage.

Every piece receives ``(state, next, done)``. Calling ``next()`` continues
to the following piece; calling ``done()`` interrupts the stack so later
pieces and the completion function are skipped. A piece returning without
calling either continues. Both signals accept an optional ``after``
continuation, run once when the stack unwinds, in reverse order of the
pieces that captured them. This allows pieces to run logic before and after
the rest of the stack, like nested scopes.

    async def timer(state, next, done):
        started = time.perf_counter()
        next(lambda state: log_duration(started))

Pieces, continuations and the completion function may each be plain
functions or coroutine functions. Pieces run strictly in sequence.
"""

import time
from collections.abc import Awaitable, Callable
from typing import Any

from ponder.exceptions import MiddlewareError
from ponder.observability.logging import get_logger
from ponder.observability.metrics import MIDDLEWARE_ERRORS
from ponder.utils import resolve

logger = get_logger(__name__)

Continuation = Callable[[Any], Awaitable[Any] | Any]
Signal = Callable[..., None]
Piece = Callable[[Any, Signal, Signal], Awaitable[Any] | Any]


class _PieceSignals:
    """Records how one piece chose to proceed."""

    def __init__(self) -> None:
        self.after: Continuation | None = None
        self.interrupted = False

    def next(self, after: Continuation | None = None) -> None:
        if after is not None:
            self.after = after

    def done(self, after: Continuation | None = None) -> None:
        if after is not None:
            self.after = after
        self.interrupted = True


class Middleware:
    """An ordered stack of pieces executed against a state."""

    def __init__(self, name: str = "default") -> None:
        self.name = name
        self.stack: list[Piece] = []

    def register(self, piece: Piece) -> None:
        """Add a piece to the end of the stack."""
        self.stack.append(piece)

    async def execute(
        self,
        state: Any,
        complete: Continuation | None = None,
    ) -> Any:
        """Run every piece in order, then ``complete``, then unwind.

        Returns the (possibly mutated) state.

        Raises:
            MiddlewareError: If a piece, the completion function or a
                continuation raised. Continuations captured before a failing
                piece still run before the error is raised.
        """
        logger.debug("middleware_executing", stack=self.name, size=len(self.stack))
        started = time.perf_counter()
        continuations: list[Continuation] = []
        interrupted = False

        for index, piece in enumerate(list(self.stack)):
            signals = _PieceSignals()
            try:
                await resolve(piece(state, signals.next, signals.done))
            except Exception as err:
                await self._unwind(state, continuations)
                raise self._failure(err, state, f"piece {index}") from err
            if signals.after is not None:
                continuations.append(signals.after)
            if signals.interrupted:
                interrupted = True
                logger.debug("middleware_interrupted", stack=self.name, piece=index)
                break

        if not interrupted and complete is not None:
            try:
                await resolve(complete(state))
            except Exception as err:
                await self._unwind(state, continuations)
                raise self._failure(err, state, "complete") from err

        error = await self._unwind(state, continuations)
        if error is not None:
            raise self._failure(error, state, "continuation") from error

        logger.debug(
            "middleware_finished",
            stack=self.name,
            interrupted=interrupted,
            duration_ms=round((time.perf_counter() - started) * 1000, 3),
        )
        return state

    async def _unwind(
        self, state: Any, continuations: list[Continuation]
    ) -> Exception | None:
        """Run captured continuations once each, last captured first.

        Every continuation runs even if an earlier one fails; the first
        failure is returned.
        """
        first_error: Exception | None = None
        while continuations:
            after = continuations.pop()
            try:
                await resolve(after(state))
            except Exception as err:
                logger.error(
                    "middleware_continuation_failed",
                    stack=self.name,
                    error=str(err),
                )
                if first_error is None:
                    first_error = err
        return first_error

    def _failure(self, err: Exception, state: Any, where: str) -> MiddlewareError:
        MIDDLEWARE_ERRORS.labels(stack=self.name).inc()
        logger.error(
            "middleware_failed",
            stack=self.name,
            where=where,
            error=str(err),
            error_type=type(err).__name__,
        )
        return MiddlewareError(f"{self.name} middleware failed at {where}: {err}", self.name, state)


class MiddlewareController:
    """Holds a middleware stack per thought stage."""

    TYPES = ("hear", "listen", "understand", "serve", "act", "respond", "remember")

    def __init__(self) -> None:
        self.stacks: dict[str, Middleware] = {}

    def get(self, name: str) -> Middleware:
        """Get the stack for a stage, creating it on first use."""
        if name not in self.stacks:
            self.stacks[name] = Middleware(name)
        return self.stacks[name]

    def register(self, name: str, piece: Piece) -> None:
        """Add a piece to the stack of a stage."""
        self.get(name).register(piece)

    def load_all(self) -> None:
        """Create empty stacks for every known stage."""
        for name in self.TYPES:
            self.get(name)

    def unload_all(self) -> None:
        """Remove every stack and its pieces."""
        self.stacks.clear()

    # Shorthands matching the stage names
    def hear(self, piece: Piece) -> None:
        self.register("hear", piece)

    def listen(self, piece: Piece) -> None:
        self.register("listen", piece)

    def understand(self, piece: Piece) -> None:
        self.register("understand", piece)

    def serve(self, piece: Piece) -> None:
        self.register("serve", piece)

    def act(self, piece: Piece) -> None:
        self.register("act", piece)

    def respond(self, piece: Piece) -> None:
        self.register("respond", piece)

    def remember(self, piece: Piece) -> None:
        self.register("remember", piece)
