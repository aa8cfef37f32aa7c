from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Iterator
from contextlib import ExitStack, contextmanager
from contextvars import ContextVar
from typing import Protocol

from lpvault.domain.errors import EngineError, ReentrantCall
from lpvault.logging_context import with_logging_context

logger = logging.getLogger(__name__)

_ACTIVE_OPERATION: ContextVar[str | None] = ContextVar("lpvault_active_operation", default=None)


class Participant(Protocol):
    """Ledger whose state takes part in an engine transaction."""

    lock: object

    def checkpoint(self) -> object: ...

    def rollback(self, checkpoint: object) -> None: ...


def active_operation() -> str | None:
    return _ACTIVE_OPERATION.get()


class EngineGuard:
    """Exclusive critical section for one engine instance.

    Every mutating operation commits completely or restores every participant
    to its entry checkpoint. A mutating call issued while any engine operation
    is still in progress in the same context is rejected.
    """

    def __init__(self, engine: str, participants: Callable[[], Iterable[Participant]]) -> None:
        self._engine = engine
        self._participants = participants

    @contextmanager
    def _locked(self) -> Iterator[list[Participant]]:
        participants = list(self._participants())
        with ExitStack() as stack:
            # fixed acquisition order across engines sharing a ledger
            for participant in sorted(participants, key=id):
                stack.enter_context(participant.lock)
            yield participants

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._locked():
            yield

    @contextmanager
    def transaction(self, operation: str, caller: str | None = None) -> Iterator[None]:
        qualified = f"{self._engine}.{operation}"
        active = _ACTIVE_OPERATION.get()
        if active is not None:
            logger.warning(
                "reentrant_call_rejected",
                extra={"extra": {"operation": qualified, "active_operation": active}},
            )
            raise ReentrantCall(
                f"{qualified} called while {active} is in progress",
                operation=operation,
                details={"active_operation": active},
            )

        with self._locked() as participants:
            context_token = _ACTIVE_OPERATION.set(qualified)
            checkpoints = [(participant, participant.checkpoint()) for participant in participants]
            try:
                with with_logging_context(engine=self._engine, operation=operation, caller=caller):
                    yield
            except BaseException as exc:
                for participant, checkpoint in reversed(checkpoints):
                    participant.rollback(checkpoint)
                if isinstance(exc, EngineError):
                    logger.warning(
                        "operation_rejected",
                        extra={
                            "extra": {
                                "engine": self._engine,
                                "operation": operation,
                                "caller": caller,
                                **exc.to_payload(),
                            }
                        },
                    )
                raise
            finally:
                _ACTIVE_OPERATION.reset(context_token)
