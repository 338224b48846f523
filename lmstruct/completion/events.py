"""
Events emitted during a completion request, and their observers.

The completion pipeline does not log. It notifies an observer of what
happens (requests, retries, heals, ...). The default LoggingObserver
writes the events to a logger; EventListObserver keeps them, for
inspection in tests.

Example:
    ```python
    from lmstruct.completion.events import EventListObserver

    observer = EventListObserver()
    response = request(model, "Hello", observer=observer)
    print(observer.kinds())  # ['request', 'response']
    ```
"""

from abc import ABC, abstractmethod
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from lmstruct.utils.logging import LoggerBase, get_logger

EventKind = Literal[
    'request',
    'response',
    'retry',
    'token_overflow',
    'slice',
    'heal',
    'validation_failed',
    'token',
]


class CompletionEvent(BaseModel):
    """
    Something that happened during a request.

    Attributes:
        kind: the kind of event
        message: a human-readable description
        data: the event details (e.g. the retry interval)
    """

    kind: EventKind
    message: str = ""
    data: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class CompletionObserver(ABC):
    """Receives the events of completion requests."""

    @abstractmethod
    def notify(self, event: CompletionEvent) -> None:
        pass


class LoggingObserver(CompletionObserver):
    """Writes events to a logger."""

    def __init__(self, logger: LoggerBase | None = None):
        self.logger = logger or get_logger("lmstruct.completion")

    def notify(self, event: CompletionEvent) -> None:
        match event.kind:
            case 'request' | 'response':
                self.logger.info(event.message)
            case 'token':
                self.logger.debug(event.message)
            case 'retry' | 'token_overflow' | 'slice' | 'heal':
                self.logger.warning(event.message)
            case 'validation_failed':
                self.logger.error(event.message)


class EventListObserver(CompletionObserver):
    """Records events in a list."""

    def __init__(self) -> None:
        self.events: list[CompletionEvent] = []

    def notify(self, event: CompletionEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[EventKind]:
        return [e.kind for e in self.events]

    def of_kind(self, kind: EventKind) -> list[CompletionEvent]:
        return [e for e in self.events if e.kind == kind]

    def clear(self) -> None:
        self.events.clear()
