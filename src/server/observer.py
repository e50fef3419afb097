"""Observers receive engine -> observer messages."""
from abc import ABC, abstractmethod
from typing import Callable

from .messages import Message


class Observer(ABC):
    """One connected control-channel peer."""

    def __init__(self, observer_id: str):
        self.id = observer_id

    @abstractmethod
    def send(self, message: Message) -> None:
        """Deliver one message; must not block on the peer."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.id!r})"


class CallbackObserver(Observer):
    """Observer that hands every message to a callable (console output, tests)."""

    def __init__(self, observer_id: str, callback: Callable[[Message], None]):
        super().__init__(observer_id)
        self._callback = callback

    def send(self, message: Message) -> None:
        self._callback(message)
