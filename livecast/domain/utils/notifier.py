from typing import Callable, Generic, TypeVar

from loguru import logger

S = TypeVar("S")
V = TypeVar("V")

StateListener = Callable[[S, S, V], None]


class StateNotifier(Generic[S, V]):
    """Fans state changes out to registered observers as ``(previous, current, snapshot)``.

    A failing observer is logged and skipped; it never affects the controller.
    """

    def __init__(self, owner: str):
        self._owner = owner
        self._listeners: list[StateListener] = []

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def notify(self, previous: S, current: S, snapshot: V) -> None:
        logger.info(f"{self._owner} state: {previous} -> {current}")
        for listener in list(self._listeners):
            try:
                listener(previous, current, snapshot)
            except Exception:
                logger.exception(f"{self._owner} state listener failed")
