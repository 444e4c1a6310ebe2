"""Event emitters and disposable subscriptions."""

from typing import Callable, Generic, List, TypeVar

T = TypeVar("T")


class Disposable:
    """Handle returned by a subscription; calling dispose() unregisters it."""

    def __init__(self, on_dispose: Callable[[], None]):
        self._on_dispose = on_dispose
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._on_dispose()


class Emitter(Generic[T]):
    """Fires a payload to every registered listener, in registration order."""

    def __init__(self) -> None:
        self._listeners: List[Callable[[T], None]] = []

    def event(self, listener: Callable[[T], None]) -> Disposable:
        """Register a listener and return its disposer."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Disposable(remove)

    def fire(self, payload: T) -> None:
        # Copy so listeners may dispose themselves while firing
        for listener in list(self._listeners):
            listener(payload)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
