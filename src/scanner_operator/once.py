"""One-time initialization latch for process-wide singletons."""

from __future__ import annotations

import threading
from typing import Callable, Generic, TypeVar

T = TypeVar("T")


class Once(Generic[T]):
    """Run an initializer exactly once, no matter how many callers race.

    Every caller blocks until the first initialization finishes. The
    initializer's return value is handed to all callers; if it raised, the
    same exception is re-raised to every caller and the initializer is never
    run again.

    Example:

        _engine_once: Once[Engine] = Once()

        def get_engine() -> Engine:
            return _engine_once.do(lambda: create_engine(url))
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._done = False
        self._value: T | None = None
        self._error: BaseException | None = None

    @property
    def done(self) -> bool:
        return self._done

    def do(self, init: Callable[[], T]) -> T:
        if not self._done:
            with self._lock:
                if not self._done:
                    try:
                        self._value = init()
                    except BaseException as e:
                        self._error = e
                        raise
                    finally:
                        self._done = True
        if self._error is not None:
            raise self._error
        return self._value  # type: ignore[return-value]
