"""
Account Stream - Pull-based iteration over a wallet's stored accounts.

A background thread reads raw records from the store, decodes them, and
hands them to the consumer through a bounded queue. The consumer sets the
pace; closing the stream stops the reader even if it is blocked on a full
queue. A stream dropped without close() stops its reader when it is
garbage collected.
"""

import logging
import queue
import threading
import weakref
from typing import Callable, Generic, Iterable, Optional, TypeVar

from .errors import CorruptStateError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BUFFER_SIZE = 1024
_PUT_INTERVAL = 0.1  # seconds between close checks while the queue is full

_END = object()


class _Failure:
    def __init__(self, error: BaseException):
        self.error = error


class _Reader:
    """Producer side of a stream. Holds no reference to the stream itself."""

    def __init__(self, source: Callable[[], Iterable[bytes]],
                 decode: Callable[[bytes], object], buffer_size: int):
        self.source = source
        self.decode = decode
        self.queue: queue.Queue = queue.Queue(maxsize=buffer_size)
        self.closed = threading.Event()
        self.skipped = 0

    def put(self, item) -> bool:
        """Queue an item. Returns False if the stream was closed first."""
        while not self.closed.is_set():
            try:
                self.queue.put(item, timeout=_PUT_INTERVAL)
                return True
            except queue.Full:
                continue
        return False

    def run(self) -> None:
        records = iter(())
        try:
            records = iter(self.source())
            for data in records:
                if self.closed.is_set():
                    return
                try:
                    item = self.decode(data)
                except CorruptStateError as e:
                    self.skipped += 1
                    logger.debug(f"Skipping undecodable account record: {e}")
                    continue
                if not self.put(item):
                    return
        except Exception as e:
            self.put(_Failure(e))
            return
        finally:
            close = getattr(records, "close", None)
            if close is not None:
                close()
        self.put(_END)


class AccountStream(Generic[T]):
    """
    Iterator fed by a background reader.

    Usage:
        with wallet.accounts() as accounts:
            for account in accounts:
                ...
        print(accounts.skipped)  # records that failed to decode
    """

    def __init__(self, source: Callable[[], Iterable[bytes]],
                 decode: Callable[[bytes], T],
                 buffer_size: int = DEFAULT_BUFFER_SIZE):
        self._reader = _Reader(source, decode, buffer_size)
        self._done = False
        self._thread = threading.Thread(target=self._reader.run, name="account-stream", daemon=True)
        self._thread.start()
        weakref.finalize(self, self._reader.closed.set)

    @property
    def skipped(self) -> int:
        """Number of records skipped because they failed to decode."""
        return self._reader.skipped

    def __iter__(self) -> "AccountStream[T]":
        return self

    def __next__(self) -> T:
        if self._done:
            raise StopIteration
        item = self._reader.queue.get()
        if item is _END:
            self._done = True
            raise StopIteration
        if isinstance(item, _Failure):
            self._done = True
            raise item.error
        return item

    def close(self, timeout: Optional[float] = 1.0) -> None:
        """Stop the reader and discard anything still buffered."""
        self._done = True
        self._reader.closed.set()
        while True:
            try:
                self._reader.queue.get_nowait()
            except queue.Empty:
                break
        if self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def __enter__(self) -> "AccountStream[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
