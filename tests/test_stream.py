import gc
import threading

import pytest

from hdvault import AccountStream, CorruptStateError, StorageError


def decode(data: bytes) -> str:
    if data.startswith(b"bad"):
        raise CorruptStateError("undecodable")
    return data.decode()


def test_yields_decoded_items():
    with AccountStream(lambda: [b"a", b"b", b"c"], decode) as stream:
        assert list(stream) == ["a", "b", "c"]
    assert stream.skipped == 0


def test_empty_source():
    with AccountStream(lambda: [], decode) as stream:
        assert list(stream) == []


def test_skips_undecodable_records():
    with AccountStream(lambda: [b"a", b"bad1", b"b", b"bad2"], decode) as stream:
        assert list(stream) == ["a", "b"]
    assert stream.skipped == 2


def test_exhausted_stream_stays_exhausted():
    stream = AccountStream(lambda: [b"a"], decode)
    assert list(stream) == ["a"]
    assert list(stream) == []
    stream.close()


def test_source_error_is_raised_to_consumer():
    def source():
        yield b"a"
        raise StorageError("disk went away")

    with AccountStream(source, decode) as stream:
        assert next(stream) == "a"
        with pytest.raises(StorageError, match="disk went away"):
            next(stream)
        with pytest.raises(StopIteration):
            next(stream)


def test_close_releases_blocked_producer():
    produced = []
    source_closed = threading.Event()

    def source():
        try:
            for i in range(1000):
                produced.append(i)
                yield str(i).encode()
        finally:
            source_closed.set()

    stream = AccountStream(source, decode, buffer_size=2)
    assert next(stream) == "0"
    stream.close()

    assert source_closed.wait(2.0)
    assert len(produced) < 1000
    with pytest.raises(StopIteration):
        next(stream)


def test_close_without_consuming():
    stream = AccountStream(lambda: (str(i).encode() for i in range(100)), decode, buffer_size=1)
    stream.close()
    stream.close()

    assert list(stream) == []


def test_dropped_stream_releases_producer():
    source_closed = threading.Event()

    def source():
        try:
            for i in range(1000):
                yield str(i).encode()
        finally:
            source_closed.set()

    stream = AccountStream(source, decode, buffer_size=2)
    assert next(stream) == "0"

    del stream
    gc.collect()

    assert source_closed.wait(2.0)
