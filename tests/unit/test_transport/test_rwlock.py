"""Unit tests for the reader/writer lock."""

import threading
import time

from bbagent.features.transport.rwlock import ReadWriteLock


class TestReadWriteLock:
    """Tests for ReadWriteLock."""

    def test_readers_share(self) -> None:
        """Test that two readers can hold the lock at once."""
        lock = ReadWriteLock()
        both_inside = threading.Barrier(2, timeout=2.0)

        def read() -> None:
            with lock.read():
                both_inside.wait()

        threads = [threading.Thread(target=read) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert not both_inside.broken

    def test_writer_excludes_readers(self) -> None:
        """Test that a reader waits for an active writer."""
        lock = ReadWriteLock()
        events: list[str] = []
        writer_inside = threading.Event()

        def write() -> None:
            with lock.write():
                writer_inside.set()
                time.sleep(0.05)
                events.append("write-done")

        def read() -> None:
            writer_inside.wait()
            with lock.read():
                events.append("read")

        writer = threading.Thread(target=write)
        reader = threading.Thread(target=read)
        writer.start()
        reader.start()
        writer.join()
        reader.join()

        assert events == ["write-done", "read"]
