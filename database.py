import asyncio
import os
from pathlib import Path
from typing import Callable, Optional, Tuple, TypeVar

import structlog
from pydantic import ValidationError

from exceptions import PersistenceError
from schemas import StoreSnapshot

logger = structlog.get_logger(__name__)

T = TypeVar("T")
Mutator = Callable[[StoreSnapshot], Tuple[StoreSnapshot, T]]


class RecordStore:
    """
    Single JSON file holding every ticket plus the id counter.

    Readers never see a half written file: commit() writes a sibling
    temporary file and renames it over the canonical one.
    """

    def __init__(self, path):
        self.path = Path(path)
        self.temp_path = self.path.with_name(self.path.name + ".tmp")
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def load(self) -> StoreSnapshot:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("store_missing", path=str(self.path))
            return StoreSnapshot()
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("store_unreadable", path=str(self.path), error=str(e))
            return StoreSnapshot()

        try:
            snapshot = StoreSnapshot.model_validate_json(raw)
        except ValidationError as e:
            # fail open: the service keeps running on an empty store
            logger.warning(
                "store_corrupt_using_default",
                path=str(self.path),
                errors=e.error_count(),
            )
            return StoreSnapshot()

        logger.debug("store_read", path=str(self.path), tickets=len(snapshot.tickets))
        return snapshot

    def commit(self, snapshot: StoreSnapshot) -> None:
        data = snapshot.model_dump_json(by_alias=True, indent=2)
        try:
            with open(self.temp_path, "w", encoding="utf-8") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(self.temp_path, self.path)
        except OSError as e:
            logger.error("store_write_failed", path=str(self.path), error=str(e))
            self._discard_temp()
            raise PersistenceError(f"Could not write {self.path}") from e

        logger.debug(
            "store_written",
            path=str(self.path),
            tickets=len(snapshot.tickets),
            next_id=snapshot.next_id,
        )

    def _discard_temp(self) -> None:
        try:
            self.temp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("store_temp_cleanup_failed", path=str(self.temp_path), error=str(e))


class WriteSerializer:
    """
    FIFO queue in front of a RecordStore with a single worker task.

    Each queued mutator sees the last committed snapshot, and its commit
    finishes before the next mutator is loaded. A mutator that raises, or
    whose commit fails, only affects its own caller.
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    async def enqueue(self, mutator: Mutator[T]) -> T:
        self._ensure_worker()
        future = self._loop.create_future()
        await self._queue.put((mutator, future))
        return await future

    def _ensure_worker(self) -> None:
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            self._loop = loop
            self._queue = asyncio.Queue()
            self._worker = None
        if self._worker is None or self._worker.done():
            self._worker = loop.create_task(self._run())

    async def _run(self) -> None:
        while True:
            mutator, future = await self._queue.get()
            try:
                result = await self._apply(mutator)
            except Exception as e:
                logger.info("write_aborted", error_type=type(e).__name__, error=str(e))
                if not future.done():
                    future.set_exception(e)
            else:
                if not future.done():
                    future.set_result(result)
            finally:
                self._queue.task_done()

    async def _apply(self, mutator: Mutator[T]) -> T:
        snapshot = await asyncio.to_thread(self.store.load)
        new_snapshot, result = mutator(snapshot)
        await asyncio.to_thread(self.store.commit, new_snapshot)
        return result

    async def close(self) -> None:
        if self._worker is None or self._loop is not asyncio.get_running_loop():
            return
        await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
