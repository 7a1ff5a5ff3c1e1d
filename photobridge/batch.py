from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Any, Callable, Iterator, List, Sequence

import structlog

from photobridge.config import BATCH_SIZE
from photobridge.errors import ValidationError

log = structlog.stdlib.get_logger()


def chunked(items: Sequence, size: int) -> Iterator[list]:
    """
    Yield consecutive slices of at most `size` items.
    """
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


class BatchDispatcher:
    """
    Submits a large collection as sequential fixed-size bulk calls.

    A failing chunk stops the dispatch: later chunks are never attempted and
    chunks already committed stay committed. The failing chunk's error is
    raised unchanged.
    """

    def __init__(self, chunk_size: int = BATCH_SIZE):
        if not 1 <= chunk_size <= BATCH_SIZE:
            raise ValidationError(f"chunk_size must be between 1 and {BATCH_SIZE}, got {chunk_size}")
        self.chunk_size = chunk_size

    def dispatch(self, items: Sequence, submit_chunk: Callable[[list], Any]) -> List[Any]:
        """
        Call submit_chunk once per chunk, in order. Returns each call's result.
        """
        results = []
        for index, chunk in enumerate(chunked(items, self.chunk_size), start=1):
            results.append(submit_chunk(chunk))
            log.info("batch_committed", chunk=index, size=len(chunk))
        return results

    def dispatch_uploads(
        self,
        items: Sequence,
        upload_item: Callable[[Any], str],
        commit_chunk: Callable[[list, List[str]], Any],
    ) -> List[Any]:
        """
        For each chunk: upload every item concurrently, then commit the chunk
        with the upload tokens in the same order as the chunk's items.
        Nothing is committed for a chunk unless all of its uploads succeeded.
        """
        def submit(chunk):
            tokens = self.run_concurrently(chunk, upload_item)
            return commit_chunk(chunk, tokens)

        return self.dispatch(items, submit)

    @staticmethod
    def run_concurrently(chunk: Sequence, func: Callable[[Any], Any]) -> List[Any]:
        """
        Apply func to every item on a thread pool. Results keep the input order.
        The first exception is raised and work not yet started is cancelled.
        """
        with ThreadPoolExecutor(max_workers=max(1, min(len(chunk), BATCH_SIZE))) as pool:
            futures = [pool.submit(func, item) for item in chunk]
            done, pending = wait(futures, return_when=FIRST_EXCEPTION)
            for future in futures:
                if future in done and future.exception() is not None:
                    for other in pending:
                        other.cancel()
                    raise future.exception()
            return [future.result() for future in futures]
