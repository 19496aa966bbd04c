"""
Upload all parts of a large file with a bounded pool of concurrent workers.

A producer calculates the SHA1 of each part and queues it, the workers take parts off the queue and upload them.
The queue is bounded by the number of workers, so hashing never runs far ahead of uploading,
and it is closed with one stop marker per worker once every part has been queued.
"""

import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from b2_client.chunk_planner import PartPlan
from b2_client.chunk_uploader import Chunk, ChunkUploader
from b2_client.utils import format_file_size
from b2_lib.b2_constants import DEFAULT_UPLOAD_WORKERS
from b2_lib.sha1_checksums import calculate_sha1_checksum_for_chunk

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass(frozen=True)
class _PartUploaded:
    part_number: int
    content_sha1: str


@dataclass(frozen=True)
class _PartFailed:
    # None when the failure happened before a chunk existed, e.g. while hashing.
    part_number: int | None
    exception: Exception


class UploadCoordinator:
    """
    Runs the upload of every part of one large file.

    At most 'workers' parts are in flight at any time. The first failure aborts the whole upload:
    the producer stops hashing, workers stop picking up new parts, and the failure is raised unchanged.
    Parts that were already uploading finish (or fail) before `upload` returns, their results are discarded.
    Individual parts are not retried here, that is part of the ChunkUploader's per part retry budget.
    """

    def __init__(self, chunk_uploader: ChunkUploader, workers: int = DEFAULT_UPLOAD_WORKERS):
        if workers < 1:
            raise ValueError(f"Need at least 1 upload worker, got {workers}.")
        self.chunk_uploader = chunk_uploader
        self.workers = workers

    def upload(self, file_path: Path, remote_file_id: str, plan: PartPlan) -> list[str]:
        """
        Upload all parts and return their SHA1s in ascending part number order, as needed to finish the file.
        Parts complete in any order, they are only put in order once all of them are done.
        """
        logger.info(
            f"Uploading '{file_path.name}' in {plan.part_count} parts of {format_file_size(plan.part_size)} "
            f"with {self.workers} workers."
        )
        work_queue: queue.Queue = queue.Queue(maxsize=self.workers)
        results: queue.Queue = queue.Queue()
        abort = threading.Event()
        part_sha1_by_number: dict[int, str] = {}

        with ThreadPoolExecutor(max_workers=self.workers + 1, thread_name_prefix="b2-upload") as executor:
            executor.submit(self._produce_chunks, file_path, remote_file_id, plan, work_queue, results, abort)
            for _ in range(self.workers):
                executor.submit(self._upload_worker, work_queue, results, abort)

            try:
                while len(part_sha1_by_number) < plan.part_count:
                    outcome = results.get()
                    if isinstance(outcome, _PartFailed):
                        logger.warning(
                            f"Upload of part {outcome.part_number} failed, aborting the remaining parts: "
                            f"{outcome.exception!r}"
                        )
                        raise outcome.exception

                    part_sha1_by_number[outcome.part_number] = outcome.content_sha1
                    logger.debug(f"{len(part_sha1_by_number)}/{plan.part_count} parts uploaded.")
            finally:
                # Stops the producer and workers early on failure, a no-op once every part is done.
                abort.set()

        return [part_sha1_by_number[part_number] for part_number in range(1, plan.part_count + 1)]

    def _produce_chunks(
        self,
        file_path: Path,
        remote_file_id: str,
        plan: PartPlan,
        work_queue: queue.Queue,
        results: queue.Queue,
        abort: threading.Event,
    ) -> None:
        """Hash each part and queue it, then close the queue."""
        try:
            for part_number, offset, length in plan.byte_ranges():
                if abort.is_set():
                    return
                content_sha1 = calculate_sha1_checksum_for_chunk(
                    file_path=file_path, start_byte=offset, chunk_size=length
                )
                work_queue.put(
                    Chunk(
                        file_path=file_path,
                        remote_file_id=remote_file_id,
                        byte_offset=offset,
                        part_number=part_number,
                        part_size=length,
                        content_sha1=content_sha1,
                    )
                )
        except Exception as err:
            # Forwarded to the coordinator, which raises it.
            abort.set()
            results.put(_PartFailed(part_number=None, exception=err))
        finally:
            for _ in range(self.workers):
                work_queue.put(_STOP)

    def _upload_worker(self, work_queue: queue.Queue, results: queue.Queue, abort: threading.Event) -> None:
        while True:
            chunk = work_queue.get()
            if chunk is _STOP:
                return
            if abort.is_set():
                # Keep draining so the producer is never blocked on a full queue.
                continue

            try:
                part = self.chunk_uploader.upload_chunk(chunk)
            except Exception as err:
                # Forwarded to the coordinator, which raises it.
                abort.set()
                results.put(_PartFailed(part_number=chunk.part_number, exception=err))
                continue

            results.put(_PartUploaded(part_number=part.part_number, content_sha1=part.content_sha1))
