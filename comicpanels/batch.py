"""Page-parallel batch processing.

Each page runs the whole pipeline in one worker; pages share nothing, so
the only synchronisation is collecting the results at the end.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import CancelledError, Future, ProcessPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

from .config import SegmenterConfig
from .extract import PageResult, extract_panels

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[PageResult], None]


@dataclass
class DetectionTask:
    """A page to be processed."""
    page_path: str
    out_dir: Optional[str] = None


def _run_task(task: DetectionTask, config: SegmenterConfig) -> PageResult:
    """Worker entry point; module level so it can be pickled."""
    return extract_panels(task.page_path, task.out_dir, config)


class BatchRunner:
    """Run panel extraction for many pages on a process pool.

    Results come back in task order. A failing page yields a failed
    PageResult and never stops the others; cancel() stops scheduling the
    pages that have not started yet.
    Pages that would write to the same <out>/<stem> directory fail after
    the first one without being run.
    """

    def __init__(
        self,
        config: Optional[SegmenterConfig] = None,
        workers: Optional[int] = None,
        progress: Optional[ProgressCallback] = None,
    ):
        """
        Args:
            config: Segmentation parameters shared by every page
            workers: Pool size; defaults to the CPU count. 1 runs in-process.
            progress: Called with each PageResult as it completes
        """
        self._config = (config or SegmenterConfig()).validate()
        self._workers = max(1, workers or os.cpu_count() or 1)
        self._progress = progress
        self._lock = threading.Lock()
        self._cancelled = False
        self._futures: List[Future] = []

    @property
    def workers(self) -> int:
        return self._workers

    @property
    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled

    def cancel(self) -> None:
        """Stop scheduling new pages; pages already running finish normally."""
        with self._lock:
            self._cancelled = True
            for fut in self._futures:
                fut.cancel()

    def run(self, tasks: Iterable[Union[DetectionTask, str, Path]]) -> List[PageResult]:
        """Process all tasks and return one PageResult per task, in order."""
        tasks = [t if isinstance(t, DetectionTask) else DetectionTask(str(t)) for t in tasks]
        with self._lock:
            self._cancelled = False
        if not tasks:
            return []

        conflicts = _output_conflicts(tasks)
        for result in conflicts.values():
            logger.warning("%s: %s", result.page, result.error)
            self._report(result)
        runnable = [t for i, t in enumerate(tasks) if i not in conflicts]

        if not runnable:
            done: List[PageResult] = []
        elif self._workers == 1 or len(runnable) == 1:
            done = self._run_inline(runnable)
        else:
            done = self._run_pool(runnable)

        pending = iter(done)
        return [conflicts[i] if i in conflicts else next(pending) for i in range(len(tasks))]

    def _report(self, result: PageResult) -> None:
        if self._progress is not None:
            self._progress(result)

    def _run_inline(self, tasks: List[DetectionTask]) -> List[PageResult]:
        results: List[PageResult] = []
        for task in tasks:
            if self.cancelled:
                result = _cancelled_result(task)
            else:
                result = _run_task(task, self._config)
            results.append(result)
            self._report(result)
        return results

    def _run_pool(self, tasks: List[DetectionTask]) -> List[PageResult]:
        results: Dict[int, PageResult] = {}
        max_workers = min(self._workers, len(tasks))
        logger.debug("Starting pool: %d workers for %d pages", max_workers, len(tasks))

        with ProcessPoolExecutor(max_workers=max_workers) as executor:
            index: Dict[Future, int] = {}
            with self._lock:
                for i, task in enumerate(tasks):
                    if self._cancelled:
                        break
                    fut = executor.submit(_run_task, task, self._config)
                    index[fut] = i
                    self._futures.append(fut)

            for fut in as_completed(index):
                task = tasks[index[fut]]
                try:
                    result = fut.result()
                except CancelledError:
                    result = _cancelled_result(task)
                except Exception as e:
                    logger.error("%s: worker failed: %s", task.page_path, e)
                    result = PageResult(page=task.page_path, panels=0, success=False, error=str(e))
                results[index[fut]] = result
                self._report(result)

        with self._lock:
            self._futures = []

        ordered: List[PageResult] = []
        for i, task in enumerate(tasks):
            if i not in results:
                result = _cancelled_result(task)
                self._report(result)
                results[i] = result
            ordered.append(results[i])
        return ordered


def _cancelled_result(task: DetectionTask) -> PageResult:
    return PageResult(page=task.page_path, panels=0, success=False, error="cancelled")


def _output_conflicts(tasks: List[DetectionTask]) -> Dict[int, PageResult]:
    """Fail every task whose <out>/<stem> output is already claimed by an earlier task.

    Pages that differ only in extension (p.png, p.bmp) would otherwise write
    into the same panel directory.
    """
    claimed: Dict[Tuple[str, str], int] = {}
    conflicts: Dict[int, PageResult] = {}
    for i, task in enumerate(tasks):
        page = Path(task.page_path)
        root = Path(task.out_dir) if task.out_dir is not None else page.parent
        key = (os.path.normcase(str(root.resolve())), page.stem)
        first = claimed.setdefault(key, i)
        if first != i:
            conflicts[i] = PageResult(
                page=task.page_path, panels=0, success=False,
                error=f"output {page.stem!r} already used by {tasks[first].page_path}",
            )
    return conflicts


def process_pages(
    pages: Iterable[Union[str, Path]],
    out_dir: Optional[Union[str, Path]] = None,
    config: Optional[SegmenterConfig] = None,
    workers: Optional[int] = None,
) -> List[PageResult]:
    """Convenience wrapper: extract panels from every page, in parallel."""
    out = str(out_dir) if out_dir is not None else None
    tasks = [DetectionTask(str(p), out) for p in pages]
    return BatchRunner(config, workers).run(tasks)
