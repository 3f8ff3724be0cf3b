"""Task-parallel map over independent units of work."""

import logging
import os
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from tqdm import tqdm

logger = logging.getLogger(__name__)


class ParallelExecutor:
    """Runs one task per item and gathers the results.

    Tasks must not share mutable state. Read-only data that every task needs
    is handed to each worker once through ``initializer``; results come back
    to the calling process, which is the only place they are combined.
    """

    def __init__(self, num_workers: Optional[int] = None, show_progress: bool = True,
                 min_parallel_tasks: int = 20):
        """
        Args:
            num_workers: Worker processes (default: CPU count); 1 runs in-process
            show_progress: Whether to show a tqdm progress bar
            min_parallel_tasks: Below this many items tasks run in-process
        """
        self.num_workers = num_workers or os.cpu_count() or 1
        self.show_progress = show_progress
        self.min_parallel_tasks = min_parallel_tasks

    def map(self, func: Callable[..., Any], items: Sequence[Any], desc: str = "Processing",
            unit: str = "task", initializer: Optional[Callable[..., None]] = None,
            initargs: Tuple = ()) -> List[Any]:
        """Apply func to every item and return results in item order.

        Each item is passed as the single argument to func. Completion order
        does not affect the returned list. An exception raised by any task
        propagates to the caller.
        """
        items = list(items)
        if not items:
            return []

        if self.num_workers <= 1 or len(items) < self.min_parallel_tasks:
            return self._map_sequential(func, items, desc, unit, initializer, initargs)

        num_workers = min(self.num_workers, len(items))
        logger.debug(f"Using {num_workers} workers for {len(items)} {unit}s")

        results: Dict[int, Any] = {}
        with ProcessPoolExecutor(max_workers=num_workers,
                                 initializer=initializer,
                                 initargs=initargs) as executor:
            futures = {executor.submit(func, item): index for index, item in enumerate(items)}

            if self.show_progress:
                iterator = tqdm(as_completed(futures), total=len(futures), desc=desc, unit=unit)
            else:
                iterator = as_completed(futures)

            for future in iterator:
                results[futures[future]] = future.result()

        return [results[index] for index in range(len(items))]

    def _map_sequential(self, func, items, desc, unit, initializer, initargs) -> List[Any]:
        if initializer is not None:
            initializer(*initargs)

        iterator = tqdm(items, desc=desc, unit=unit) if self.show_progress else items
        return [func(item) for item in iterator]
