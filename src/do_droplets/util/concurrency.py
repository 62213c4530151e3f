from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, List, TypeVar

T = TypeVar("T")
R = TypeVar("R")


def parallel_map_ordered(func: Callable[[T], R], items: Iterable[T], max_workers: int) -> List[R]:
    """
    Run func over items in a thread pool and return results in input order.
    The first failure (in input order) is raised and work not yet started is cancelled.
    """
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = [executor.submit(func, item) for item in items]
        try:
            return [fut.result() for fut in futures]
        except BaseException:
            for fut in futures:
                fut.cancel()
            raise


def parallel_for_each(func: Callable[[T], None], items: Iterable[T], max_workers: int) -> None:
    """
    Run func over every item in a thread pool. Errors are raised only after all
    items were attempted, so one failing id does not abandon the others.
    """
    errors: List[BaseException] = []
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        futures = [executor.submit(func, item) for item in items]
        for fut in as_completed(futures):
            try:
                fut.result()
            except BaseException as e:
                errors.append(e)
    if errors:
        raise errors[0]
