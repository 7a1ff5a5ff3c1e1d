from typing import Hashable, Iterable, List, TypeVar

T = TypeVar("T", bound=Hashable)


def diff(include: Iterable[T], exclude: Iterable[T]) -> List[T]:
    """
    Return the ids in include that are not in exclude, keeping include's order.
    Duplicates in include are kept unless excluded.
    """
    exclude_set = set(exclude)
    return [item_id for item_id in include if item_id not in exclude_set]
