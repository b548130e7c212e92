from dataclasses import dataclass
from typing import List, Union

from typing_extensions import Literal

ELLIPSIS: Literal["..."] = "..."

# how many pages either side of the current one are shown
DELTA = 2

PageToken = Union[int, Literal["..."]]


def visible_pages(
    current_page: int, total_pages: int, delta: int = DELTA
) -> List[PageToken]:
    """Returns the page numbers to show in a pagination control.

    The first and last pages are always included, along with a window of
    pages around the current one.  Gaps are marked with an ellipsis.

    >>> visible_pages(5, 10)
    [1, '...', 3, 4, 5, 6, 7, '...', 10]

    Nothing is shown if there is only one page.  The current page is not
    clamped - that is up to the caller.

    """
    if total_pages <= 1:
        return []

    window = range(
        max(2, current_page - delta), min(total_pages - 1, current_page + delta) + 1
    )

    tokens: List[PageToken] = [1]
    if current_page - delta > 2:
        tokens.append(ELLIPSIS)
    tokens.extend(window)
    if current_page + delta < total_pages - 1:
        tokens.append(ELLIPSIS)
    tokens.append(total_pages)
    return tokens


@dataclass
class Pagination:
    """What a template needs to draw a pagination control."""

    current_page: int
    total_pages: int

    def tokens(self) -> List[PageToken]:
        return visible_pages(self.current_page, self.total_pages)

    def is_shown(self) -> bool:
        return self.total_pages > 1

    def has_previous(self) -> bool:
        return self.current_page > 1

    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    def is_valid(self) -> bool:
        """Whether the current page exists.

        Page 1 of nothing is allowed, an empty listing still has a first page.

        """
        return 1 <= self.current_page <= max(1, self.total_pages)
