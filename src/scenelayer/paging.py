"""Node-page addressing.

Nodes live in fixed-capacity pages. A node's global index maps to a
page number and an offset inside that page with plain integer
division, which stays exact for any node count.
"""

from __future__ import annotations


def _check(index: int, nodes_per_page: int) -> None:
    if nodes_per_page <= 0:
        raise ValueError(f"nodes_per_page must be positive, got {nodes_per_page}")
    if index < 0:
        raise ValueError(f"node index must be non-negative, got {index}")


def page_of(index: int, nodes_per_page: int) -> int:
    """Return the page number holding node ``index``."""
    _check(index, nodes_per_page)
    return index // nodes_per_page


def offset_in_page(index: int, nodes_per_page: int) -> int:
    """Return the position of node ``index`` within its page."""
    _check(index, nodes_per_page)
    return index % nodes_per_page


def locate(index: int, nodes_per_page: int) -> tuple[int, int]:
    """Return ``(page, offset)`` for node ``index``."""
    _check(index, nodes_per_page)
    return divmod(index, nodes_per_page)


def page_count(node_count: int, nodes_per_page: int) -> int:
    """Number of pages needed to hold ``node_count`` nodes."""
    _check(node_count, nodes_per_page)
    return -(-node_count // nodes_per_page)
