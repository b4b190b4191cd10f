from typing import List, Tuple, TypeVar

T = TypeVar("T")


def normalize_paging(page: int, page_size: int, max_page_size: int = 100) -> Tuple[int, int]:
    p = page if page and page > 0 else 1
    ps = page_size if page_size and page_size > 0 else 20
    ps = min(ps, max_page_size)
    return p, ps


def paginate(rows: List[T], page: int, page_size: int) -> dict:
    p, ps = normalize_paging(page, page_size)
    total = len(rows)
    start = (p - 1) * ps
    return {
        "items": rows[start:start + ps],
        "page": p,
        "page_size": ps,
        "total": total,
        "total_pages": (total + ps - 1) // ps if total > 0 else 0,
    }
