import math
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import Query

MAX_PAGE_SIZE = 100


@dataclass
class Pagination:
    page: int = 1
    page_size: int = 20

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def paginate(query: Query, pagination: Pagination) -> Tuple[List[Any], int]:
    """Return one page of ``query`` plus the unpaged total."""
    total = query.order_by(None).count()
    items = query.offset(pagination.offset).limit(pagination.page_size).all()
    return items, total


def page_payload(items: List[Any], total: int, pagination: Pagination) -> Dict[str, Any]:
    return {
        "data": items,
        "pagination": {
            "current_page": pagination.page,
            "page_size": pagination.page_size,
            "total_items": total,
            "total_pages": math.ceil(total / pagination.page_size) if total else 0,
        },
    }
