from collections.abc import Sequence
from typing import Any

from sqlalchemy import Select
from sqlalchemy.orm import Session

from wooffy_api.core.config import settings


def fetch_all(db: Session, stmt: Select, *, order_by: Any, page_size: int | None = None) -> list[Any]:
    """Read every row of ``stmt`` in pages, stopping at the first short page.

    ``order_by`` must be a unique column so offsets stay stable between pages.
    """
    size = page_size or settings.datastore_page_size
    rows: list[Any] = []
    offset = 0
    while True:
        page: Sequence[Any] = db.execute(
            stmt.order_by(order_by).offset(offset).limit(size)
        ).scalars().all()
        rows.extend(page)
        if len(page) < size:
            break
        offset += size
    return rows
