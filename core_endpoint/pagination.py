from typing import Any, List, Sequence, Tuple
import math

from pydantic import BaseModel, ConfigDict, Field


class Pagination(BaseModel):
    """Paging metadata reported under ``meta.pagination``.

    Serialized with camelCase names (``model_dump(by_alias=True)``).

    Example:
        .. code-block:: python

            p = Pagination.from_totals(total=125, page_size=50, current_page=3)
            p.total_pages          # 3
            p.records_returned     # 25
            p.first_record_index   # 100
            p.last_record_index    # 124
            p.all_records_returned # True
    """

    model_config = ConfigDict(populate_by_name=True)

    current_page: int = Field(..., alias="currentPage", ge=1)
    page_size: int = Field(..., alias="pageSize", ge=1)
    total_pages: int = Field(..., alias="totalPages", ge=0)
    records_returned: int = Field(..., alias="recordsReturned", ge=0)
    first_record_index: int = Field(..., alias="firstRecordIndex", ge=0)
    last_record_index: int = Field(..., alias="lastRecordIndex", ge=0)
    total_records: int = Field(..., alias="totalRecords", ge=0)
    all_records_returned: bool = Field(..., alias="allRecordsReturned")

    @classmethod
    def from_totals(cls, total: int, page_size: int, current_page: int = 1) -> "Pagination":
        """Compute paging metadata for one page of a ``total`` record result set."""
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        if current_page < 1:
            raise ValueError("current_page must be at least 1")
        total = max(total, 0)

        total_pages = math.ceil(total / page_size)
        first = (current_page - 1) * page_size
        returned = min(max(total - first, 0), page_size)
        last = first + returned - 1 if returned else first

        return cls(
            current_page=current_page,
            page_size=page_size,
            total_pages=total_pages,
            records_returned=returned,
            first_record_index=first,
            last_record_index=last,
            total_records=total,
            all_records_returned=first + returned >= total,
        )

    @classmethod
    def paginate(cls, items: Sequence[Any], page_number: int, page_size: int) -> Tuple[List[Any], "Pagination"]:
        """Slice one page out of an in-memory sequence."""
        pagination = cls.from_totals(len(items), page_size, page_number)
        start = pagination.first_record_index
        return list(items[start : start + pagination.records_returned]), pagination

    def to_meta(self) -> dict:
        return self.model_dump(by_alias=True)
