from typing import Dict, Generic, List, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Payload model exchanged as camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class Message(BaseModel):
    message: str


class Ok(BaseModel):
    ok: bool = True
    message: str | None = None


class Pagination(CamelModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = -(-total // limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class FilterOption(BaseModel):
    value: str
    label: str


class Page(CamelModel, Generic[T]):
    data: List[T]
    pagination: Pagination
    filter_options: Dict[str, List[FilterOption]] = Field(default_factory=dict)
