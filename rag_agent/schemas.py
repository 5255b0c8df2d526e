"""HTTP 요청/응답 스키마."""

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from rag_agent.ranking import DateRange, FilterSpec


class MessageRequest(BaseModel):
    message: str = Field(min_length=1, max_length=10000)
    session_id: str = Field(min_length=1, max_length=100)

    @field_validator("message", "session_id")
    @classmethod
    def must_not_be_blank(cls, v):
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class MessageResponse(BaseModel):
    reply: str
    session_id: str
    timestamp: datetime


class DateRangeModel(BaseModel):
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def naive_as_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def start_before_end(self):
        if self.start > self.end:
            raise ValueError("start must not be after end")
        return self


class FiltersModel(BaseModel):
    categories: list[str] = Field(default_factory=list)
    date_range: DateRangeModel | None = None
    difficulty: str | None = None

    def to_filter_spec(self) -> FilterSpec:
        date_range = None
        if self.date_range is not None:
            date_range = DateRange(start=self.date_range.start, end=self.date_range.end)
        return FilterSpec(categories=self.categories, date_range=date_range, difficulty=self.difficulty)


class SearchRequest(BaseModel):
    query: str = Field(min_length=1, max_length=10000)
    context: str | None = None
    filters: FiltersModel | None = None
    search_type: Literal["hybrid", "semantic", "keyword"] = "hybrid"
    max_results: int = Field(default=5, ge=1, le=20)


class SessionInfo(BaseModel):
    session_id: str
    message_count: int
    last_accessed: datetime
