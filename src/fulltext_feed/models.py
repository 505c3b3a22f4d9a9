"""Data models for the feed relay."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, PositiveInt


class FeedFormat(str, Enum):
    """Source format of a feed; the relay always answers in the same one."""

    RSS = "rss"
    ATOM = "atom"
    JSON = "json"

    @property
    def media_type(self) -> str:
        if self is FeedFormat.JSON:
            return "application/json"
        return "application/xml"


class Author(BaseModel):
    name: str = ""
    email: Optional[str] = None


class Item(BaseModel):
    """One entry of a feed. `content` is the field enrichment overwrites."""

    id: str = ""
    title: str = ""
    link: str = ""
    description: str = ""
    content: str = Field("", description="Full body; empty until enriched.")
    updated: Optional[datetime] = None
    published: Optional[datetime] = None
    authors: List[Author] = Field(default_factory=list)


class Feed(BaseModel):
    """Normalized representation of a parsed RSS, Atom or JSON feed."""

    format: FeedFormat
    title: str = ""
    link: str = ""
    description: str = ""
    updated: Optional[datetime] = None
    published: Optional[datetime] = None
    authors: List[Author] = Field(default_factory=list)
    items: List[Item] = Field(default_factory=list)
    source_url: str = Field("", description="URL the feed was downloaded from.")


class SelectionWindow(BaseModel):
    """Per-request bounds on which items get enriched."""

    from_time: datetime
    items_cap: PositiveInt
