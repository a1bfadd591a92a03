"""Pydantic models for web search results."""

from pydantic import BaseModel


class SearchHit(BaseModel):
    """A single organic search result, normalised across providers."""

    title: str
    link: str
    snippet: str = ""
