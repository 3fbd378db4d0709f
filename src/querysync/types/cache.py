"""Typed cache payload structures."""

from __future__ import annotations

from typing import Any, TypedDict


class InfiniteData(TypedDict):
    """Value stored under an infinite query key."""

    pages: list[Any]
    pageParams: list[Any]
