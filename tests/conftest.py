"""Shared fixtures: a small blog schema, a scripted transport and a client."""

from __future__ import annotations

import asyncio
import copy
import inspect
import json
from collections.abc import Callable
from typing import Any, TypeAlias
from urllib.parse import parse_qs, urlsplit

import pytest

from querysync.client import QueryClient
from querysync.exceptions import TransportError
from querysync.meta import ModelMeta, parse_model_meta

BLOG_META: dict[str, Any] = {
    "models": {
        "User": {
            "fields": {
                "id": {"type": "String", "id": True},
                "name": {"type": "String"},
                "role": {"type": "String", "default": "USER"},
                "posts": {"type": "Post", "relation": True, "array": True},
            },
        },
        "Post": {
            "fields": {
                "id": {"type": "String", "id": True},
                "title": {"type": "String"},
                "views": {"type": "Int", "default": 0},
                "ownerId": {"type": "String", "optional": True},
                "owner": {"type": "User", "relation": True, "optional": True, "foreign_key": "ownerId"},
                "comments": {"type": "Comment", "relation": True, "array": True},
            },
        },
        "Comment": {
            "fields": {
                "id": {"type": "Int", "id": True},
                "body": {"type": "String"},
                "postId": {"type": "String"},
                "post": {"type": "Post", "relation": True, "foreign_key": "postId"},
                "editedAt": {"type": "DateTime", "optional": True, "updated_at": True},
            },
        },
        "Tag": {
            "fields": {
                "id": {"type": "String", "id": True},
                "label": {"type": "String"},
            },
        },
    },
    "delete_cascade": {"User": ["Post"], "Post": ["Comment"]},
}

Responder: TypeAlias = Any | Callable[[Any], Any] | BaseException


class ScriptedTransport:
    """Transport double answering per ``(model, operation)`` and recording calls."""

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], Responder] = {}
        self.calls: list[tuple[str, str, str, Any]] = []

    def reply(self, model: str, operation: str, responder: Responder) -> None:
        self.routes[(model, operation)] = responder

    def count(self, model: str, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == model and call[1] == operation)

    async def send(self, url: str, method: str, payload: Any = None) -> Any:
        parts = urlsplit(url)
        model, operation = parts.path.rstrip("/").split("/")[-2:]
        query = parse_qs(parts.query).get("q")
        args = json.loads(query[0]) if query else payload
        self.calls.append((model, operation, method, args))
        await asyncio.sleep(0)

        responder = self.routes.get((model, operation))
        if responder is None:
            raise TransportError(f"no route for {model}.{operation}", status=404)
        if isinstance(responder, BaseException):
            raise responder
        value = responder(args) if callable(responder) else copy.deepcopy(responder)
        if inspect.isawaitable(value):
            value = await value
        return {"data": value}


@pytest.fixture
def blog_doc() -> dict[str, Any]:
    return copy.deepcopy(BLOG_META)


@pytest.fixture
def meta(blog_doc: dict[str, Any]) -> ModelMeta:
    return parse_model_meta(blog_doc, "<blog>")


@pytest.fixture
def transport() -> ScriptedTransport:
    return ScriptedTransport()


@pytest.fixture
def client(meta: ModelMeta, transport: ScriptedTransport) -> QueryClient:
    return QueryClient(meta, transport)
