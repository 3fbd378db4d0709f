"""Tests for the default optimistic patch."""

from __future__ import annotations

import copy
from typing import Any

import pytest

from querysync.effects import walk
from querysync.meta import ModelMeta
from querysync.sync import patch

MARKER = "$optimistic"


def _patch(meta: ModelMeta, entry: Any, mutation: tuple[str, str, Any], **kwargs: Any) -> Any:
    model, operation, payload = mutation
    return patch(entry, walk(model, operation, payload, meta), meta, **kwargs)


def test_create_appends_synthesized_entity(meta: ModelMeta) -> None:
    entry: list[Any] = [{"id": "u0", "name": "old"}]

    patched = _patch(meta, entry, ("User", "create", {"data": {"name": "foo"}}), model="User")

    assert entry == [{"id": "u0", "name": "old"}]
    assert len(patched) == 2
    created = patched[1]
    assert created["name"] == "foo"
    assert created["role"] == "USER"
    assert created["id"]
    assert created[MARKER] is True


def test_create_can_prepend(meta: ModelMeta) -> None:
    patched = _patch(
        meta,
        [{"id": "u0"}],
        ("User", "create", {"data": {"name": "foo"}}),
        model="User",
        insert_position="prepend",
    )

    assert patched[0]["name"] == "foo"
    assert patched[1] == {"id": "u0"}


def test_create_into_nested_collection_of_matching_parent_only(meta: ModelMeta) -> None:
    entry = [{"id": "1", "name": "user1", "posts": []}, {"id": "2", "name": "user2", "posts": []}]

    patched = _patch(
        meta,
        entry,
        ("Post", "create", {"data": {"title": "post1", "owner": {"connect": {"id": "1"}}}}),
        model="User",
    )

    (post,) = patched[0]["posts"]
    assert post["title"] == "post1"
    assert post["ownerId"] == "1"
    assert post[MARKER] is True
    assert patched[1]["posts"] == []
    assert MARKER not in patched[0]


def test_create_integer_id_is_max_plus_one(meta: ModelMeta) -> None:
    entry = [{"id": 3, "body": "a"}, {"id": 7, "body": "b"}]

    patched = _patch(meta, entry, ("Comment", "create", {"data": {"body": "c", "postId": "p1"}}), model="Comment")

    assert patched[-1]["id"] == 8
    assert patched[-1]["editedAt"].endswith("Z")


def test_nested_create_reaches_plain_query_on_child_model(meta: ModelMeta) -> None:
    patched = _patch(
        meta,
        [],
        ("User", "create", {"data": {"name": "user1", "posts": {"create": {"title": "post1"}}}}),
        model="Post",
    )

    (post,) = patched
    assert post["title"] == "post1"
    assert post[MARKER] is True
    assert post["id"]


def test_create_many_inserts_every_row(meta: ModelMeta) -> None:
    patched = _patch(meta, [], ("User", "createMany", {"data": [{"name": "foo"}, {"name": "bar"}]}), model="User")

    assert [row["name"] for row in patched] == ["foo", "bar"]


def test_create_does_not_touch_single_object_results(meta: ModelMeta) -> None:
    entry = {"id": "1", "name": "foo"}

    assert _patch(meta, entry, ("User", "create", {"data": {"name": "x"}}), model="User", operation="findUnique") is entry


def test_update_marks_changed_entity(meta: ModelMeta) -> None:
    patched = _patch(
        meta,
        {"id": "1", "name": "foo"},
        ("User", "update", {"where": {"id": "1"}, "data": {"name": "bar"}}),
        model="User",
        operation="findUnique",
    )

    assert patched == {"id": "1", "name": "bar", MARKER: True}


def test_update_reaches_nested_relation(meta: ModelMeta) -> None:
    entry = {"id": "1", "name": "foo", "posts": [{"id": "p1", "title": "post1"}]}

    patched = _patch(
        meta,
        entry,
        ("Post", "update", {"where": {"id": "p1"}, "data": {"title": "post2", "owner": {"connect": {"id": "2"}}}}),
        model="User",
        operation="findUnique",
    )

    assert patched["posts"][0] == {"id": "p1", "title": "post2", "ownerId": "2", MARKER: True}
    assert MARKER not in patched


def test_nested_update_reaches_plain_query(meta: ModelMeta) -> None:
    payload = {"where": {"id": "1"}, "data": {"posts": {"update": {"where": {"id": "p1"}, "data": {"title": "post2"}}}}}

    patched = _patch(meta, {"id": "p1", "title": "post1"}, ("User", "update", payload), model="Post", operation="findUnique")

    assert patched == {"id": "p1", "title": "post2", MARKER: True}


@pytest.mark.parametrize(
    ("change", "expected"),
    [
        ({"increment": 2}, 5),
        ({"decrement": 1}, 2),
        ({"multiply": 4}, 12),
        ({"divide": 2}, 1),
        ({"set": 10}, 10),
    ],
    ids=["increment", "decrement", "multiply", "divide", "set"],
)
def test_scalar_update_operators(meta: ModelMeta, change: dict[str, int], expected: int) -> None:
    patched = _patch(
        meta,
        [{"id": "p1", "views": 3}],
        ("Post", "update", {"where": {"id": "p1"}, "data": {"views": change}}),
        model="Post",
    )

    assert patched[0]["views"] == expected


def test_update_touches_updated_at_fields(meta: ModelMeta) -> None:
    patched = _patch(
        meta,
        [{"id": 1, "body": "a", "editedAt": None}],
        ("Comment", "update", {"where": {"id": 1}, "data": {"body": "b"}}),
        model="Comment",
    )

    assert patched[0]["body"] == "b"
    assert patched[0]["editedAt"].endswith("Z")


def test_update_many_uses_filter(meta: ModelMeta) -> None:
    entry = [{"id": "p1", "title": "draft: a"}, {"id": "p2", "title": "final"}]

    patched = _patch(
        meta,
        entry,
        ("Post", "updateMany", {"where": {"title": {"startsWith": "draft"}}, "data": {"title": "published"}}),
        model="Post",
    )

    assert patched[0]["title"] == "published"
    assert patched[1] == {"id": "p2", "title": "final"}


def test_delete_removes_from_collections(meta: ModelMeta) -> None:
    entry = [{"id": "1", "name": "foo"}, {"id": "2", "name": "bar"}]

    patched = _patch(meta, entry, ("User", "delete", {"where": {"id": "1"}}), model="User")

    assert patched == [{"id": "2", "name": "bar"}]


def test_delete_nulls_single_result(meta: ModelMeta) -> None:
    patched = _patch(
        meta,
        {"id": "1", "name": "foo"},
        ("User", "delete", {"where": {"id": "1"}}),
        model="User",
        operation="findUnique",
    )

    assert patched is None


def test_delete_reaches_nested_collection(meta: ModelMeta) -> None:
    entry = {"id": "1", "posts": [{"id": "p1", "title": "post1"}]}

    patched = _patch(meta, entry, ("Post", "delete", {"where": {"id": "p1"}}), model="User", operation="findFirst")

    assert patched["posts"] == []


def test_nested_delete_reaches_plain_query(meta: ModelMeta) -> None:
    entry = [{"id": "p1", "title": "post1"}, {"id": "p2", "title": "post2"}]

    patched = _patch(
        meta, entry, ("User", "update", {"where": {"id": "1"}, "data": {"posts": {"delete": {"id": "p1"}}}}), model="Post"
    )

    assert patched == [{"id": "p2", "title": "post2"}]


def test_upsert_creates_when_missing(meta: ModelMeta) -> None:
    payload = {"where": {"id": "1"}, "create": {"id": "1", "name": "foo"}, "update": {"name": "bar"}}

    patched = _patch(meta, [], ("User", "upsert", payload), model="User")

    assert len(patched) == 1
    assert patched[0]["id"] == "1"
    assert patched[0]["name"] == "foo"
    assert patched[0][MARKER] is True


def test_upsert_updates_when_present(meta: ModelMeta) -> None:
    payload = {"where": {"id": "1"}, "create": {"id": "1", "name": "foo"}, "update": {"name": "bar"}}

    patched = _patch(meta, [{"id": "1", "name": "old"}], ("User", "upsert", payload), model="User")

    assert patched == [{"id": "1", "name": "bar", MARKER: True}]


def test_upsert_create_lands_in_parent_collection(meta: ModelMeta) -> None:
    entry = {"id": "1", "name": "user1", "posts": [{"id": "p1", "title": "post1"}]}
    payload = {
        "where": {"id": "p2"},
        "create": {"id": "p2", "title": "post2", "owner": {"connect": {"id": "1"}}},
        "update": {"title": "post3"},
    }

    patched = _patch(meta, entry, ("Post", "upsert", payload), model="User", operation="findUnique")

    assert [post["id"] for post in patched["posts"]] == ["p1", "p2"]
    assert patched["posts"][1]["ownerId"] == "1"
    assert patched["posts"][1][MARKER] is True


def test_unmatched_mutation_returns_same_object(meta: ModelMeta) -> None:
    entry = [{"id": "1", "name": "foo"}]

    assert _patch(meta, entry, ("User", "update", {"where": {"id": "9"}, "data": {"name": "x"}}), model="User") is entry


def test_non_find_operations_are_left_alone(meta: ModelMeta) -> None:
    assert _patch(meta, 3, ("User", "create", {"data": {"name": "x"}}), model="User", operation="count") == 3


def test_infinite_entry_creates_on_first_page_and_updates_all(meta: ModelMeta) -> None:
    entry = {
        "pages": [[{"id": "1", "name": "a"}], [{"id": "2", "name": "b"}]],
        "pageParams": [{"take": 1}, {"take": 1, "skip": 1}],
    }
    original = copy.deepcopy(entry)

    created = _patch(meta, entry, ("User", "create", {"data": {"name": "c"}}), model="User", infinite=True)
    updated = _patch(
        meta, entry, ("User", "update", {"where": {"id": "2"}, "data": {"name": "B"}}), model="User", infinite=True
    )

    assert entry == original
    assert [len(page) for page in created["pages"]] == [2, 1]
    assert created["pageParams"] == original["pageParams"]
    assert updated["pages"][1][0] == {"id": "2", "name": "B", MARKER: True}
