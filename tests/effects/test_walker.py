"""Tests for decomposing mutation payloads into effect trees."""

from __future__ import annotations

from typing import Any
from uuid import UUID

import pytest

from querysync.effects import EffectKind, MutationDescriptor, mutated_models, walk, walk_descriptor
from querysync.exceptions import PayloadError
from querysync.meta import ModelMeta, parse_model_meta


def _is_uuid(value: Any) -> bool:
    try:
        UUID(str(value))
    except ValueError:
        return False
    return True


def test_create_connect_on_owning_side_becomes_foreign_key(meta: ModelMeta) -> None:
    effect = walk("Post", "create", {"data": {"title": "post1", "owner": {"connect": {"id": "1"}}}}, meta)

    assert effect.kind is EffectKind.CREATE
    assert effect.changes["title"] == "post1"
    assert effect.changes["ownerId"] == "1"
    assert effect.children == ()


def test_create_assigns_placeholder_string_id(meta: ModelMeta) -> None:
    effect = walk("User", "create", {"data": {"name": "foo"}}, meta)

    assert _is_uuid(effect.changes["id"])
    assert effect.identifier == {"id": effect.changes["id"]}


def test_create_keeps_integer_ids_for_the_patcher(meta: ModelMeta) -> None:
    effect = walk("Comment", "create", {"data": {"body": "hi", "postId": "p1"}}, meta)

    assert "id" not in effect.changes
    assert effect.identifier is None


def test_nested_create_points_child_at_parent(meta: ModelMeta) -> None:
    payload = {"data": {"name": "user1", "posts": {"create": [{"title": "a"}, {"title": "b"}]}}}

    effect = walk("User", "create", payload, meta)

    assert [child.changes["title"] for child in effect.children] == ["a", "b"]
    for child in effect.children:
        assert child.model == "Post"
        assert child.kind is EffectKind.CREATE
        assert child.operator == "create"
        assert child.via == "posts"
        assert child.changes["ownerId"] == effect.changes["id"]


def test_create_many_produces_batch_root(meta: ModelMeta) -> None:
    effect = walk("User", "createMany", {"data": [{"name": "foo"}, {"name": "bar"}]}, meta)

    assert effect.batch
    assert effect.changes == {}
    assert [child.changes["name"] for child in effect.children] == ["foo", "bar"]
    assert effect.children[0].changes["id"] != effect.children[1].changes["id"]


def test_update_is_keyed_by_identifier(meta: ModelMeta) -> None:
    effect = walk("User", "update", {"where": {"id": "1"}, "data": {"name": "bar"}}, meta)

    assert effect.kind is EffectKind.UPDATE
    assert effect.identifier == {"id": "1"}
    assert effect.changes == {"name": "bar"}


def test_update_many_keeps_filter(meta: ModelMeta) -> None:
    effect = walk("Post", "updateMany", {"where": {"title": {"startsWith": "draft"}}, "data": {"views": 0}}, meta)

    assert effect.identifier is None
    assert effect.where == {"title": {"startsWith": "draft"}}
    assert effect.has_target


def test_compound_identifier_is_extracted() -> None:
    meta = parse_model_meta(
        {"models": {"Membership": {"id_fields": ["orgId", "userId"], "fields": {"orgId": {}, "userId": {}, "role": {}}}}}
    )

    effect = walk(
        "Membership",
        "update",
        {"where": {"orgId_userId": {"orgId": "o1", "userId": "u1"}}, "data": {"role": "admin"}},
        meta,
    )

    assert effect.identifier == {"orgId": "o1", "userId": "u1"}


@pytest.mark.parametrize(
    ("operator", "expected_fk"),
    [("connect", "u1"), ("disconnect", None)],
    ids=["connect", "disconnect"],
)
def test_connect_and_disconnect_on_child_side(meta: ModelMeta, operator: str, expected_fk: Any) -> None:
    payload = {"where": {"id": "u1"}, "data": {"posts": {operator: [{"id": "p1"}, {"id": "p2"}]}}}

    effect = walk("User", "update", payload, meta)

    assert [child.identifier for child in effect.children] == [{"id": "p1"}, {"id": "p2"}]
    for child in effect.children:
        assert child.kind is EffectKind.UPDATE
        assert child.operator == operator
        assert child.changes == {"ownerId": expected_fk}


def test_disconnect_on_owning_side_clears_foreign_key(meta: ModelMeta) -> None:
    effect = walk("Post", "update", {"where": {"id": "p1"}, "data": {"owner": {"disconnect": True}}}, meta)

    assert effect.changes == {"ownerId": None}


def test_nested_update_and_delete(meta: ModelMeta) -> None:
    payload = {
        "where": {"id": "u1"},
        "data": {
            "posts": {
                "update": {"where": {"id": "p1"}, "data": {"title": "post2"}},
                "delete": {"id": "p2"},
            }
        },
    }

    effect = walk("User", "update", payload, meta)

    update, delete = effect.children
    assert (update.kind, update.identifier, update.changes) == (EffectKind.UPDATE, {"id": "p1"}, {"title": "post2"})
    assert (delete.kind, delete.identifier) == (EffectKind.DELETE, {"id": "p2"})


def test_nested_delete_many_is_scoped_to_parent(meta: ModelMeta) -> None:
    payload = {"where": {"id": "u1"}, "data": {"posts": {"deleteMany": {"title": "old"}}}}

    (child,) = walk("User", "update", payload, meta).children

    assert child.kind is EffectKind.DELETE
    assert child.where == {"title": "old", "ownerId": "u1"}


def test_nested_upsert_carries_both_branches(meta: ModelMeta) -> None:
    payload = {
        "where": {"id": "1"},
        "data": {
            "posts": {
                "upsert": {
                    "where": {"id": "p2"},
                    "create": {"id": "p2", "title": "post2"},
                    "update": {"title": "post3", "owner": {"connect": {"id": "2"}}},
                }
            }
        },
    }

    (child,) = walk("User", "update", payload, meta).children

    assert child.kind is EffectKind.UPSERT
    assert child.identifier == {"id": "p2"}
    assert child.create == {"id": "p2", "title": "post2", "ownerId": "1"}
    assert child.changes == {"title": "post3", "ownerId": "2"}


def test_connect_or_create_has_empty_update_branch(meta: ModelMeta) -> None:
    payload = {
        "where": {"id": "u1"},
        "data": {"posts": {"connectOrCreate": {"where": {"id": "p9"}, "create": {"id": "p9", "title": "t"}}}},
    }

    (child,) = walk("User", "update", payload, meta).children

    assert child.kind is EffectKind.UPSERT
    assert child.operator == "connectOrCreate"
    assert child.create == {"id": "p9", "title": "t", "ownerId": "u1"}
    assert child.changes == {"ownerId": "u1"}


def test_to_one_update_without_derivable_target(meta: ModelMeta) -> None:
    (child,) = walk("Post", "update", {"where": {"id": "p1"}, "data": {"owner": {"update": {"name": "n"}}}}, meta).children

    assert child.model == "User"
    assert child.changes == {"name": "n"}
    assert not child.has_target


def test_unknown_fields_and_operators_are_opaque(meta: ModelMeta) -> None:
    payload = {"where": {"id": "u1"}, "data": {"nickname": "z", "posts": {"frobnicate": {}}}}

    effect = walk("User", "update", payload, meta)

    assert effect.changes == {}
    assert effect.opaque == {"nickname": "z", "posts": {"frobnicate": {}}}
    assert effect.children == ()


def test_upsert_top_level(meta: ModelMeta) -> None:
    payload = {"where": {"id": "1"}, "create": {"id": "1", "name": "foo"}, "update": {"name": "bar"}}

    effect = walk("User", "upsert", payload, meta)

    assert effect.kind is EffectKind.UPSERT
    assert effect.identifier == {"id": "1"}
    assert effect.create == {"id": "1", "name": "foo"}
    assert effect.changes == {"name": "bar"}


@pytest.mark.parametrize(
    ("payload", "expected_where"),
    [(None, {}), ({}, {}), ({"where": {"name": "x"}}, {"name": "x"})],
    ids=["no_payload", "no_where", "filter"],
)
def test_delete_many_where(meta: ModelMeta, payload: Any, expected_where: dict[str, Any]) -> None:
    effect = walk("User", "deleteMany", payload, meta)

    assert effect.kind is EffectKind.DELETE
    assert effect.where == expected_where


@pytest.mark.parametrize(
    ("operation", "payload"),
    [
        ("create", {}),
        ("create", ["x"]),
        ("createMany", {"data": "x"}),
        ("update", {"data": {"name": "x"}}),
        ("upsert", {"where": {"id": "1"}, "create": {}}),
        ("delete", {}),
        ("aggregate", {}),
    ],
    ids=[
        "create_without_data",
        "payload_not_mapping",
        "create_many_bad_data",
        "update_without_where",
        "upsert_without_update",
        "delete_without_where",
        "unknown_operation",
    ],
)
def test_malformed_payloads_raise(meta: ModelMeta, operation: str, payload: Any) -> None:
    with pytest.raises(PayloadError):
        walk("User", operation, payload, meta)


def test_walk_descriptor(meta: ModelMeta) -> None:
    descriptor = MutationDescriptor(model="User", operation="delete", payload={"where": {"id": "1"}})

    assert walk_descriptor(descriptor, meta).identifier == {"id": "1"}


@pytest.mark.parametrize(
    ("model", "operation", "payload", "expected"),
    [
        ("Post", "update", {"where": {"id": "p1"}, "data": {"title": "t"}}, {"Post"}),
        ("User", "create", {"data": {"posts": {"create": {"title": "t"}}}}, {"User", "Post"}),
        ("User", "delete", {"where": {"id": "1"}}, {"User", "Post", "Comment"}),
        ("Tag", "deleteMany", None, {"Tag"}),
    ],
    ids=["plain_update", "nested_create", "cascade_delete", "no_cascade"],
)
def test_mutated_models(
    meta: ModelMeta, model: str, operation: str, payload: Any, expected: set[str]
) -> None:
    assert mutated_models(walk(model, operation, payload, meta), meta) == expected
