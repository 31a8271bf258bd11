"""Tests for $id scanning, allocation and alias resolution."""

import pytest

from gaea_mcp.errors import DanglingReferenceError, NotFoundError
from gaea_mcp.refs import (
    IdAllocator,
    build_ref_index,
    is_alias,
    iter_ids,
    iter_refs,
    new_allocator,
    resolve,
    scan_max_id,
)


TREE = {
    "$id": "1",
    "A": {"$id": "7", "Items": [{"$id": "3"}, {"$ref": "7"}]},
    "B": [[{"$id": "12", "Leaf": True}]],
    "C": {"$id": "note", "Value": 4},
}


def test_scan_max_id_finds_deepest():
    assert scan_max_id(TREE) == 12


def test_scan_max_id_ignores_non_numeric():
    assert scan_max_id({"$id": "abc", "x": {"$id": "2"}}) == 2


def test_scan_max_id_needs_plain_decimal_ids():
    tree = {"$id": "3", "a": {"$id": "1_000"}, "b": {"$id": " 12 "}, "c": {"$id": "+5"}, "d": {"$id": "\u00b2"}}
    assert scan_max_id(tree) == 3


def test_scan_max_id_empty_tree():
    assert scan_max_id({}) == 0
    assert scan_max_id([]) == 0
    assert scan_max_id("scalar") == 0


def test_allocator_hands_out_increasing_ids():
    alloc = IdAllocator(TREE)
    assert alloc.next_value == 13
    assert alloc() == "13"
    assert alloc.allocate() == "14"
    assert alloc.next_value == 15


def test_allocator_start_is_captured_once():
    tree = {"$id": "1"}
    alloc = new_allocator(tree)
    first = alloc()
    tree["child"] = {"$id": first}
    # A second allocator now sees the new id, the first one keeps counting
    assert new_allocator(tree)() == "3"
    assert alloc() == "3"


def test_is_alias():
    assert is_alias({"$ref": "4"})
    assert not is_alias({"$id": "4"})
    assert not is_alias("4")


def test_iter_ids_and_refs():
    assert sorted(iter_ids(TREE)) == sorted(["1", "7", "3", "12", "note"])
    assert list(iter_refs(TREE)) == ["7"]


def test_build_ref_index_first_declaration_wins():
    first = {"$id": "5", "n": 1}
    second = {"$id": "5", "n": 2}
    index = build_ref_index({"$id": "1", "a": first, "b": second})
    assert index["5"] is first


def test_resolve_follows_alias():
    index = build_ref_index(TREE)
    target = resolve({"$ref": "7"}, index)
    assert target is TREE["A"]


def test_resolve_passes_plain_values_through():
    index = build_ref_index(TREE)
    plain = {"X": 1}
    assert resolve(plain, index) is plain
    assert resolve(5, index) == 5


def test_resolve_dangling_alias_raises():
    index = build_ref_index(TREE)
    with pytest.raises(DanglingReferenceError):
        resolve({"$ref": "999"}, index)


def test_dangling_is_a_lookup_error():
    with pytest.raises(NotFoundError):
        resolve({"$ref": "999"}, {})
    with pytest.raises(LookupError):
        resolve({"$ref": "999"}, {})
