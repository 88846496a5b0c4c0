"""Unit tests for ResourceInventory, ResourceState and validation helpers."""

import pytest

from converge.protocols import (
    ResourceInventory,
    ResourceState,
    ValidationError,
    concat_validation_errors,
)


class TestResourceInventory:

    def test_get_miss_returns_none(self):
        inventory = ResourceInventory()
        assert inventory.get("missing") is None
        assert "missing" not in inventory
        assert len(inventory) == 0

    def test_add_and_get(self):
        inventory = ResourceInventory()
        state = ResourceState(current={"a": 1})
        inventory.add("t1", state)
        assert inventory.get("t1") is state
        assert "t1" in inventory
        assert list(inventory) == ["t1"]

    def test_add_replaces_existing_target(self):
        inventory = ResourceInventory()
        inventory.add("t1", ResourceState(current=1))
        inventory.add("t1", ResourceState(current=2))
        assert len(inventory) == 1
        assert inventory.get("t1").current == 2

    def test_ensure_registers_once(self):
        inventory = ResourceInventory()
        first = inventory.ensure("t1")
        first.desired = "x"
        second = inventory.ensure("t1")
        assert first is second
        assert inventory.get("t1").desired == "x"

    def test_orphans_are_current_without_desired(self):
        inventory = ResourceInventory()
        inventory.add("orphan", ResourceState(current="c"))
        inventory.add("new", ResourceState(desired="d"))
        inventory.add("both", ResourceState(current="c", desired="d"))
        assert inventory.orphans() == ["orphan"]
        assert inventory.get("orphan").is_orphan
        assert inventory.get("new").is_new
        assert not inventory.get("both").is_orphan
        assert not inventory.get("both").is_new

    def test_items_tolerates_mutation_during_iteration(self):
        inventory = ResourceInventory()
        inventory.add("a", ResourceState(current=1))
        for target, _ in inventory.items():
            inventory.ensure(target + "-copy")
        assert sorted(inventory) == ["a", "a-copy"]

    def test_repr_lists_targets(self):
        inventory = ResourceInventory()
        inventory.add("b", ResourceState())
        inventory.add("a", ResourceState())
        assert repr(inventory) == "ResourceInventory(targets=['a', 'b'])"


class TestValidationErrors:

    def test_concat_keeps_both_lists(self):
        a = [ValidationError("p1", "v", "e1")]
        b = [ValidationError("p2", "v", "e2"), ValidationError("p3", "v", "e3")]
        merged = concat_validation_errors(a, b)
        assert [e.path for e in merged] == ["p1", "p2", "p3"]
        assert len(a) == 1
        assert len(b) == 2

    def test_validation_error_is_immutable(self):
        error = ValidationError("p", "v", "e")
        with pytest.raises(AttributeError):
            error.path = "other"

    def test_to_dict(self):
        assert ValidationError("p", "v", "e").to_dict() == {
            "path": "p",
            "validation": "v",
            "error": "e",
        }
