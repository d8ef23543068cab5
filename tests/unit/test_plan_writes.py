"""
Unit tests for membership write planning.

Tests cover:
- Per-event-kind policy (INSERT, MODIFY, REMOVE)
- Set semantics with repeated and reordered memberships
- Insert/Remove as degenerate Modify cases
- Business skips (missing images)
"""

import pytest

from pipeline.membership_indexer.index.base import DeleteIndex, IndexKey, PutIndex
from pipeline.membership_indexer.reconcile.reconciler import plan_writes
from pipeline.membership_indexer.stream.types import ChangeRecord, EntitySnapshot, EventKind


def _snap(orgs, pk="USER#123"):
    return EntitySnapshot(primary_id=pk, sort_key="METADATA", memberships=list(orgs))


def _change(kind, before=None, after=None, pk="USER#123"):
    return ChangeRecord(
        event_kind=kind,
        before=_snap(before, pk) if before is not None else None,
        after=_snap(after, pk) if after is not None else None,
    )


def _split(ops):
    deletes = {op.key.primary_id for op in ops if isinstance(op, DeleteIndex)}
    puts = {op.key.primary_id for op in ops if isinstance(op, PutIndex)}
    return deletes, puts


def _orgs(*ids):
    return {f"ORGANIZATION#{i}" for i in ids}


class TestPlanWrites:
    """Tests for plan_writes."""

    def test_modify_example(self):
        """org1 removed, org3 added, nothing for org2."""
        ops = plan_writes(_change(EventKind.MODIFY, ["org1", "org2"], ["org2", "org3"]))

        assert ops == [
            DeleteIndex(IndexKey("ORGANIZATION#org1", "MEMBERSHIP#123")),
            PutIndex(IndexKey("ORGANIZATION#org3", "MEMBERSHIP#123")),
        ]

    def test_insert_puts_all(self):
        ops = plan_writes(_change(EventKind.INSERT, after=["org1", "org2"]))

        assert all(isinstance(op, PutIndex) for op in ops)
        assert _split(ops) == (set(), _orgs("org1", "org2"))

    def test_remove_deletes_all(self):
        ops = plan_writes(_change(EventKind.REMOVE, before=["org1", "org2"]))

        assert all(isinstance(op, DeleteIndex) for op in ops)
        assert _split(ops) == (_orgs("org1", "org2"), set())

    def test_insert_ignores_before(self):
        ops = plan_writes(_change(EventKind.INSERT, before=["old"], after=["new"]))
        assert _split(ops) == (set(), _orgs("new"))

    def test_remove_uses_before_when_both_present(self):
        """Before is authoritative for REMOVE."""
        ops = plan_writes(_change(EventKind.REMOVE, before=["org1"], after=["org2"]))
        assert _split(ops) == (_orgs("org1"), set())

    def test_duplicate_insert_yields_one_target(self):
        ops = plan_writes(_change(EventKind.INSERT, after=["orgA", "orgA"]))
        assert ops == [PutIndex(IndexKey("ORGANIZATION#orgA", "MEMBERSHIP#123"))]

    @pytest.mark.parametrize(
        "before,after",
        [
            (["a", "b", "c"], ["c", "b", "a"]),
            (["a", "a", "b"], ["b", "a"]),
            ([], []),
            (["x"], ["x", "x", "x"]),
        ],
    )
    def test_modify_same_set_writes_nothing(self, before, after):
        """Reordering or repeating entries produces no writes."""
        assert plan_writes(_change(EventKind.MODIFY, before, after)) == []

    @pytest.mark.parametrize(
        "before,after",
        [
            (["a", "b", "b", "c"], ["c", "d", "d"]),
            (["a"], []),
            ([], ["a", "b"]),
            (["a", "b"], ["c", "d"]),
            (["a", "a"], ["a", "b", "b"]),
        ],
    )
    def test_modify_is_set_difference(self, before, after):
        """delete-set == B - A and put-set == A - B, without duplicates."""
        ops = plan_writes(_change(EventKind.MODIFY, before, after))
        deletes, puts = _split(ops)

        assert deletes == _orgs(*(set(before) - set(after)))
        assert puts == _orgs(*(set(after) - set(before)))
        assert len(ops) == len(deletes) + len(puts)

    @pytest.mark.parametrize("orgs", [["a"], ["a", "b", "a"], []])
    def test_insert_is_modify_from_empty(self, orgs):
        insert = plan_writes(_change(EventKind.INSERT, after=orgs))
        modify = plan_writes(_change(EventKind.MODIFY, before=[], after=orgs))
        assert insert == modify

    @pytest.mark.parametrize("orgs", [["a"], ["a", "b", "a"], []])
    def test_remove_is_modify_to_empty(self, orgs):
        remove = plan_writes(_change(EventKind.REMOVE, before=orgs))
        modify = plan_writes(_change(EventKind.MODIFY, before=orgs, after=[]))
        assert remove == modify

    def test_deletes_before_puts(self):
        ops = plan_writes(_change(EventKind.MODIFY, ["a", "b"], ["c", "d"]))
        kinds = [type(op) for op in ops]
        assert kinds == [DeleteIndex, DeleteIndex, PutIndex, PutIndex]

    def test_remove_without_before_is_skipped(self):
        assert plan_writes(_change(EventKind.REMOVE)) == []

    def test_insert_without_after_is_skipped(self):
        assert plan_writes(_change(EventKind.INSERT, before=["a"])) == []

    def test_modify_without_after_is_skipped(self):
        assert plan_writes(_change(EventKind.MODIFY, before=["a"])) == []

    def test_modify_without_before_puts_all(self):
        """A MODIFY missing its old image treats the old list as empty."""
        ops = plan_writes(_change(EventKind.MODIFY, after=["a", "b"]))
        assert _split(ops) == (set(), _orgs("a", "b"))

    def test_sort_key_uses_local_id(self):
        ops = plan_writes(_change(EventKind.INSERT, after=["o"], pk="USER123"))
        assert ops[0].key.sort_key == "MEMBERSHIP#USER123"

    def test_custom_target_type(self):
        ops = plan_writes(_change(EventKind.INSERT, after=["t1"]), target_type="TEAM")
        assert ops[0].key.primary_id == "TEAM#t1"
