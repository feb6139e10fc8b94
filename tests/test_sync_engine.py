"""Tests for themesync.sync: snapshots, blob transfer and the publish engine."""

import logging

import pytest

from themesync.errors import BranchNotFound, ConflictError, ObjectStoreError
from themesync.github.models import TreeEntry
from themesync.sync.blobs import BlobTransfer
from themesync.sync.engine import TreeSyncEngine, plan_sync, sync_commit_message
from themesync.sync.models import BranchSnapshot, SyncPlan, SyncStatus
from themesync.sync.scope import SyncScope
from themesync.sync.snapshot import read_branch_snapshot
from themesync.throttle import BatchPolicy


def _snapshot(branch, files):
    return BranchSnapshot(
        branch=branch,
        commit_sha=f"{branch}-commit",
        tree_sha=f"{branch}-tree",
        entries={
            path: TreeEntry(path=path, mode="100644", sha=sha) for path, sha in files.items()
        },
    )


@pytest.fixture
def engine(store, sleeper):
    return TreeSyncEngine(store, sleep=sleeper, label="acme/shop")


# ── read_branch_snapshot ────────────────────────────────────────────


class TestReadBranchSnapshot:
    async def test_reads_head_and_blobs(self, store):
        head = store.seed("production", {"sections/a.liquid": "A", "README.md": "hi"})
        snap = await read_branch_snapshot(store, "production")
        assert snap.branch == "production"
        assert snap.commit_sha == head
        assert snap.tree_sha == store.commits[head].tree_sha
        assert set(snap.entries) == {"sections/a.liquid", "README.md"}

    async def test_drops_subtree_entries(self, store):
        store.seed("production", {"sections/a.liquid": "A"})
        tree_sha = store.commits[store.refs["production"]].tree_sha
        store.trees[tree_sha]["sections"] = TreeEntry(
            path="sections", mode="040000", type="tree", sha="d" * 40
        )
        snap = await read_branch_snapshot(store, "production")
        assert set(snap.entries) == {"sections/a.liquid"}

    async def test_missing_branch_raises(self, store):
        with pytest.raises(BranchNotFound) as exc_info:
            await read_branch_snapshot(store, "nope")
        assert exc_info.value.branch == "nope"


# ── BlobTransfer ────────────────────────────────────────────────────


class TestBlobTransfer:
    async def test_known_sha_makes_no_calls(self, store):
        transfer = BlobTransfer(store, store, {"abc"})
        assert await transfer.ensure_blob("abc", "sections/a.liquid") == "abc"
        assert sum(store.calls.values()) == 0
        assert transfer.uploads == 0

    async def test_copies_between_stores(self, make_store):
        source, destination = make_store(), make_store()
        source.seed("sgc-production", {"sections/a.liquid": "hello"})
        sha = next(iter(source.trees[source.commits[source.refs["sgc-production"]].tree_sha]
                        .values())).sha

        transfer = BlobTransfer(source, destination, set())
        new_sha = await transfer.ensure_blob(sha, "sections/a.liquid")

        assert new_sha == sha
        assert destination.blobs[new_sha] == b"hello"
        assert source.calls["get_blob"] == 1
        assert destination.calls["create_blob"] == 1

    async def test_same_blob_uploaded_once(self, make_store):
        source, destination = make_store(), make_store()
        source.seed("b", {"assets/a.css": "same", "assets/b.css": "same"})
        sha = source.trees[source.commits[source.refs["b"]].tree_sha]["assets/a.css"].sha

        transfer = BlobTransfer(source, destination)
        await transfer.ensure_blob(sha, "assets/a.css")
        await transfer.ensure_blob(sha, "assets/b.css")

        assert destination.calls["create_blob"] == 1
        assert transfer.uploads == 1
        assert transfer.is_known(sha)


# ── plan_sync ───────────────────────────────────────────────────────


class TestPlanSync:
    def test_classifies_add_update_and_skips_equal(self):
        source = _snapshot("src", {"sections/a": "1", "sections/b": "2", "sections/c": "3"})
        dest = _snapshot("dst", {"sections/a": "1", "sections/b": "X"})
        plan = plan_sync(source, dest, SyncScope())
        assert [(c.path, c.action) for c in plan.changes] == [
            ("sections/b", "update"),
            ("sections/c", "add"),
        ]

    def test_out_of_scope_paths_ignored_both_ways(self):
        source = _snapshot("src", {"README.md": "1"})
        dest = _snapshot("dst", {"package.json": "2"})
        plan = plan_sync(source, dest, SyncScope(), allow_deletes=True)
        assert plan.is_empty

    def test_deletes_only_when_allowed(self):
        source = _snapshot("src", {})
        dest = _snapshot("dst", {"snippets/old.liquid": "9"})
        assert plan_sync(source, dest, SyncScope()).is_empty
        plan = plan_sync(source, dest, SyncScope(), allow_deletes=True)
        assert [(c.path, c.action, c.mode) for c in plan.changes] == [
            ("snippets/old.liquid", "delete", "100644"),
        ]

    def test_delete_keeps_destination_mode(self):
        source = _snapshot("src", {})
        dest = BranchSnapshot(
            branch="dst",
            commit_sha="dst-commit",
            tree_sha="dst-tree",
            entries={
                "assets/run.sh": TreeEntry(path="assets/run.sh", mode="100755", sha="1"),
                "snippets/link.liquid": TreeEntry(
                    path="snippets/link.liquid", mode="120000", sha="2"
                ),
            },
        )
        plan = plan_sync(source, dest, SyncScope(), allow_deletes=True)
        assert [(c.path, c.mode) for c in plan.changes] == [
            ("assets/run.sh", "100755"),
            ("snippets/link.liquid", "120000"),
        ]

    def test_json_hidden_by_scope_is_never_deleted(self):
        # deletion uses the same scope as the source side
        source = _snapshot("src", {"sections/a": "1"})
        dest = _snapshot("dst", {"sections/a": "1", "templates/index.json": "5"})
        plan = plan_sync(source, dest, SyncScope(exclude_json=True), allow_deletes=True)
        assert plan.is_empty

    def test_commit_message_lists_nonzero_counts(self):
        source = _snapshot("sgc-production", {"sections/a": "1", "sections/b": "2"})
        dest = _snapshot("production", {"sections/b": "X", "sections/z": "9"})
        plan = plan_sync(source, dest, SyncScope(), allow_deletes=True)
        assert sync_commit_message(plan) == (
            "Sync files from sgc-production (1 added, 1 updated, 1 deleted)"
        )
        only_added = SyncPlan(source="staging", destination="x", changes=plan.changes[:1])
        assert sync_commit_message(only_added) == "Sync files from staging (1 added)"


# ── TreeSyncEngine.sync_branch ──────────────────────────────────────


class TestSyncBranch:
    async def test_add_update_delete_scenario(self, store, engine):
        store.seed("production", {
            "sections/header.liquid": "old header",
            "snippets/legacy.liquid": "legacy",
            "README.md": "docs",
        })
        base = store.refs["production"]
        store.seed("sgc-production", {
            "sections/header.liquid": "new header",
            "sections/footer.liquid": "footer",
            "README.md": "docs",
        }, message="Update from Shopify")

        result = await engine.sync_branch(
            "sgc-production", "production", SyncScope(), allow_deletes=True
        )

        assert result.status is SyncStatus.committed
        assert (result.added, result.updated, result.deleted) == (1, 1, 1)
        assert store.files("production") == {
            "sections/header.liquid": "new header",
            "sections/footer.liquid": "footer",
            "README.md": "docs",
        }
        commit = store.commits[store.refs["production"]]
        assert commit.sha == result.commit_sha
        assert commit.parents == [base]
        assert commit.message == "Sync files from sgc-production (1 added, 1 updated, 1 deleted)"

    async def test_second_run_is_noop(self, store, engine):
        store.seed("staging", {"sections/a.liquid": "A", "templates/index.json": "{}"})
        store.seed("sgc-staging", {"layout/theme.liquid": "L"})

        first = await engine.sync_branch("staging", "sgc-staging", SyncScope(exclude_json=True))
        assert first.status is SyncStatus.committed
        head = store.refs["sgc-staging"]
        writes = store.mutating_calls()

        second = await engine.sync_branch("staging", "sgc-staging", SyncScope(exclude_json=True))
        assert second.noop
        assert store.refs["sgc-staging"] == head
        assert store.mutating_calls() == writes

    async def test_no_deletes_when_not_allowed(self, store, engine):
        store.seed("production", {"sections/a.liquid": "A"})
        store.seed("sgc-production", {"sections/a.liquid": "A", "sections/extra.liquid": "E"})
        result = await engine.sync_branch("production", "sgc-production", SyncScope())
        assert result.noop
        assert "sections/extra.liquid" in store.files("sgc-production")

    async def test_json_excluded_except_schema(self, store, engine):
        store.seed("staging", {
            "templates/index.json": '{"a": 1}',
            "config/settings_schema.json": "[]",
            "sections/a.liquid": "A",
        })
        store.seed("sgc-staging", {"layout/theme.liquid": "L"})

        await engine.sync_branch("staging", "sgc-staging", SyncScope(exclude_json=True))

        files = store.files("sgc-staging")
        assert "config/settings_schema.json" in files
        assert "sections/a.liquid" in files
        assert "templates/index.json" not in files

    async def test_known_blobs_are_not_copied(self, store, engine):
        # Destination already holds the blob under another path
        store.seed("production", {"sections/a.liquid": "shared"})
        store.seed("sgc-production", {"snippets/copy.liquid": "shared"})
        await engine.sync_branch("production", "sgc-production", SyncScope())
        assert store.calls["get_blob"] == 0
        assert store.calls["create_blob"] == 0

    async def test_duplicate_contents_copied_once(self, store, engine):
        store.seed("production", {"assets/a.css": "x", "assets/b.css": "x", "assets/c.css": "y"})
        store.seed("sgc-production", {"layout/theme.liquid": "L"})
        result = await engine.sync_branch("production", "sgc-production", SyncScope())
        assert result.added == 3
        assert result.blobs_created == 2
        assert store.calls["create_blob"] == 2

    async def test_blob_copies_are_spaced(self, store, sleeper):
        engine = TreeSyncEngine(
            store, batch=BatchPolicy(batch_size=2), sleep=sleeper
        )
        store.seed("production", {f"assets/{i}.css": str(i) for i in range(3)})
        store.seed("sgc-production", {"layout/theme.liquid": "L"})
        await engine.sync_branch("production", "sgc-production", SyncScope())
        assert sleeper.delays == [0.075, 0.5]

    async def test_missing_destination_raises(self, store, engine):
        store.seed("production", {"sections/a.liquid": "A"})
        with pytest.raises(BranchNotFound):
            await engine.sync_branch("production", "sgc-production", SyncScope())

    async def test_dry_run_plan_writes_nothing(self, store, engine):
        store.seed("production", {"sections/a.liquid": "A"})
        store.seed("sgc-production", {"sections/b.liquid": "B"})
        plan = await engine.plan("production", "sgc-production", SyncScope(), allow_deletes=True)
        assert (plan.added, plan.deleted) == (1, 1)
        assert store.mutating_calls() == 0


class TestMergeFallback:
    @pytest.fixture
    def diverged(self, store):
        store.seed("production", {"sections/a.liquid": "A"})
        store.seed("sgc-production", {"sections/a.liquid": "A2"})
        return store

    async def test_conflict_on_ref_update_falls_back_to_merge(self, diverged, engine, caplog):
        diverged.fail_on["update_ref"] = ConflictError(
            "update production ref", Exception("Update is not a fast forward"), status=422
        )
        with caplog.at_level(logging.WARNING):
            result = await engine.sync_branch("sgc-production", "production", SyncScope())

        assert result.status is SyncStatus.merged
        assert diverged.calls["create_merge"] == 1
        merge = diverged.commits[diverged.refs["production"]]
        assert merge.message == "Merge sgc-production into production (fallback from file sync)"
        assert "falling back to merge" in caplog.text

    async def test_conflict_message_on_tree_creation(self, diverged, engine):
        diverged.fail_on["create_tree"] = ObjectStoreError(
            "create tree", Exception("Merge conflict"), status=400
        )
        result = await engine.sync_branch("sgc-production", "production", SyncScope())
        assert result.status is SyncStatus.merged

    async def test_failed_merge_reports_failure(self, diverged, engine, caplog):
        diverged.fail_on["create_commit"] = ConflictError("create commit", Exception("409"), 409)
        diverged.fail_on["create_merge"] = ConflictError("merge", Exception("Merge conflict"), 409)
        head = diverged.refs["production"]

        with caplog.at_level(logging.ERROR):
            result = await engine.sync_branch("sgc-production", "production", SyncScope())

        assert result.status is SyncStatus.failed
        assert "Merge conflict" in result.error
        assert diverged.refs["production"] == head
        assert "Merge fallback failed" in caplog.text
        assert "original error" in caplog.text

    async def test_transport_error_during_merge_reports_failure(self, diverged, engine, caplog):
        diverged.fail_on["update_ref"] = ConflictError(
            "update production ref", Exception("Update is not a fast forward"), status=422
        )
        diverged.fail_on["create_merge"] = ConnectionError("reset by peer")

        with caplog.at_level(logging.ERROR):
            result = await engine.sync_branch("sgc-production", "production", SyncScope())

        assert result.status is SyncStatus.failed
        assert result.error == "reset by peer"
        assert "reset by peer" in caplog.text
        assert "not a fast forward" in caplog.text

    async def test_merge_result_has_no_file_counts(self, diverged, engine):
        diverged.fail_on["update_ref"] = ConflictError(
            "update production ref", Exception("Update is not a fast forward"), status=422
        )
        result = await engine.sync_branch("sgc-production", "production", SyncScope())
        assert result.status is SyncStatus.merged
        assert (result.added, result.updated, result.deleted) == (0, 0, 0)
        assert result.commit_sha == diverged.refs["production"]

    async def test_nothing_to_merge_is_noop(self, store, engine):
        base = store.seed("sgc-production", {"sections/a.liquid": "A"})
        store.seed("production", {"sections/a.liquid": "A2"}, parent=base)
        head = store.refs["production"]
        store.fail_on["update_ref"] = ConflictError(
            "update production ref", Exception("Update is not a fast forward"), status=422
        )

        result = await engine.sync_branch("sgc-production", "production", SyncScope())

        assert result.status is SyncStatus.noop
        assert result.commit_sha is None
        assert store.calls["create_merge"] == 1
        assert store.refs["production"] == head

    async def test_other_errors_propagate(self, diverged, engine):
        diverged.fail_on["create_tree"] = ObjectStoreError(
            "create tree", Exception("Server Error"), status=500
        )
        with pytest.raises(ObjectStoreError):
            await engine.sync_branch("sgc-production", "production", SyncScope())
        assert diverged.calls["create_merge"] == 0
