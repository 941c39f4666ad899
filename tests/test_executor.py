"""Tests for the transfer executor."""

import hashlib
import time
from pathlib import Path
from unittest.mock import Mock

import pytest

from pys3sync.exceptions import (
    ConflictError,
    LocalFileError,
    PartialBatchFailure,
    S3DeleteError,
    S3UploadError,
)
from pys3sync.models import (
    ActionKind,
    Batch,
    ItemStatus,
    RemoteObjectRecord,
    Rule,
    TransferItem,
)
from pys3sync.store.base import DeleteError, DeleteResult, ObjectStoreClient
from pys3sync.sync.differ import CompareDate, ContentDiffer
from pys3sync.sync.executor import TransferExecutor, slice_keys
from pys3sync.sync.operations import TransferOperations
from pys3sync.sync.options import TaskOptions
from pys3sync.sync.progress import TransferProgressEvent, TransferProgressTracker


def record(key: str, content: bytes = b"x", last_modified: float = 1000.0):
    return RemoteObjectRecord(
        key=key,
        fingerprint=hashlib.md5(content).hexdigest(),
        last_modified=last_modified,
        size=len(content),
    )


@pytest.fixture
def mock_operations():
    operations = Mock(spec=TransferOperations)
    operations.client = Mock(spec=ObjectStoreClient)
    operations.client.describe.side_effect = lambda key="": f"s3://bucket/{key}"
    return operations


@pytest.fixture
def mock_differ():
    differ = Mock(spec=ContentDiffer)
    differ.is_different.return_value = True
    return differ


@pytest.fixture
def local_files(tmp_path):
    paths = []
    for name in ("a.txt", "b.txt", "c.txt"):
        path = tmp_path / name
        path.write_text(name)
        paths.append(path)
    return paths


def upload_batch(paths, differential=False) -> Batch:
    items = [
        TransferItem(key=f"dest/{p.name}", local_path=p, differential=differential)
        for p in paths
    ]
    return Batch(kind=ActionKind.UPLOAD, items=items)


class TestSliceKeys:
    """Tests for slice_keys function."""

    def test_slices_of_at_most_1000(self):
        keys = [f"k{i:04d}" for i in range(2500)]
        slices = slice_keys(keys)
        assert [len(s) for s in slices] == [1000, 1000, 500]
        assert slices[1][0] == "k1000"

    def test_exact_multiple(self):
        assert [len(s) for s in slice_keys(["k"] * 2000)] == [1000, 1000]

    def test_empty(self):
        assert slice_keys([]) == []


class TestRunUpload:
    """Test upload batches."""

    def test_uploads_all_items(self, mock_operations, local_files):
        executor = TransferExecutor(mock_operations, options=TaskOptions(concurrency=3))

        result = executor.run_upload(upload_batch(local_files))

        assert result.ok
        assert result.transferred == 3
        assert mock_operations.upload.call_count == 3
        assert result.changed_keys == ["dest/a.txt", "dest/b.txt", "dest/c.txt"]

    def test_differential_skip(self, mock_operations, mock_differ, local_files):
        """Test that unchanged files are skipped and not uploaded."""
        mock_differ.is_different.return_value = False
        batch = upload_batch(local_files[:1], differential=True)
        index = {"dest/a.txt": record("dest/a.txt")}
        executor = TransferExecutor(mock_operations, mock_differ)

        result = executor.run_upload(batch, index)

        assert result.skipped == 1
        assert result.transferred == 0
        assert batch.items[0].need_transfer is False
        mock_operations.upload.assert_not_called()
        mock_differ.is_different.assert_called_once_with(
            local_files[0], index["dest/a.txt"].fingerprint, 1000.0, CompareDate.NEWER
        )

    def test_differential_without_prior_object_uploads(
        self, mock_operations, mock_differ, local_files
    ):
        executor = TransferExecutor(mock_operations, mock_differ)

        result = executor.run_upload(upload_batch(local_files[:1], differential=True), {})

        assert result.transferred == 1
        mock_differ.is_different.assert_not_called()

    def test_non_differential_ignores_index(self, mock_operations, mock_differ, local_files):
        executor = TransferExecutor(mock_operations, mock_differ)
        index = {"dest/a.txt": record("dest/a.txt")}

        result = executor.run_upload(upload_batch(local_files[:1]), index)

        assert result.transferred == 1
        mock_differ.is_different.assert_not_called()

    def test_overwrite_disabled_conflict(self, mock_operations, local_files):
        executor = TransferExecutor(mock_operations, options=TaskOptions(overwrite=False))
        index = {"dest/a.txt": record("dest/a.txt")}

        result = executor.run_upload(upload_batch(local_files[:1]), index)

        assert isinstance(result.error, ConflictError)
        assert result.failed == 1
        mock_operations.upload.assert_not_called()

    def test_first_failure_stops_the_batch(self, mock_operations, local_files):
        """Test that queued items are not started after a failure."""

        def upload(item):
            if item.key == "dest/a.txt":
                raise S3UploadError("boom", item.key)
            time.sleep(0.2)

        mock_operations.upload.side_effect = upload
        executor = TransferExecutor(mock_operations, options=TaskOptions(concurrency=1))

        result = executor.run_upload(upload_batch(local_files))

        assert isinstance(result.error, S3UploadError)
        assert result.failed == 1
        assert mock_operations.upload.call_count < 3
        assert "dest/c.txt" not in [o.key for o in result.outcomes]

    def test_dry_run_makes_no_calls(self, mock_operations, local_files):
        executor = TransferExecutor(mock_operations, options=TaskOptions(debug=True))

        result = executor.run_upload(upload_batch(local_files))

        assert result.transferred == 3
        assert result.changed_keys == []
        mock_operations.upload.assert_not_called()

    def test_progress_events(self, mock_operations, local_files):
        events = []
        tracker = TransferProgressTracker(callback=events.append)
        executor = TransferExecutor(mock_operations, tracker=tracker)

        executor.run_upload(upload_batch(local_files[:2]))

        kinds = [e.event for e in events]
        assert kinds[0] == TransferProgressEvent.BATCH_START
        assert kinds[-1] == TransferProgressEvent.BATCH_COMPLETE
        assert kinds.count(TransferProgressEvent.ITEM_COMPLETE) == 2
        assert events[-1].items_transferred == 2
        assert events[-1].bytes_transferred == len("a.txt") + len("b.txt")


class TestRunDownload:
    """Test download batches."""

    def test_local_paths_follow_relative_keys(self, mock_operations, tmp_path):
        records = {
            "data/a.txt": record("data/a.txt"),
            "data/sub/b.txt": record("data/sub/b.txt"),
            "data/dir/": record("data/dir/"),
        }
        rule = Rule(action=ActionKind.DOWNLOAD, dest="data/", cwd=str(tmp_path))

        result = TransferExecutor(mock_operations).run_download(rule, records)

        assert result.transferred == 2
        targets = sorted(c.args[1] for c in mock_operations.download.call_args_list)
        assert targets == [tmp_path / "a.txt", tmp_path / "sub" / "b.txt"]

    def test_exclusion(self, mock_operations, tmp_path):
        records = {"data/a.log": record("data/a.log"), "data/b.txt": record("data/b.txt")}
        rule = Rule(
            action=ActionKind.DOWNLOAD, dest="data/", cwd=str(tmp_path), exclude="**/*.log"
        )

        result = TransferExecutor(mock_operations).run_download(rule, records)

        assert result.excluded == 1
        assert result.transferred == 1
        mock_operations.download.assert_called_once()
        assert mock_operations.download.call_args.args[0] == "data/b.txt"

    def test_flipped_exclusion(self, mock_operations, tmp_path):
        records = {"data/a.log": record("data/a.log"), "data/b.txt": record("data/b.txt")}
        rule = Rule(
            action=ActionKind.DOWNLOAD,
            dest="data/",
            cwd=str(tmp_path),
            exclude="**/*.log",
            flip_exclude=True,
        )

        result = TransferExecutor(mock_operations).run_download(rule, records)

        assert result.excluded == 1
        assert mock_operations.download.call_args.args[0] == "data/a.log"

    def test_differential_skips_identical_local_file(self, mock_operations, tmp_path):
        (tmp_path / "a.txt").write_bytes(b"same")
        records = {
            "data/a.txt": record("data/a.txt", b"same"),
            "data/b.txt": record("data/b.txt", b"new"),
        }
        rule = Rule(
            action=ActionKind.DOWNLOAD, dest="data/", cwd=str(tmp_path), differential=True
        )

        result = TransferExecutor(mock_operations, ContentDiffer()).run_download(
            rule, records
        )

        assert result.skipped == 1
        assert result.transferred == 1
        assert mock_operations.download.call_args.args[0] == "data/b.txt"

    @pytest.mark.parametrize("key", ["data/d/../../evil.txt", "/etc/evil.txt"])
    def test_key_escaping_cwd_fails(self, mock_operations, tmp_path, key):
        out = tmp_path / "out"
        prefix = "data/" if key.startswith("data/") else ""
        rule = Rule(action=ActionKind.DOWNLOAD, dest=prefix or "/", cwd=str(out))

        result = TransferExecutor(mock_operations).run_download(rule, {key: record(key)})

        assert isinstance(result.error, LocalFileError)
        assert result.failed == 1
        assert result.outcomes[0].key == key
        mock_operations.download.assert_not_called()

    def test_dotted_names_inside_cwd_are_allowed(self, mock_operations, tmp_path):
        rule = Rule(action=ActionKind.DOWNLOAD, dest="data/", cwd=str(tmp_path))

        result = TransferExecutor(mock_operations).run_download(
            rule, {"data/a/../b..txt": record("data/a/../b..txt")}
        )

        assert result.error is None
        assert result.transferred == 1

    def test_download_changes_no_keys(self, mock_operations, tmp_path):
        rule = Rule(action=ActionKind.DOWNLOAD, dest="data/", cwd=str(tmp_path))
        result = TransferExecutor(mock_operations).run_download(
            rule, {"data/a.txt": record("data/a.txt")}
        )
        assert result.changed_keys == []
        assert result.mutated_store is False


class TestRunCopy:
    """Test copy batches."""

    def test_destination_keys(self, mock_operations):
        records = {"src/a.txt": record("src/a.txt"), "src/sub/b.txt": record("src/sub/b.txt")}
        rule = Rule(action=ActionKind.COPY, dest="backup/", src=("src/",))

        result = TransferExecutor(mock_operations, options=TaskOptions(access=None)).run_copy(
            rule, records
        )

        assert result.changed_keys == ["backup/a.txt", "backup/sub/b.txt"]
        mock_operations.copy.assert_any_call("src/a.txt", "backup/a.txt", {})

    def test_differential_copy_skips_same_fingerprint(self, mock_operations):
        records = {"src/a.txt": record("src/a.txt", b"1"), "src/b.txt": record("src/b.txt", b"2")}
        dest_index = {
            "backup/a.txt": record("backup/a.txt", b"1"),
            "backup/b.txt": record("backup/b.txt", b"old"),
        }
        rule = Rule(action=ActionKind.COPY, dest="backup/", src=("src/",), differential=True)

        result = TransferExecutor(mock_operations).run_copy(rule, records, dest_index)

        assert result.skipped == 1
        assert result.changed_keys == ["backup/b.txt"]


class TestRunDelete:
    """Test delete batches."""

    def test_deletes_everything_listed(self, mock_operations):
        mock_operations.delete_keys.side_effect = lambda keys: DeleteResult(deleted=keys)
        records = {k: record(k) for k in ("old/a", "old/b", "old/dir/")}
        rule = Rule(action=ActionKind.DELETE, dest="old/")

        result = TransferExecutor(mock_operations).run_delete(rule, records)

        assert result.ok
        assert result.transferred == 3
        mock_operations.delete_keys.assert_called_once_with(["old/a", "old/b", "old/dir/"])

    def test_empty_listing_is_nothing_to_do(self, mock_operations):
        rule = Rule(action=ActionKind.DELETE, dest="old/")
        result = TransferExecutor(mock_operations).run_delete(rule, {})
        assert result.ok
        assert result.total == 0
        mock_operations.delete_keys.assert_not_called()

    def test_partial_batch_failure(self, mock_operations):
        """Test that 2500 keys go out in three requests and a failed one is reported."""
        keys = [f"big/k{i:04d}" for i in range(2500)]

        def delete_keys(keys_slice):
            assert len(keys_slice) <= 1000
            if keys_slice[0] == "big/k1000":
                raise S3DeleteError("slice failed", keys_slice[0])
            return DeleteResult(deleted=list(keys_slice))

        mock_operations.delete_keys.side_effect = delete_keys
        rule = Rule(action=ActionKind.DELETE, dest="big/")

        result = TransferExecutor(mock_operations).run_delete(
            rule, {k: record(k) for k in keys}
        )

        assert mock_operations.delete_keys.call_count == 3
        assert isinstance(result.error, PartialBatchFailure)
        assert len(result.error.deleted) == 1500
        assert result.error.failed == keys[1000:2000]
        assert len(result.error.errors) == 1
        assert result.transferred == 1500
        assert result.failed == 1000

    def test_per_key_errors(self, mock_operations):
        mock_operations.delete_keys.return_value = DeleteResult(
            deleted=["old/a"],
            errors=[DeleteError(key="old/b", code="AccessDenied", message="denied")],
        )
        rule = Rule(action=ActionKind.DELETE, dest="old/")

        result = TransferExecutor(mock_operations).run_delete(
            rule, {"old/a": record("old/a"), "old/b": record("old/b")}
        )

        assert isinstance(result.error, PartialBatchFailure)
        assert result.error.failed == ["old/b"]
        assert result.transferred == 1

    def test_exclusion_and_local_keys(self, mock_operations):
        """Test that excluded objects and objects present locally are kept."""
        mock_operations.delete_keys.side_effect = lambda keys: DeleteResult(deleted=keys)
        records = {k: record(k) for k in ("tmp/a.log", "tmp/b.txt", "tmp/c.txt")}
        rule = Rule(action=ActionKind.DELETE, dest="tmp/", exclude="**/*.log", cwd="local")

        result = TransferExecutor(mock_operations).run_delete(
            rule, records, local_keys={"b.txt"}
        )

        assert result.excluded == 1
        assert result.skipped == 1
        mock_operations.delete_keys.assert_called_once_with(["tmp/c.txt"])

    def test_dry_run_deletes_nothing(self, mock_operations):
        rule = Rule(action=ActionKind.DELETE, dest="old/")
        result = TransferExecutor(mock_operations, options=TaskOptions(debug=True)).run_delete(
            rule, {"old/a": record("old/a")}
        )
        assert result.transferred == 1
        assert result.mutated_store is False
        mock_operations.delete_keys.assert_not_called()


class TestExecutorWithLocalPaths:
    """Keep download targets as Path objects."""

    def test_outcome_local_path(self, mock_operations, tmp_path):
        rule = Rule(action=ActionKind.DOWNLOAD, dest="data/a.txt", cwd=str(tmp_path))
        result = TransferExecutor(mock_operations).run_download(
            rule, {"data/a.txt": record("data/a.txt")}
        )
        assert result.outcomes[0].local_path == Path(tmp_path) / "a.txt"
