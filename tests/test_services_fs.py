import errno
import os
import threading
from pathlib import Path

import pytest

from fakes import FakeRunner
from pyforge.errors import AlreadyExists, InvalidInput, IoError, NotFound, PermissionDenied, UndoNoHistory
from pyforge.infra.fs import LocalFs
from pyforge.patch.engine import PatchEngine
from pyforge.services.fs_find import FindRequest, FsFindService
from pyforge.services.fs_list import FsListService, ListRequest
from pyforge.services.fs_patch import FsPatchService, PatchRequest
from pyforge.services.fs_read import FsReadService, ReadRequest
from pyforge.services.fs_remove import FsRemoveService, RemoveRequest
from pyforge.services.fs_undo import FsUndoService, UndoRequest
from pyforge.services.fs_write import FsWriteService, WriteRequest
from pyforge.services.shell import ShellRequest, ShellService
from pyforge.undo.ledger import UndoLedger
from pyforge.util.fs import resolve_path


# ---- fs_read ----

def test_read_whole_file(fs, root):
    fs.put("a.txt", "one\ntwo\nthree\n")
    res = FsReadService(fs, root).execute(ReadRequest(path="a.txt"))
    assert res.content == "one\ntwo\nthree"
    assert (res.start_line, res.end_line, res.total_lines, res.truncated) == (1, 3, 3, False)


def test_read_range_is_clamped(fs, root):
    fs.put("a.txt", "1\n2\n3\n4\n")
    res = FsReadService(fs, root).execute(ReadRequest(path="a.txt", start_line=2, end_line=10))
    assert res.content == "2\n3\n4"
    assert res.end_line == 4


def test_read_truncates_to_limit(fs, root):
    fs.put("a.txt", "\n".join(str(i) for i in range(1, 11)))
    res = FsReadService(fs, root, max_read_lines=3).execute(ReadRequest(path="a.txt", start_line=2))
    assert res.content == "2\n3\n4"
    assert res.truncated


def test_read_empty_file(fs, root):
    fs.put("empty.txt", "")
    res = FsReadService(fs, root).execute(ReadRequest(path="empty.txt"))
    assert (res.content, res.start_line, res.end_line, res.total_lines) == ("", 0, 0, 0)


@pytest.mark.parametrize("start, end", [(0, None), (9, None), (9, 12)])
def test_read_bad_range(fs, root, start, end):
    fs.put("a.txt", "1\n2\n3\n")
    with pytest.raises(InvalidInput):
        FsReadService(fs, root).execute(ReadRequest(path="a.txt", start_line=start, end_line=end))


def test_read_reversed_range_is_swapped(fs, root):
    fs.put("a.txt", "1\n2\n3\n4\n")
    res = FsReadService(fs, root).execute(ReadRequest(path="a.txt", start_line=3, end_line=2))
    assert (res.content, res.start_line, res.end_line) == ("2\n3", 2, 3)


def test_read_counts_only_newline_separated_lines(fs, root):
    fs.put("a.txt", "a\u2028b\n\x0cc\r\nd\n")
    res = FsReadService(fs, root).execute(ReadRequest(path="a.txt"))
    assert res.total_lines == 3
    assert res.content == "a\u2028b\n\x0cc\nd"


def test_read_refuses_files_over_size_limit(fs, root):
    p = fs.put("big.txt", "0123456789")
    svc = FsReadService(fs, root, max_file_size=4)
    with pytest.raises(InvalidInput) as ei:
        svc.execute(ReadRequest(path="big.txt"))
    assert "10 bytes" in ei.value.message
    assert ("read_bytes", p) not in fs.calls
    fs.put("small.txt", "0123")
    assert svc.execute(ReadRequest(path="small.txt")).content == "0123"


def test_read_errors(fs, root):
    svc = FsReadService(fs, root)
    with pytest.raises(NotFound):
        svc.execute(ReadRequest(path="missing.txt"))
    fs.put("bin.dat", b"\x00\x01")
    with pytest.raises(IoError):
        svc.execute(ReadRequest(path="bin.dat"))
    with pytest.raises(PermissionDenied):
        svc.execute(ReadRequest(path="../etc/passwd"))


def test_read_request_validation():
    with pytest.raises(InvalidInput) as ei:
        ReadRequest.from_input({"path": "a.txt", "start_line": "2"})
    assert ei.value.details == {"field": "start_line"}
    with pytest.raises(InvalidInput):
        ReadRequest.from_input({})


# ---- fs_write ----

def test_write_creates_parents(fs, ledger, root):
    res = FsWriteService(fs, ledger, root).execute(WriteRequest(path="d/e/new.txt", content="hi"))
    assert fs.text("d/e/new.txt") == "hi"
    assert res.created
    assert res.bytes_written == 2
    assert res.path == "d/e/new.txt"
    (entry,) = ledger.history(root / "d/e/new.txt")
    assert entry.snapshot is None


def test_write_refuses_to_replace_without_overwrite(fs, ledger, root):
    fs.put("a.txt", "keep")
    with pytest.raises(AlreadyExists):
        FsWriteService(fs, ledger, root).execute(WriteRequest(path="a.txt", content="new"))
    assert fs.text("a.txt") == "keep"
    assert len(ledger) == 0


def test_write_overwrite(fs, ledger, root):
    fs.put("a.txt", "old")
    res = FsWriteService(fs, ledger, root).execute(WriteRequest(path="a.txt", content="new", overwrite=True))
    assert not res.created
    assert fs.text("a.txt") == "new"
    assert ledger.history(root / "a.txt")[0].snapshot == b"old"


def test_write_to_directory_rejected(fs, ledger, root):
    fs.create_dirs(root / "dir")
    with pytest.raises(InvalidInput):
        FsWriteService(fs, ledger, root).execute(WriteRequest(path="dir", content="x", overwrite=True))


def test_write_overwrite_returns_previous_content(fs, ledger, root):
    svc = FsWriteService(fs, ledger, root)
    assert svc.execute(WriteRequest(path="a.txt", content="old")).before is None
    res = svc.execute(WriteRequest(path="a.txt", content="new", overwrite=True))
    assert res.before == "old"


@pytest.mark.parametrize(
    "path, content, broken",
    [
        ("m.py", "def f(:\n    pass\n", True),
        ("m.py", "def f():\n    pass\n", False),
        ("d.json", "{\"a\": }", True),
        ("d.json", "{\"a\": 1}", False),
        ("c.yaml", "a: [1, 2\n", True),
        ("c.yml", "a: [1, 2]\n", False),
        ("notes.txt", "def f(:", False),
    ],
)
def test_write_reports_syntax_warning(fs, ledger, root, path, content, broken):
    res = FsWriteService(fs, ledger, root).execute(WriteRequest(path=path, content=content))
    assert fs.text(path) == content
    assert (res.warning is not None) == broken


def test_write_allows_empty_content():
    assert WriteRequest.from_input({"path": "a", "content": ""}).content == ""


# ---- fs_remove ----

def test_remove_then_undo(fs, ledger, root):
    fs.put("a.txt", "data")
    res = FsRemoveService(fs, ledger, root).execute(RemoveRequest(path="a.txt"))
    assert res.bytes_removed == 4
    assert fs.get("a.txt") is None
    undo = FsUndoService(fs, ledger, root).execute(UndoRequest(path="a.txt"))
    assert undo.operation == "remove"
    assert (undo.before_undo, undo.after_undo) == (None, "data")
    assert fs.text("a.txt") == "data"


def test_remove_missing_or_directory(fs, ledger, root):
    svc = FsRemoveService(fs, ledger, root)
    with pytest.raises(NotFound):
        svc.execute(RemoveRequest(path="nope.txt"))
    fs.create_dirs(root / "dir")
    with pytest.raises(InvalidInput):
        svc.execute(RemoveRequest(path="dir"))
    assert len(ledger) == 0


# ---- fs_undo ----

def test_undo_steps_back_one_operation_at_a_time(fs, ledger, root):
    write = FsWriteService(fs, ledger, root)
    undo = FsUndoService(fs, ledger, root)
    write.execute(WriteRequest(path="a.txt", content="v1"))
    write.execute(WriteRequest(path="a.txt", content="v2", overwrite=True))

    first = undo.execute(UndoRequest(path="a.txt"))
    assert (first.before_undo, first.after_undo, first.remaining) == ("v2", "v1", 1)
    second = undo.execute(UndoRequest(path="a.txt"))
    assert (second.before_undo, second.after_undo, second.remaining) == ("v1", None, 0)
    assert fs.get("a.txt") is None
    with pytest.raises(UndoNoHistory) as ei:
        undo.execute(UndoRequest(path="a.txt"))
    assert ei.value.path == "a.txt"


# ---- fs_find ----

@pytest.fixture
def tree(fs):
    fs.put("src/app.py", "import os\nprint('Hello')\n")
    fs.put("src/util.py", "def hello():\n    return 1\n")
    fs.put("README.md", "hello world\n")
    fs.put("node_modules/x.js", "hello\n")
    fs.put("img.bin", b"hello\x00")
    return fs


def test_find_regex_case_insensitive(tree, root):
    svc = FsFindService(tree, root, ignored_dirs=("node_modules",))
    res = svc.execute(FindRequest(regex="hello"))
    found = sorted((m.path, m.line_number) for m in res.matches)
    assert found == [("README.md", 1), ("src/app.py", 2), ("src/util.py", 1)]
    assert not res.truncated


def test_find_by_file_pattern(tree, root):
    svc = FsFindService(tree, root, ignored_dirs=("node_modules",))
    res = svc.execute(FindRequest(file_pattern="*.py"))
    assert sorted(m.path for m in res.matches) == ["src/app.py", "src/util.py"]
    assert all(m.line_number is None for m in res.matches)


def test_find_single_file_and_limit(tree, root):
    svc = FsFindService(tree, root, max_results=1)
    res = svc.execute(FindRequest(path="src/util.py", regex="."))
    assert len(res.matches) == 1
    assert res.truncated


def test_find_errors(tree, root):
    svc = FsFindService(tree, root)
    with pytest.raises(InvalidInput):
        svc.execute(FindRequest(regex="("))
    with pytest.raises(NotFound):
        svc.execute(FindRequest(path="nowhere", regex="x"))


def test_find_skips_files_over_size_limit(fs, root):
    fs.put("small.txt", "needle\n")
    big = fs.put("big.txt", "needle\n" + "x" * 100)
    res = FsFindService(fs, root, max_file_size=50).execute(FindRequest(regex="needle"))
    assert [m.path for m in res.matches] == ["small.txt"]
    assert ("read_bytes", big) not in fs.calls


def test_find_line_numbers_match_read(fs, root):
    fs.put("a.txt", "a\u2028b\n\x0cc\nneedle\n")
    (m,) = FsFindService(fs, root).execute(FindRequest(regex="needle")).matches
    assert m.line_number == 3
    line = FsReadService(fs, root).execute(ReadRequest(path="a.txt", start_line=3, end_line=3))
    assert line.content == "needle"


# ---- fs_list ----

def test_list_top_level(tree, root):
    res = FsListService(tree, root).execute(ListRequest())
    assert [(e.path, e.is_dir) for e in res.entries] == [
        ("node_modules", True),
        ("src", True),
        ("img.bin", False),
        ("README.md", False),
    ]


def test_list_recursive_skips_ignored(tree, root):
    res = FsListService(tree, root, ignored_dirs=("node_modules",)).execute(ListRequest(recursive=True))
    paths = [e.path for e in res.entries]
    assert "src/app.py" in paths
    assert not any(p.startswith("node_modules") for p in paths)


def test_list_limit_and_errors(tree, root):
    svc = FsListService(tree, root)
    res = svc.execute(ListRequest(max_entries=2))
    assert len(res.entries) == 2 and res.truncated
    with pytest.raises(NotFound):
        svc.execute(ListRequest(path="nowhere"))
    with pytest.raises(InvalidInput):
        svc.execute(ListRequest(path="README.md"))


# ---- real filesystem ----

def test_local_fs_round_trip(tmp_path: Path):
    fs = LocalFs()
    ledger = UndoLedger(fs)
    write = FsWriteService(fs, ledger, tmp_path)
    write.execute(WriteRequest(path="pkg/mod.py", content="x = 1\n"))
    write.execute(WriteRequest(path="pkg/mod.py", content="x = 2\n", overwrite=True))
    assert (tmp_path / "pkg/mod.py").read_text() == "x = 2\n"
    assert not [p for p in (tmp_path / "pkg").iterdir() if p.name.endswith(".tmp")]

    FsUndoService(fs, ledger, tmp_path).execute(UndoRequest(path="pkg/mod.py"))
    assert (tmp_path / "pkg/mod.py").read_text() == "x = 1\n"

    listing = FsListService(fs, tmp_path).execute(ListRequest(recursive=True))
    assert [(e.path, e.is_dir) for e in listing.entries] == [("pkg", True), ("pkg/mod.py", False)]

    FsRemoveService(fs, ledger, tmp_path).execute(RemoveRequest(path="pkg/mod.py"))
    assert not (tmp_path / "pkg/mod.py").exists()
    FsUndoService(fs, ledger, tmp_path).execute(UndoRequest(path="pkg/mod.py"))
    assert (tmp_path / "pkg/mod.py").read_text() == "x = 1\n"


# ---- snapshot failures and concurrency ----

class _UnreadableFs:
    """Delegates to the wrapped fs, but every read fails."""

    def __init__(self, fs):
        self._fs = fs

    def __getattr__(self, name):
        return getattr(self._fs, name)

    def read_bytes(self, path):
        raise PermissionError(errno.EACCES, "Permission denied", str(path))


def _mutate(tool, fs, ledger, root):
    if tool == "fs_write":
        return FsWriteService(fs, ledger, root).execute(WriteRequest(path="a.txt", content="new", overwrite=True))
    if tool == "fs_remove":
        return FsRemoveService(fs, ledger, root).execute(RemoveRequest(path="a.txt"))
    engine = PatchEngine(fs, ledger)
    return FsPatchService(engine, root).execute(PatchRequest(path="a.txt", patch="@@ -1 +1 @@\n-old\n+new\n"))


@pytest.mark.parametrize("tool", ["fs_write", "fs_remove", "fs_patch"])
def test_failed_snapshot_aborts_before_mutating(fs, root, tool):
    fs.put("a.txt", "old\n")
    ledger = UndoLedger(_UnreadableFs(fs))
    fs.calls.clear()
    with pytest.raises(PermissionDenied):
        _mutate(tool, fs, ledger, root)
    assert fs.mutating_calls() == []
    assert fs.text("a.txt") == "old\n"
    assert len(ledger) == 0


@pytest.mark.parametrize("tool", ["fs_write", "fs_remove", "fs_patch"])
def test_failed_mutation_keeps_snapshot_for_undo(fs, ledger, root, tool):
    fs.put("a.txt", "old\n")
    broken = OSError(errno.EIO, "I/O error")
    if tool == "fs_remove":
        def failing_remove(path):
            raise broken
        fs.remove = failing_remove
    else:
        fs.fail_writes = broken
    with pytest.raises(IoError):
        _mutate(tool, fs, ledger, root)
    assert ledger.history(root / "a.txt")[0].snapshot == b"old\n"

    fs.fail_writes = None
    fs.files[root / "a.txt"] = b"half-written"
    undo = FsUndoService(fs, ledger, root).execute(UndoRequest(path="a.txt"))
    assert undo.after_undo == "old\n"
    assert fs.text("a.txt") == "old\n"


def test_concurrent_writes_to_one_path_each_leave_a_snapshot(fs, ledger, root):
    fs.put("a.txt", "old")
    svc = FsWriteService(fs, ledger, root)
    start = threading.Barrier(2)
    errors = []

    def writer(content):
        start.wait()
        try:
            svc.execute(WriteRequest(path="a.txt", content=content, overwrite=True))
        except Exception as e:  # surfaced by the assertion below
            errors.append(e)

    threads = [threading.Thread(target=writer, args=(c,)) for c in ("one", "two")]
    for t in threads:
        t.start()
    for t in threads:
        t.join(5)

    assert errors == []
    newest, oldest = ledger.history(root / "a.txt")
    assert oldest.snapshot == b"old"
    # the second writer saw the first writer's content, never a torn state
    assert newest.snapshot in {b"one", b"two"}
    assert fs.get("a.txt") in {b"one", b"two"} - {newest.snapshot}


# ---- workspace confinement ----

symlinks = pytest.mark.skipif(not hasattr(os, "symlink") or os.name == "nt", reason="needs POSIX symlinks")


@pytest.fixture
def linked_ws(tmp_path: Path):
    ws = tmp_path / "ws"
    outside = tmp_path / "outside"
    ws.mkdir()
    outside.mkdir()
    (outside / "secret.txt").write_text("keep")
    os.symlink(outside, ws / "link")
    (ws / "inner").mkdir()
    os.symlink(ws / "inner", ws / "inner_link")
    return ws, outside


@symlinks
def test_symlinked_directory_cannot_escape_workspace(linked_ws):
    ws, outside = linked_ws
    fs = LocalFs()
    ledger = UndoLedger(fs)
    with pytest.raises(PermissionDenied):
        FsWriteService(fs, ledger, ws).execute(WriteRequest(path="link/pwned.txt", content="x"))
    with pytest.raises(PermissionDenied):
        FsRemoveService(fs, ledger, ws).execute(RemoveRequest(path="link/secret.txt"))
    with pytest.raises(PermissionDenied):
        FsReadService(fs, ws).execute(ReadRequest(path="link/secret.txt"))
    with pytest.raises(PermissionDenied):
        ShellService(FakeRunner(), ws).execute(ShellRequest(command="ls", cwd="link"))
    assert sorted(p.name for p in outside.iterdir()) == ["secret.txt"]
    assert (outside / "secret.txt").read_text() == "keep"
    assert len(ledger) == 0


@symlinks
def test_symlink_inside_workspace_is_allowed(linked_ws):
    ws, _ = linked_ws
    fs = LocalFs()
    res = FsWriteService(fs, UndoLedger(fs), ws).execute(WriteRequest(path="inner_link/ok.txt", content="x"))
    assert res.path == "inner_link/ok.txt"
    assert (ws / "inner" / "ok.txt").read_text() == "x"


@symlinks
def test_resolve_path_checks_the_real_location(linked_ws):
    ws, _ = linked_ws
    assert resolve_path(ws, "inner_link/new/deeper.txt") == ws / "inner_link" / "new" / "deeper.txt"
    with pytest.raises(PermissionDenied):
        resolve_path(ws, "link/not-yet/created.txt")
