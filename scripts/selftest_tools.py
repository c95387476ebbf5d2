from __future__ import annotations
import json
import tempfile
import textwrap
from pathlib import Path

from pyforge.app_context import AppContext
from pyforge.mode import OperationMode


def show(label: str, result: dict) -> None:
    print(f"{label}:", json.dumps(result, ensure_ascii=False))


def main():
    with tempfile.TemporaryDirectory() as td:
        cwd = Path(td)
        ctx = AppContext.from_env(cwd=cwd, mode=OperationMode.RESTRICTED, record_events=False)

        # plan mode rejects writes
        show("DENIED", ctx.call("fs_write", {"path": "a.txt", "content": "hello\nworld\n"}))

        ctx.act()
        show("WRITE", ctx.call("fs_write", {"path": "a.txt", "content": "hello\nworld\n"}))
        show("READ", ctx.call("fs_read", {"path": "a.txt"}))
        show("FIND", ctx.call("fs_find", {"regex": "world"}))
        show("LIST", ctx.call("fs_list", {"path": "."}))

        diff = textwrap.dedent("""\
        --- a/a.txt
        +++ b/a.txt
        @@ -1,2 +1,2 @@
        -hello
        +hello!!!
         world
        """)
        show("PATCH", ctx.call("fs_patch", {"path": "a.txt", "patch": diff}))
        show("READ2", ctx.call("fs_read", {"path": "a.txt"}))
        show("UNDO", ctx.call("fs_undo", {"path": "a.txt"}))

        show("SHELL", ctx.call("shell", {"command": "echo 1+1"}))
        ctx.close()


if __name__ == "__main__":
    main()
