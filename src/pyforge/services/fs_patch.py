from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..patch.engine import AppliedPatchSummary, PatchEngine
from ..patch.parser import parse_patch
from ..tools.base import ToolDescriptor, ToolKind
from ..util.fs import display_path, resolve_path
from .inputs import require_str

DESCRIPTOR = ToolDescriptor.for_kind(
    ToolKind.FS_PATCH,
    description=(
        "Apply a unified diff (one file, '@@ -a,b +c,d @@' hunks) to a file. "
        "Either every hunk matches and the file is rewritten, or nothing changes. Reversible with fs_undo."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "path": {"type": "string", "description": "File path relative to the workspace root."},
            "patch": {"type": "string", "description": "Unified diff text for this file."},
        },
        "required": ["path", "patch"],
    },
)


@dataclass(frozen=True)
class PatchRequest:
    path: str
    patch: str

    @staticmethod
    def from_input(data: dict[str, Any]) -> "PatchRequest":
        return PatchRequest(path=require_str(data, "path"), patch=require_str(data, "patch"))


class FsPatchService:
    request_type = PatchRequest

    def __init__(self, engine: PatchEngine, cwd: Path) -> None:
        self.engine = engine
        self.cwd = cwd

    def execute(self, request: PatchRequest) -> AppliedPatchSummary:
        p = resolve_path(self.cwd, request.path)
        # malformed patches are rejected before the file is read
        spec = parse_patch(request.patch)
        return self.engine.apply(p, spec, display=display_path(self.cwd, p))
