from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from ..errors import InvalidInput
from ..infra.base import UserInfra
from ..tools.base import Response, ToolDescriptor, ToolKind
from .inputs import opt_bool, opt_str_list, require_str

MAX_OPTIONS = 5

DESCRIPTOR = ToolDescriptor.for_kind(
    ToolKind.FOLLOWUP,
    description=(
        "Ask the user a clarifying question when something is ambiguous. "
        "Optionally offer up to 5 options; set multiple=true to allow several picks."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "question": {"type": "string", "description": "Question to ask the user."},
            "options": {
                "type": "array",
                "items": {"type": "string"},
                "maxItems": MAX_OPTIONS,
                "description": "Optional choices.",
            },
            "multiple": {"type": "boolean", "default": False},
        },
        "required": ["question"],
    },
)


@dataclass(frozen=True)
class FollowupRequest:
    question: str
    options: tuple[str, ...] = ()
    multiple: bool = False

    @staticmethod
    def from_input(data: dict[str, Any]) -> "FollowupRequest":
        options = [o for o in opt_str_list(data, "options") if o.strip()]
        if len(options) > MAX_OPTIONS:
            raise InvalidInput(f"At most {MAX_OPTIONS} options are allowed", field="options")
        return FollowupRequest(
            question=require_str(data, "question").strip(),
            options=tuple(options),
            multiple=opt_bool(data, "multiple"),
        )


@dataclass
class FollowupResponse(Response):
    answer: Optional[str]


class FollowupService:
    request_type = FollowupRequest

    def __init__(self, user: UserInfra) -> None:
        self.user = user

    def execute(self, request: FollowupRequest) -> FollowupResponse:
        options = list(request.options)
        if not options:
            return FollowupResponse(answer=self.user.prompt_question(request.question))
        if request.multiple:
            picked = self.user.select_many(request.question, options)
            if picked is None:
                return FollowupResponse(answer=None)
            return FollowupResponse(answer=f"User selected {len(picked)} option(s): {', '.join(picked)}")
        one = self.user.select_one(request.question, options)
        return FollowupResponse(answer=None if one is None else f"User selected: {one}")
