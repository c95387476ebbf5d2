from __future__ import annotations

import re
import time
from dataclasses import dataclass
from html.parser import HTMLParser
from typing import Any, Callable, Iterable, Optional
from urllib.parse import urlsplit

from ..errors import FetchBadStatus, FetchDisallowed, FetchUnreachable, InvalidInput
from ..infra.base import HttpInfra, HttpResponse, HttpUnreachable
from ..tools.base import Response, ToolDescriptor, ToolKind
from .inputs import opt_bool, require_str

DESCRIPTOR = ToolDescriptor.for_kind(
    ToolKind.NET_FETCH,
    description=(
        "Fetch a URL and return its content. HTML is converted to readable text unless raw=true. "
        "Honors robots.txt; long pages are truncated."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "The http(s) URL to fetch."},
            "raw": {"type": "boolean", "default": False, "description": "Return the body without HTML conversion."},
        },
        "required": ["url"],
    },
)


class _HTMLTextExtractor(HTMLParser):
    def __init__(self) -> None:
        super().__init__()
        self._parts: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs):  # type: ignore[override]
        if tag.lower() in {"script", "style", "noscript"}:
            self._skip_depth += 1

    def handle_endtag(self, tag: str):  # type: ignore[override]
        if tag.lower() in {"script", "style", "noscript"} and self._skip_depth > 0:
            self._skip_depth -= 1

    def handle_data(self, data: str):  # type: ignore[override]
        if self._skip_depth > 0:
            return
        text = data.strip()
        if text:
            self._parts.append(text)

    def text(self) -> str:
        joined = "\n".join(self._parts)
        # collapse excessive blank lines
        joined = re.sub(r"\n{3,}", "\n\n", joined)
        return joined.strip()


def html_to_text(html: str) -> str:
    parser = _HTMLTextExtractor()
    parser.feed(html)
    parser.close()
    return parser.text()


def _decode(resp: HttpResponse) -> str:
    m = re.search(r"charset=([\w-]+)", resp.content_type, re.IGNORECASE)
    if m:
        try:
            return resp.body.decode(m.group(1), errors="replace")
        except LookupError:
            pass
    return resp.body.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class FetchRequest:
    url: str
    raw: bool = False

    @staticmethod
    def from_input(data: dict[str, Any]) -> "FetchRequest":
        return FetchRequest(url=require_str(data, "url").strip(), raw=opt_bool(data, "raw"))


@dataclass
class FetchResponse(Response):
    url: str
    status: int
    content_type: str
    content: str
    truncated: bool


class NetFetchService:
    """Single retrieval with a bounded retry on transient failures."""

    request_type = FetchRequest

    def __init__(
        self,
        http: HttpInfra,
        timeout: float = 15.0,
        max_attempts: int = 3,
        initial_backoff_ms: int = 200,
        backoff_factor: float = 2.0,
        retry_status_codes: Iterable[int] = (429, 500, 502, 503, 504),
        max_chars: int = 40000,
        respect_robots: bool = True,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.http = http
        self.timeout = timeout
        self.max_attempts = max(1, max_attempts)
        self.initial_backoff_ms = initial_backoff_ms
        self.backoff_factor = backoff_factor
        self.retry_status_codes = frozenset(retry_status_codes)
        self.max_chars = max_chars
        self.respect_robots = respect_robots
        self._sleep = sleep

    def execute(self, request: FetchRequest) -> FetchResponse:
        parts = urlsplit(request.url)
        if parts.scheme not in {"http", "https"} or not parts.netloc:
            raise InvalidInput(f"Only absolute http(s) URLs can be fetched: {request.url}", field="url")

        if self.respect_robots:
            self._check_robots(request.url, parts.scheme, parts.netloc, parts.path)

        resp = self._get_with_retry(request.url)
        if not 200 <= resp.status < 300:
            raise FetchBadStatus(request.url, resp.status)

        content_type = resp.content_type
        text = _decode(resp)
        is_html = "<html" in text[:100].lower() or "text/html" in content_type.lower() or not content_type
        if is_html and not request.raw:
            text = html_to_text(text)

        truncated = len(text) > self.max_chars
        if truncated:
            text = text[: self.max_chars]
        return FetchResponse(
            url=resp.url or request.url,
            status=resp.status,
            content_type=content_type,
            content=text,
            truncated=truncated,
        )

    def _get_with_retry(self, url: str) -> HttpResponse:
        delay = self.initial_backoff_ms / 1000.0
        for attempt in range(1, self.max_attempts + 1):
            last = attempt == self.max_attempts
            try:
                resp = self.http.get(url, timeout=self.timeout)
            except HttpUnreachable as e:
                if last:
                    raise FetchUnreachable(str(e), url=url, attempts=attempt) from e
            else:
                if resp.status not in self.retry_status_codes or last:
                    return resp
            self._sleep(delay)
            delay *= self.backoff_factor
        raise AssertionError("unreachable")

    def _check_robots(self, url: str, scheme: str, netloc: str, path: str) -> None:
        try:
            robots = self.http.get(f"{scheme}://{netloc}/robots.txt", timeout=self.timeout)
        except HttpUnreachable:
            return
        if not 200 <= robots.status < 300:
            return
        path = path if path.startswith("/") else "/" + path
        for line in _decode(robots).splitlines():
            if not line.lower().startswith("disallow:"):
                continue
            rule = line.split(":", 1)[1].strip()
            if not rule:
                continue
            if not rule.startswith("/"):
                rule = "/" + rule
            if path.startswith(rule):
                raise FetchDisallowed(f"URL {url} cannot be fetched due to robots.txt restrictions", url=url)
