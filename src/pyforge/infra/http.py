from __future__ import annotations

import socket
import urllib.error
import urllib.request
from typing import Optional

from .base import HttpResponse, HttpUnreachable

USER_AGENT = "pyforge/0.1"


class UrllibHttp:
    """Single GET over urllib; no retries here.

    Non-2xx answers are returned as responses, transport failures raise
    HttpUnreachable.
    """

    def get(self, url: str, timeout: float, headers: Optional[dict[str, str]] = None) -> HttpResponse:
        req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT, **(headers or {})})
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                return HttpResponse(
                    url=resp.geturl(),
                    status=int(resp.status),
                    body=resp.read(),
                    headers={k: v for k, v in resp.headers.items()},
                )
        except urllib.error.HTTPError as e:
            try:
                body = e.read()
            except OSError:
                body = b""
            return HttpResponse(
                url=url,
                status=int(e.code),
                body=body,
                headers={k: v for k, v in (e.headers.items() if e.headers else [])},
            )
        except (urllib.error.URLError, socket.timeout, ConnectionError) as e:
            reason = getattr(e, "reason", e)
            raise HttpUnreachable(f"Failed to fetch URL {url}: {reason}") from e
