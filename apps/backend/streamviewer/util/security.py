from __future__ import annotations

import re
from pathlib import Path
from urllib.parse import SplitResult, urlsplit, urlunsplit

URL_PASSWORD_RE = re.compile(r"((?:https?|wss?|rtsps?)://[^:@/\s]+:)([^@/\s]+)(@)", re.IGNORECASE)
PASSWORD_PAIR_RE = re.compile(r"(password\s*[=:]\s*)([^\s,;]+)", re.IGNORECASE)
TOKEN_RE = re.compile(r"(token\s*[=:]\s*)([^\s,;]+)", re.IGNORECASE)


def sanitize_url(url: str) -> str:
    try:
        parts: SplitResult = urlsplit(url)
        if not parts.password:
            return url
        hostname = parts.hostname or ""
        user = parts.username or "user"
        port = f":{parts.port}" if parts.port else ""
        netloc = f"{user}:***@{hostname}{port}"
        return urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
    except ValueError:
        return URL_PASSWORD_RE.sub(r"\1***\3", url)


def resolve_path_within_base(base_dir: Path, untrusted_path: str | Path) -> Path | None:
    try:
        resolved_base = base_dir.resolve()
        target = (resolved_base / Path(untrusted_path)).resolve()
    except (OSError, ValueError):
        return None

    try:
        target.relative_to(resolved_base)
    except ValueError:
        return None
    return target


def redact_secrets(text: str) -> str:
    text = URL_PASSWORD_RE.sub(r"\1***\3", text)
    text = PASSWORD_PAIR_RE.sub(r"\1***", text)
    text = TOKEN_RE.sub(r"\1***", text)
    return text
