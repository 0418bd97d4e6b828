from __future__ import annotations

from typing import Any, Union

# A passage is either one string or an ordered list of segments.
TextBody = Union[str, list[str]]


def _walk(value: Any, out: list[str]) -> None:
    if value is None:
        out.append("")
    elif isinstance(value, str):
        out.append(value)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _walk(item, out)
    else:
        out.append(str(value))


def normalize_text_body(value: Any) -> TextBody:
    """
    Coerce whatever the corpus returned into a TextBody.
    - strings pass through
    - nested arrays (Zohar-style) are flattened depth-first into one flat list
    - None becomes an empty string; any other scalar is stringified
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        out: list[str] = []
        _walk(value, out)
        return out
    return str(value)


def segments(body: Any) -> list[str]:
    body = normalize_text_body(body)
    if isinstance(body, str):
        return [body]
    return list(body)


def is_blank_body(body: Any) -> bool:
    return not any((s or "").strip() for s in segments(body))


def join_body(body: Any, sep: str = " ") -> str:
    return sep.join(s.strip() for s in segments(body) if (s or "").strip())


def snippet(body: Any, *, max_len: int = 150) -> str:
    s = join_body(body)
    if len(s) <= max_len:
        return s
    return s[:max_len] + "..."
