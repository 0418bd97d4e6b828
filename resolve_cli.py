from __future__ import annotations

import argparse
import json
from pathlib import Path

from sheets.config import load_settings, setup_logging
from sheets.models import DisambiguationRequest, ResolvedSource, result_to_dict
from sheets.resolver import ReferenceResolver
from sheets.sefaria import SefariaClient
from sheets.text_body import snippet


def _read_citations(args: argparse.Namespace) -> list[str]:
    citations = [c for c in args.citation if c.strip()]
    if args.file:
        text = Path(args.file).expanduser().read_text(encoding="utf-8", errors="replace")
        citations.extend(line.strip() for line in text.splitlines() if line.strip() and not line.startswith("#"))
    return citations


def _describe(citation: str, result) -> str:
    if isinstance(result, ResolvedSource):
        src = result.source
        body = src.english_text or src.hebrew_text
        version = f" [{src.version_title}]" if src.version_title else ""
        return f"OK   {citation} -> {src.ref}{version}\n     {snippet(body, max_len=120)}"
    if isinstance(result, DisambiguationRequest):
        lines = [f"??   {citation}: {len(result.candidates)} candidates"]
        lines.extend(f"     {i}. {c.ref}" for i, c in enumerate(result.candidates))
        return "\n".join(lines)
    return f"FAIL {citation}: {result.reason}"


def main() -> None:
    ap = argparse.ArgumentParser(description="Resolve text citations against the Sefaria API.")
    ap.add_argument("citation", nargs="*", default=[], help="Citation, e.g. 'Genesis 1:1'. Can be repeated.")
    ap.add_argument("--file", help="Read one citation per line from this file ('#' starts a comment).")
    ap.add_argument("--base-url", help="Override SHEETS_SEFARIA_BASE_URL.")
    ap.add_argument("--no-search", action="store_true", help="Skip the broad search tier.")
    ap.add_argument("--json", action="store_true", help="Print one JSON object per citation.")
    ap.add_argument("--log-level", default=None, help="Override SHEETS_LOG_LEVEL.")
    args = ap.parse_args()

    s = load_settings()
    setup_logging((args.log_level or s.log_level).upper())

    citations = _read_citations(args)
    if not citations:
        raise SystemExit("No citations given (pass them as arguments or with --file).")

    client = SefariaClient(
        args.base_url or s.sefaria_base_url,
        timeout_s=s.http_timeout_s,
        name_limit=s.name_limit,
        search_size=s.search_size,
    )
    resolver = ReferenceResolver(client)

    resolved = 0
    for citation in citations:
        result = resolver.resolve(citation, allow_disambiguation=not args.no_search)
        if isinstance(result, ResolvedSource):
            resolved += 1
        if args.json:
            print(json.dumps({"citation": citation, **result_to_dict(result)}, ensure_ascii=False))
        else:
            print(_describe(citation, result))

    if not args.json:
        print(f"Citations: {len(citations)} | resolved: {resolved} | unresolved: {len(citations) - resolved}")


if __name__ == "__main__":
    main()
