#!/usr/bin/env python3
"""Check that every translation catalogue matches the English one."""

from __future__ import annotations

import argparse
import json
import string
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
TRANSLATIONS_DIR = REPO_ROOT / "src" / "bdtax" / "translations"
BASE_LOCALE = "en"


class ValidationError(Exception):
    """Raised when validation detects unrecoverable issues."""


def _load_catalogues(directory: Path) -> dict[str, dict[str, str]]:
    if not directory.is_dir():
        raise ValidationError(f"Missing translations directory: {directory}")

    catalogues: dict[str, dict[str, str]] = {}
    for path in sorted(directory.glob("*.json")):
        with path.open("r", encoding="utf-8") as handle:
            payload = json.load(handle)
        backend = payload.get("backend") if isinstance(payload, dict) else None
        if not isinstance(backend, dict):
            raise ValidationError(f"Translation payload must define a backend mapping: {path}")
        catalogues[path.stem] = {str(key): str(value) for key, value in backend.items()}

    if BASE_LOCALE not in catalogues:
        raise ValidationError(f"Base locale '{BASE_LOCALE}' catalogue not found")
    return catalogues


def _placeholders(message: str) -> frozenset[str]:
    return frozenset(
        field for _, field, _, _ in string.Formatter().parse(message) if field
    )


def find_issues(catalogues: dict[str, dict[str, str]]) -> list[str]:
    """Return missing, extra and placeholder-mismatched keys per locale."""

    base = catalogues[BASE_LOCALE]
    issues: list[str] = []
    for locale, messages in sorted(catalogues.items()):
        if locale == BASE_LOCALE:
            continue
        missing = set(base) - set(messages)
        if missing:
            issues.append(f"Locale '{locale}' missing keys: {', '.join(sorted(missing))}")
        extra = set(messages) - set(base)
        if extra:
            issues.append(f"Locale '{locale}' has unknown keys: {', '.join(sorted(extra))}")
        for key in sorted(set(base) & set(messages)):
            expected = _placeholders(base[key])
            found = _placeholders(messages[key])
            if expected != found:
                issues.append(
                    f"Locale '{locale}' key {key} placeholders differ: "
                    f"expected {sorted(expected)}, found {sorted(found)}"
                )
    return issues


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--directory",
        type=Path,
        default=TRANSLATIONS_DIR,
        help="Directory containing <locale>.json catalogues",
    )
    args = parser.parse_args(argv)

    try:
        catalogues = _load_catalogues(args.directory)
    except (ValidationError, json.JSONDecodeError) as error:
        print(f"error: {error}", file=sys.stderr)
        return 1

    issues = find_issues(catalogues)
    for issue in issues:
        print(f"  - {issue}")
    if issues:
        return 1

    print(f"{len(catalogues)} catalogue(s) OK")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
