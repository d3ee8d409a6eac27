"""Version selection.

Two steps, kept separate so each stays pure:

* :func:`select_requested_version` picks *which* request wins
  (explicit > declared in repo > previously detected > configured default).
* :func:`resolve_version` turns that request (exact, partial, or an npm/composer
  style range) into one concrete version from a :class:`VersionCatalog`.

Ranges are translated into ``packaging`` specifier sets, so ordering and
matching follow the same rules pip uses for final releases.
"""

from __future__ import annotations

import re

from packaging.specifiers import InvalidSpecifier, SpecifierSet
from packaging.version import Version

from buildsmith.errors import UnsupportedVersionError
from buildsmith.types import VersionCatalog, semver_key

_OPERATOR = re.compile(r"^(\^|~>|~|>=|<=|>|<|==|=)?\s*(.*)$")
_WILDCARDS = {"x", "X", "*"}
_BARE = re.compile(r"^v?\d+(\.\d+){0,2}$")


class RangeSyntaxError(ValueError):
    """Raised when a version request cannot be read as a range."""


def select_requested_version(
    explicit: str | None = None,
    declared: str | None = None,
    detected: str | None = None,
    configured_default: str | None = None,
) -> str | None:
    for candidate in (explicit, declared, detected, configured_default):
        if candidate and candidate.strip():
            return candidate.strip()
    return None


# ---------------------------------------------------------------------------
# Range translation
# ---------------------------------------------------------------------------


def _partial(text: str) -> list[int]:
    """``"1.2.x"`` -> ``[1, 2]``; wildcards end the partial."""
    text = text.strip().lstrip("vV=")
    if text in _WILDCARDS or not text:
        return []
    parts: list[int] = []
    for piece in text.split("."):
        if piece in _WILDCARDS:
            break
        if not piece.isdigit():
            raise RangeSyntaxError(f"Not a version: {text!r}")
        parts.append(int(piece))
    if len(parts) > 3:
        raise RangeSyntaxError(f"Too many components: {text!r}")
    return parts


def _fmt(parts: list[int]) -> str:
    return ".".join(str(p) for p in (parts + [0, 0, 0])[:3])


def _bump(parts: list[int], index: int) -> str:
    """Increment component *index* and zero the rest."""
    bumped = list(parts[: index + 1])
    bumped[index] += 1
    return _fmt(bumped)


def _caret(parts: list[int]) -> list[str]:
    if not parts:
        return []
    lower = f">={_fmt(parts)}"
    if parts[0] > 0 or len(parts) == 1:
        return [lower, f"<{_bump(parts, 0)}"]
    if len(parts) == 2 or parts[1] > 0:
        return [lower, f"<{_bump(parts, 1)}"]
    return [lower, f"<{_bump(parts, 2)}"]


def _tilde(parts: list[int]) -> list[str]:
    if not parts:
        return []
    lower = f">={_fmt(parts)}"
    if len(parts) == 1:
        return [lower, f"<{_bump(parts, 0)}"]
    return [lower, f"<{_bump(parts, 1)}"]


def _pessimistic(parts: list[int]) -> list[str]:
    # "~>1.2" allows 1.x; "~>1.2.3" allows 1.2.x
    if not parts:
        return []
    lower = f">={_fmt(parts)}"
    if len(parts) == 1:
        return [lower, f"<{_bump(parts, 0)}"]
    return [lower, f"<{_bump(parts, len(parts) - 2)}"]


def _comparator(op: str, parts: list[int]) -> list[str]:
    if not parts:
        # "*", "x", ">=*": no constraint; "<*" or ">*" matches nothing.
        return [] if op in {"", "=", "==", ">=", "<="} else ["<0.0.0"]
    full = len(parts) == 3
    if op in {"", "=", "=="}:
        return [f"=={_fmt(parts)}"] if full else [f"=={'.'.join(map(str, parts))}.*"]
    if op == ">=":
        return [f">={_fmt(parts)}"]
    if op == ">":
        return [f">{_fmt(parts)}"] if full else [f">={_bump(parts, len(parts) - 1)}"]
    if op == "<":
        return [f"<{_fmt(parts)}"]
    if op == "<=":
        return [f"<={_fmt(parts)}"] if full else [f"<{_bump(parts, len(parts) - 1)}"]
    raise RangeSyntaxError(f"Unknown operator {op!r}")


def _hyphen(low: str, high: str) -> list[str]:
    lo, hi = _partial(low), _partial(high)
    specs = [f">={_fmt(lo)}"] if lo else []
    if hi:
        specs.append(f"<={_fmt(hi)}" if len(hi) == 3 else f"<{_bump(hi, len(hi) - 1)}")
    return specs


def _conjunction(text: str) -> SpecifierSet:
    text = text.strip()
    if " - " in text:
        low, high = text.split(" - ", 1)
        specs = _hyphen(low, high)
    else:
        # join operators to their operand: ">= 1.2" -> ">=1.2"
        text = re.sub(r"(\^|~>|~|>=|<=|>|<|==|=)\s+", r"\1", text)
        specs = []
        for term in re.split(r"[\s,]+", text):
            if not term:
                continue
            m = _OPERATOR.match(term)
            op, operand = (m.group(1) or ""), m.group(2)
            parts = _partial(operand)
            if op == "^":
                specs.extend(_caret(parts))
            elif op == "~":
                specs.extend(_tilde(parts))
            elif op == "~>":
                specs.extend(_pessimistic(parts))
            else:
                specs.extend(_comparator(op, parts))
    try:
        return SpecifierSet(",".join(specs))
    except InvalidSpecifier as exc:
        raise RangeSyntaxError(str(exc)) from exc


def parse_range(requested: str) -> list[SpecifierSet]:
    """Translate an npm/composer style range into alternative specifier sets."""
    alternatives = [alt for alt in re.split(r"\s*\|\|?\s*", requested.strip()) if alt.strip()]
    if not alternatives:
        return [SpecifierSet()]
    return [_conjunction(alt) for alt in alternatives]


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


def max_satisfying(versions: list[str], requested: str) -> str | None:
    """Greatest final version in *versions* satisfying *requested*, or ``None``."""
    try:
        ranges = parse_range(requested)
    except RangeSyntaxError:
        return None
    best: tuple[Version, str] | None = None
    for v in versions:
        key = semver_key(v)
        if key is None:
            continue
        if any(r.contains(key, prereleases=False) for r in ranges):
            if best is None or key > best[0]:
                best = (key, v)
    return best[1] if best else None


def resolve_version(
    requested: str | None, catalog: VersionCatalog, platform: str | None = None
) -> str:
    """Pick the one concrete version in *catalog* that satisfies *requested*.

    Raises :class:`UnsupportedVersionError` when no final or preview version matches.
    """
    platform = platform or catalog.platform
    if not requested or not requested.strip():
        latest = catalog.latest()
        if latest is None:
            raise UnsupportedVersionError(platform, requested, catalog.versions)
        return latest

    requested = requested.strip()
    if requested in catalog.versions:
        return requested

    finals = catalog.final_versions
    if _BARE.match(requested):
        # a bare version floats to the newest patch of its line
        parts = requested.lstrip("vV").split(".")
        found = max_satisfying(finals, ".".join(parts[:2]))
    else:
        found = max_satisfying(finals, requested)
    if found:
        return found

    previews = sorted((v for v in catalog.preview_versions if v.startswith(requested)), reverse=True)
    if previews:
        return previews[0]

    raise UnsupportedVersionError(platform, requested, catalog.versions)
