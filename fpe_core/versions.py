"""Version parsing and ordering helpers shared by the core and the package cache."""

from __future__ import annotations

import re
from typing import Any, List, Optional, Tuple

__all__ = [
    "STRICT_SEMVER_RE",
    "compare_semver",
    "is_strict_semver",
    "normalize_latest",
    "semver_core",
    "version_key",
]

STRICT_SEMVER_RE = re.compile(r"^\d+\.\d+\.\d+(-[\w.-]+)?$")

_STAGE_ORDER: dict[str, int] = {
    "dev": 0,
    "snapshot": 0,
    "cibuild": 0,

    "a": 10,
    "alpha": 10,

    "b": 20,
    "beta": 20,

    "ballot": 30,
    "pre": 30,
    "preview": 30,

    "rc": 40,
    "candidate": 40,
}


def is_strict_semver(version: str | None) -> bool:
    return bool(version) and STRICT_SEMVER_RE.match(str(version)) is not None


def semver_core(version: str) -> Tuple[int, int, int]:
    """Return ``(major, minor, patch)`` ignoring any pre-release suffix.

    Missing or non-numeric parts count as zero.
    """

    core = version.split("-", 1)[0]
    parts: List[int] = []
    for raw in core.split(".")[:3]:
        digits = re.match(r"\d+", raw)
        parts.append(int(digits.group(0)) if digits else 0)
    while len(parts) < 3:
        parts.append(0)
    return parts[0], parts[1], parts[2]


def compare_semver(a: Optional[str], b: Optional[str]) -> int:
    """Numeric ``major.minor.patch`` comparison; a missing version sorts lowest."""

    if not a and not b:
        return 0
    if not a:
        return -1
    if not b:
        return 1
    ka, kb = semver_core(a), semver_core(b)
    if ka == kb:
        return 0
    return 1 if ka > kb else -1


def normalize_latest(version: Optional[str]) -> Optional[str]:
    if version is None:
        return None
    v = version.strip()
    if not v:
        return None
    if v.lower() == "latest":
        return "latest"
    return v


def _split_segment_tokens(seg: str) -> Tuple[str, List[str]]:
    s = (seg or "").strip()
    if "-" not in s:
        return s, []
    parts = [p for p in s.split("-") if p != ""]
    if not parts:
        return s, []
    return parts[0], parts[1:]


def _tokenize_text_and_int(s: str) -> List[Any]:
    out: List[Any] = []
    for number, text in re.findall(r"(\d+)|(\D+)", (s or "").strip()):
        if number:
            out.append((0, int(number)))
        else:
            out.append((1, text.lower()))
    return out


def _qualifier_rank(tokens: List[str]) -> Tuple[int, int]:
    # no qualifier means a release, which outranks every pre-release stage
    if not tokens:
        return (1000, 0)
    flat: List[Any] = []
    for token in tokens:
        flat.extend(_tokenize_text_and_int(token))
    stage_rank = 50
    stage_num = 0
    seen_stage = False
    for typ, val in flat:
        if typ == 1 and not seen_stage and val in _STAGE_ORDER:
            stage_rank = _STAGE_ORDER[val]
            seen_stage = True
            continue
        if seen_stage and typ == 0:
            stage_num = val
            break
    return (stage_rank, stage_num)


def version_key(v: str) -> Tuple[Tuple[Tuple[Any, ...], int, int], ...]:
    """Sort key ordering registry versions, pre-releases below their release."""

    out: List[Tuple[Tuple[Any, ...], int, int]] = []
    for seg in (s for s in (v or "").split(".") if s != ""):
        base, qual = _split_segment_tokens(seg)
        stage_rank, stage_num = _qualifier_rank(qual)
        out.append((tuple(_tokenize_text_and_int(base)), stage_rank, stage_num))
    return tuple(out)
