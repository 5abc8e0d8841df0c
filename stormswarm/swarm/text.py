"""Plain-text helpers used to build prompts and read model responses."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import asdict, is_dataclass
from typing import Any

from stormswarm.swarm.payloads import (
    AnalysisResult,
    FactsResult,
    Outline,
    OutlineSection,
    PerspectiveResult,
    SectionDraft,
)

_SECTION_RE = re.compile(r"^(?:(?:\d+|[IVX]+)\.\s+|#+\s)")
_SUBSECTION_RE = re.compile(r"^(?:\d+(?:\.\d+)+\.?\s|[a-zA-Z]\.|-|\*)")
_CITATION_RE = re.compile(r"\[(\d+)\]")
_ISSUE_RE = re.compile(r"error|incorrect|inaccurate|outdated|missing", re.IGNORECASE)


def count_words(text: str) -> int:
    return len(text.split())


def extract_questions(text: str) -> list[str]:
    """Lines that contain a question mark."""
    return [line.strip() for line in text.splitlines() if "?" in line]


def extract_citations(text: str) -> list[int]:
    """Sorted, de-duplicated ``[n]`` citation numbers."""
    return sorted({int(m) for m in _CITATION_RE.findall(text)})


def parse_outline(text: str) -> Outline:
    """Parse a hierarchical outline.

    Lines starting with ``1. ``, ``IV. `` or a markdown heading open a section;
    lines starting with ``1.1``, ``a.``, ``-`` or ``*`` inside a section are
    subsections.
    Everything else is ignored.
    """
    sections: list[OutlineSection] = []
    current: OutlineSection | None = None
    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue
        if _SECTION_RE.match(line):
            title = _SECTION_RE.sub("", line, count=1).strip().strip("*").strip()
            if not title:
                continue
            current = OutlineSection(title=title)
            sections.append(current)
        elif current is not None and _SUBSECTION_RE.match(line):
            sub = _SUBSECTION_RE.sub("", line, count=1).strip()
            if sub:
                current.subsections.append(sub)
    return Outline(sections=sections)


def _describe(item: Any) -> str:
    if isinstance(item, PerspectiveResult):
        return f"Perspective ({item.perspective}): {item.content}"
    if isinstance(item, FactsResult):
        return f"Facts: {item.facts}"
    if isinstance(item, AnalysisResult):
        return f"Analysis ({item.kind}): {item.content}"
    if is_dataclass(item) and not isinstance(item, type):
        return json.dumps(asdict(item), default=str)
    return str(item)


def aggregate_insights(research: Iterable[Any] | None) -> str:
    """Render research results as prompt context."""
    items = list(research or [])
    if not items:
        return "No research data provided"
    return "\n\n".join(_describe(item) for item in items)


def identify_improvements(original: str, polished: str) -> list[str]:
    improvements: list[str] = []
    if len(polished) != len(original):
        improvements.append(f"Length changed: {len(original)} → {len(polished)} characters")
    before, after = count_words(original), count_words(polished)
    if before != after:
        improvements.append(f"Word count: {before} → {after}")
    return improvements


def parse_fact_check_issues(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if _ISSUE_RE.search(line)]


def split_marked(text: str, marker: str) -> tuple[str, str | None]:
    """Split *text* at the first line starting with *marker*.

    Returns ``(before, after)``; ``after`` is None when the marker is absent.
    """
    pattern = re.compile(rf"^\s*\**{re.escape(marker)}\**\s*$", re.IGNORECASE | re.MULTILINE)
    match = pattern.search(text)
    if match is None:
        return text.strip(), None
    return text[: match.start()].strip(), text[match.end() :].strip()


def combine_sections(drafts: Iterable[SectionDraft]) -> str:
    """Join drafts under ``##`` headings, in the order given."""
    return "\n\n".join(f"## {d.title}\n\n{d.content.strip()}" for d in drafts)
