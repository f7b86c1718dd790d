"""Optional advisory collaborator for timetable generation.

The advisor reads the whole generation context and answers with an
:class:`AdvisorAnalysis`. Its output is only ever a hint: the scheduler
re-checks every recommended slot before committing it.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, Protocol

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_groq import ChatGroq
from pydantic import ValidationError

from deptgrid.core.config import Settings
from deptgrid.core.exceptions import AdvisorError, ConfigurationError
from deptgrid.schemas.advisor import AdvisorAnalysis, AdvisorContext, AdvisorRecommendation

logger = logging.getLogger(__name__)


class ConstraintAdvisor(Protocol):
    def analyze(self, context: AdvisorContext) -> AdvisorAnalysis: ...


def context_key(context: AdvisorContext) -> str:
    """Content hash of the full advisory context."""
    return hashlib.sha256(context.model_dump_json(by_alias=True).encode("utf-8")).hexdigest()


class AdvisoryCache:
    """Bounded memo of advisor answers keyed by :func:`context_key`.

    Least recently used entries are evicted once ``max_entries`` is reached,
    and entries older than ``ttl_seconds`` are treated as missing.
    """

    def __init__(
        self,
        max_entries: int = 128,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ConfigurationError("Advisory cache needs room for at least one entry")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, AdvisorAnalysis]] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> AdvisorAnalysis | None:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        stored_at, analysis = entry
        if self._clock() - stored_at > self.ttl_seconds:
            del self._entries[key]
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return analysis

    def put(self, key: str, analysis: AdvisorAnalysis) -> None:
        self._entries[key] = (self._clock(), analysis)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted advisory cache entry %s", evicted[:12])

    def clear(self) -> None:
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self._entries),
            "capacity": self.max_entries,
            "ttlSeconds": self.ttl_seconds,
            "hits": self.hits,
            "misses": self.misses,
        }


def extract_json_from_text(text: str) -> dict[str, Any] | None:
    """Pull the first JSON object out of a model reply."""
    candidates = []
    match = re.search(r"BEGIN_JSON(.*?)END_JSON", text, re.DOTALL)
    if match:
        candidates.append(match.group(1))
    match = re.search(r"```json(.*?)```", text, re.DOTALL)
    if match:
        candidates.append(match.group(1))
    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        candidates.append(text[start : end + 1])

    for candidate in candidates:
        try:
            parsed = json.loads(candidate.strip())
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def parse_analysis(payload: dict[str, Any]) -> AdvisorAnalysis:
    """Validate an advisor payload, dropping recommendations that do not fit the contract."""
    raw_slots = payload.get("recommendedSlots", payload.get("recommended_slots")) or []
    if not isinstance(raw_slots, list):
        raw_slots = []

    recommendations: list[AdvisorRecommendation] = []
    for item in raw_slots:
        try:
            recommendations.append(AdvisorRecommendation.model_validate(item))
        except ValidationError as exc:
            logger.warning("Discarding unusable advisor recommendation %r: %s", item, exc.errors()[0]["msg"])

    body = {key: value for key, value in payload.items() if key not in {"recommendedSlots", "recommended_slots"}}
    try:
        analysis = AdvisorAnalysis.model_validate(body)
    except ValidationError as exc:
        raise AdvisorError("Advisor returned an invalid analysis", details={"errors": exc.errors()}) from exc
    analysis.recommended_slots = recommendations
    return analysis


SYSTEM_PROMPT = """You are a university timetable constraint analyst for one department.
You receive the subjects, faculty, classrooms, labs, constraints, the target
cohort year and semester, and any slots already scheduled.

Rules the schedule must satisfy:
- No faculty, room or cohort (year + batch) may be double-booked.
- A subject may not have lectures in adjacent bands on the same day.
- Each lab batch (A, B, C) gets at most one lab per day.
- Lab sessions use 2-hour lab bands and lab rooms; lectures use 1-hour bands and the cohort classroom.

Answer with a single JSON object between BEGIN_JSON and END_JSON:
{
  "isValid": true,
  "conflicts": [{"type": "warning", "message": "...", "severity": "medium", "affectedEntities": ["..."], "suggestedFix": "..."}],
  "optimizationSuggestions": ["..."],
  "constraintScore": 0-100,
  "recommendedSlots": [{"subject": "...", "faculty": "...", "day": "Monday", "time": "13:05-14:55",
                        "room": "...", "type": "lab", "batch": "A", "confidence": 0-100, "reasoning": "..."}]
}
Only use subjects, faculty, rooms, days and time bands that appear in the input."""


class GroqConstraintAdvisor:
    """Advisor backed by a Groq-hosted chat model through LangChain."""

    def __init__(self, settings: Settings, llm: Any | None = None) -> None:
        if llm is None:
            if not settings.advisor_enabled:
                raise ConfigurationError("GROQ_API_KEY is required for the constraint advisor")
            llm = ChatGroq(
                groq_api_key=settings.groq_api_key,  # type: ignore
                model=settings.advisor_model,
                temperature=settings.advisor_temperature,
                timeout=settings.advisor_timeout_seconds,
            )
        self.llm = llm

    def analyze(self, context: AdvisorContext) -> AdvisorAnalysis:
        messages = [
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=f"Generation context:\n{context.model_dump_json(by_alias=True)}"),
        ]
        try:
            response = self.llm.invoke(messages)
        except Exception as exc:
            raise AdvisorError("Advisor request failed", details={"reason": str(exc)}) from exc

        content = response.content if isinstance(response.content, str) else str(response.content)
        payload = extract_json_from_text(content)
        if payload is None:
            raise AdvisorError("Advisor reply did not contain a JSON analysis")
        analysis = parse_analysis(payload)
        logger.info(
            "Advisor returned %d recommendations (score %.0f) for %s semester %d",
            len(analysis.recommended_slots),
            analysis.constraint_score,
            context.target_year,
            context.target_semester,
        )
        return analysis
