"""Substring search over plan details."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from planpilot.core.models import PlanDetail


class SearchMode(str, Enum):
    ANY = "any"
    ALL = "all"

    @classmethod
    def choices(cls) -> list[str]:
        return [member.value for member in cls]


class SearchField(str, Enum):
    """Which text a search looks at. PLAN covers title, content and comment."""

    PLAN = "plan"
    TITLE = "title"
    CONTENT = "content"
    COMMENT = "comment"
    STEPS = "steps"
    GOALS = "goals"
    ALL = "all"

    @classmethod
    def choices(cls) -> list[str]:
        return [member.value for member in cls]


@dataclass
class PlanSearchQuery:
    terms: list[str] = field(default_factory=list)
    mode: SearchMode = SearchMode.ALL
    search_field: SearchField = SearchField.PLAN
    match_case: bool = False

    @classmethod
    def build(
        cls,
        raw_terms: list[str],
        mode: SearchMode = SearchMode.ALL,
        search_field: SearchField = SearchField.PLAN,
        match_case: bool = False,
    ) -> "PlanSearchQuery":
        terms = [term.strip() for term in raw_terms if term.strip()]
        if not match_case:
            terms = [term.lower() for term in terms]
        return cls(terms=terms, mode=mode, search_field=search_field, match_case=match_case)

    def has_terms(self) -> bool:
        return bool(self.terms)


_PLAN_FIELDS = {SearchField.PLAN, SearchField.ALL}


def _haystacks(detail: PlanDetail, query: PlanSearchQuery) -> list[str]:
    selected = query.search_field
    values: list[str] = []
    if selected in _PLAN_FIELDS or selected is SearchField.TITLE:
        values.append(detail.plan.title)
    if selected in _PLAN_FIELDS or selected is SearchField.CONTENT:
        values.append(detail.plan.content)
    if (selected in _PLAN_FIELDS or selected is SearchField.COMMENT) and detail.plan.comment is not None:
        values.append(detail.plan.comment)
    if selected in (SearchField.STEPS, SearchField.ALL):
        values.extend(step.content for step in detail.steps)
    if selected in (SearchField.GOALS, SearchField.ALL):
        for goals in detail.goals.values():
            values.extend(goal.content for goal in goals)
    if query.match_case:
        return values
    return [value.lower() for value in values]


def plan_matches_search(detail: PlanDetail, query: PlanSearchQuery) -> bool:
    haystacks = _haystacks(detail, query)
    if not haystacks:
        return False
    hits = (any(term in value for value in haystacks) for term in query.terms)
    if query.mode is SearchMode.ANY:
        return any(hits)
    return all(hits)
