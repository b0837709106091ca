"""Natural language understanding results and criteria matching.

NLU adapters return raw results keyed by kind (intent, entities, sentiment,
...), each a list of records with an optional id, name and score. Branches
match against those results with per-kind criteria and an operator:

- ``in``   id and/or name (or score if only score given) exists in results
- ``is``   id and/or name (or score if only score given) is the only result
- ``max``  id and/or name match the result with the highest score
- ``min``  id and/or name match the result with the lowest score
- ``eq``   any result has score equal to the criteria score
- ``gte``  any result has score greater than or equal to the criteria score
- ``gt``   any result has score greater than the criteria score
- ``lt``   any result has score less than the criteria score
- ``lte``  any result has score less than or equal to the criteria score

Without an explicit operator, criteria with a score use ``gte``, otherwise
``in``. Score comparisons given with an id or name first filter results by
the id or name.
"""

import operator as op
from collections.abc import Callable, Iterable, Mapping
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ponder.exceptions import NLUCriteriaError

Operator = Literal["in", "is", "max", "min", "eq", "gte", "gt", "lt", "lte"]

SCORE_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "eq": op.eq,
    "gte": op.ge,
    "gt": op.gt,
    "lt": op.lt,
    "lte": op.le,
}


class NLUKey(StrEnum):
    """Kinds of NLU result.

    - ``intent``    what the message was about
    - ``entities``  inferred from the message or context
    - ``sentiment`` positive/negative scores
    - ``tone``      tone information (specific to NLU service)
    - ``phrases``   the key talking points in the text
    - ``act``       how the proposition described is intended to be used
    - ``language``  the language of the text, ``id`` as an ISO code
    """

    INTENT = "intent"
    ENTITIES = "entities"
    SENTIMENT = "sentiment"
    TONE = "tone"
    PHRASES = "phrases"
    ACT = "act"
    LANGUAGE = "language"


class NLUResult(BaseModel):
    """A single NLU result, services may add their own attributes."""

    model_config = ConfigDict(extra="allow")

    id: str | None = Field(default=None, description="Primary code of the result")
    name: str | None = Field(default=None, description="Display name for the ID")
    score: float | None = Field(default=None, description="Confidence or positivity rating")


class NLUCriteria(BaseModel):
    """Criteria to compare against a set of NLU results."""

    id: str | None = None
    name: str | None = None
    score: float | None = None
    operator: Operator | None = None

    @property
    def resolved_operator(self) -> Operator:
        """Explicit operator, or the default implied by presence of score."""
        if self.operator:
            return self.operator
        return "in" if self.score is None else "gte"

    @property
    def identifies(self) -> bool:
        """Whether criteria name a specific result by id or name."""
        return self.id is not None or self.name is not None


NLUResultsRaw = dict[str, list[dict[str, Any]]]
CriteriaInput = NLUCriteria | Mapping[str, Any]


def to_criteria(criteria: CriteriaInput) -> NLUCriteria:
    if isinstance(criteria, NLUCriteria):
        return criteria
    return NLUCriteria.model_validate(criteria)


class NLUResultSet(list[NLUResult]):
    """Ordered list of NLU results for one kind, with matching helpers."""

    def __init__(self, results: Iterable[NLUResult | Mapping[str, Any]] = ()) -> None:
        super().__init__()
        self.add(*results)

    def add(self, *results: NLUResult | Mapping[str, Any]) -> "NLUResultSet":
        """Append results, converting raw records."""
        for result in results:
            self.append(result if isinstance(result, NLUResult) else NLUResult.model_validate(result))
        return self

    def index_includes(self, index: int, criteria: CriteriaInput) -> NLUResult | None:
        """Return the result at index if it has the properties of the criteria.

        Compares id and/or name ignoring score, unless only score is given.
        """
        criteria = to_criteria(criteria)
        if not criteria.identifies and criteria.score is None:
            raise NLUCriteriaError("NLU result matching requires id, name or score")
        if index < 0 or index >= len(self):
            return None
        result = self[index]
        if criteria.identifies:
            if criteria.id is not None and result.id != criteria.id:
                return None
            if criteria.name is not None and result.name != criteria.name:
                return None
        elif result.score != criteria.score:
            return None
        return result

    def sort_by_score(self) -> None:
        """Sort by score descending, unscored results first (full confidence)."""
        self.sort(key=lambda r: (r.score is not None, -(r.score or 0.0)))

    def match(self, criteria: CriteriaInput) -> list[NLUResult] | None:
        """Return results matching criteria by operator, or None."""
        criteria = to_criteria(criteria)
        operator = criteria.resolved_operator
        self.sort_by_score()

        if operator in SCORE_OPERATORS:
            if criteria.score is None:
                raise NLUCriteriaError(f"Operator {operator} requires a score to compare")
            candidates = [
                r for i, r in enumerate(self)
                if not criteria.identifies or self.index_includes(i, criteria)
            ]
            compare = SCORE_OPERATORS[operator]
            matched = [
                r for r in candidates
                if r.score is not None and compare(r.score, criteria.score)
            ]
            return matched or None

        if not self:
            return None
        if operator == "in":
            matched = [r for i, r in enumerate(self) if self.index_includes(i, criteria)]
            return matched or None
        if operator == "is":
            result = self.index_includes(0, criteria) if len(self) == 1 else None
        elif operator == "max":
            result = self.index_includes(0, criteria)
        else:
            result = self.index_includes(len(self) - 1, criteria)
        return [result] if result else None


class NLU:
    """NLU results attached to a message, keyed by result kind."""

    def __init__(self, results: NLUResultsRaw | None = None) -> None:
        self.results: dict[str, NLUResultSet] = {}
        if results:
            self.add_results(results)

    def add_result(self, key: str, *results: NLUResult | Mapping[str, Any]) -> "NLU":
        """Populate results for a kind, creating the result set if needed."""
        key = NLUKey(key).value
        if key in self.results:
            self.results[key].add(*results)
        else:
            self.results[key] = NLUResultSet(results)
        return self

    def add_results(self, results: Mapping[str, Iterable[Any]]) -> "NLU":
        """Populate results for every kind in a raw result collection."""
        for key, items in results.items():
            if items:
                self.add_result(key, *items)
        return self

    def match_criteria(self, key: str, criteria: CriteriaInput) -> list[NLUResult] | None:
        """Match the result set of one kind against criteria."""
        result_set = self.results.get(NLUKey(key).value)
        if result_set is None:
            return None
        return result_set.match(criteria)

    def match_all_criteria(
        self, criteria: Mapping[str, CriteriaInput]
    ) -> dict[str, list[NLUResult]] | None:
        """Match every kind of criteria, returning the matched subset.

        Matches only when every given kind matches.
        """
        if not criteria:
            return None
        matched: dict[str, list[NLUResult]] = {}
        for key, item in criteria.items():
            match = self.match_criteria(key, item)
            if not match:
                return None
            matched[key] = match
        return matched

    def print_results(self) -> str:
        """Readable summary of results for logs."""
        outputs = []
        for key, items in self.results.items():
            if not items:
                continue
            details = ", ".join(
                f"{item.name or item.id}"
                + (f" {item.score:.2f}" if item.score is not None else "")
                for item in items
            )
            outputs.append(f"{key} ({details})")
        return ", ".join(outputs)

    def to_raw(self) -> NLUResultsRaw:
        """Plain data form of all results."""
        return {
            key: [item.model_dump(exclude_none=True) for item in items]
            for key, items in self.results.items()
        }
