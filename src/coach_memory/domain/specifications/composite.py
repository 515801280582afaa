"""Specification base and conjunction.

A specification is one rule over memory records. It can be checked against
a record in Python (``is_satisfied_by``, used by the in-process store) and
compiled to the filter dictionary read by the Neo4j filter compiler
(``to_filter``), so both stores share one definition of every rule.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class BaseSpecification(BaseModel):
    model_config = ConfigDict(frozen=True)

    def is_satisfied_by(self, entity: Any) -> bool:
        raise NotImplementedError

    def to_filter(self) -> dict[str, Any]:
        return {}

    def and_(self, other: "BaseSpecification") -> "AllOfSpecification":
        """Both rules must hold; nested conjunctions are flattened."""
        return AllOfSpecification(parts=(*_conjuncts(self), *_conjuncts(other)))


def _conjuncts(spec: BaseSpecification) -> tuple[BaseSpecification, ...]:
    return spec.parts if isinstance(spec, AllOfSpecification) else (spec,)


class AllOfSpecification(BaseSpecification):
    type: Literal["all_of"] = "all_of"
    parts: tuple[BaseSpecification, ...]

    def is_satisfied_by(self, entity: Any) -> bool:
        return all(part.is_satisfied_by(entity) for part in self.parts)

    def to_filter(self) -> dict[str, Any]:
        # Grouped rather than merged so two $or filters never overwrite each other
        filters = [f for f in (part.to_filter() for part in self.parts) if f]
        if len(filters) <= 1:
            return filters[0] if filters else {}
        return {"$and": filters}
