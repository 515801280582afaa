"""Safe filter compilation for Cypher queries.

Builds WHERE clauses from specification filter dictionaries. Values are
always passed as parameters; only field names (which come from our own
specifications) are interpolated.
"""

from __future__ import annotations

import re
from typing import Any

_FIELD_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def compile_filters(
    filters: dict[str, Any] | None,
    alias: str = "m",
    param_prefix: str = "p",
) -> tuple[str, dict[str, Any]]:
    """Compile filter dictionary into safe WHERE clause and parameters.

    Args:
        filters: Dictionary of filters supporting:
            - Equality: {"field": "value"}
            - Null checks: {"field": None}, {"field__isnull": False}
            - Case-insensitive substring: {"field__icontains": "text"}
            - Logical groups: {"$or": [...], "$and": [...]}
        alias: Node alias to use in queries (default: "m")
        param_prefix: Prefix for generated parameter names

    Returns:
        Tuple of (WHERE clause string, parameters dict)

    Examples:
        >>> compile_filters({"owner_id": "u1", "is_archived": False})
        ('WHERE m.owner_id = $p_0 AND m.is_archived = $p_1', {'p_0': 'u1', 'p_1': False})
    """
    if not filters:
        return "", {}

    params: dict[str, Any] = {}

    def bind(value: Any) -> str:
        name = f"{param_prefix}_{len(params)}"
        params[name] = value
        return f"${name}"

    def field_ref(field: str) -> str:
        if not _FIELD_RE.match(field):
            raise ValueError(f"Invalid filter field name: {field!r}")
        return f"{alias}.{field}"

    def field_op(field: str, op: str, value: Any) -> str:
        ref = field_ref(field)
        if op == "isnull":
            return f"{ref} IS NULL" if value else f"{ref} IS NOT NULL"
        if op == "icontains":
            return f"toLower({ref}) CONTAINS toLower({bind(value)})"
        raise ValueError(f"Unsupported filter operator: {op!r}")

    def join(clauses: list[str], op: str) -> str:
        if len(clauses) == 1:
            return clauses[0]
        return "(" + f" {op} ".join(clauses) + ")"

    def process(filter_dict: dict[str, Any]) -> list[str]:
        clauses: list[str] = []
        for key, value in filter_dict.items():
            if key == "$or":
                group = [join(sub, "AND") for sub in (process(item) for item in value) if sub]
                if group:
                    clauses.append(join(group, "OR"))
            elif key == "$and":
                group = [clause for item in value for clause in process(item)]
                if group:
                    clauses.append(join(group, "AND"))
            elif "__" in key:
                field, op = key.split("__", 1)
                clauses.append(field_op(field, op, value))
            elif value is None:
                clauses.append(f"{field_ref(key)} IS NULL")
            else:
                clauses.append(f"{field_ref(key)} = {bind(value)}")
        return clauses

    clauses = process(filters)
    if not clauses:
        return "", {}
    return "WHERE " + " AND ".join(clauses), params
