"""Definition-wide visibility computation.

Evaluates every section and field rule in dependency order so a referenced
field's visibility is known before the rules that read it are evaluated.
"""

from __future__ import annotations

from dataclasses import dataclass
from graphlib import CycleError, TopologicalSorter
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Set, Tuple
import logging

from form_engine.logic.conditions import is_visible
from form_engine.logic.errors import SchemaError
from form_engine.models.definition import FormDefinition, FormField, Section

logger = logging.getLogger(__name__)

Node = Tuple[str, str]


def _section_node(key: str) -> Node:
    return ("section", key)


def _field_node(key: str) -> Node:
    return ("field", key)


def dependency_graph(definition: FormDefinition) -> Dict[Node, Set[Node]]:
    """Map each section/field node to the nodes it must be evaluated after."""
    graph: Dict[Node, Set[Node]] = {}
    for section in definition.sections:
        deps: Set[Node] = set()
        if section.condition_rule is not None:
            deps.update(_field_node(k) for k in section.condition_rule.referenced_fields())
        graph[_section_node(section.key)] = deps
        for f in section.fields:
            fdeps: Set[Node] = {_section_node(section.key)}
            if f.condition_rule is not None:
                fdeps.update(_field_node(k) for k in f.condition_rule.referenced_fields())
            graph[_field_node(f.field_key)] = fdeps
    return graph


def evaluation_order(definition: FormDefinition) -> List[Node]:
    """Return nodes in an order where every dependency precedes its dependants.

    Raises SchemaError on reference cycles.
    """
    try:
        return list(TopologicalSorter(dependency_graph(definition)).static_order())
    except CycleError as exc:
        cycle = exc.args[1] if len(exc.args) > 1 else []
        path = " -> ".join(f"{kind}:{key}" for kind, key in cycle)
        raise SchemaError(f"condition rules form a cycle: {path}") from exc


@dataclass(frozen=True)
class VisibilityState:
    sections: FrozenSet[str]
    fields: FrozenSet[str]

    def section_visible(self, section: Section) -> bool:
        return section.key in self.sections

    def field_visible(self, f: FormField) -> bool:
        return f.field_key in self.fields


def compute_visibility(definition: FormDefinition, values: Mapping[str, Any]) -> VisibilityState:
    """Compute the visible section keys and field keys for the given values."""
    sections = {s.key: s for s in definition.sections}
    fields: Dict[str, Tuple[Section, FormField]] = {
        f.field_key: (s, f) for s, f in definition.iter_fields()
    }
    visible_sections: Set[str] = set()
    visible_fields: Set[str] = set()
    hidden_fields: Set[str] = set()

    for kind, key in evaluation_order(definition):
        if kind == "section":
            if is_visible(sections[key].condition_rule, values, hidden_fields):
                visible_sections.add(key)
            continue
        if key not in fields:
            raise SchemaError(f"condition rule references unknown field {key}")
        section, f = fields[key]
        if section.key in visible_sections and is_visible(f.condition_rule, values, hidden_fields):
            visible_fields.add(key)
        else:
            hidden_fields.add(key)

    return VisibilityState(frozenset(visible_sections), frozenset(visible_fields))


def filter_visible_sections(definition: FormDefinition, state: VisibilityState) -> List[Section]:
    return [s for s in definition.sections if state.section_visible(s)]


def filter_visible_fields(section: Section, state: VisibilityState) -> List[FormField]:
    return [f for f in section.fields if state.field_visible(f)]


def visible_value_fields(definition: FormDefinition, state: VisibilityState) -> Iterable[FormField]:
    """Yield visible fields that carry a value, in display order."""
    for section in filter_visible_sections(definition, state):
        for f in filter_visible_fields(section, state):
            if f.field_type.holds_value:
                yield f


__all__ = [
    "VisibilityState",
    "dependency_graph",
    "evaluation_order",
    "compute_visibility",
    "filter_visible_sections",
    "filter_visible_fields",
    "visible_value_fields",
]
