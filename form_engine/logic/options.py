"""Options-source resolution.

Static option lists resolve locally. Shared sets and external providers are
resolved by a collaborator implementing `OptionsResolver`; an unresolvable
source is an error, never an empty list.
"""

from __future__ import annotations

from typing import Callable, List, Mapping, Optional, Protocol, Sequence

from form_engine.logic.errors import OptionsUnresolvedError
from form_engine.models.definition import (
    ExternalOptions,
    FieldOption,
    FormDefinition,
    FormField,
    SharedOptions,
    StaticOptions,
)


class OptionsResolver(Protocol):
    def resolve(self, source: SharedOptions | ExternalOptions, agency_id: str) -> Optional[List[FieldOption]]:
        """Return concrete options, or None when the source is unknown."""


class MappingOptionsResolver:
    """Resolver over in-process option sets and provider callables."""

    def __init__(
        self,
        shared: Mapping[str, Sequence[FieldOption]] | None = None,
        providers: Mapping[str, Callable[[str], Sequence[FieldOption]]] | None = None,
    ) -> None:
        self._shared = dict(shared or {})
        self._providers = dict(providers or {})

    def resolve(self, source: SharedOptions | ExternalOptions, agency_id: str) -> Optional[List[FieldOption]]:
        if isinstance(source, SharedOptions):
            found = self._shared.get(source.option_set)
            return list(found) if found is not None else None
        provider = self._providers.get(source.provider)
        if provider is None:
            return None
        return list(provider(agency_id))


def resolve_field_options(
    definition: FormDefinition,
    f: FormField,
    resolver: OptionsResolver | None,
) -> Optional[List[FieldOption]]:
    """Resolve the options of one field; None for fields without options."""
    source = f.options_source
    if source is None:
        if f.field_type.uses_options:
            raise OptionsUnresolvedError(f.field_key, None)
        return None
    if isinstance(source, StaticOptions):
        return list(source.options)
    if resolver is None:
        raise OptionsUnresolvedError(f.field_key, source)
    resolved = resolver.resolve(source, definition.agency_id)
    if resolved is None:
        raise OptionsUnresolvedError(f.field_key, source)
    return resolved


__all__ = [
    "OptionsResolver",
    "MappingOptionsResolver",
    "resolve_field_options",
]
