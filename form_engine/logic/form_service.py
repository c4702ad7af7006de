"""Form service: composes visibility, validation and the response tracker.

Answers "what does the client see next", "is this submittable" and "what
percentage is this at". Every call takes a definition snapshot and a response
snapshot and returns new snapshots; the service holds no per-response state
and is safe to share across threads.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple
import logging

from form_engine.logic import response_tracker
from form_engine.logic.conditions import is_empty
from form_engine.logic.errors import SchemaError, UnknownFieldError
from form_engine.logic.options import OptionsResolver, resolve_field_options
from form_engine.logic.validation import validate_field
from form_engine.logic.visibility import (
    VisibilityState,
    compute_visibility,
    filter_visible_fields,
    filter_visible_sections,
    visible_value_fields,
)
from form_engine.models.definition import FieldValue, FormDefinition, FormField, Section
from form_engine.models.response import FormResponse, ResponseStatus
from form_engine.models.validation import ValidationError

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _values(response: Optional[FormResponse]) -> Mapping[str, Any]:
    return response.values if response is not None else {}


@dataclass(frozen=True)
class VisibilityDelta:
    now_visible_sections: List[str]
    now_hidden_sections: List[str]
    now_visible_fields: List[str]
    now_hidden_fields: List[str]
    # Newly hidden fields whose stored values are kept, not deleted.
    retained_values: List[str]


class FormService:
    def __init__(
        self,
        options_resolver: OptionsResolver | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.options_resolver = options_resolver
        self.clock = clock

    # -- rendering -------------------------------------------------------

    def visibility(self, definition: FormDefinition, response: Optional[FormResponse]) -> VisibilityState:
        return compute_visibility(definition, _values(response))

    def visible_sections(self, definition: FormDefinition, response: Optional[FormResponse]) -> List[Section]:
        return filter_visible_sections(definition, self.visibility(definition, response))

    def visible_fields(
        self, definition: FormDefinition, section: Section, response: Optional[FormResponse]
    ) -> List[FormField]:
        state = self.visibility(definition, response)
        if not state.section_visible(section):
            return []
        return filter_visible_fields(section, state)

    # -- validation ------------------------------------------------------

    def validate_value(
        self, definition: FormDefinition, f: FormField, value: Any, is_visible: bool
    ) -> List[ValidationError]:
        options = None
        if is_visible and f.field_type.uses_options:
            options = resolve_field_options(definition, f, self.options_resolver)
        return validate_field(f, value, is_visible, options)

    def _visible_errors(
        self, definition: FormDefinition, response: Optional[FormResponse], state: VisibilityState
    ) -> Iterable[Tuple[FormField, List[ValidationError]]]:
        values = _values(response)
        for f in visible_value_fields(definition, state):
            yield f, self.validate_value(definition, f, values.get(f.field_key), True)

    def compute_completion_percentage(
        self, definition: FormDefinition, response: Optional[FormResponse]
    ) -> int:
        """Share of visible required fields holding a valid value, floored to 0..100.

        With no visible required fields the form counts as complete once any
        value has been entered.
        """
        state = self.visibility(definition, response)
        total = 0
        valid = 0
        for f, errors in self._visible_errors(definition, response, state):
            if not f.is_required:
                continue
            total += 1
            if not errors:
                valid += 1
        if total == 0:
            values = _values(response)
            return 100 if any(not is_empty(v) for v in values.values()) else 0
        return (valid * 100) // total

    # -- mutation --------------------------------------------------------

    def start_response(self, definition: FormDefinition, entity_type: str, entity_id: str) -> FormResponse:
        return response_tracker.new_response(definition, entity_type, entity_id)

    def _check_binding(self, definition: FormDefinition, response: FormResponse) -> None:
        if response.form_id != definition.form_id or response.form_version != definition.version:
            raise SchemaError(
                f"response {response.response_id} is bound to form {response.form_id} "
                f"v{response.form_version}, not {definition.form_id} v{definition.version}"
            )

    def apply_value_change(
        self,
        definition: FormDefinition,
        response: FormResponse,
        field_key: str,
        value: FieldValue,
    ) -> Tuple[FormResponse, List[ValidationError]]:
        """Validate and store one value; the value is stored even when invalid."""
        self._check_binding(definition, response)
        f = definition.find_field(field_key)
        if f is None or not f.field_type.holds_value:
            raise UnknownFieldError(field_key)
        response_tracker.ensure_writable(response)

        state = self.visibility(definition, response)
        errors = self.validate_value(definition, f, value, state.field_visible(f))
        updated = response_tracker.record_value(response, field_key, value, self.clock())
        updated = response_tracker.with_completion(
            updated, self.compute_completion_percentage(definition, updated)
        )
        logger.debug(
            "value_applied response_id=%s field_key=%s errors=%d completion=%d",
            updated.response_id,
            field_key,
            len(errors),
            updated.completion_percentage,
        )
        return updated, errors

    def apply_value_changes(
        self,
        definition: FormDefinition,
        response: FormResponse,
        changes: Mapping[str, FieldValue],
    ) -> Tuple[FormResponse, List[ValidationError]]:
        """Apply a batch autosave in the given key order.

        Every key is checked before anything is written, so an unknown key
        leaves the response untouched.
        """
        for key in changes:
            f = definition.find_field(key)
            if f is None or not f.field_type.holds_value:
                raise UnknownFieldError(key)
        errors: List[ValidationError] = []
        for key, value in changes.items():
            response, field_errors = self.apply_value_change(definition, response, key, value)
            errors.extend(field_errors)
        return response, errors

    def submit(
        self, definition: FormDefinition, response: FormResponse
    ) -> Tuple[FormResponse, List[ValidationError]]:
        """Gate completion on a fresh visibility and validation pass.

        Only visible required fields gate submission; their errors are
        returned and the status is left alone when any exist. A completed
        response is returned unchanged.
        """
        self._check_binding(definition, response)
        if response.status is ResponseStatus.COMPLETED:
            return response, []
        state = self.visibility(definition, response)
        errors: List[ValidationError] = []
        for f, field_errors in self._visible_errors(definition, response, state):
            if f.is_required:
                errors.extend(field_errors)
        if errors:
            logger.info(
                "submit_rejected response_id=%s errors=%d", response.response_id, len(errors)
            )
            return response, errors
        completed = response_tracker.mark_completed(response, self.clock())
        logger.info("submit_completed response_id=%s", completed.response_id)
        return completed, []

    # -- navigation ------------------------------------------------------

    def set_current_section(
        self, definition: FormDefinition, response: FormResponse, index: int
    ) -> FormResponse:
        """Move the wizard position, clamped to the visible sections."""
        count = len(self.visible_sections(definition, response))
        clamped = max(0, min(index, count - 1)) if count else 0
        return response_tracker.with_section_index(response, clamped, self.clock())

    def resume_section(self, definition: FormDefinition, response: Optional[FormResponse]) -> int:
        """Index of the first visible section with an incomplete required field.

        Falls back to the last visible section when everything is complete.
        """
        state = self.visibility(definition, response)
        sections = filter_visible_sections(definition, state)
        values = _values(response)
        for index, section in enumerate(sections):
            for f in filter_visible_fields(section, state):
                if not f.is_required or not f.field_type.holds_value:
                    continue
                if self.validate_value(definition, f, values.get(f.field_key), True):
                    return index
        return max(len(sections) - 1, 0)

    def visibility_delta(
        self,
        definition: FormDefinition,
        before: Optional[FormResponse],
        after: FormResponse,
    ) -> VisibilityDelta:
        pre = self.visibility(definition, before)
        post = self.visibility(definition, after)
        hidden_fields = sorted(pre.fields - post.fields)
        return VisibilityDelta(
            now_visible_sections=sorted(post.sections - pre.sections),
            now_hidden_sections=sorted(pre.sections - post.sections),
            now_visible_fields=sorted(post.fields - pre.fields),
            now_hidden_fields=hidden_fields,
            retained_values=[k for k in hidden_fields if not is_empty(after.values.get(k))],
        )


__all__ = ["FormService", "VisibilityDelta"]
