"""Functional tests for condition rule evaluation and definition-wide visibility.

Covers the canonical comparison contract, every operator, rule combination,
hide actions, and the dependency-ordered visibility pass (chained rules,
hidden sections hiding their fields, hidden fields counting as empty).
"""

from __future__ import annotations

import pytest

from form_engine.logic.conditions import canonicalize, evaluate_predicate, is_empty, is_visible
from form_engine.logic.errors import SchemaError
from form_engine.logic.visibility import compute_visibility, evaluation_order
from form_engine.models.definition import ConditionRule, FormDefinition, Predicate


def _p(field, operator, value=None) -> Predicate:
    return Predicate(field=field, operator=operator, value=value)


def _rule(*predicates, logic="and", action="show") -> ConditionRule:
    return ConditionRule(logic=logic, action=action, predicates=list(predicates))


# -----------------------------
# Canonical values
# -----------------------------

def test_canonicalize_normalizes_numbers_booleans_and_lists():
    assert canonicalize(10) == "10"
    assert canonicalize(10.0) == "10"
    assert canonicalize("10.0") == "10"
    assert canonicalize(" 2.5 ") == "2.5"
    assert canonicalize(True) == "true"
    assert canonicalize("TRUE") == "true"
    assert canonicalize("  high ") == "high"
    assert canonicalize(["1", 2.0, "x"]) == ("1", "2", "x")
    assert canonicalize(None) is None


def test_canonicalize_keeps_extreme_exponents_exact():
    assert canonicalize("2.50") == "2.5"
    assert canonicalize("1e3") == "1000"
    assert canonicalize("1e5000") == "1E+5000"
    assert canonicalize("1e-5000") == "1E-5000"
    assert canonicalize("1e999999999") == "1E+999999999"
    assert canonicalize("0.000") == "0"
    assert not evaluate_predicate(_p("budget", "equals", "high"), {"budget": "1e5000"})
    assert evaluate_predicate(_p("n", "equals", "1E+5000"), {"n": "10e4999"})


def test_is_empty_covers_blank_strings_and_empty_lists():
    assert is_empty(None)
    assert is_empty("   ")
    assert is_empty([])
    assert not is_empty(0)
    assert not is_empty(False)
    assert not is_empty(["a"])


# -----------------------------
# Operators
# -----------------------------

def test_equals_compares_canonical_forms():
    assert evaluate_predicate(_p("n", "equals", "10.0"), {"n": 10})
    assert evaluate_predicate(_p("flag", "equals", "TRUE"), {"flag": True})
    assert not evaluate_predicate(_p("budget", "equals", "high"), {"budget": "low"})
    assert evaluate_predicate(_p("budget", "not_equals", "high"), {"budget": "low"})


def test_equals_on_absent_field_is_false():
    assert not evaluate_predicate(_p("budget", "equals", "high"), {})
    assert evaluate_predicate(_p("budget", "not_equals", "high"), {})


def test_contains_is_substring_for_text_and_membership_for_lists():
    assert evaluate_predicate(_p("notes", "contains", "shop"), {"notes": "an online shop"})
    assert not evaluate_predicate(_p("notes", "contains", "blog"), {"notes": "an online shop"})
    assert evaluate_predicate(_p("services", "contains", "seo"), {"services": ["web", "seo"]})
    assert evaluate_predicate(_p("services", "not_contains", "ads"), {"services": ["web", "seo"]})
    assert not evaluate_predicate(_p("services", "contains", "seo"), {})


def test_in_and_not_in_accept_scalar_and_list_answers():
    allowed = ["medium", "high"]
    assert evaluate_predicate(_p("budget", "in", allowed), {"budget": "high"})
    assert not evaluate_predicate(_p("budget", "in", allowed), {"budget": "low"})
    assert evaluate_predicate(_p("budget", "not_in", allowed), {"budget": "low"})
    assert evaluate_predicate(_p("services", "in", ["seo"]), {"services": ["web", "seo"]})
    assert not evaluate_predicate(_p("budget", "in", allowed), {"budget": ""})


def test_numeric_comparisons_require_numeric_operands():
    assert evaluate_predicate(_p("staff", "greater_than", 10), {"staff": "25"})
    assert evaluate_predicate(_p("staff", "less_than", "10"), {"staff": 3.5})
    assert not evaluate_predicate(_p("staff", "greater_than", 10), {"staff": "many"})
    assert not evaluate_predicate(_p("staff", "greater_than", 0), {"staff": True})
    assert not evaluate_predicate(_p("staff", "less_than", 10), {})


def test_emptiness_operators_treat_hidden_fields_as_empty():
    values = {"company": "Acme"}
    assert evaluate_predicate(_p("company", "is_not_empty"), values)
    assert evaluate_predicate(_p("company", "is_empty"), values, hidden={"company"})
    assert not evaluate_predicate(_p("company", "is_not_empty"), values, hidden={"company"})
    # Other operators still read the stored value of a hidden field.
    assert evaluate_predicate(_p("company", "equals", "Acme"), values, hidden={"company"})


def test_unknown_operator_raises_schema_error():
    bogus = Predicate.model_construct(field="x", operator="approximately", value=1)
    with pytest.raises(SchemaError):
        evaluate_predicate(bogus, {"x": 1})


# -----------------------------
# Rules
# -----------------------------

def test_missing_or_empty_rule_is_visible():
    assert is_visible(None, {})
    assert is_visible(ConditionRule(), {})


def test_and_or_logic_and_hide_action():
    high = _p("budget", "equals", "high")
    urgent = _p("timeline", "equals", "asap")
    values = {"budget": "high", "timeline": "flexible"}

    assert not is_visible(_rule(high, urgent), values)
    assert is_visible(_rule(high, urgent, logic="or"), values)
    assert not is_visible(_rule(high, action="hide"), values)
    assert is_visible(_rule(urgent, action="hide"), values)


# -----------------------------
# Definition-wide visibility
# -----------------------------

def _chained_definition() -> FormDefinition:
    return FormDefinition.model_validate(
        {
            "form_id": "form-chain",
            "agency_id": "agency-1",
            "slug": "chain",
            "sections": [
                {
                    "key": "later",
                    "display_order": 20,
                    "condition_rule": {"predicates": [{"field": "has_site", "operator": "equals", "value": True}]},
                    "fields": [
                        {"field_id": "f2", "field_key": "site_url", "field_type": "url"},
                    ],
                },
                {
                    "key": "first",
                    "display_order": 10,
                    "fields": [
                        {"field_id": "f1", "field_key": "has_site", "field_type": "checkbox"},
                        {
                            "field_id": "f3",
                            "field_key": "site_notes",
                            "field_type": "textarea",
                            "condition_rule": {
                                "predicates": [{"field": "site_url", "operator": "is_not_empty"}]
                            },
                        },
                    ],
                },
            ],
        }
    )


def test_fields_in_hidden_sections_are_hidden():
    definition = _chained_definition()
    state = compute_visibility(definition, {"has_site": False, "site_url": "https://acme.com.au"})
    assert state.sections == frozenset({"first"})
    assert "site_url" not in state.fields
    # site_url is hidden, so a rule testing it for content sees it as empty.
    assert "site_notes" not in state.fields


def test_chained_rules_follow_dependencies_across_sections():
    definition = _chained_definition()
    state = compute_visibility(definition, {"has_site": True, "site_url": "https://acme.com.au"})
    assert state.sections == frozenset({"first", "later"})
    assert {"has_site", "site_url", "site_notes"} <= state.fields

    order = evaluation_order(definition)
    assert order.index(("field", "site_url")) < order.index(("field", "site_notes"))
    assert order.index(("section", "later")) < order.index(("field", "site_url"))


def test_visibility_is_deterministic(budget_form):
    values = {"budget": "high", "premium_features": "cms"}
    first = compute_visibility(budget_form, values)
    second = compute_visibility(budget_form, dict(values))
    assert first == second


def test_budget_section_follows_budget_answer(budget_form):
    assert compute_visibility(budget_form, {"budget": "high"}).sections == frozenset({"about", "premium"})
    assert compute_visibility(budget_form, {"budget": "low"}).sections == frozenset({"about"})
    assert compute_visibility(budget_form, {}).sections == frozenset({"about"})
