"""
Declarative deep merge for webpack build graphs.

A merge rule table says, per field, how an override combines with the
baseline:

- ``Strategy.APPEND``   lists are concatenated
- ``Strategy.MERGE``    maps are deep-merged, lists are unioned at any depth
- ``Strategy.REPLACE``  the override wins wholesale
- ``Match(key, rules)`` list items that are maps and share ``item[key]`` are
  merged using the nested ``rules``; other items are appended
- a nested ``dict``     a rule table for a nested map

Fields without a rule deep-merge maps, concatenate lists and replace scalars.
Inputs are never mutated.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Union


class Strategy(StrEnum):
    APPEND = "append"
    MERGE = "merge"
    REPLACE = "replace"


@dataclass(frozen=True)
class Match:
    """Merge list items that agree on ``key``."""

    key: str
    rules: dict[str, Rule] = field(default_factory=dict)


Rule = Union[Strategy, Match, dict[str, "Rule"]]


def _union(base: list[Any], override: list[Any]) -> list[Any]:
    result = copy.deepcopy(base)
    for item in override:
        if item not in result:
            result.append(copy.deepcopy(item))
    return result


def _match_lists(rule: Match, base: list[Any], override: list[Any]) -> list[Any]:
    result = copy.deepcopy(base)
    for item in override:
        if isinstance(item, dict) and rule.key in item:
            for index, existing in enumerate(result):
                if isinstance(existing, dict) and existing.get(rule.key) == item[rule.key]:
                    result[index] = merge_with_rules(rule.rules, existing, item)
                    break
            else:
                result.append(copy.deepcopy(item))
        elif item not in result:
            result.append(copy.deepcopy(item))
    return result


def merge_value(rule: Rule | None, base: Any, override: Any) -> Any:
    """Combine a single field according to ``rule``."""
    if rule is Strategy.REPLACE:
        return copy.deepcopy(override)

    both_lists = isinstance(base, list) and isinstance(override, list)
    both_maps = isinstance(base, dict) and isinstance(override, dict)

    if isinstance(rule, Match) and both_lists:
        return _match_lists(rule, base, override)
    if rule is Strategy.MERGE and both_lists:
        return _union(base, override)
    if rule is Strategy.MERGE and both_maps:
        return merge_with_rules({}, base, override, default=Strategy.MERGE)
    if isinstance(rule, dict) and both_maps:
        return merge_with_rules(rule, base, override)

    if both_maps:
        return merge_with_rules({}, base, override)
    if both_lists:
        return copy.deepcopy(base) + copy.deepcopy(override)
    return copy.deepcopy(override)


def merge_with_rules(
    rules: dict[str, Rule],
    base: dict[str, Any],
    override: dict[str, Any],
    default: Rule | None = None,
) -> dict[str, Any]:
    """
    Deep-merge ``override`` over ``base`` following ``rules``.

    Args:
        rules: Field name to rule table
        base: Baseline map
        override: Map whose values take precedence
        default: Rule for fields missing from ``rules``

    Returns:
        A new merged map
    """
    result = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if key in result:
            result[key] = merge_value(rules.get(key, default), result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def merge(base: dict[str, Any], *overrides: dict[str, Any]) -> dict[str, Any]:
    """Rule-less deep merge of several maps, left to right."""
    result = copy.deepcopy(base)
    for override in overrides:
        result = merge_with_rules({}, result, override)
    return result


__all__ = ["Match", "Rule", "Strategy", "merge", "merge_value", "merge_with_rules"]
