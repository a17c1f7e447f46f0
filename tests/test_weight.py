"""Tests for weight and multiplier aggregation over blocked issues."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from payloads import github_payload, url

from issue_depgraph.exceptions import CycleError
from issue_depgraph.registry import IssueRegistry
from issue_depgraph.resolver import resolve, weight, weight_multiplier

MakeRegistry = Callable[..., IssueRegistry]


@pytest.mark.unit
class TestWeight:
    def test_lone_issue_has_its_base_weight(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(github_payload(1, "depviz.base_weight: 3"))
        resolve(registry)
        assert weight(registry, registry[url(1)]) == 3

    def test_sums_blocked_issues(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(
            github_payload(1, "blocks #2\nblocks #3"),
            github_payload(2, "depviz.base_weight: 2"),
            github_payload(3, "depviz.base_weight: 2"),
        )
        resolve(registry)
        assert weight(registry, registry[url(1)]) == 5

    def test_shared_descendant_counts_once_per_direct_blocked_issue(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(
            github_payload(1, "blocks #2\nblocks #3\nblocks #2"),
            github_payload(2, "blocks #4"),
            github_payload(3, "blocks #4"),
            github_payload(4),
        )
        resolve(registry)
        # 4 weighs 1, 2 and 3 weigh 1 + 1 each, 1 weighs 1 + 2 + 2
        assert weight(registry, registry[url(1)]) == 5

    def test_multiplier_chain(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(
            github_payload(1, "blocks #2\ndepviz.weight_multiplier: 2"),
            github_payload(2, "depviz.weight_multiplier: 3"),
        )
        resolve(registry)
        assert weight_multiplier(registry, registry[url(2)]) == 3
        assert weight(registry, registry[url(2)]) == 3
        assert weight_multiplier(registry, registry[url(1)]) == 6
        assert weight(registry, registry[url(1)]) == (1 + 3) * 6

    def test_dependencies_do_not_add_weight(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(github_payload(1, "depends on #2"), github_payload(2, "depviz.base_weight: 9"))
        resolve(registry)
        assert weight(registry, registry[url(1)]) == 1
        assert weight(registry, registry[url(2)]) == 10

    def test_weight_is_recomputed_on_every_call(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(github_payload(1, "blocks #2"), github_payload(2))
        resolve(registry)
        assert weight(registry, registry[url(1)]) == 2
        registry[url(2)].base_weight = 4
        assert weight(registry, registry[url(1)]) == 5


@pytest.mark.unit
class TestWeightCycles:
    def test_cycle_raises(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(github_payload(1, "blocks #2"), github_payload(2, "blocks #1"))
        resolve(registry)

        with pytest.raises(CycleError) as exc_info:
            weight(registry, registry[url(1)])
        assert exc_info.value.cycle == [url(1), url(2), url(1)]

    def test_cycle_below_the_issue_raises(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(
            github_payload(1, "blocks #2"),
            github_payload(2, "blocks #3"),
            github_payload(3, "blocks #2"),
        )
        resolve(registry)

        with pytest.raises(CycleError, match="Cycle in blocking relations"):
            weight_multiplier(registry, registry[url(1)])

    def test_issue_outside_the_cycle_still_has_a_weight(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(
            github_payload(1, "blocks #2"),
            github_payload(2, "blocks #1"),
            github_payload(3, "depends on #4"),
            github_payload(4),
        )
        resolve(registry)
        assert weight(registry, registry[url(4)]) == 2
