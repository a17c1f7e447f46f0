"""Tests for fetching targets, merging batches and rendering."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator

import pytest
from payloads import GITLAB_PROJECT, github_payload, gitlab_payload, url

from issue_depgraph.exceptions import FetchError
from issue_depgraph.models import Provider
from issue_depgraph.normalizer import Batch
from issue_depgraph.registry import IssueRegistry
from issue_depgraph.service import Target, fetch_all, merge_batches, parse_target, render

MakeRegistry = Callable[..., IssueRegistry]

GITHUB_TARGET = Target(Provider.GITHUB, "acme/roadmap")
GITLAB_TARGET = Target(Provider.GITLAB, "acme/platform")


@pytest.mark.unit
class TestParseTarget:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("github:acme/roadmap", GITHUB_TARGET),
            ("gitlab:acme/group/platform", Target(Provider.GITLAB, "acme/group/platform")),
            ("https://github.com/acme/roadmap", GITHUB_TARGET),
            ("https://github.com/acme/roadmap/issues", GITHUB_TARGET),
            ("https://gitlab.com/acme/platform/-/issues", GITLAB_TARGET),
            (
                "https://git.example.com/acme/platform.git",
                Target(Provider.GITLAB, "acme/platform", base_url="https://git.example.com"),
            ),
        ],
    )
    def test_valid(self, value: str, expected: Target) -> None:
        assert parse_target(value) == expected

    @pytest.mark.parametrize("value", ["github:acme", "acme/roadmap", "ftp://github.com/acme/roadmap", ""])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(ValueError, match="Invalid target"):
            _ = parse_target(value)

    def test_str(self) -> None:
        assert str(GITHUB_TARGET) == "github:acme/roadmap"


@pytest.mark.unit
class TestMergeBatches:
    def test_redelivered_issue_replaces_earlier_copy(self) -> None:
        registry = IssueRegistry()
        errors = merge_batches(
            registry,
            [
                Batch(Provider.GITHUB, [github_payload(1, title="Old"), github_payload(2)]),
                Batch(Provider.GITHUB, [github_payload(1, title="New")]),
            ],
        )

        assert errors == []
        assert len(registry) == 2
        assert registry[url(1)].title == "New"

    def test_malformed_records_are_reported(self) -> None:
        broken = github_payload(2)
        del broken["title"]
        registry = IssueRegistry()

        errors = merge_batches(registry, [Batch(Provider.GITHUB, [github_payload(1), broken])])

        assert registry.urls() == [url(1)]
        assert [str(error) for error in errors] == ["github record is missing required field 'title'"]


def _fake_fetcher(target: Target) -> Iterator[Batch]:
    if target.provider is Provider.GITHUB:
        yield Batch(Provider.GITHUB, [github_payload(1, "depends on #2")])
        yield Batch(Provider.GITHUB, [github_payload(2)])
    else:
        yield Batch(Provider.GITLAB, [gitlab_payload(7)])
        msg = "boom"
        raise FetchError(msg)


@pytest.mark.unit
class TestFetchAll:
    def test_merges_every_target(self) -> None:
        registry = IssueRegistry()

        errors = fetch_all(registry, [GITHUB_TARGET], _fake_fetcher)

        assert errors == []
        assert registry.urls() == [url(1), url(2)]

    def test_failing_target_does_not_stop_others(self) -> None:
        registry = IssueRegistry()

        errors = fetch_all(registry, [GITHUB_TARGET, GITLAB_TARGET], _fake_fetcher, max_workers=2)

        assert errors == ["gitlab:acme/platform: boom"]
        assert url(1) in registry
        assert f"{GITLAB_PROJECT}/-/issues/7" in registry

    def test_unexpected_errors_propagate(self) -> None:
        def broken(target: Target) -> Iterator[Batch]:
            msg = f"no fetcher for {target}"
            raise RuntimeError(msg)

        with pytest.raises(RuntimeError, match="no fetcher for github:acme/roadmap"):
            _ = fetch_all(IssueRegistry(), [GITHUB_TARGET], broken)

    def test_no_targets(self) -> None:
        assert fetch_all(IssueRegistry(), [], _fake_fetcher) == []


@pytest.mark.unit
class TestRender:
    def test_dot_resolves_first(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(github_payload(1, "depends on #2"), github_payload(2))

        output = render(registry)

        assert output.startswith('digraph "G" {')
        assert f'"{url(1)}" -> "{url(2)}"' in output

    def test_hide_closed(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(github_payload(1, "depends on #2"), github_payload(2, state="closed"))

        output = render(registry, hide_closed=True)

        assert f'"{url(1)}" [' in output
        assert f'"{url(2)}" [' not in output

    def test_hide_orphans(self, make_registry: MakeRegistry, caplog: pytest.LogCaptureFixture) -> None:
        registry = make_registry(github_payload(1, "blocks #2"), github_payload(2), github_payload(3))

        output = render(registry, hide_orphans=True)

        assert f'"{url(3)}"' not in output
        assert "No epic-linked issue left" in caplog.text

    def test_json(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(github_payload(1, "blocks #2", labels=["t/epic"]), github_payload(2))

        document = json.loads(render(registry, output_format="json"))

        assert [node["id"] for node in document["nodes"]] == [url(1), url(2)]
        assert document["edges"][0]["source"] == url(2)
        assert document["edges"][0]["target"] == url(1)

    def test_without_resolving(self, make_registry: MakeRegistry) -> None:
        registry = make_registry(github_payload(1, "depends on #2"), github_payload(2))

        output = render(registry, resolve_first=False)

        assert "->" not in output


@pytest.mark.integration
class TestEndToEnd:
    def test_fetch_resolve_render(self) -> None:
        registry = IssueRegistry()

        def fetcher(target: Target) -> Iterator[Batch]:
            yield Batch(Provider.GITHUB, [github_payload(1, "Part of #3"), github_payload(4)])
            yield Batch(Provider.GITHUB, [github_payload(2, "Blocked by #3"), github_payload(3, labels=["t/epic"])])

        assert fetch_all(registry, [GITHUB_TARGET], fetcher) == []
        output = render(registry, hide_orphans=True)

        for number in (1, 2, 3):
            assert f'"{url(number)}" [' in output
        assert f'"{url(4)}"' not in output
        assert f'"{url(3)}" -> "{url(1)}"' in output
        assert f'"{url(2)}" -> "{url(3)}"' in output
