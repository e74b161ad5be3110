"""Dependency-ordered, idempotent publishing of workspace members.

Every member is published exactly once per release run, and only after
all of its local dependencies. The walk itself lives in
:func:`armory.graph.walk`; this module decides what happens at each
member and records the outcome.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping, Set

from .graph import check_acyclic, walk
from .logging import get_logger
from .models import PublishResult, ReleaseReport

log = get_logger("armory.publisher")


class PublishState:
    """Members successfully published in the current run.

    Only grows: members are added, never removed. A member in the state is
    never published again, however many paths lead to it.
    """

    def __init__(self, published: Iterable[str] = ()) -> None:
        self._published: list[str] = []
        self._members: set[str] = set()
        for name in published:
            self.add(name)

    def add(self, name: str) -> None:
        if name not in self._members:
            self._members.add(name)
            self._published.append(name)

    def __contains__(self, name: object) -> bool:
        return name in self._members

    def __iter__(self) -> Iterator[str]:
        return iter(self._published)

    def __len__(self) -> int:
        return len(self._published)

    def __repr__(self) -> str:
        return f"PublishState({self._published!r})"


def publish_workspace(
    graph: Mapping[str, Set[str]],
    publish_one: Callable[[str], PublishResult],
    *,
    version: str = "",
    state: PublishState | None = None,
    keep_going: bool = False,
) -> ReleaseReport:
    """Publish every member of ``graph`` in dependency order.

    For each member (dependencies first, ties broken by name): skip it if
    it is already in ``state``, otherwise call ``publish_one`` and add it
    to ``state`` on success.

    When a publish fails, the walk stops and every member not yet published
    is reported as blocked. With ``keep_going``, only members depending
    (transitively) on the failure are blocked and independent branches are
    still published.

    Args:
        graph: Map of member name → local dependency names.
        publish_one: Publishes one member, retries included.
        version: Version being released, for the report.
        state: Members already published; updated in place.
        keep_going: Continue with independent branches after a failure.

    Returns:
        A ReleaseReport. Members published are listed in publish order.

    Raises:
        DependencyCycleError: If the graph has a cycle. Checked before
            anything is published.
    """
    check_acyclic(graph)
    state = state if state is not None else PublishState()
    report = ReleaseReport(
        version=version,
        skipped_existing=sorted(name for name in graph if name in state),
    )
    unavailable: set[str] = set()

    for name in walk(graph, done=state):
        if unavailable:
            if not keep_going:
                report.blocked.append(name)
                continue
            missing = sorted(graph[name] & unavailable)
            if missing:
                log.warning("publish_blocked", member=name, waiting_on=missing)
                report.blocked.append(name)
                unavailable.add(name)
                continue

        result = publish_one(name)
        if result.ok:
            state.add(name)
            report.published.append(name)
            log.info("published", member=name, attempts=result.attempts)
            print(f"  ✓ {name}")
        else:
            report.failed[name] = result
            unavailable.add(name)
            print(f"  ✗ {name} ({result.attempts} attempts)")

    return report
