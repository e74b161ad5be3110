"""Dependency graph utilities.

Provides the depth-first walk that determines publish order in a
workspace. Crates must be published in dependency order so that when
crate A depends on crate B, B is already resolvable on the registry when
A is uploaded.
"""

from __future__ import annotations

from collections.abc import Container, Iterator, Mapping, Set
from enum import Enum

from .errors import DependencyCycleError, UndeclaredMemberError


class _Mark(Enum):
    IN_PROGRESS = 1
    DONE = 2


def walk(
    graph: Mapping[str, Set[str]],
    done: Container[str] = frozenset(),
) -> Iterator[str]:
    """Yield members so that every member comes after its dependencies.

    An explicit-stack depth-first traversal. Roots and the dependencies of
    each member are visited in lexicographic order, so the output is
    deterministic. Members in ``done`` are neither yielded nor descended
    into. ``done`` is consulted lazily, so a caller may add to it while
    consuming the iterator.

    Args:
        graph: Map of member name → names of its local dependencies.
        done: Members that are already finished (e.g. published).

    Raises:
        DependencyCycleError: If a cycle is reachable, naming its members.
        UndeclaredMemberError: If an edge points outside the graph.

    Example:
        If A depends on B, and B depends on C:
        list(walk({A: {B}, B: {C}, C: set()})) → [C, B, A]
    """
    marks: dict[str, _Mark] = {}

    for start in sorted(graph):
        if start in marks or start in done:
            continue
        marks[start] = _Mark.IN_PROGRESS
        stack: list[tuple[str, Iterator[str]]] = [(start, iter(sorted(graph[start])))]

        while stack:
            node, deps = stack[-1]
            for dep in deps:
                if dep not in graph:
                    raise UndeclaredMemberError(node, dep)
                mark = marks.get(dep)
                if mark is _Mark.DONE or (mark is None and dep in done):
                    continue
                if mark is _Mark.IN_PROGRESS:
                    path = [n for n, _ in stack]
                    raise DependencyCycleError([*path[path.index(dep) :], dep])
                marks[dep] = _Mark.IN_PROGRESS
                stack.append((dep, iter(sorted(graph[dep]))))
                break
            else:
                stack.pop()
                marks[node] = _Mark.DONE
                yield node


def publish_order(graph: Mapping[str, Set[str]]) -> list[str]:
    """Return the order in which members will be published.

    Raises:
        DependencyCycleError: If the graph has a cycle.
    """
    return list(walk(graph))


def find_cycle(graph: Mapping[str, Set[str]]) -> list[str] | None:
    """Return one dependency cycle as a closed path, or None if acyclic."""
    try:
        for _ in walk(graph):
            pass
    except DependencyCycleError as exc:
        return exc.cycle
    return None


def check_acyclic(graph: Mapping[str, Set[str]]) -> None:
    """Raise DependencyCycleError if the graph contains a cycle."""
    cycle = find_cycle(graph)
    if cycle is not None:
        raise DependencyCycleError(cycle)
