"""Epic dependency graph checks.

An edge ``(epic_id, depends_on_epic_id)`` means ``epic_id`` cannot start
until ``depends_on_epic_id`` is done. The graph must stay acyclic.
"""

from collections import defaultdict, deque
from collections.abc import Iterable


class DependencyCycleError(ValueError):
    """Adding the edge would close a cycle."""


class DuplicateDependencyError(ValueError):
    """The edge already exists."""


def would_create_cycle(
    edges: Iterable[tuple[str, str]],
    epic_id: str,
    depends_on_epic_id: str,
) -> bool:
    """
    Check whether adding ``epic_id -> depends_on_epic_id`` closes a cycle.

    Walks everything ``depends_on_epic_id`` already (transitively) depends on
    and reports whether ``epic_id`` is among them. A self-edge is a cycle.
    """
    if epic_id == depends_on_epic_id:
        return True

    adjacency: dict[str, set[str]] = defaultdict(set)
    for src, dst in edges:
        adjacency[src].add(dst)

    seen = {depends_on_epic_id}
    queue = deque([depends_on_epic_id])
    while queue:
        current = queue.popleft()
        for nxt in adjacency.get(current, ()):
            if nxt == epic_id:
                return True
            if nxt not in seen:
                seen.add(nxt)
                queue.append(nxt)
    return False


def check_new_dependency(
    edges: Iterable[tuple[str, str]],
    epic_id: str,
    depends_on_epic_id: str,
) -> None:
    """
    Validate a new edge against the existing graph.

    Raises:
        DuplicateDependencyError: If the edge is already present
        DependencyCycleError: If the edge would create a cycle
    """
    edge_list = list(edges)
    if (epic_id, depends_on_epic_id) in edge_list:
        raise DuplicateDependencyError("Dependency already exists")
    if would_create_cycle(edge_list, epic_id, depends_on_epic_id):
        raise DependencyCycleError("This would create a circular dependency")
