"""Topological ordering of dependency graphs, tolerant of cycles."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional, Tuple

from ..errors import OrderingError
from .import_graph_builder import DependencyGraph

logger = logging.getLogger(__name__)


class OrderDirection(str, Enum):
    """Which end of the dependency chain comes first."""
    TOP_DOWN = "top-down"    # Dependents before their dependencies
    BOTTOM_UP = "bottom-up"  # Dependencies before their dependents


class _VisitState(Enum):
    UNVISITED = 0
    IN_PROGRESS = 1
    DONE = 2


@dataclass
class OrderingResult:
    """Ordered paths plus the edges dropped to break cycles."""
    paths: List[str]
    back_edges: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def is_approximate(self) -> bool:
        """True when a cycle was broken, so some pairs may be out of order."""
        return bool(self.back_edges)


class TopologicalOrderer:
    """Orders graph nodes by iterative depth-first postorder.

    An edge into a node that is still in progress closes a cycle; it is
    recorded as a back edge and not followed. The result is therefore total
    and terminates on any graph, but the relative order of files inside a
    cycle depends on traversal order rather than on their dependencies.
    """

    def order(self, graph: DependencyGraph, direction: OrderDirection = OrderDirection.BOTTOM_UP,
              subset: Optional[List[str]] = None) -> List[str]:
        """Every node exactly once, optionally filtered to ``subset``."""
        return self.analyze(graph, direction, subset).paths

    def analyze(self, graph: DependencyGraph, direction: OrderDirection = OrderDirection.BOTTOM_UP,
                subset: Optional[List[str]] = None) -> OrderingResult:
        adjacency = self._adjacency(graph)
        postorder, back_edges = self._postorder(adjacency)

        if back_edges:
            logger.info("Broke %d cyclic import edge(s); order is approximate", len(back_edges))

        paths = postorder if direction == OrderDirection.BOTTOM_UP else list(reversed(postorder))
        if subset is not None:
            wanted = set(subset)
            paths = [path for path in paths if path in wanted]

        return OrderingResult(paths=paths, back_edges=back_edges)

    def _adjacency(self, graph: DependencyGraph) -> Dict[str, List[str]]:
        adjacency: Dict[str, List[str]] = {path: [] for path in graph.nodes}
        for edge in graph.edges:
            if edge.source not in adjacency or edge.target not in adjacency:
                raise OrderingError(f"Edge {edge.source} -> {edge.target} leaves the node set")
            neighbors = adjacency[edge.source]
            if edge.target not in neighbors:
                neighbors.append(edge.target)
        return adjacency

    def _postorder(self, adjacency: Dict[str, List[str]]) -> Tuple[List[str], List[Tuple[str, str]]]:
        state = {path: _VisitState.UNVISITED for path in adjacency}
        postorder: List[str] = []
        back_edges: List[Tuple[str, str]] = []

        for root in adjacency:
            if state[root] is not _VisitState.UNVISITED:
                continue

            state[root] = _VisitState.IN_PROGRESS
            stack: List[Tuple[str, Iterator[str]]] = [(root, iter(adjacency[root]))]
            while stack:
                node, neighbors = stack[-1]
                descended = False
                for neighbor in neighbors:
                    if state[neighbor] is _VisitState.UNVISITED:
                        state[neighbor] = _VisitState.IN_PROGRESS
                        stack.append((neighbor, iter(adjacency[neighbor])))
                        descended = True
                        break
                    if state[neighbor] is _VisitState.IN_PROGRESS:
                        back_edges.append((node, neighbor))

                if not descended:
                    stack.pop()
                    state[node] = _VisitState.DONE
                    postorder.append(node)

        return postorder, back_edges


def alphabetical_order(paths: List[str]) -> List[str]:
    """Lexicographic fallback ordering."""
    return sorted(set(paths))
