"""
Database - Dependency Resolver.

============================================================
RESPONSIBILITY
============================================================
Computes a creation order for catalog entities.

- Edge A -> B: A references B (foreign key or seed-time
  data dependency), so B must exist first
- Topological order, ties broken by catalog position
- Fails on reference cycles and unknown targets

============================================================
"""

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from core.exceptions import CatalogError, CyclicDependencyError

from .catalog import ENTITY_CATALOG, EntityDef


logger = logging.getLogger(__name__)


# ============================================================
# DEPENDENCY GRAPH
# ============================================================

class DependencyGraph:
    """
    Manages entity dependencies and resolution order.

    Uses a depth-first topological sort. Nodes and edges keep
    insertion order, so the result is deterministic.
    """

    def __init__(self):
        self._edges: Dict[str, List[str]] = {}  # node -> dependencies

    def add_node(self, name: str, dependencies: Optional[List[str]] = None) -> None:
        """Add a node with its dependencies."""
        if name in self._edges:
            raise CatalogError(f"Duplicate entity in catalog: {name}", entity=name)
        self._edges[name] = [dep for dep in (dependencies or []) if dep != name]

    @property
    def nodes(self) -> List[str]:
        return list(self._edges)

    def edges(self) -> List[Tuple[str, str]]:
        """All (dependent, dependency) pairs."""
        return [(node, dep) for node, deps in self._edges.items() for dep in deps]

    def validate(self) -> None:
        """Every dependency must itself be a node."""
        for node, dep in self.edges():
            if dep not in self._edges:
                raise CatalogError(
                    f"Entity '{node}' references unknown entity '{dep}'",
                    entity=node,
                    context={"reference": dep},
                )

    def get_creation_order(self) -> List[str]:
        """
        Get nodes in creation order (dependencies first).

        Returns:
            List of node names in creation order

        Raises:
            CyclicDependencyError: If a reference cycle exists
            CatalogError: If a dependency is not a node
        """
        self.validate()

        visited: Set[str] = set()
        path: List[str] = []
        order: List[str] = []

        def visit(node: str) -> None:
            if node in path:
                cycle = path[path.index(node):] + [node]
                raise CyclicDependencyError(cycle)
            if node in visited:
                return

            path.append(node)

            for dep in self._edges[node]:
                visit(dep)

            path.pop()
            visited.add(node)
            order.append(node)

        for node in self._edges:
            if node not in visited:
                visit(node)

        return order

    def get_teardown_order(self) -> List[str]:
        """Get nodes in drop order (reverse of creation)."""
        return list(reversed(self.get_creation_order()))


# ============================================================
# CATALOG RESOLUTION
# ============================================================

def build_graph(catalog: Iterable[EntityDef] = ENTITY_CATALOG) -> DependencyGraph:
    """Dependency graph of a catalog: foreign keys plus seed_after."""
    graph = DependencyGraph()
    for entity in catalog:
        graph.add_node(entity.name, entity.dependencies())
    return graph


def resolve_creation_order(catalog: Iterable[EntityDef] = ENTITY_CATALOG) -> List[EntityDef]:
    """
    Resolve the order in which entities must be created and seeded.

    Raises:
        CyclicDependencyError: If the catalog contains a reference cycle
        CatalogError: On duplicate names or unknown references
    """
    entities = list(catalog)
    by_name = {entity.name: entity for entity in entities}

    order = build_graph(entities).get_creation_order()

    logger.debug(f"Resolved creation order: {' -> '.join(order)}")
    return [by_name[name] for name in order]
