"""Dependency Graph - Cycle and reference checks for variable dependencies"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from ..domain.models import TemplateVariable
from ..domain.errors import DependencyCycleError, TemplateValidationError


@dataclass
class DependencyGraph:
    """
    Directed graph of variable dependencies

    Nodes live in an arena (`nodes`, indexed by position) and edges are
    `(source_index, target_index)` pairs meaning "target depends on source".
    Dependencies on variables that are not declared are kept aside in
    `unknown_references` instead of becoming edges.
    """
    nodes: List[str] = field(default_factory=list)
    edges: List[Tuple[int, int]] = field(default_factory=list)
    unknown_references: List[Tuple[str, str]] = field(default_factory=list)
    _index: Dict[str, int] = field(default_factory=dict, repr=False)

    @classmethod
    def from_variables(cls, variables: List[TemplateVariable]) -> "DependencyGraph":
        graph = cls()
        for variable in variables:
            graph.add_node(variable.id)
        for variable in variables:
            for dependency in variable.dependencies:
                graph.add_edge(dependency.variable_id, variable.id)
        return graph

    def add_node(self, variable_id: str) -> int:
        if variable_id not in self._index:
            self._index[variable_id] = len(self.nodes)
            self.nodes.append(variable_id)
        return self._index[variable_id]

    def add_edge(self, source_id: str, target_id: str) -> None:
        if source_id not in self._index:
            self.unknown_references.append((target_id, source_id))
            return
        self.edges.append((self._index[source_id], self.add_node(target_id)))

    def _adjacency(self) -> List[List[int]]:
        adjacency: List[List[int]] = [[] for _ in self.nodes]
        for source, target in self.edges:
            adjacency[source].append(target)
        return adjacency

    def find_cycle(self) -> Optional[List[str]]:
        """
        Find one dependency cycle

        Returns:
            Variable IDs along the cycle, first ID repeated at the end
            (e.g. ["a", "b", "a"]), or None if the graph is acyclic
        """
        adjacency = self._adjacency()
        WHITE, GRAY, BLACK = 0, 1, 2
        color = [WHITE] * len(self.nodes)
        parent: List[Optional[int]] = [None] * len(self.nodes)

        for root in range(len(self.nodes)):
            if color[root] != WHITE:
                continue
            color[root] = GRAY
            stack = [(root, iter(adjacency[root]))]
            while stack:
                node, children = stack[-1]
                child = next(children, None)
                if child is None:
                    color[node] = BLACK
                    stack.pop()
                elif color[child] == WHITE:
                    color[child] = GRAY
                    parent[child] = node
                    stack.append((child, iter(adjacency[child])))
                elif color[child] == GRAY:
                    # Back edge node -> child closes a cycle
                    path = [node]
                    while path[-1] != child:
                        path.append(parent[path[-1]])
                    path.reverse()
                    return [self.nodes[i] for i in path] + [self.nodes[child]]
        return None

    def ensure_acyclic(self) -> None:
        """
        Raises:
            DependencyCycleError: If the dependencies contain a cycle
        """
        cycle = self.find_cycle()
        if cycle:
            raise DependencyCycleError(
                f"Variable dependencies form a cycle: {' -> '.join(cycle)}",
                details={"cycle": cycle}
            )

    def ensure_references(self) -> None:
        """
        Raises:
            TemplateValidationError: If a dependency names an undeclared variable
        """
        if self.unknown_references:
            raise TemplateValidationError(
                "Variable dependencies reference undeclared variables",
                details={
                    "references": [
                        {"variable_id": target, "depends_on": source}
                        for target, source in self.unknown_references
                    ]
                }
            )

    def topological_order(self) -> List[str]:
        """
        Variable IDs ordered so every source precedes its dependents

        Raises:
            DependencyCycleError: If the graph has a cycle
        """
        adjacency = self._adjacency()
        in_degree = [0] * len(self.nodes)
        for _, target in self.edges:
            in_degree[target] += 1

        ready = [i for i, degree in enumerate(in_degree) if degree == 0]
        order: List[int] = []
        while ready:
            node = ready.pop(0)
            order.append(node)
            for child in adjacency[node]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    ready.append(child)

        if len(order) != len(self.nodes):
            self.ensure_acyclic()
        return [self.nodes[i] for i in order]
