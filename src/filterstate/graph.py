"""
Dependency graph over field names.

Two graphs are derived from the same descriptors: the live graph
(``dependencies``) and the initial graph (``initial_dependencies``). Both
must be acyclic. The initial resolver walks a third, derived graph (see
``DependencyGraph.for_resolution``) that never rejects a configuration.
References to unknown fields are dropped with a warning so that a typo in
one descriptor does not take down the whole group.
"""

import logging
from typing import Dict, List, Mapping

from filterstate.descriptors import FilterConfig
from filterstate.exceptions import CycleDetectedError

logger = logging.getLogger(__name__)

LIVE = 'dependencies'
INITIAL = 'initial_dependencies'


class DependencyGraph:
    """Directed graph: field -> fields it depends on."""

    def __init__(self, edges: Dict[str, List[str]], kind: str = LIVE):
        self.kind = kind
        self._edges = edges

    @classmethod
    def from_configs(cls, config_map: Mapping[str, FilterConfig], kind: str = LIVE) -> 'DependencyGraph':
        """Build and validate a graph from descriptors.

        Args:
            config_map: Ordered name -> FilterConfig map
            kind: LIVE or INITIAL

        Returns:
            Validated DependencyGraph

        Raises:
            CycleDetectedError: If the graph contains a cycle
        """
        edges: Dict[str, List[str]] = {}
        for name, config in config_map.items():
            declared = (config.dependencies or []) if kind == LIVE else config.initial_dependencies
            known = []
            for dep in declared:
                if dep not in config_map:
                    logger.warning(f"Field {name!r} lists unknown {kind} entry {dep!r}; ignoring it")
                    continue
                if dep not in known:
                    known.append(dep)
            edges[name] = known
        graph = cls(edges, kind)
        graph.validate()
        return graph

    @classmethod
    def for_resolution(cls, config_map: Mapping[str, FilterConfig], initial_graph: 'DependencyGraph') -> 'DependencyGraph':
        """Graph of what each field awaits while the initial snapshot resolves.

        A field with an initial query awaits its ``initial_dependencies``. A
        dependent field without one awaits its live ``dependencies`` so its
        reactions can seed it, unless that edge set would close a cycle with
        the edges already added; such a field starts from its static state.
        Base fields await nothing.
        """
        graph = cls({name: [] for name in config_map}, INITIAL)
        for name, config in config_map.items():
            if config.initial_query is not None:
                graph._edges[name] = initial_graph.dependencies_of(name)
        for name, config in config_map.items():
            if config.initial_query is not None or config.is_base:
                continue
            graph._edges[name] = [dep for dep in dict.fromkeys(config.dependencies) if dep in config_map]
            try:
                graph.validate()
            except CycleDetectedError as e:
                logger.info(f"Not seeding field {name!r} from its reactions ({e}); using its static state")
                graph._edges[name] = []
        return graph

    def dependencies_of(self, name: str) -> List[str]:
        """Known dependencies of a field, in declaration order."""
        return list(self._edges.get(name, []))

    def dependents_of(self, name: str) -> List[str]:
        """Fields that depend directly on ``name``."""
        return [node for node, deps in self._edges.items() if name in deps]

    def validate(self) -> None:
        """Raise CycleDetectedError if any cycle exists."""
        self.topological_order()

    def topological_order(self) -> List[str]:
        """Return field names with every dependency before its dependents."""
        order: List[str] = []
        # 0 = unvisited, 1 = on the current path, 2 = done
        marks: Dict[str, int] = {name: 0 for name in self._edges}

        for root in self._edges:
            if marks[root]:
                continue
            path: List[str] = [root]
            stack = [(root, iter(self._edges[root]))]
            marks[root] = 1
            while stack:
                node, children = stack[-1]
                child = next(children, None)
                if child is None:
                    stack.pop()
                    path.pop()
                    marks[node] = 2
                    order.append(node)
                    continue
                if marks[child] == 1:
                    cycle = path[path.index(child):] + [child]
                    raise CycleDetectedError(cycle, self.kind)
                if marks[child] == 0:
                    marks[child] = 1
                    path.append(child)
                    stack.append((child, iter(self._edges[child])))
        return order
