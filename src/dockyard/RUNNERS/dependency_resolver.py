"""
Dependency ordering for services to determine startup and shutdown order.
"""
from typing import Dict, Iterable, List, Optional
from ..errors import CyclicDependency
from ..MODELS.topology import Topology


class DependencyOrderer:
    """
    Orders the services of a topology so that dependencies come first.
    """
    def resolve_order(self, topology: Topology, targets: Optional[Iterable[str]] = None) -> List[str]:
        """
        Determines the order in which services must start.

        Every service appears after all services it depends on. Among services
        whose dependencies are satisfied, the one declared first wins.

        :param topology: The parsed topology.
        :param targets: Restrict the result to these services and their transitive dependencies.
        :return: Service names in start order.
        :raises CyclicDependency: If the dependency graph has a cycle.
        """
        declared = topology.names()
        dependencies = {name: [d for d in svc.depends_on if d in topology.services]
                        for name, svc in topology.services.items()}
        self._check_cycles(declared, dependencies)

        wanted = set(declared) if targets is None else self._closure(targets, dependencies)

        ordered: List[str] = []
        placed = set()
        remaining = [name for name in declared if name in wanted]
        while remaining:
            for name in remaining:
                if all(dep in placed for dep in dependencies[name]):
                    break
            ordered.append(name)
            placed.add(name)
            remaining.remove(name)
        return ordered

    def shutdown_order(self, topology: Topology) -> List[str]:
        """
        Dependents stop before the services they depend on.
        """
        return list(reversed(self.resolve_order(topology)))

    def _check_cycles(self, declared: List[str], dependencies: Dict[str, List[str]]) -> None:
        """
        Depth-first search that reports the first cycle found as a path.
        """
        visited = set()
        path: List[str] = []
        on_path = set()

        def visit(name):
            if name in on_path:
                raise CyclicDependency(path[path.index(name):] + [name])
            if name in visited:
                return
            on_path.add(name)
            path.append(name)
            for dep in dependencies.get(name, []):
                visit(dep)
            path.pop()
            on_path.remove(name)
            visited.add(name)

        for name in declared:
            visit(name)

    def _closure(self, targets: Iterable[str], dependencies: Dict[str, List[str]]) -> set:
        wanted = set()
        stack = list(targets)
        while stack:
            name = stack.pop()
            if name not in wanted:
                wanted.add(name)
                stack.extend(dependencies.get(name, []))
        return wanted
