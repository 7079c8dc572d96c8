"""Calculation dependency tracking.

Tracks which calculated fields of a grid read which other fields, for
incremental recalculation and cycle detection.
"""

import heapq
from collections import defaultdict, deque
from collections.abc import Iterable

_WHITE, _GRAY, _BLACK = 0, 1, 2


class CalculationDependencyGraph:
    """
    Dependency graph of the calculated fields ("targets") of one grid.

    Maintains a bidirectional mapping:
    - dependencies: field_id -> set of targets that read this field
    - reverse: target -> set of targets it reads

    ``dependencies`` also holds non-target inputs (plain fields and
    cross-grid refs) so that a change to any input finds its targets.
    Targets keep their declaration order, which breaks ordering ties.
    """

    def __init__(self):
        """Initialize empty dependency graph."""
        # If field A changes, every target in dependencies[A] is recomputed
        self.dependencies: dict[str, set[str]] = defaultdict(set)
        # To calculate target A, every target in reverse[A] must be current
        self.reverse: dict[str, set[str]] = defaultdict(set)
        self.declaration_index: dict[str, int] = {}

    def add_target(self, target: str, reads: set[str]) -> None:
        """
        Register a target and the fields its expression reads.

        Args:
            target: Calculated field id
            reads: Field ids (or cross-grid refs) the expression reads
        """
        self.declaration_index.setdefault(target, len(self.declaration_index))
        for field_id in reads:
            self.dependencies[field_id].add(target)

    def finalize(self) -> None:
        """Derive target-to-target edges once every target is registered."""
        self.reverse = defaultdict(set)
        for field_id, dependents in self.dependencies.items():
            if field_id in self.declaration_index:
                for dependent in dependents:
                    self.reverse[dependent].add(field_id)

    @property
    def targets(self) -> list[str]:
        return sorted(self.declaration_index, key=self.declaration_index.__getitem__)

    def _ordered(self, field_ids: Iterable[str]) -> list[str]:
        return sorted(field_ids, key=lambda fid: self.declaration_index.get(fid, -1))

    def get_affected_targets(self, changed_field_ids: Iterable[str]) -> set[str]:
        """
        Targets that need recalculation when fields change.

        A changed target is itself affected. Uses BFS over the dependency
        mapping to find all transitive dependents.
        """
        affected: set[str] = set()
        to_process: deque[str] = deque()
        for field_id in changed_field_ids:
            if field_id in self.declaration_index and field_id not in affected:
                affected.add(field_id)
            to_process.append(field_id)

        seen: set[str] = set()
        while to_process:
            current = to_process.popleft()
            if current in seen:
                continue
            seen.add(current)
            for dependent in self.dependencies.get(current, ()):
                affected.add(dependent)
                if dependent not in seen:
                    to_process.append(dependent)
        return affected

    def find_cyclic_targets(self) -> set[str]:
        """
        Targets that lie on a dependency cycle.

        An iterative three-color DFS finds back edges; each back edge seeds
        the cycle it closes, which is then widened to the full strongly
        connected component of the seed.
        """
        color = dict.fromkeys(self.declaration_index, _WHITE)
        seeds: set[str] = set()

        for root in self.targets:
            if color[root] != _WHITE:
                continue
            color[root] = _GRAY
            stack = [(root, iter(self._ordered(self.reverse.get(root, ()))))]
            while stack:
                node, children = stack[-1]
                child = next(children, None)
                if child is None:
                    color[node] = _BLACK
                    stack.pop()
                elif color[child] == _GRAY:
                    seeds.add(child)
                elif color[child] == _WHITE:
                    color[child] = _GRAY
                    stack.append((child, iter(self._ordered(self.reverse.get(child, ())))))

        cyclic: set[str] = set()
        for seed in self._ordered(seeds):
            if seed not in cyclic:
                cyclic |= self._reach(seed, self.reverse) & self._reach(seed, self._target_dependents())
        return cyclic

    def _target_dependents(self) -> dict[str, set[str]]:
        return {fid: deps for fid, deps in self.dependencies.items() if fid in self.declaration_index}

    @staticmethod
    def _reach(start: str, edges: dict[str, set[str]]) -> set[str]:
        reached = {start}
        queue = deque([start])
        while queue:
            for nxt in edges.get(queue.popleft(), ()):
                if nxt not in reached:
                    reached.add(nxt)
                    queue.append(nxt)
        return reached

    def get_evaluation_order(self, exclude: set[str] | None = None) -> list[str]:
        """
        Topological order of the targets.

        Uses Kahn's algorithm; among ready targets the earliest declared goes
        first. Excluded targets are left out and their values count as
        inputs for the targets that read them.

        Args:
            exclude: Targets to leave out (e.g. cyclic ones)

        Returns:
            Ordered list of target ids
        """
        excluded = exclude or set()
        included = [fid for fid in self.targets if fid not in excluded]
        in_degree = {fid: 0 for fid in included}
        for fid in included:
            in_degree[fid] = sum(1 for dep in self.reverse.get(fid, ()) if dep in in_degree)

        ready = [(self.declaration_index[fid], fid) for fid in included if in_degree[fid] == 0]
        heapq.heapify(ready)

        result = []
        while ready:
            _, fid = heapq.heappop(ready)
            result.append(fid)
            for dependent in self.dependencies.get(fid, ()):
                if dependent in in_degree:
                    in_degree[dependent] -= 1
                    if in_degree[dependent] == 0:
                        heapq.heappush(ready, (self.declaration_index[dependent], dependent))
        return result

    def get_dependencies(self, target: str) -> set[str]:
        """Targets that ``target`` reads directly."""
        return set(self.reverse.get(target, set()))

    def get_dependents(self, field_id: str) -> set[str]:
        """Targets that read ``field_id`` directly."""
        return set(self.dependencies.get(field_id, set()))

    def __repr__(self) -> str:
        """String representation for debugging."""
        return (
            f"CalculationDependencyGraph("
            f"targets={len(self.declaration_index)}, "
            f"edges={sum(len(deps) for deps in self.dependencies.values())})"
        )
