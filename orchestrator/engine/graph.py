# ============================================================================
# DEPENDENCY GRAPH BUILDER
# ============================================================================
# STATUS: Core - `needs` resolution and cycle detection
# PURPOSE: Build the instance-level DAG the scheduler walks
# CREATED: 19 OCT 2026
# ============================================================================
"""
Dependency Graph Builder

Resolves each job's `needs` into edges between job instances.

Fan-out gate policy:
    If job B needs job A, every instance of B depends on every instance
    of A. One style-check job therefore gates every cell of a build
    matrix, and a dependent waits until the whole prerequisite matrix
    has finished.

Validation happens at job level first (UnknownJob, CyclicDependency with
the cycle path), so a cycle through a job that expanded to zero
instances is still reported. The graph performs no execution.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from core.errors import CyclicDependency, UnknownJob
from core.logging import get_logger
from core.models.instance import JobInstance
from core.models.workflow import WorkflowDefinition

logger = get_logger(__name__)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass
class DependencyGraph:
    """
    Dependency graph over job instances.

    An edge A -> B means "B depends on A" (A must finish before B runs).
    """
    # Instance ID -> instances that depend on it
    forward_edges: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    # Instance ID -> instances it depends on
    backward_edges: Dict[str, List[str]] = field(default_factory=lambda: defaultdict(list))

    # All instance IDs, in insertion order
    nodes: List[str] = field(default_factory=list)

    def add_node(self, node_id: str) -> None:
        if node_id not in self.backward_edges:
            self.backward_edges[node_id] = []
            self.forward_edges.setdefault(node_id, [])
            self.nodes.append(node_id)

    def add_edge(self, from_node: str, to_node: str) -> None:
        """Add a dependency edge: to_node depends on from_node."""
        self.add_node(from_node)
        self.add_node(to_node)
        if to_node not in self.forward_edges[from_node]:
            self.forward_edges[from_node].append(to_node)
            self.backward_edges[to_node].append(from_node)

    def get_dependencies(self, node_id: str) -> List[str]:
        """Get instances that this instance depends on."""
        return self.backward_edges.get(node_id, [])

    def get_dependents(self, node_id: str) -> List[str]:
        """Get instances that depend on this instance."""
        return self.forward_edges.get(node_id, [])

    def topological_order(self) -> List[str]:
        """Instance IDs with every instance after all of its prerequisites."""
        order, cycle = TopologicalSorter().sort(self.nodes, self.backward_edges)
        if cycle:
            raise CyclicDependency(cycle)
        return order


# ============================================================================
# FAN-OUT GATE POLICY
# ============================================================================

class FanOutGatePolicy:
    """
    Edge policy for `needs`: all prerequisite instances gate all dependent
    instances (full bipartite fan-out).
    """

    name = "fan-out-gate"

    def edges(
        self,
        prerequisites: Iterable[JobInstance],
        dependents: Iterable[JobInstance],
    ) -> List[Tuple[str, str]]:
        dependents = list(dependents)
        return [
            (upstream.instance_id, downstream.instance_id)
            for upstream in prerequisites
            for downstream in dependents
        ]


# ============================================================================
# TOPOLOGICAL SORT / CYCLE DETECTION
# ============================================================================

class TopologicalSorter:
    """Validates DAG structure and provides topological ordering."""

    def sort(self, nodes: List[str], dependencies: Dict[str, List[str]]) -> Tuple[List[str], Optional[List[str]]]:
        """
        Kahn's algorithm, stable with respect to the order of `nodes`.

        Args:
            nodes: Node IDs
            dependencies: node -> nodes it depends on

        Returns:
            (sorted_nodes, cycle) where cycle is None for a DAG
        """
        position = {n: i for i, n in enumerate(nodes)}
        in_degree = {n: 0 for n in nodes}
        dependents: Dict[str, List[str]] = defaultdict(list)
        for node in nodes:
            for dep in dependencies.get(node, []):
                if dep in in_degree:
                    in_degree[node] += 1
                    dependents[dep].append(node)

        ready = sorted((n for n, d in in_degree.items() if d == 0), key=position.get)
        queue = deque(ready)
        sorted_nodes = []

        while queue:
            node = queue.popleft()
            sorted_nodes.append(node)
            for dependent in sorted(dependents[node], key=position.get):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        if len(sorted_nodes) != len(nodes):
            remaining = [n for n in nodes if in_degree[n] > 0]
            return sorted_nodes, self._find_cycle(remaining, dependencies)

        return sorted_nodes, None

    def _find_cycle(self, remaining: List[str], dependencies: Dict[str, List[str]]) -> List[str]:
        """Walk prerequisites among the stuck nodes until one repeats."""
        stuck = set(remaining)
        path: List[str] = []
        index: Dict[str, int] = {}
        node = remaining[0]
        while node not in index:
            index[node] = len(path)
            path.append(node)
            node = next(d for d in dependencies.get(node, []) if d in stuck)
        cycle = path[index[node]:]
        cycle.reverse()
        return cycle + [cycle[0]]


# ============================================================================
# GRAPH BUILDER
# ============================================================================

class GraphBuilder:
    """Builds the instance dependency graph from a workflow and its expansions."""

    def __init__(self, policy: Optional[FanOutGatePolicy] = None):
        self.policy = policy or FanOutGatePolicy()
        self.topo_sorter = TopologicalSorter()

    def validate_jobs(self, workflow: WorkflowDefinition) -> List[str]:
        """
        Validate job-level `needs`.

        Returns:
            Job IDs in topological order

        Raises:
            UnknownJob: a `needs` entry names no job
            CyclicDependency: `needs` declarations form a cycle
        """
        job_ids = list(workflow.jobs.keys())
        for job_id, job in workflow.jobs.items():
            for needed in job.needs:
                if needed not in workflow.jobs:
                    raise UnknownJob(job_id, needed, job_ids)

        order, cycle = self.topo_sorter.sort(
            job_ids,
            {job_id: list(job.needs) for job_id, job in workflow.jobs.items()},
        )
        if cycle:
            raise CyclicDependency(cycle)
        return order

    def build(
        self,
        workflow: WorkflowDefinition,
        instances_by_job: Dict[str, List[JobInstance]],
    ) -> Tuple[DependencyGraph, List[JobInstance]]:
        """
        Build the instance graph.

        Args:
            workflow: Workflow definition
            instances_by_job: job_id -> expanded instances

        Returns:
            (graph, instances in topological order with `needs` filled in)
        """
        job_order = self.validate_jobs(workflow)
        graph = DependencyGraph()

        for job_id in job_order:
            for instance in instances_by_job.get(job_id, []):
                graph.add_node(instance.instance_id)

        for job_id in job_order:
            dependents = instances_by_job.get(job_id, [])
            for needed in workflow.jobs[job_id].needs:
                for upstream, downstream in self.policy.edges(instances_by_job.get(needed, []), dependents):
                    graph.add_edge(upstream, downstream)

        order, cycle = self.topo_sorter.sort(graph.nodes, graph.backward_edges)
        if cycle:
            raise CyclicDependency(cycle)

        by_id = {
            instance.instance_id: instance
            for instances in instances_by_job.values()
            for instance in instances
        }
        ordered = [by_id[i].with_needs(graph.get_dependencies(i)) for i in order]

        logger.debug(
            f"Built graph: {len(graph.nodes)} instances, "
            f"{sum(len(v) for v in graph.forward_edges.values())} edges ({self.policy.name})"
        )
        return graph, ordered


__all__ = [
    "DependencyGraph",
    "FanOutGatePolicy",
    "TopologicalSorter",
    "GraphBuilder",
]
