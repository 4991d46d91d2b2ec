"""Union-find and similarity graph shared by clustering and theme merging."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Set, Tuple


@dataclass(frozen=True, slots=True)
class EdgeMetadata:
    """Why two nodes were linked."""

    score: float
    driver: str


class UnionFind:
    """Disjoint-set data structure with path compression and union by rank."""

    def __init__(self, items: Iterable[str] = ()) -> None:
        self._parent: Dict[str, str] = {}
        self._rank: Dict[str, int] = {}
        self._order: Dict[str, int] = {}
        for item in items:
            self.add(item)

    def add(self, item: str) -> None:
        if item not in self._parent:
            self._parent[item] = item
            self._rank[item] = 0
            self._order[item] = len(self._order)

    def find(self, item: str) -> str:
        parent = self._parent.get(item)
        if parent is None:
            self.add(item)
            return item
        if parent != item:
            self._parent[item] = self.find(parent)
        return self._parent[item]

    def union(self, a: str, b: str) -> bool:
        """Merge the sets containing ``a`` and ``b``; ``False`` when already joined."""

        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return False
        rank_a = self._rank[root_a]
        rank_b = self._rank[root_b]
        if rank_a < rank_b:
            self._parent[root_a] = root_b
        elif rank_a > rank_b:
            self._parent[root_b] = root_a
        else:
            self._parent[root_b] = root_a
            self._rank[root_a] += 1
        return True

    def components(self) -> List[List[str]]:
        """Groups in insertion order, members in insertion order."""

        groups: Dict[str, List[str]] = {}
        for item in sorted(self._parent, key=self._order.__getitem__):
            groups.setdefault(self.find(item), []).append(item)
        return sorted(groups.values(), key=lambda group: self._order[group[0]])


class SimilarityGraph:
    """Undirected graph whose connected components are merge groups."""

    def __init__(self) -> None:
        self.nodes: List[str] = []
        self.edges: Dict[Tuple[str, str], EdgeMetadata] = {}
        self.adjacency: Dict[str, Set[str]] = {}
        self._uf = UnionFind()

    def add_node(self, node_id: str) -> None:
        if node_id in self.adjacency:
            return
        self.nodes.append(node_id)
        self.adjacency[node_id] = set()
        self._uf.add(node_id)

    def add_edge(self, node_a: str, node_b: str, *, score: float, driver: str) -> None:
        if node_a == node_b:
            return
        self.add_node(node_a)
        self.add_node(node_b)
        ordered = (node_a, node_b) if node_a <= node_b else (node_b, node_a)
        self.edges[ordered] = EdgeMetadata(score=score, driver=driver)
        self.adjacency[node_a].add(node_b)
        self.adjacency[node_b].add(node_a)
        self._uf.union(node_a, node_b)

    def get_edge(self, node_a: str, node_b: str) -> EdgeMetadata | None:
        ordered = (node_a, node_b) if node_a <= node_b else (node_b, node_a)
        return self.edges.get(ordered)

    def connected_components(self) -> List[List[str]]:
        return self._uf.components()

    def stats(self) -> Dict[str, int]:
        if not self.nodes:
            return {"nodes": 0, "edges": 0, "components": 0, "largest_component": 0}
        components = self.connected_components()
        return {
            "nodes": len(self.nodes),
            "edges": len(self.edges),
            "components": len(components),
            "largest_component": max(len(component) for component in components),
        }


__all__ = ["UnionFind", "SimilarityGraph", "EdgeMetadata"]
