from typing import Dict, Hashable, List


class UnionFind:
    """
    Disjoint-set over arbitrary hashable items.

    Elements are registered lazily on first lookup. ``find`` compresses
    paths; ``union`` attaches the root of ``x`` under the root of ``y``.
    One instance per grouping run, nothing is shared between calls.
    """

    def __init__(self) -> None:
        self.parent: Dict[Hashable, Hashable] = {}

    def find(self, x: Hashable) -> Hashable:
        parent = self.parent.setdefault(x, x)
        if parent == x:
            return x

        root = parent
        while self.parent[root] != root:
            root = self.parent[root]

        # path compression
        while self.parent[x] != root:
            self.parent[x], x = root, self.parent[x]
        return root

    def union(self, x: Hashable, y: Hashable) -> None:
        root_x = self.find(x)
        root_y = self.find(y)
        if root_x != root_y:
            self.parent[root_x] = root_y

    def connected(self, x: Hashable, y: Hashable) -> bool:
        return self.find(x) == self.find(y)

    def groups(self) -> Dict[Hashable, List[Hashable]]:
        out: Dict[Hashable, List[Hashable]] = {}
        for item in list(self.parent):
            out.setdefault(self.find(item), []).append(item)
        return out
