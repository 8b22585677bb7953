"""
Quadtree for Barnes-Hut force approximation.

Every cell owns either no children or exactly four (NW, NE, SW, SE) and
keeps the centre of mass and total mass of everything inserted below it.
The tree is rebuilt from scratch every layout iteration and never shared.
"""

import math
from typing import List, Optional, Sequence, Tuple

# Cells smaller than this stop subdividing; coincident bodies merge into
# a single leaf mass instead of recursing forever.
MIN_HALF_SIZE = 1e-3
SELF_DISTANCE = 0.1


class QuadTree:
    __slots__ = ("cx", "cy", "half_w", "half_h", "mass", "com_x", "com_y", "body", "children")

    def __init__(self, cx: float, cy: float, half_w: float, half_h: float):
        self.cx = cx
        self.cy = cy
        self.half_w = half_w
        self.half_h = half_h

        self.mass = 0.0
        self.com_x = 0.0
        self.com_y = 0.0

        self.body: Optional[Tuple[float, float, float]] = None
        self.children: Optional[List["QuadTree"]] = None

    @property
    def size(self) -> float:
        return self.half_w * 2

    def insert(self, x: float, y: float, mass: float = 1.0) -> None:
        total = self.mass + mass
        self.com_x = (self.com_x * self.mass + x * mass) / total
        self.com_y = (self.com_y * self.mass + y * mass) / total
        self.mass = total

        if self.body is None and self.children is None:
            self.body = (x, y, mass)
            return

        if self.children is None:
            if self.half_w < MIN_HALF_SIZE or self.half_h < MIN_HALF_SIZE:
                bx, by, bm = self.body
                merged = bm + mass
                self.body = ((bx * bm + x * mass) / merged, (by * bm + y * mass) / merged, merged)
                return
            self._subdivide()
            bx, by, bm = self.body
            self.body = None
            self.children[self._quadrant(bx, by)].insert(bx, by, bm)

        self.children[self._quadrant(x, y)].insert(x, y, mass)

    def _subdivide(self) -> None:
        qw = self.half_w / 2
        qh = self.half_h / 2
        self.children = [
            QuadTree(self.cx - qw, self.cy - qh, qw, qh),  # NW
            QuadTree(self.cx + qw, self.cy - qh, qw, qh),  # NE
            QuadTree(self.cx - qw, self.cy + qh, qw, qh),  # SW
            QuadTree(self.cx + qw, self.cy + qh, qw, qh),  # SE
        ]

    def _quadrant(self, px: float, py: float) -> int:
        if px < self.cx:
            return 0 if py < self.cy else 2
        return 1 if py < self.cy else 3

    def force_on(self, px: float, py: float, theta: float = 0.5, repulsion: float = 10000.0) -> Tuple[float, float]:
        """Repulsive force exerted on point (px, py) by everything in this cell."""
        if self.mass == 0:
            return 0.0, 0.0

        dx = self.com_x - px
        dy = self.com_y - py
        dist = math.sqrt(dx * dx + dy * dy)

        if dist < SELF_DISTANCE:
            return 0.0, 0.0

        if self.children is None or self.size / dist < theta:
            force = repulsion * self.mass / (dist * dist)
            return -(dx / dist) * force, -(dy / dist) * force

        fx = fy = 0.0
        for child in self.children:
            cfx, cfy = child.force_on(px, py, theta, repulsion)
            fx += cfx
            fy += cfy
        return fx, fy

    def depth(self) -> int:
        if self.children is None:
            return 1
        return 1 + max(child.depth() for child in self.children)


def build_quadtree(bodies: Sequence[Tuple[float, float, float]], width: float, height: float) -> QuadTree:
    tree = QuadTree(width / 2, height / 2, width / 2, height / 2)
    for x, y, mass in bodies:
        tree.insert(x, y, mass)
    return tree
