"""Iso-contour extraction from heightmaps using marching squares.

Corners of each grid cell are classified against the threshold
(``>=`` counts as above) into a 4-bit configuration:

    8 ---- 4        bit 1 = (x, y)       bit 2 = (x + 1, y)
    |      |        bit 4 = (x + 1, y + 1)
    1 ---- 2        bit 8 = (x, y + 1)

Each configuration maps to zero, one or two segments between cell edges.
Segments are then stitched into polylines through a spatial hash over
their endpoints.
"""

import logging
import math
from collections import deque

import numpy as np
from numpy.typing import NDArray

from city_coast.water.types import Contour, Point

logger = logging.getLogger(__name__)

# Cell edges, named by the side of the cell they lie on
LEFT = 0
BOTTOM = 1
RIGHT = 2
TOP = 3

# Configuration -> list of (edge, edge) segments.  Saddles (5 and 10) always
# resolve to the same pair of diagonal segments.
EDGE_TABLE: dict[int, tuple[tuple[int, int], ...]] = {
    0: (),
    1: ((LEFT, BOTTOM),),
    2: ((BOTTOM, RIGHT),),
    3: ((LEFT, RIGHT),),
    4: ((RIGHT, TOP),),
    5: ((LEFT, BOTTOM), (RIGHT, TOP)),
    6: ((BOTTOM, TOP),),
    7: ((LEFT, TOP),),
    8: ((TOP, LEFT),),
    9: ((BOTTOM, TOP),),
    10: ((TOP, LEFT), (BOTTOM, RIGHT)),
    11: ((RIGHT, TOP),),
    12: ((RIGHT, LEFT),),
    13: ((BOTTOM, RIGHT),),
    14: ((LEFT, BOTTOM),),
    15: (),
}

Segment = tuple[Point, Point]


def classify_cells(heightmap: NDArray[np.float64], threshold: float) -> NDArray[np.int_]:
    """Configuration index of every cell, shape ``(N - 1, N - 1)``."""
    above = (heightmap >= threshold).astype(np.int_)
    return (
        above[:-1, :-1] * 1
        + above[1:, :-1] * 2
        + above[1:, 1:] * 4
        + above[:-1, 1:] * 8
    )


def contour_area(points: list[Point]) -> float:
    """Absolute shoelace area, closing the ring if its ends are apart."""
    if len(points) < 3:
        return 0.0
    pts = np.asarray(points, dtype=np.float64)
    if math.dist(points[0], points[-1]) > 0.1:
        pts = np.vstack([pts, pts[:1]])
    x = pts[:, 0]
    y = pts[:, 1]
    return float(abs(np.sum(x[:-1] * y[1:] - x[1:] * y[:-1])) / 2.0)


def smooth_contour(points: list[Point]) -> list[Point]:
    """One moving-average pass over interior vertices; endpoints are kept."""
    if len(points) < 3:
        return list(points)
    pts = np.asarray(points, dtype=np.float64)
    smoothed = pts.copy()
    smoothed[1:-1] = 0.5 * pts[1:-1] + 0.25 * (pts[:-2] + pts[2:])
    return [(float(x), float(y)) for x, y in smoothed]


def heightmap_to_world(
    points: list[Point],
    center: Point,
    size: int,
    world_scale: float,
) -> list[Point]:
    """Map grid coordinates to world coordinates around *center*."""
    cx, cy = center
    half = size / 2
    return [(cx + (x - half) * world_scale, cy + (y - half) * world_scale) for x, y in points]


class MarchingSquares:
    """Contour extractor.

    Args:
        epsilon: Distance below which segment endpoints are joined
        interpolate: Place crossings by linear interpolation along each cell
            edge instead of at edge midpoints
    """

    def __init__(self, epsilon: float = 0.01, interpolate: bool = True) -> None:
        self.epsilon = epsilon
        self.interpolate = interpolate

    def extract_contours(
        self,
        heightmap: NDArray[np.float64],
        threshold: float,
        smoothing: bool = True,
        min_length: int = 5,
    ) -> list[Contour]:
        """Extract every contour at *threshold*.

        Args:
            heightmap: Grid indexed ``[x, y]``
            threshold: Iso-elevation to trace
            smoothing: Apply one smoothing pass to each contour
            min_length: Contours with fewer points are dropped

        Returns:
            Contours in grid coordinates
        """
        segments = self._extract_segments(heightmap, threshold)
        contours = [c for c in self._connect_segments(segments) if len(c) >= min_length]
        logger.debug(
            "Extracted %d contours at threshold %.2f from %d segments",
            len(contours),
            threshold,
            len(segments),
        )
        if smoothing:
            for contour in contours:
                contour.points = smooth_contour(contour.points)
        return contours

    def extract_coastline(
        self,
        heightmap: NDArray[np.float64],
        threshold: float,
    ) -> Contour | None:
        """The contour enclosing the largest area, or None if there is none."""
        contours = self.extract_contours(heightmap, threshold, smoothing=True, min_length=20)
        if not contours:
            return None
        return max(contours, key=lambda c: contour_area(c.points))

    def extract_multiple_contours(
        self,
        heightmap: NDArray[np.float64],
        thresholds: list[float],
        smoothing: bool = True,
        min_length: int = 5,
    ) -> list[list[Contour]]:
        return [
            self.extract_contours(heightmap, t, smoothing=smoothing, min_length=min_length)
            for t in thresholds
        ]

    def _crossing(self, v1: float, v2: float, threshold: float) -> float:
        """Fraction along an edge where the threshold is crossed."""
        if not self.interpolate or abs(v2 - v1) < 1e-10:
            return 0.5
        return (threshold - v1) / (v2 - v1)

    def _extract_segments(
        self,
        heightmap: NDArray[np.float64],
        threshold: float,
    ) -> list[Segment]:
        configs = classify_cells(heightmap, threshold)
        xs, ys = np.nonzero((configs > 0) & (configs < 15))

        segments: list[Segment] = []
        for x, y in zip(xs.tolist(), ys.tolist()):
            v00 = float(heightmap[x, y])
            v10 = float(heightmap[x + 1, y])
            v01 = float(heightmap[x, y + 1])
            v11 = float(heightmap[x + 1, y + 1])

            # Shared edges use the same corner order from both cells, so the
            # neighbor computes bit-identical crossing points.
            edge_points = (
                (float(x), y + self._crossing(v00, v01, threshold)),
                (x + self._crossing(v00, v10, threshold), float(y)),
                (float(x + 1), y + self._crossing(v10, v11, threshold)),
                (x + self._crossing(v01, v11, threshold), float(y + 1)),
            )
            for a, b in EDGE_TABLE[int(configs[x, y])]:
                segments.append((edge_points[a], edge_points[b]))
        return segments

    def _hash_key(self, point: Point) -> tuple[int, int]:
        return (math.floor(point[0] / self.epsilon), math.floor(point[1] / self.epsilon))

    def _connect_segments(self, segments: list[Segment]) -> list[Contour]:
        """Greedily chain segments whose endpoints lie within epsilon."""
        if not segments:
            return []

        # Endpoint hash: cell -> [(segment index, endpoint index)]
        index: dict[tuple[int, int], list[tuple[int, int]]] = {}
        for i, segment in enumerate(segments):
            for end, point in enumerate(segment):
                index.setdefault(self._hash_key(point), []).append((i, end))

        used = [False] * len(segments)

        def take_neighbor(point: Point) -> Point | None:
            """Consume the nearest unused segment touching *point*; return its far end."""
            kx, ky = self._hash_key(point)
            best = None
            best_dist = self.epsilon
            for dx in (-1, 0, 1):
                for dy in (-1, 0, 1):
                    for i, end in index.get((kx + dx, ky + dy), ()):
                        if used[i]:
                            continue
                        d = math.dist(point, segments[i][end])
                        if d < best_dist:
                            best, best_dist = (i, end), d
            if best is None:
                return None
            i, end = best
            used[i] = True
            return segments[i][1 - end]

        contours: list[Contour] = []
        for start in range(len(segments)):
            if used[start]:
                continue
            used[start] = True
            chain: deque[Point] = deque(segments[start])

            while (nxt := take_neighbor(chain[-1])) is not None:
                chain.append(nxt)
            while (prev := take_neighbor(chain[0])) is not None:
                chain.appendleft(prev)

            points = list(chain)
            closed = False
            if len(points) > 2:
                gap = math.dist(points[0], points[-1])
                if gap < self.epsilon:
                    closed = True
                elif gap < self.epsilon * 5:
                    points.append(points[0])
                    closed = True
            contours.append(Contour(points=points, closed=closed))

        return contours
