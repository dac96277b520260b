"""Polygon and polyline helpers shared by the water generators.

All boolean work goes through Shapely.  Helpers that build polygons return
``None`` (and log a warning) instead of raising when GEOS rejects degenerate
input, so a single bad shape never aborts a whole generation cycle.
"""

import logging
import math
from typing import Any

import numpy as np
import shapely
from shapely.errors import GEOSException, TopologicalError
from shapely.geometry import (
    GeometryCollection,
    LineString,
    MultiLineString,
    MultiPoint,
    MultiPolygon,
    Polygon,
)
from shapely.geometry.base import BaseGeometry
from shapely.ops import polygonize, unary_union

from city_coast.water.types import Point, WorldBounds

logger = logging.getLogger(__name__)


def largest_polygon(geom: BaseGeometry) -> Polygon | None:
    """Pick the largest polygon out of a (multi)polygon or collection."""
    if isinstance(geom, Polygon):
        return None if geom.is_empty else geom
    if isinstance(geom, (MultiPolygon, GeometryCollection)):
        polys = [g for g in geom.geoms if isinstance(g, Polygon) and not g.is_empty]
        if polys:
            return max(polys, key=lambda p: p.area)
    return None


def to_polygon(points: list[Point]) -> Polygon | None:
    """Build a valid polygon from a ring of points.

    Self-intersecting rings are repaired with ``buffer(0)``; if the repair
    splits the ring, the largest piece is kept.
    """
    if len(points) < 3:
        return None
    try:
        poly = Polygon(points)
        if poly.is_valid and not poly.is_empty and poly.area > 0:
            return poly
        fixed = largest_polygon(poly.buffer(0))
        if fixed is not None and fixed.is_valid and fixed.area > 0:
            return fixed
    except (GEOSException, TopologicalError, ValueError) as e:
        logger.warning("Failed to build polygon from %d points: %s", len(points), e)
        return None
    logger.warning("Discarding degenerate polygon with %d points", len(points))
    return None


def split_world(world: WorldBounds, polyline: list[Point]) -> list[Polygon]:
    """Faces of the world rectangle cut along *polyline*.

    The polyline is noded against the rectangle boundary and the resulting
    linework is polygonized.  Faces outside the rectangle are dropped.
    """
    if len(polyline) < 2:
        return []
    try:
        linework = unary_union([LineString(polyline), world.rectangle().exterior])
        faces = [f for f in polygonize(linework) if f.area > 0]
    except (GEOSException, TopologicalError, ValueError) as e:
        logger.warning("Failed to polygonize line against world bounds: %s", e)
        return []

    # Faces outside the world appear when the line loops back on itself
    # beyond the edges
    rect = world.rectangle()
    return [f for f in faces if rect.contains(f.representative_point())]


def sea_polygon_from_line(world: WorldBounds, polyline: list[Point]) -> Polygon | None:
    """Split the world rectangle along *polyline* and return the smaller face."""
    faces = split_world(world, polyline)
    if not faces:
        return None
    sea = min(faces, key=lambda f: f.area)
    if not sea.is_valid:
        sea = largest_polygon(sea.buffer(0))
    return sea


def subtract_from_world(world: WorldBounds, polygons: list[Polygon]) -> BaseGeometry:
    """World rectangle minus the union of *polygons*.

    Falls back to the full world rectangle if the difference fails or comes
    out empty.
    """
    rect = world.rectangle()
    if not polygons:
        return rect
    try:
        result = rect.difference(unary_union(polygons))
    except (GEOSException, TopologicalError, ValueError) as e:
        logger.warning("Failed to subtract land from world, using world bounds: %s", e)
        return rect
    if result.is_empty or not result.is_valid:
        logger.warning("Land subtraction produced an unusable sea, using world bounds")
        return rect
    return result


def clip_to_world(
    geom: BaseGeometry | None, world: WorldBounds, exclude: BaseGeometry | None = None
) -> Polygon | None:
    """Largest piece of *geom* inside the world and outside *exclude*."""
    if geom is None or geom.is_empty:
        return None
    try:
        clipped = geom.intersection(world.rectangle())
        if exclude is not None and not exclude.is_empty:
            clipped = clipped.difference(exclude)
    except (GEOSException, TopologicalError, ValueError) as e:
        logger.warning("Failed to clip geometry to world bounds: %s", e)
        return None
    return largest_polygon(clipped)


def simplify_polyline(points: list[Point], tolerance: float) -> list[Point]:
    """Douglas-Peucker vertex reduction; endpoints are always kept."""
    if len(points) < 3 or tolerance <= 0:
        return list(points)
    simplified = LineString(points).simplify(tolerance, preserve_topology=False)
    return [(float(x), float(y)) for x, y in simplified.coords]


def densify_polyline(points: list[Point], step: float, closed: bool = False) -> list[Point]:
    """Subdivide segments so consecutive samples are at most *step* apart.

    With ``closed=True`` the segment from the last point back to the first is
    densified as well.
    """
    if len(points) < 2:
        return list(points)
    pts = list(points)
    if closed and pts[0] != pts[-1]:
        pts.append(pts[0])

    out: list[Point] = [pts[0]]
    for (x0, y0), (x1, y1) in zip(pts[:-1], pts[1:]):
        seg_len = math.hypot(x1 - x0, y1 - y0)
        n = max(1, math.ceil(seg_len / step))
        for k in range(1, n + 1):
            t = k / n
            out.append((x0 + (x1 - x0) * t, y0 + (y1 - y0) * t))
    return out


def buffer_line(points: list[Point], distance: float) -> Polygon | None:
    """Offset polygon around a polyline at *distance* on both sides."""
    if len(points) < 2 or distance <= 0:
        return None
    try:
        buffered = LineString(points).buffer(distance)
    except (GEOSException, TopologicalError, ValueError) as e:
        logger.warning("Failed to buffer polyline: %s", e)
        return None
    return largest_polygon(buffered)


def ring_points(poly: Polygon) -> list[Point]:
    """Exterior ring of *poly* without the repeated closing vertex."""
    coords = [(float(x), float(y)) for x, y in poly.exterior.coords]
    return coords[:-1]


def contains_points(geom: BaseGeometry | None, points: list[Point]) -> np.ndarray:
    """Vectorized strict point-in-polygon test."""
    if geom is None or not points:
        return np.zeros(len(points), dtype=bool)
    xy = np.asarray(points, dtype=np.float64)
    return shapely.contains_xy(geom, xy[:, 0], xy[:, 1])


def convex_hull(points: list[Point]) -> list[Point]:
    """Convex hull vertices of *points*, counter-clockwise, without closure."""
    hull = MultiPoint(points).convex_hull
    if isinstance(hull, Polygon):
        return ring_points(hull)
    return [(float(x), float(y)) for x, y in getattr(hull, "coords", [])]


def geometry_to_geojson(geom: BaseGeometry | None) -> dict[str, Any] | None:
    """Convert a Shapely geometry to a GeoJSON-like dict.

    Returns None if the geometry is empty or of an unsupported type.
    """
    if geom is None or geom.is_empty:
        return None

    if isinstance(geom, Polygon):
        coords = [list(geom.exterior.coords)]
        for ring in geom.interiors:
            coords.append(list(ring.coords))
        return {"type": "Polygon", "coordinates": coords}

    if isinstance(geom, MultiPolygon):
        return {
            "type": "MultiPolygon",
            "coordinates": [geometry_to_geojson(p)["coordinates"] for p in geom.geoms],
        }

    if isinstance(geom, LineString):
        return {"type": "LineString", "coordinates": list(geom.coords)}

    if isinstance(geom, MultiLineString):
        return {"type": "MultiLineString", "coordinates": [list(l.coords) for l in geom.geoms]}

    if isinstance(geom, GeometryCollection):
        # Keep the largest polygonal part.
        largest = largest_polygon(geom)
        return geometry_to_geojson(largest)

    return None
