"""
Polygon geometry kernel for settlement generation.

Pure functions over 2D polygons, shared by the partitioner, the building
placer and the vegetation scatterer:

- Containment: ray-casting point-in-polygon (even-odd, half-open edges)
- Measurement: area, bounds, centroid, point/segment distance
- Construction: regular polygons, rectangles, rotation
- Mutation: inward offset (shrink) and splitting by a line
- Collision: Separating Axis Theorem overlap test

Polygons are ``(n, 2)`` float arrays; every function accepts any
array-like of points and never mutates its input. Degenerate results
are reported as ``None`` rather than raised.
"""

import math

from typing import Optional, Tuple

import numpy as np

EPSILON = 1e-9

Polygon = np.ndarray
Bounds = Tuple[float, float, float, float]


def as_polygon(points) -> Polygon:
    """Convert array-like points to an ``(n, 2)`` float array."""
    arr = np.asarray(points, dtype=np.float64)
    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"Expected (n, 2) points, got shape {arr.shape}")
    return arr


def regular_polygon(
    sides: int,
    radius: float,
    center: Tuple[float, float] = (0.0, 0.0),
    rotation: float = 0.0,
    y_scale: float = 1.0,
) -> Polygon:
    """
    Build a regular polygon with vertices in counter-clockwise order.

    Args:
        sides: Number of vertices (>= 3)
        radius: Circumradius
        center: Polygon centre
        rotation: Angle of the first vertex in radians
        y_scale: Vertical compression factor (forests use < 1)
    """
    if sides < 3:
        raise ValueError("A polygon needs at least 3 sides")
    angles = rotation + np.arange(sides) * (2 * math.pi / sides)
    xs = center[0] + radius * np.cos(angles)
    ys = center[1] + radius * np.sin(angles) * y_scale
    return np.column_stack([xs, ys])


def rectangle(
    width: float,
    height: float,
    center: Tuple[float, float] = (0.0, 0.0),
    rotation: float = 0.0,
) -> Polygon:
    """Rectangle of the given size centred on ``center``, rotated by ``rotation``."""
    hw, hh = width / 2.0, height / 2.0
    corners = np.array([[-hw, -hh], [hw, -hh], [hw, hh], [-hw, hh]])
    return rotate_points(corners, rotation) + np.asarray(center, dtype=np.float64)


def rotate_points(points, angle: float) -> np.ndarray:
    """Rotate points around the origin by ``angle`` radians."""
    pts = as_polygon(points)
    if angle == 0:
        return pts.copy()
    c, s = math.cos(angle), math.sin(angle)
    return pts @ np.array([[c, s], [-s, c]])


def signed_area(polygon) -> float:
    """Shoelace signed area; positive for counter-clockwise polygons."""
    pts = as_polygon(polygon)
    x, y = pts[:, 0], pts[:, 1]
    return 0.5 * float(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y))


def polygon_area(polygon) -> float:
    """Polygon area via the shoelace formula; never negative."""
    return abs(signed_area(polygon))


def polygon_bounds(polygon) -> Bounds:
    """Axis-aligned bounds as ``(min_x, min_y, max_x, max_y)``."""
    pts = as_polygon(polygon)
    min_x, min_y = pts.min(axis=0)
    max_x, max_y = pts.max(axis=0)
    return float(min_x), float(min_y), float(max_x), float(max_y)


def polygon_centroid(polygon) -> Tuple[float, float]:
    """Area centroid, falling back to the vertex mean for degenerate polygons."""
    pts = as_polygon(polygon)
    x, y = pts[:, 0], pts[:, 1]
    x_next, y_next = np.roll(x, -1), np.roll(y, -1)
    cross = x * y_next - x_next * y
    area = cross.sum() / 2.0
    if abs(area) < EPSILON:
        mean = pts.mean(axis=0)
        return float(mean[0]), float(mean[1])
    cx = ((x + x_next) * cross).sum() / (6.0 * area)
    cy = ((y + y_next) * cross).sum() / (6.0 * area)
    return float(cx), float(cy)


def point_in_polygon(point, polygon) -> bool:
    """
    Ray-casting point-in-polygon test using the even-odd rule.

    Edges are treated as half-open in y (``(yi > y) != (yj > y)``) so a
    ray passing exactly through a vertex is counted once.
    """
    return bool(points_in_polygon(np.asarray([point], dtype=np.float64), polygon)[0])


def points_in_polygon(points, polygon) -> np.ndarray:
    """Vectorised :func:`point_in_polygon` for an ``(m, 2)`` array of points."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    poly = as_polygon(polygon)
    px = pts[:, 0][:, None]
    py = pts[:, 1][:, None]

    xi, yi = poly[:, 0][None, :], poly[:, 1][None, :]
    xj, yj = np.roll(poly[:, 0], 1)[None, :], np.roll(poly[:, 1], 1)[None, :]

    straddles = (yi > py) != (yj > py)
    dy = np.where(straddles, yj - yi, 1.0)
    x_cross = (xj - xi) * (py - yi) / dy + xi
    crossings = straddles & (px < x_cross)
    return (crossings.sum(axis=1) % 2) == 1


def point_to_segment_distance(point, seg_start, seg_end) -> float:
    """Euclidean distance from a point to a line segment."""
    p = np.asarray(point, dtype=np.float64)
    a = np.asarray(seg_start, dtype=np.float64)
    b = np.asarray(seg_end, dtype=np.float64)
    ab = b - a
    length_sq = float(np.dot(ab, ab))
    if length_sq < EPSILON:
        return float(np.linalg.norm(p - a))
    t = min(1.0, max(0.0, float(np.dot(p - a, ab)) / length_sq))
    return float(np.linalg.norm(p - (a + t * ab)))


def distance_to_boundary(points, polygon) -> np.ndarray:
    """Minimum distance from each point to any edge of the polygon."""
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    poly = as_polygon(polygon)
    a = poly[None, :, :]
    ab = (np.roll(poly, -1, axis=0) - poly)[None, :, :]
    ap = pts[:, None, :] - a

    length_sq = (ab ** 2).sum(axis=2)
    safe_length = np.where(length_sq < EPSILON, 1.0, length_sq)
    t = np.clip((ap * ab).sum(axis=2) / safe_length, 0.0, 1.0)
    t = np.where(length_sq < EPSILON, 0.0, t)
    closest = a + t[:, :, None] * ab
    dist = np.linalg.norm(pts[:, None, :] - closest, axis=2)
    return dist.min(axis=1)


def line_intersection(a1, a2, b1, b2) -> Optional[np.ndarray]:
    """
    Intersection of the infinite lines through ``a1-a2`` and ``b1-b2``.

    Returns None when the lines are parallel or degenerate (determinant
    near zero).
    """
    a1 = np.asarray(a1, dtype=np.float64)
    a2 = np.asarray(a2, dtype=np.float64)
    b1 = np.asarray(b1, dtype=np.float64)
    b2 = np.asarray(b2, dtype=np.float64)
    da = a2 - a1
    db = b2 - b1
    det = da[0] * db[1] - da[1] * db[0]
    if abs(det) < EPSILON:
        return None
    t = ((b1[0] - a1[0]) * db[1] - (b1[1] - a1[1]) * db[0]) / det
    return a1 + t * da


def _dedupe(points: np.ndarray, tolerance: float = 1e-7) -> np.ndarray:
    """Drop consecutive (and wrap-around) duplicate vertices."""
    if len(points) == 0:
        return points
    keep = [points[0]]
    for p in points[1:]:
        if np.linalg.norm(p - keep[-1]) > tolerance:
            keep.append(p)
    if len(keep) > 1 and np.linalg.norm(keep[0] - keep[-1]) <= tolerance:
        keep.pop()
    return np.array(keep, dtype=np.float64).reshape(-1, 2)


def _inward_normals(points: np.ndarray, orientation: float) -> np.ndarray:
    """Unit inward normals of each edge ``i -> i+1``."""
    edges = np.roll(points, -1, axis=0) - points
    lengths = np.linalg.norm(edges, axis=1)
    lengths = np.where(lengths < EPSILON, 1.0, lengths)
    # Left normal (-dy, dx) points inward for counter-clockwise polygons
    normals = np.column_stack([-edges[:, 1], edges[:, 0]]) / lengths[:, None]
    return normals * orientation


def _offset_vertices(
    points: np.ndarray, distance: float, orientation: float
) -> Optional[np.ndarray]:
    """Miter-offset each vertex so every edge moves ``distance`` inward."""
    normals = _inward_normals(points, orientation)
    prev_normals = np.roll(normals, 1, axis=0)
    bisectors = prev_normals + normals
    denom = 1.0 + (prev_normals * normals).sum(axis=1)
    if np.any(denom < 1e-6):
        # Edge folds back on itself; no finite offset exists
        return None
    return points + distance * bisectors / denom[:, None]


def shrink_polygon(polygon, distance: float) -> Optional[Polygon]:
    """
    Offset a polygon inward by ``distance``.

    Each vertex moves along the averaged normal of its two adjacent edges,
    scaled so that every edge ends up exactly ``distance`` further inside.
    An edge that would reverse direction has collapsed; it is removed by
    extending its neighbours and the offset is recomputed.

    Args:
        polygon: Input polygon (either orientation)
        distance: Inward offset; zero returns a cleaned copy

    Returns:
        Shrunk polygon, or None if fewer than 3 vertices survive or the
        polygon collapses entirely
    """
    pts = _dedupe(as_polygon(polygon))
    if len(pts) < 3:
        return None

    area = signed_area(pts)
    if abs(area) < EPSILON:
        return None
    if distance == 0:
        return pts.copy()

    orientation = 1.0 if area > 0 else -1.0

    while len(pts) >= 3:
        shifted = _offset_vertices(pts, distance, orientation)
        if shifted is None:
            return None

        old_edges = np.roll(pts, -1, axis=0) - pts
        new_edges = np.roll(shifted, -1, axis=0) - shifted
        collapsed = np.where((old_edges * new_edges).sum(axis=1) <= 0)[0]
        if len(collapsed) == 0:
            break

        # Drop the shortest collapsing edge by joining its neighbours' lines
        lengths = np.linalg.norm(old_edges[collapsed], axis=1)
        i = int(collapsed[np.argmin(lengths)])
        n = len(pts)
        merged = line_intersection(
            pts[(i - 1) % n], pts[i], pts[(i + 1) % n], pts[(i + 2) % n]
        )
        if merged is None:
            return None
        replaced = np.delete(pts, (i + 1) % n, axis=0)
        replaced[i if (i + 1) % n != 0 else i - 1] = merged
        pts = replaced
    else:
        return None

    if len(shifted) < 3:
        return None
    new_area = signed_area(shifted)
    if new_area * orientation <= EPSILON:
        return None
    return shifted


def _classify(points: np.ndarray, p1: np.ndarray, p2: np.ndarray) -> np.ndarray:
    """Side of each point relative to the directed line ``p1 -> p2`` (-1, 0, 1)."""
    direction = p2 - p1
    direction = direction / np.linalg.norm(direction)
    rel = points - p1
    signed_dist = direction[0] * rel[:, 1] - direction[1] * rel[:, 0]
    side = np.sign(signed_dist)
    side[np.abs(signed_dist) < 1e-7] = 0
    return side


def split_by_arbitrary_line(polygon, p1, p2) -> Optional[Tuple[Polygon, Polygon]]:
    """
    Split a polygon by the infinite line through ``p1`` and ``p2``.

    Walks the edges, sending each vertex to the side it lies on and
    inserting an interpolated vertex wherever consecutive vertices change
    side. Vertices on the line go to both parts.

    Returns:
        ``(left_part, right_part)`` or None if the line is degenerate or
        either part ends up with fewer than 3 vertices
    """
    pts = _dedupe(as_polygon(polygon))
    p1 = np.asarray(p1, dtype=np.float64)
    p2 = np.asarray(p2, dtype=np.float64)
    if len(pts) < 3 or np.linalg.norm(p2 - p1) < EPSILON:
        return None

    sides = _classify(pts, p1, p2)
    left, right = [], []
    n = len(pts)
    for i in range(n):
        current, nxt = pts[i], pts[(i + 1) % n]
        s_cur, s_next = sides[i], sides[(i + 1) % n]
        if s_cur >= 0:
            left.append(current)
        if s_cur <= 0:
            right.append(current)
        if s_cur * s_next < 0:
            crossing = line_intersection(current, nxt, p1, p2)
            if crossing is None:
                return None
            left.append(crossing)
            right.append(crossing)

    left_poly = _dedupe(np.array(left).reshape(-1, 2))
    right_poly = _dedupe(np.array(right).reshape(-1, 2))
    if len(left_poly) < 3 or len(right_poly) < 3:
        return None
    if polygon_area(left_poly) < EPSILON or polygon_area(right_poly) < EPSILON:
        return None
    return left_poly, right_poly


def split_by_vertical_line(polygon, x: float) -> Optional[Tuple[Polygon, Polygon]]:
    """Split by the vertical line at ``x``; returns ``(left, right)`` parts."""
    return split_by_arbitrary_line(polygon, (x, 0.0), (x, 1.0))


def split_by_horizontal_line(polygon, y: float) -> Optional[Tuple[Polygon, Polygon]]:
    """Split by the horizontal line at ``y``; returns ``(below, above)`` parts."""
    parts = split_by_arbitrary_line(polygon, (0.0, y), (1.0, y))
    if parts is None:
        return None
    above, below = parts
    return below, above


def _project(points: np.ndarray, axis: np.ndarray) -> Tuple[float, float]:
    projections = points @ axis
    return float(projections.min()), float(projections.max())


def polygons_overlap(poly_a, poly_b) -> bool:
    """
    Separating Axis Theorem overlap test for convex polygons.

    Every edge normal of both polygons is tried as a candidate axis. The
    polygons overlap unless some axis separates their projections;
    touching edges count as separated.
    """
    a = as_polygon(poly_a)
    b = as_polygon(poly_b)
    for poly in (a, b):
        edges = np.roll(poly, -1, axis=0) - poly
        for edge in edges:
            length = math.hypot(edge[0], edge[1])
            if length < EPSILON:
                continue
            axis = np.array([-edge[1], edge[0]]) / length
            min_a, max_a = _project(a, axis)
            min_b, max_b = _project(b, axis)
            if max_a <= min_b + EPSILON or max_b <= min_a + EPSILON:
                return False
    return True
