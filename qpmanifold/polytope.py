"""
Feasible-region geometry for low-dimensional problems.

The region is clipped to the box ``[-max_bound, max_bound]^n`` so that
unbounded problems still produce a finite picture.

* ``n = 1``: an interval ``[[lower], [upper]]``.
* ``n = 2``: an ordered polygon obtained by Sutherland-Hodgman clipping.
* ``n = 3``: vertices enumerated from plane triples plus triangular faces
  oriented away from the vertex centroid.
* ``n > 3``: no geometry, only a message.
"""

from __future__ import annotations

from functools import cmp_to_key
from itertools import combinations
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .core import PolytopeResult, Problem
from .linalg import approx_equal, norm, random_unit_vector, solve_linear_system
from .logging import get_logger
from .solver import is_feasible

logger = get_logger(__name__)

MAX_BOUND = 10.0
INSIDE_TOL = 1e-10
EQUALITY_OFFSET_2D = 1e-8
EQUALITY_OFFSET_3D = 1e-6
VERTEX_TOL = 1e-6

HalfSpace = Tuple[np.ndarray, float]


def _clamped_bounds(problem: Problem, max_bound: float) -> Tuple[np.ndarray, np.ndarray]:
    lower = np.maximum(problem.bounds.lower, -max_bound)
    upper = np.minimum(problem.bounds.upper, max_bound)
    return lower, upper


def _segment_crossing(p1: np.ndarray, p2: np.ndarray, a: np.ndarray, b: float) -> Optional[np.ndarray]:
    d1 = float(a @ p1) - b
    d2 = float(a @ p2) - b
    if abs(d1 - d2) < 1e-12:
        return None
    t = d1 / (d1 - d2)
    return p1 + t * (p2 - p1)


def clip_polygon_by_half_plane(vertices: Sequence, a: Sequence[float], b: float) -> List[np.ndarray]:
    """
    Keep the part of a convex polygon where ``a^T x <= b``.

    A vertex counts as inside when ``a^T x <= b + 1e-10``. Consecutive
    output vertices that coincide (as happens when an edge touches the
    boundary line) are merged.
    """

    a = np.asarray(a, dtype=float)
    pts = [np.asarray(v, dtype=float) for v in vertices]
    if not pts:
        return []

    output: List[np.ndarray] = []

    def _push(point: np.ndarray) -> None:
        if not output or not approx_equal(output[-1], point, INSIDE_TOL):
            output.append(point)

    for i, current in enumerate(pts):
        nxt = pts[(i + 1) % len(pts)]
        current_inside = float(a @ current) <= b + INSIDE_TOL
        next_inside = float(a @ nxt) <= b + INSIDE_TOL
        if current_inside:
            _push(current)
            if not next_inside:
                crossing = _segment_crossing(current, nxt, a, b)
                if crossing is not None:
                    _push(crossing)
        elif next_inside:
            crossing = _segment_crossing(current, nxt, a, b)
            if crossing is not None:
                _push(crossing)

    if len(output) > 1 and approx_equal(output[0], output[-1], INSIDE_TOL):
        output.pop()
    return output


def compute_polytope_1d(problem: Problem, max_bound: float = MAX_BOUND) -> PolytopeResult:
    """Feasible interval of a one-variable problem."""
    lower_arr, upper_arr = _clamped_bounds(problem, max_bound)
    lower, upper = float(lower_arr[0]), float(upper_arr[0])

    for ineq in problem.inequalities:
        coeff = float(ineq.a[0])
        if coeff > INSIDE_TOL:
            upper = min(upper, ineq.b / coeff)
        elif coeff < -INSIDE_TOL:
            lower = max(lower, ineq.b / coeff)
        elif ineq.b < 0:
            return PolytopeResult.empty("Constraint 0 <= b is violated")

    for eq in problem.equalities:
        coeff = float(eq.a[0])
        if abs(coeff) > INSIDE_TOL:
            value = eq.b / coeff
            if not lower - INSIDE_TOL <= value <= upper + INSIDE_TOL:
                return PolytopeResult.empty("Equality lies outside the feasible interval")
            lower = upper = value
        elif abs(eq.b) > INSIDE_TOL:
            return PolytopeResult.empty("Constraint 0 = b is violated")

    if lower > upper + INSIDE_TOL:
        logger.debug("Empty interval [%g, %g]", lower, upper)
        return PolytopeResult.empty("Feasible interval is empty")
    return PolytopeResult(vertices=np.array([[lower], [upper]]))


def compute_polytope_2d(problem: Problem, max_bound: float = MAX_BOUND) -> PolytopeResult:
    """Ordered feasible polygon of a two-variable problem."""
    lower, upper = _clamped_bounds(problem, max_bound)
    polygon = [
        np.array([lower[0], lower[1]]),
        np.array([upper[0], lower[1]]),
        np.array([upper[0], upper[1]]),
        np.array([lower[0], upper[1]]),
    ]

    for ineq in problem.inequalities:
        polygon = clip_polygon_by_half_plane(polygon, ineq.a, ineq.b)
        if len(polygon) < 3:
            logger.debug("Polygon vanished after clipping by inequality")
            return PolytopeResult.empty("Feasible region is empty")

    for eq in problem.equalities:
        polygon = clip_polygon_by_half_plane(polygon, eq.a, eq.b + EQUALITY_OFFSET_2D)
        polygon = clip_polygon_by_half_plane(polygon, -eq.a, -eq.b + EQUALITY_OFFSET_2D)
        if len(polygon) < 2:
            logger.debug("Polygon vanished after clipping by equality")
            return PolytopeResult.empty("Feasible region is empty")

    vertices = np.vstack(polygon)
    return PolytopeResult(vertices=vertices, feasible=len(polygon) >= 3)


def _half_spaces_3d(problem: Problem, max_bound: float) -> List[HalfSpace]:
    lower, upper = _clamped_bounds(problem, max_bound)
    eye = np.eye(3)
    spaces: List[HalfSpace] = []
    for i in range(3):
        spaces.append((-eye[i], -float(lower[i])))
        spaces.append((eye[i], float(upper[i])))
    spaces.extend((ineq.a, ineq.b) for ineq in problem.inequalities)
    for eq in problem.equalities:
        spaces.append((eq.a, eq.b + EQUALITY_OFFSET_3D))
        spaces.append((-eq.a, -eq.b + EQUALITY_OFFSET_3D))
    return spaces


def compute_polytope_3d(problem: Problem, max_bound: float = MAX_BOUND) -> PolytopeResult:
    """
    Vertices and faces of a three-variable feasible region.

    Every triple of bounding planes is intersected; points that satisfy all
    half-spaces within ``1e-6`` and are not duplicates become vertices.
    """

    spaces = _half_spaces_3d(problem, max_bound)
    vertices: List[np.ndarray] = []
    for trio in combinations(spaces, 3):
        point = solve_linear_system(np.vstack([s[0] for s in trio]), np.array([s[1] for s in trio]))
        if point is None:
            continue
        if any(float(a @ point) > b + VERTEX_TOL for a, b in spaces):
            continue
        if any(approx_equal(point, v, VERTEX_TOL) for v in vertices):
            continue
        vertices.append(point)

    if len(vertices) < 4:
        logger.debug("Only %d vertices found in 3D", len(vertices))
        return PolytopeResult(vertices=np.zeros((0, 3)), faces=(), feasible=False, message="Feasible region is empty or flat")
    return PolytopeResult(vertices=np.vstack(vertices), faces=convex_hull_3d(vertices))


def compute_polytope(problem: Problem, max_bound: float = MAX_BOUND) -> PolytopeResult:
    """
    Explicit feasible-region geometry for ``problem.n <= 3``.

    Args:
        problem: Problem whose constraints define the region.
        max_bound: Half-width of the box every coordinate is clamped to.

    Returns:
        :class:`PolytopeResult`. For ``n > 3`` the vertices are empty,
        ``feasible`` is True and ``message`` says why.
    """

    if problem.n == 1:
        return compute_polytope_1d(problem, max_bound)
    if problem.n == 2:
        return compute_polytope_2d(problem, max_bound)
    if problem.n == 3:
        return compute_polytope_3d(problem, max_bound)
    return PolytopeResult(
        vertices=np.zeros((0, problem.n)),
        feasible=True,
        message="Polytope visualization not available for n > 3",
    )


def _cross(o: np.ndarray, a: np.ndarray, b: np.ndarray) -> float:
    return float((a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0]))


def convex_hull_2d(points: Sequence) -> List[int]:
    """
    Graham scan; returns hull vertex indices in counter-clockwise order.

    Fewer than three points are returned as ``[0, ..., k-1]``.
    """

    pts = [np.asarray(p, dtype=float) for p in points]
    if len(pts) < 3:
        return list(range(len(pts)))

    lowest = min(range(len(pts)), key=lambda i: (pts[i][1], pts[i][0]))
    origin = pts[lowest]

    def _compare(i: int, j: int) -> int:
        if i == lowest:
            return -1
        if j == lowest:
            return 1
        angle_i = np.arctan2(pts[i][1] - origin[1], pts[i][0] - origin[0])
        angle_j = np.arctan2(pts[j][1] - origin[1], pts[j][0] - origin[0])
        if abs(angle_i - angle_j) < 1e-10:
            dist = norm(pts[i] - origin) - norm(pts[j] - origin)
            return (dist > 0) - (dist < 0)
        return -1 if angle_i < angle_j else 1

    order = sorted(range(len(pts)), key=cmp_to_key(_compare))
    stack = [order[0], order[1]]
    for idx in order[2:]:
        while len(stack) > 1 and _cross(pts[stack[-2]], pts[stack[-1]], pts[idx]) <= 0:
            stack.pop()
        stack.append(idx)
    return stack


def convex_hull_3d(points: Sequence) -> Tuple[Tuple[int, int, int], ...]:
    """
    Triangular hull faces by exhaustive face testing.

    A triple is a face when every other point lies on one side of its plane
    (points within ``1e-8`` of the plane are ignored). Faces are wound so
    their normal points away from the centroid. The test is cubic in the
    number of points times a linear scan, which is fine for visualization.
    """

    pts = np.asarray(points, dtype=float)
    count = pts.shape[0]
    if count < 4:
        return ()
    centroid = pts.mean(axis=0)

    faces: List[Tuple[int, int, int]] = []
    for i, j, k in combinations(range(count), 3):
        normal = np.cross(pts[j] - pts[i], pts[k] - pts[i])
        if norm(normal) < 1e-10:
            continue
        side = 0.0
        is_face = True
        for other in range(count):
            if other in (i, j, k):
                continue
            d = float(normal @ (pts[other] - pts[i]))
            if abs(d) < 1e-8:
                continue
            if side == 0.0:
                side = np.sign(d)
            elif np.sign(d) != side:
                is_face = False
                break
        if is_face:
            if float(normal @ (centroid - pts[i])) > 0:
                faces.append((i, k, j))
            else:
                faces.append((i, j, k))
    return tuple(faces)


def sample_polytope_boundary(
    problem: Problem, num_samples: int = 100, rng: Optional[np.random.Generator] = None
) -> np.ndarray:
    """
    Boundary points found by casting random rays from the origin.

    Each ray is cut at the first inequality it meets; the hit point is kept
    when it is feasible within ``1e-4``. Rays that never hit a constraint
    are dropped. Returns a ``(k, n)`` array.
    """

    rng = rng if rng is not None else np.random.default_rng()
    samples: List[np.ndarray] = []
    for _ in range(num_samples):
        direction = random_unit_vector(problem.n, rng)
        max_step = 1e6
        for ineq in problem.inequalities:
            ad = float(ineq.a @ direction)
            if ad > INSIDE_TOL:
                max_step = min(max_step, ineq.b / ad)
        if 0 < max_step < 1e6:
            point = max_step * direction
            if is_feasible(problem, point, 1e-4):
                samples.append(point)
    if not samples:
        return np.zeros((0, problem.n))
    return np.vstack(samples)


__all__ = [
    "MAX_BOUND",
    "clip_polygon_by_half_plane",
    "compute_polytope",
    "compute_polytope_1d",
    "compute_polytope_2d",
    "compute_polytope_3d",
    "convex_hull_2d",
    "convex_hull_3d",
    "sample_polytope_boundary",
]
