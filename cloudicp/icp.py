"""Point-to-point iterative closest point registration."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

logger = logging.getLogger(__name__)

_CHUNK_ELEMENTS = 1 << 20
_DOUBLE_MAX = np.finfo(np.float64).max
_MIN_CORRESPONDENCES = 3
_ABSOLUTE_MSE = 1e-12


@dataclass(frozen=True)
class ICPResult:
    """Outcome of a registration run.

    ``iterations`` counts the transformation updates applied; ``error`` is the
    last measured mean squared distance; ``errors`` holds one value per pass.
    """

    transformation: np.ndarray
    converged: bool
    iterations: int
    error: float
    errors: tuple = ()


def _as_cloud(points):
    cloud = np.asarray(points, dtype=np.float64)
    if cloud.size == 0:
        return np.empty((0, 3))
    if cloud.ndim != 2 or cloud.shape[1] < 3:
        raise ValueError("a point cloud must be an array of shape (N, 3)")
    return cloud[:, :3]


def transform_points(points, transformation):
    """Apply a 4x4 rigid transformation to an (N, 3) cloud."""
    cloud = _as_cloud(points)
    matrix = np.asarray(transformation, dtype=np.float64)
    if matrix.shape != (4, 4):
        raise ValueError("transformation must be a 4x4 matrix")
    return cloud @ matrix[:3, :3].T + matrix[:3, 3]


def find_nearest_points(source, target):
    """Index of the nearest target point for each source point, -1 where none."""
    src = _as_cloud(source)
    tgt = _as_cloud(target)
    result = np.full(len(src), -1, dtype=np.intp)
    if len(src) == 0 or len(tgt) == 0:
        return result
    chunk = max(1, _CHUNK_ELEMENTS // len(tgt))
    for start in range(0, len(src), chunk):
        block = src[start:start + chunk]
        diff = block[:, None, :] - tgt[None, :, :]
        dist = np.einsum("ijk,ijk->ij", diff, diff)
        dist = np.where(dist < _DOUBLE_MAX, dist, np.inf)
        best = np.argmin(dist, axis=1)
        found = np.isfinite(dist[np.arange(len(block)), best])
        result[start:start + chunk] = np.where(found, best, -1)
    return result


def compute_error(source, target, correspondences):
    """Mean squared distance over valid correspondences, 0.0 when there are none."""
    src = _as_cloud(source)
    tgt = _as_cloud(target)
    corr = np.asarray(correspondences, dtype=np.intp)
    if corr.shape != (len(src),):
        raise ValueError("there must be one correspondence per source point")
    valid = corr >= 0
    count = int(valid.sum())
    if count == 0:
        return 0.0
    diff = src[valid] - tgt[corr[valid]]
    return float(np.einsum("ij,ij->", diff, diff) / count)


def _rigid_step(src, tgt):
    mean_src = src.mean(axis=0)
    mean_tgt = tgt.mean(axis=0)
    covariance = (src - mean_src).T @ (tgt - mean_tgt)
    u, _, vt = np.linalg.svd(covariance)
    v = vt.T.copy()
    rotation = v @ u.T
    if np.linalg.det(rotation) < 0:
        v[:, 2] *= -1
        rotation = v @ u.T
    step = np.eye(4)
    step[:3, :3] = rotation
    step[:3, 3] = mean_tgt - rotation @ mean_src
    return step


def perform_icp(source, target, max_iterations=50, convergence_threshold=1e-6):
    """Align source to target; stop when the error changes by less than the threshold."""
    src = _as_cloud(source)
    tgt = _as_cloud(target)
    transformation = np.eye(4)
    moved = src.copy()
    previous = math.inf
    errors = []
    converged = False
    iterations = 0

    for iteration in range(max_iterations):
        correspondences = find_nearest_points(moved, tgt)
        current = compute_error(moved, tgt, correspondences)
        errors.append(current)
        if abs(previous - current) < convergence_threshold:
            logger.info("ICP converged at iteration %d", iteration)
            converged = True
            break
        previous = current

        valid = correspondences >= 0
        if not valid.any():
            logger.warning("No valid correspondences found")
            break

        step = _rigid_step(moved[valid], tgt[correspondences[valid]])
        transformation = step @ transformation
        moved = transform_points(src, transformation)
        iterations = iteration + 1
        logger.info("Iteration %d, Error: %g", iteration, current)

    return ICPResult(
        transformation=transformation,
        converged=converged,
        iterations=iterations,
        error=errors[-1] if errors else math.inf,
        errors=tuple(errors),
    )


def _fitness(moved, tgt):
    correspondences = find_nearest_points(moved, tgt)
    if not (correspondences >= 0).any():
        return math.inf
    return compute_error(moved, tgt, correspondences)


def reference_icp(source, target, max_iterations=10):
    """Serial ICP with classical stopping rules, used as a baseline.

    It stops after ``max_iterations`` updates (counted as converged), when an
    update is the identity, or when the correspondence error stops changing.
    With fewer than three correspondences it stops without converging.
    ``error`` is the fitness score: the mean squared nearest-neighbour distance
    of the aligned source.
    """
    src = _as_cloud(source)
    tgt = _as_cloud(target)
    transformation = np.eye(4)
    moved = src.copy()
    previous_mse = math.inf
    errors = []
    converged = False
    iterations = 0

    while True:
        correspondences = find_nearest_points(moved, tgt)
        valid = correspondences >= 0
        if int(valid.sum()) < _MIN_CORRESPONDENCES:
            logger.error("Not enough correspondences found")
            break
        mse = compute_error(moved, tgt, correspondences)
        errors.append(mse)

        step = _rigid_step(moved[valid], tgt[correspondences[valid]])
        transformation = step @ transformation
        moved = transform_points(src, transformation)
        iterations += 1

        if iterations >= max_iterations:
            converged = True
            break
        diagonal_sum = float(step[0, 0] + step[1, 1] + step[2, 2])
        cos_angle = 0.5 * (diagonal_sum - 1.0)
        translation_sq = float(step[:3, 3] @ step[:3, 3])
        if cos_angle >= 1.0 and translation_sq <= 0.0:
            converged = True
            break
        if abs(mse - previous_mse) < _ABSOLUTE_MSE:
            converged = True
            break
        previous_mse = mse

    return ICPResult(
        transformation=transformation,
        converged=converged,
        iterations=iterations,
        error=_fitness(moved, tgt),
        errors=tuple(errors),
    )