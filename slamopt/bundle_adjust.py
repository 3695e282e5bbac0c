"""Bundle adjustment of a BAL problem with a trust-region least-squares solver.

Every observation contributes a two-dimensional reprojection residual
that depends on one camera and one point. The optimised parameters are
written back into the problem in place.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import TextIO

import numpy as np
from scipy import sparse
from scipy.optimize import least_squares

from .bal_problem import BALFormatError, BALProblem
from .bundle_params import BundleParams, ParamsVariant
from .command_args import CommandArgsError, HelpRequested
from .noise import NoiseSource
from .projection import SnavelyReprojectionError

_EPS = float(np.finfo(float).eps)

_DENSE_SOLVERS = {"dense_schur", "dense_qr", "dense_normal_cholesky"}
_SPARSE_SOLVERS = {"sparse_schur", "sparse_normal_cholesky", "iterative_schur", "cgnr"}
_SPARSE_LIBRARIES = {"suite_sparse", "cx_sparse", "eigen_sparse", "no_sparse"}
_DENSE_LIBRARIES = {"eigen", "lapack"}
_STRATEGIES = {"levenberg_marquardt": "trf", "dogleg": "dogbox"}


@dataclass(frozen=True)
class SolveSummary:
    """Outcome of one optimisation run; costs are half the sum of squared residuals."""

    initial_cost: float
    final_cost: float
    iterations: int
    message: str
    success: bool

    def __str__(self) -> str:
        return "\n".join(
            [
                "Solver Summary",
                f"Initial cost      {self.initial_cost:.6e}",
                f"Final cost        {self.final_cost:.6e}",
                f"Evaluations       {self.iterations}",
                f"Termination       {'CONVERGENCE' if self.success else 'FAILURE'} ({self.message})",
            ]
        )


def _require_angle_axis(problem: BALProblem) -> None:
    if problem.use_quaternions:
        raise ValueError("bundle adjustment needs cameras in angle-axis form")


def build_residuals(problem: BALProblem) -> list[tuple[int, int, SnavelyReprojectionError]]:
    """One ``(camera index, point index, cost)`` block per observation."""
    _require_angle_axis(problem)
    return [
        (int(cam), int(pt), SnavelyReprojectionError(float(x), float(y)))
        for cam, pt, (x, y) in zip(problem.camera_index, problem.point_index, problem.observations)
    ]


def _rotate_points(angle_axis: np.ndarray, points: np.ndarray) -> np.ndarray:
    theta2 = np.einsum("ij,ij->i", angle_axis, angle_axis)
    big = theta2 > _EPS
    theta = np.sqrt(np.where(big, theta2, 1.0))[:, None]
    w = angle_axis / theta
    cos_t, sin_t = np.cos(theta), np.sin(theta)
    tmp = np.einsum("ij,ij->i", w, points)[:, None] * (1.0 - cos_t)
    rodrigues = points * cos_t + np.cross(w, points) * sin_t + w * tmp
    taylor = points + np.cross(angle_axis, points)
    return np.where(big[:, None], rodrigues, taylor)


def _project(cameras: np.ndarray, points: np.ndarray) -> np.ndarray:
    p = _rotate_points(cameras[:, :3], points) + cameras[:, 3:6]
    xp = -p[:, 0] / p[:, 2]
    yp = -p[:, 1] / p[:, 2]
    r2 = xp * xp + yp * yp
    distortion = 1.0 + r2 * (cameras[:, 7] + cameras[:, 8] * r2)
    focal = cameras[:, 6]
    return np.column_stack([focal * distortion * xp, focal * distortion * yp])


def _residual_function(problem: BALProblem, robustify: bool):
    num_cameras, num_points = problem.num_cameras, problem.num_points
    camera_index, point_index = problem.camera_index, problem.point_index
    observations = problem.observations
    split = 9 * num_cameras

    def residuals(x: np.ndarray) -> np.ndarray:
        cameras = x[:split].reshape(num_cameras, 9)
        points = x[split:].reshape(num_points, 3)
        r = _project(cameras[camera_index], points[point_index]) - observations
        if robustify:
            # Huber loss with delta 1 on the squared norm of each block.
            s = np.einsum("ij,ij->i", r, r)
            clipped = np.maximum(s, 1.0)
            r = r * np.sqrt((2.0 * np.sqrt(clipped) - 1.0) / clipped)[:, None]
        return r.ravel()

    return residuals


def _jacobian_sparsity(problem: BALProblem) -> sparse.csr_matrix:
    m = 2 * problem.num_observations
    n = problem.num_parameters
    obs = np.arange(problem.num_observations)
    rows, cols = [], []
    for k in range(2):
        row = 2 * obs + k
        for j in range(9):
            rows.append(row)
            cols.append(9 * problem.camera_index + j)
        for j in range(3):
            rows.append(row)
            cols.append(9 * problem.num_cameras + 3 * problem.point_index + j)
    rows_arr = np.concatenate(rows) if rows else np.zeros(0, dtype=int)
    cols_arr = np.concatenate(cols) if cols else np.zeros(0, dtype=int)
    data = np.ones(rows_arr.size)
    return sparse.csr_matrix((data, (rows_arr, cols_arr)), shape=(m, n))


def _solver_settings(params: BundleParams) -> tuple[str, bool]:
    strategy = params.trust_region_strategy.lower()
    if strategy not in _STRATEGIES:
        raise ValueError(f"unknown trust region strategy: {params.trust_region_strategy!r}")
    solver = params.linear_solver.lower()
    if solver not in _DENSE_SOLVERS | _SPARSE_SOLVERS:
        raise ValueError(f"unknown linear solver: {params.linear_solver!r}")
    if params.sparse_linear_algebra_library.lower() not in _SPARSE_LIBRARIES:
        raise ValueError(
            f"unknown sparse linear algebra library: {params.sparse_linear_algebra_library!r}"
        )
    if params.dense_linear_algebra_library.lower() not in _DENSE_LIBRARIES:
        raise ValueError(
            f"unknown dense linear algebra library: {params.dense_linear_algebra_library!r}"
        )
    if params.num_iterations < 0:
        raise ValueError(f"num_iterations must not be negative, got {params.num_iterations}")
    return _STRATEGIES[strategy], solver in _SPARSE_SOLVERS


def optimize(problem: BALProblem, params: BundleParams) -> SolveSummary:
    """Minimise the reprojection error and store the result in ``problem``."""
    _require_angle_axis(problem)
    method, use_sparse = _solver_settings(params)
    residuals = _residual_function(problem, params.robustify)
    x0 = problem.parameters.copy()
    initial = residuals(x0)
    initial_cost = 0.5 * float(initial @ initial)
    if problem.num_observations == 0 or params.num_iterations == 0:
        return SolveSummary(initial_cost, initial_cost, 0, "nothing to optimise", True)

    options = {
        "method": method,
        "ftol": None,
        "gtol": None,
        "xtol": 1e-8,
        "max_nfev": params.num_iterations + 1,
    }
    if use_sparse:
        options.update(jac_sparsity=_jacobian_sparsity(problem), tr_solver="lsmr")
    else:
        options.update(tr_solver="exact")
    result = least_squares(residuals, x0, **options)
    problem.parameters[:] = result.x
    return SolveSummary(
        initial_cost=initial_cost,
        final_cost=float(result.cost),
        iterations=int(result.nfev),
        message=str(result.message),
        success=bool(result.success),
    )


def solve_problem(filename, params: BundleParams, stream: TextIO | None = None) -> SolveSummary:
    """Load, normalise, perturb and optimise a BAL file, exporting PLY snapshots."""
    out = stream if stream is not None else sys.stdout
    problem = BALProblem.from_file(filename)

    print("bal problem file loaded...", file=out)
    print(
        f"bal problem have {problem.num_cameras} cameras and {problem.num_points} points. ",
        file=out,
    )
    print(f"Forming {problem.num_observations} observations. ", file=out)

    if params.initial_ply:
        problem.write_to_ply_file(params.initial_ply)

    print("beginning problem...", file=out)
    noise = NoiseSource(params.random_seed)
    problem.normalize()
    problem.perturb(params.rotation_sigma, params.translation_sigma, params.point_sigma, noise)
    print("Normalization complete...", file=out)

    build_residuals(problem)
    print("the problem is successfully build..", file=out)

    summary = optimize(problem, params)
    print(summary, file=out)

    if params.final_ply:
        problem.write_to_ply_file(params.final_ply)
    return summary


def main(argv=None) -> int:
    """Command line entry point; returns the exit status."""
    try:
        params = BundleParams.from_argv(argv, ParamsVariant.CERES)
    except HelpRequested as request:
        sys.stdout.write(request.help_text)
        return 0
    except CommandArgsError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        if exc.help_text:
            sys.stderr.write(exc.help_text)
        return 1

    print(params.input)
    if not params.input:
        print("Usage: bundle_adjuster -input <path for dataset>")
        return 1

    try:
        solve_problem(params.input, params)
    except OSError as exc:
        print(f"Error: unable to open file {params.input}: {exc}", file=sys.stderr)
        return 1
    except (BALFormatError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    return 0