"""Pose graph optimisation over SE(3) poses in the g2o text format.

Vertices carry a pose; edges carry a relative-pose measurement and a 6x6
information matrix. The error of an edge is ``log(Z^-1 Ti^-1 Tj)`` in the
``[translation, rotation]`` tangent ordering, and poses are updated by
left multiplication with ``exp(dx)``. The vertex with id 0 is held fixed.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from itertools import islice
from typing import TextIO

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import spsolve

from .se3 import SE3, jr_inv

VERTEX_TAG = "VERTEX_SE3:QUAT"
EDGE_TAG = "EDGE_SE3:QUAT"
RESULT_FILE = "result_lie.g2o"

_TAU = 1e-5
_MAX_LEVENBERG_TRIES = 10
_UPPER = np.triu_indices(6)


@dataclass
class PoseVertex:
    """A pose to be estimated."""

    id: int
    pose: SE3
    fixed: bool = False


@dataclass
class PoseEdge:
    """A relative pose measurement from ``source`` to ``target``."""

    id: int
    source: int
    target: int
    measurement: SE3
    information: np.ndarray = field(default_factory=lambda: np.eye(6))

    def __post_init__(self) -> None:
        info = np.array(self.information, dtype=float)
        if info.shape != (6, 6):
            raise ValueError(f"information must have shape (6, 6), got {info.shape}")
        self.information = info


@dataclass(frozen=True)
class OptimizationReport:
    """Weighted squared error before and after optimisation."""

    initial_chi2: float
    final_chi2: float
    iterations: int


def _edge_error(poses: dict[int, SE3], edge: PoseEdge) -> np.ndarray:
    ti, tj = poses[edge.source], poses[edge.target]
    return (edge.measurement.inverse() @ ti.inverse() @ tj).log()


@dataclass
class PoseGraph:
    """Vertices by id and the edges between them."""

    vertices: dict[int, PoseVertex] = field(default_factory=dict)
    edges: list[PoseEdge] = field(default_factory=list)

    def _poses(self) -> dict[int, SE3]:
        return {vid: vertex.pose for vid, vertex in self.vertices.items()}

    def _chi2(self, poses: dict[int, SE3]) -> float:
        total = 0.0
        for edge in self.edges:
            e = _edge_error(poses, edge)
            total += float(e @ edge.information @ e)
        return total

    def edge_error(self, edge: PoseEdge) -> np.ndarray:
        """Six-dimensional error of ``edge`` at the current poses."""
        return _edge_error(self._poses(), edge)

    def total_error(self) -> float:
        """Sum of ``e^T Omega e`` over all edges."""
        return self._chi2(self._poses())

    def _linearize(self, poses: dict[int, SE3], index: dict[int, int]):
        size = 6 * len(index)
        b = np.zeros(size)
        rows, cols, blocks = [], [], []
        for edge in self.edges:
            e = _edge_error(poses, edge)
            jj = jr_inv(SE3.exp(e)) @ poses[edge.target].inverse().adjoint()
            omega = edge.information
            terms = [
                (index[vid], jac)
                for vid, jac in ((edge.source, -jj), (edge.target, jj))
                if vid in index
            ]
            for k, jk in terms:
                b[6 * k : 6 * k + 6] -= jk.T @ omega @ e
                for l, jl in terms:
                    rows.append(k)
                    cols.append(l)
                    blocks.append(jk.T @ omega @ jl)
        if not blocks:
            return sparse.csc_matrix((size, size)), b
        offsets = np.arange(6)
        row_idx = 6 * np.array(rows)[:, None, None] + offsets[None, :, None]
        col_idx = 6 * np.array(cols)[:, None, None] + offsets[None, None, :]
        shape = (len(blocks), 6, 6)
        hessian = sparse.coo_matrix(
            (
                np.array(blocks).ravel(),
                (np.broadcast_to(row_idx, shape).ravel(), np.broadcast_to(col_idx, shape).ravel()),
            ),
            shape=(size, size),
        ).tocsc()
        return hessian, b

    @staticmethod
    def _apply(poses: dict[int, SE3], index: dict[int, int], dx: np.ndarray) -> dict[int, SE3]:
        return {
            vid: SE3.exp(dx[6 * index[vid] : 6 * index[vid] + 6]) @ pose if vid in index else pose
            for vid, pose in poses.items()
        }

    def optimize(self, iterations: int = 30, stream: TextIO | None = None) -> OptimizationReport:
        """Run Levenberg-Marquardt for up to ``iterations`` steps and update the vertices."""
        poses = self._poses()
        free = [vid for vid, vertex in self.vertices.items() if not vertex.fixed]
        index = {vid: k for k, vid in enumerate(free)}
        chi2 = self._chi2(poses)
        initial = chi2
        done = 0
        lam: float | None = None
        ni = 2.0

        if free and self.edges:
            for iteration in range(iterations):
                hessian, b = self._linearize(poses, index)
                if lam is None:
                    max_diag = float(hessian.diagonal().max())
                    lam = _TAU * max_diag if max_diag > 0.0 else _TAU
                identity = sparse.identity(hessian.shape[0], format="csc")
                accepted = False
                tries = 0
                while tries < _MAX_LEVENBERG_TRIES:
                    tries += 1
                    dx = np.atleast_1d(spsolve((hessian + lam * identity).tocsc(), b))
                    if np.all(np.isfinite(dx)):
                        candidate = self._apply(poses, index, dx)
                        new_chi2 = self._chi2(candidate)
                        predicted = float(dx @ (lam * dx + b)) + 1e-3
                        rho = (chi2 - new_chi2) / predicted
                        if rho > 0.0 and np.isfinite(new_chi2):
                            alpha = min(1.0 - (2.0 * rho - 1.0) ** 3, 2.0 / 3.0)
                            lam *= max(1.0 / 3.0, alpha)
                            ni = 2.0
                            poses, chi2 = candidate, new_chi2
                            accepted = True
                            break
                    lam *= ni
                    ni *= 2.0
                done = iteration + 1
                if stream is not None:
                    print(
                        f"iteration= {iteration}\t chi2= {chi2:.6f}\t edges= {len(self.edges)}"
                        f"\t lambda= {lam:g}\t levenbergIter= {tries}",
                        file=stream,
                    )
                if not accepted:
                    break

        for vid, pose in poses.items():
            self.vertices[vid].pose = pose
        return OptimizationReport(initial, chi2, done)


def _take(tokens, count: int, what: str) -> list[str]:
    values = list(islice(tokens, count))
    if len(values) < count:
        raise ValueError(f"truncated {what} record")
    return values


def _ints(tokens, count: int, what: str) -> list[int]:
    try:
        return [int(v) for v in _take(tokens, count, what)]
    except ValueError as exc:
        raise ValueError(f"invalid {what} record: {exc}") from None


def _floats(tokens, count: int, what: str) -> list[float]:
    try:
        return [float(v) for v in _take(tokens, count, what)]
    except ValueError as exc:
        raise ValueError(f"invalid {what} record: {exc}") from None


def _pose(data: list[float]) -> SE3:
    return SE3.from_quaternion(data[:3], [data[6], data[3], data[4], data[5]])


def read_g2o(stream: TextIO) -> PoseGraph:
    """Read SE(3) vertices and edges from g2o text; other tokens are skipped."""
    tokens = iter(stream.read().split())
    graph = PoseGraph()
    for tag in tokens:
        if tag == VERTEX_TAG:
            (vid,) = _ints(tokens, 1, "vertex")
            if vid in graph.vertices:
                raise ValueError(f"duplicate vertex id {vid}")
            pose = _pose(_floats(tokens, 7, "vertex"))
            graph.vertices[vid] = PoseVertex(vid, pose, fixed=vid == 0)
        elif tag == EDGE_TAG:
            source, target = _ints(tokens, 2, "edge")
            for vid in (source, target):
                if vid not in graph.vertices:
                    raise ValueError(f"edge refers to unknown vertex {vid}")
            measurement = _pose(_floats(tokens, 7, "edge"))
            info = np.zeros((6, 6))
            info[_UPPER] = _floats(tokens, len(_UPPER[0]), "edge information")
            info = info + np.triu(info, 1).T
            graph.edges.append(PoseEdge(len(graph.edges), source, target, measurement, info))
    return graph


def _pose_text(pose: SE3) -> str:
    w, x, y, z = pose.quaternion()
    tx, ty, tz = pose.translation
    return f"{tx:g} {ty:g} {tz:g} {x:g} {y:g} {z:g} {w:g}"


def write_g2o(graph: PoseGraph, stream: TextIO) -> None:
    """Write the graph as g2o SE(3) vertex and edge records."""
    for vertex in graph.vertices.values():
        stream.write(f"{VERTEX_TAG} {vertex.id} {_pose_text(vertex.pose)}\n")
    for edge in graph.edges:
        info = "".join(f"{v:g} " for v in edge.information[_UPPER])
        stream.write(f"{EDGE_TAG} {edge.source} {edge.target} {_pose_text(edge.measurement)} {info}\n")


def _swap_diagonal_blocks(info) -> np.ndarray:
    m = np.asarray(info, dtype=float)
    if m.shape != (6, 6):
        raise ValueError(f"information must have shape (6, 6), got {m.shape}")
    out = np.eye(6)
    out[:3, :3] = m[3:, 3:]
    out[3:, 3:] = m[:3, :3]
    out[:3, 3:] = m[:3, 3:]
    out[3:, :3] = m[3:, :3]
    return out


def information_g2o_to_gtsam(info) -> np.ndarray:
    """Reorder an information matrix from translation-first to rotation-first blocks."""
    return _swap_diagonal_blocks(info)


def information_gtsam_to_g2o(info) -> np.ndarray:
    """Reorder an information matrix from rotation-first to translation-first blocks."""
    return _swap_diagonal_blocks(info)


def main(argv=None) -> int:
    """Optimise the pose graph in the given file and save it to ``result_lie.g2o``."""
    args = list(sys.argv if argv is None else argv)
    if len(args) != 2:
        print("Usage: pose_graph sphere.g2o")
        return 1
    path = args[1]
    try:
        handle = open(path, encoding="utf-8")
    except OSError:
        print(f"file {path} does not exist.")
        return 1
    with handle:
        try:
            graph = read_g2o(handle)
        except ValueError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    print(f"read total {len(graph.vertices)} vertices, {len(graph.edges)} edges.")
    print("prepare optimizing ...")
    print("calling optimizing ...")
    graph.optimize(30, sys.stdout)
    print("saving optimization results ...")
    with open(RESULT_FILE, "w", encoding="utf-8") as out:
        write_g2o(graph, out)
    return 0