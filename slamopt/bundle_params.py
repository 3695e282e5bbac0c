"""Settings for a bundle adjustment run, read from the command line."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any

from .command_args import CommandArgs


class ParamsVariant(enum.Enum):
    """Which set of options the command line accepts."""

    CERES = "ceres"
    G2O = "g2o"


_COMMON_HEAD = [
    ("input", "", "file which will be processed"),
    ("trust_region_strategy", "levenberg_marquardt", "Options are: levenberg_marquardt, dogleg."),
]

_CERES_OPTIONS: list[tuple[str, Any, str]] = _COMMON_HEAD + [
    ("linear_solver", "dense_schur", "Options are: sparse_schur, dense_schur, sparse_normal_cholesky"),
    ("sparse_linear_algebra_library", "suite_sparse", "Options are: suite_sparse and cx_sparse."),
    ("dense_linear_algebra_library", "eigen", "Options are: eigen and lapack."),
    ("ordering", "automatic", "Options are: automatic, user."),
    ("robustify", False, "Use a robust loss function"),
    ("num_threads", 1, "Number of threads."),
    ("num_iterations", 10, "Number of iterations."),
    ("rotation_sigma", 0.0, "Standard deviation of camera rotation perturbation."),
    ("translation_sigma", 0.0, "translation perturbation."),
    ("point_sigma", 0.0, "Standard deviation of the point perturbation."),
    ("random_seed", 38401, "Random seed used to set the state "),
    ("initial_ply", "initial_ply", "Export the BAL file data as a PLY file."),
    ("final_ply", "final_ply", "Export the refined BAL file data as a PLY"),
]

_G2O_OPTIONS: list[tuple[str, Any, str]] = _COMMON_HEAD + [
    ("linear_solver", "dense_schur", "Options are: sparse_schur, dense_schur"),
    ("robustify", False, "Use a robust loss function"),
    ("num_iterations", 20, "Number of iterations."),
    ("rotation_sigma", 0.0, "Standard deviation of camera rotation perturbation."),
    ("translation_sigma", 0.0, "translation perturbation."),
    ("point_sigma", 0.0, "Standard deviation of the point perturbation."),
    ("random_seed", 38401, "Random seed used to set the state "),
    ("initial_ply", "initial.ply", "Export the BAL file data as a PLY file."),
    ("final_ply", "final.ply", "Export the refined BAL file data as a PLY"),
]

# Values the g2o variant holds without offering them as options.
_G2O_FIXED = {
    "sparse_linear_algebra_library": "",
    "dense_linear_algebra_library": "",
}

_OPTIONS = {ParamsVariant.CERES: _CERES_OPTIONS, ParamsVariant.G2O: _G2O_OPTIONS}
_FIXED = {ParamsVariant.CERES: {}, ParamsVariant.G2O: _G2O_FIXED}


@dataclass
class BundleParams:
    """Solver, noise and output settings for bundle adjustment."""

    input: str = ""
    trust_region_strategy: str = "levenberg_marquardt"
    linear_solver: str = "dense_schur"
    sparse_linear_algebra_library: str = "suite_sparse"
    dense_linear_algebra_library: str = "eigen"
    ordering: str = "automatic"
    robustify: bool = False
    num_threads: int = 1
    num_iterations: int = 10
    random_seed: int = 38401
    rotation_sigma: float = 0.0
    translation_sigma: float = 0.0
    point_sigma: float = 0.0
    initial_ply: str = "initial_ply"
    final_ply: str = "final_ply"

    @classmethod
    def from_argv(cls, argv=None, variant: ParamsVariant = ParamsVariant.CERES) -> BundleParams:
        """Parse ``argv`` (program name first) into settings.

        Raises CommandArgsError on a bad command line and HelpRequested
        when help is asked for.
        """
        options = _OPTIONS[variant]
        args = CommandArgs()
        for name, default, description in options:
            args.param(name, default, description)
        args.parse_args(argv)
        values = {name: args[name] for name, _, _ in options}
        values.update(_FIXED[variant])
        return cls(**values)