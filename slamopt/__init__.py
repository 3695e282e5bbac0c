"""Bundle adjustment of BAL problems and SE(3) pose graph optimisation of g2o files."""

__version__ = "0.1.0"

__all__ = [
    "rotation",
    "noise",
    "projection",
    "se3",
    "command_args",
    "bundle_params",
    "bal_problem",
    "bundle_adjust",
    "pose_graph",
]