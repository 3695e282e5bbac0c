# slamopt

This package solves two kinds of nonlinear least-squares problem that come up in visual SLAM:

* **Bundle adjustment** on datasets in the BAL ("Bundle Adjustment in the Large")
  text format. Cameras use the 9-parameter model: angle-axis rotation,
  translation, focal length and two radial distortion terms. The solver is
  `scipy.optimize.least_squares`.
* **Pose graph optimisation** on `.g2o` files that hold `VERTEX_SE3:QUAT` and
  `EDGE_SE3:QUAT` records. Poses are updated on the SE(3) Lie algebra with
  Levenberg–Marquardt steps.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Bundle adjustment

```
slamopt-bundle -input problem-16-22106-pre.txt
```

The command does these steps in order:

1. It prints the input path and loads the BAL file.
2. It writes the scene as a PLY point cloud to the `initial_ply` path.
3. It normalises the scene so that the median absolute deviation of the points is 100.
4. If the sigma options are non-zero, it adds seeded Gaussian noise to the starting values.
5. It refines all cameras and points and prints a short solver summary.
6. It writes the result to the `final_ply` path.

In the PLY files, camera centres are green points and structure points are white. If `-input` is missing, the command prints a usage line and exits with status 1.

An option is its name after one or more dashes. `-help` (or `-h`) prints the
full option table. Boolean options such as `-robustify` take no value and
switch on when given. The options are:

| option | default | meaning |
| --- | --- | --- |
| `-input <string>` | *(empty)* | BAL file to process |
| `-trust_region_strategy <string>` | `levenberg_marquardt` | or `dogleg` |
| `-linear_solver <string>` | `dense_schur` | `sparse_schur`, `sparse_normal_cholesky` and similar names select a sparse solve |
| `-sparse_linear_algebra_library <string>` | `suite_sparse` | checked for a known name |
| `-dense_linear_algebra_library <string>` | `eigen` | checked for a known name |
| `-ordering <string>` | `automatic` | accepted, not used by the solver |
| `-num_threads <int>` | `1` | accepted, not used by the solver |
| `-num_iterations <int>` | `10` | iteration limit |
| `-robustify` | off | Huber loss with delta 1.0 |
| `-rotation_sigma`, `-translation_sigma`, `-point_sigma <double>` | `0` | noise added before solving |
| `-random_seed <int>` | `38401` | seed for that noise |
| `-initial_ply`, `-final_ply <string>` | `initial_ply`, `final_ply` | PLY output paths |

Use the classes directly in Python. `BundleParams.from_argv` expects the program name as the first element, as in `sys.argv`:

```python
from slamopt.bal_problem import BALProblem
from slamopt.bundle_params import BundleParams
from slamopt.bundle_adjust import optimize

problem = BALProblem.from_file("problem.txt")
params = BundleParams.from_argv(["slamopt-bundle", "-input", "problem.txt", "-num_iterations", "20"])
problem.normalize()
summary = optimize(problem, params)
print(summary)
problem.write_to_ply_file("final.ply")
problem.write_to_file("final.txt")
```

`solve_problem(filename, params, stream)` runs the full pipeline that the command runs and returns a `SolveSummary`.

Other modules:

* `slamopt.rotation`: converts between angle-axis and quaternion (`[w, x, y, z]`) form and rotates points.
* `slamopt.projection`: `cam_projection_with_distortion` and `SnavelyReprojectionError`.
* `slamopt.noise.NoiseSource`: seeded uniform and normal noise.
* `slamopt.command_args.CommandArgs`: the option parser the command uses. It raises `CommandArgsError` on a bad command line and `HelpRequested` for `-help`.
* `slamopt.bundle_params`: `BundleParams.from_argv` accepts a `ParamsVariant`. `CERES` is the default set of options. `G2O` is a smaller set: its iteration default is 20 and its PLY defaults are `initial.ply` and `final.ply`.

## Pose graph optimisation

```
slamopt-pose-graph sphere.g2o
```

The command does the following:

1. It reads the graph and prints how many vertices and edges it read. The vertex with id 0 is held fixed.
2. It runs up to 30 Levenberg–Marquardt iterations and prints one line per iteration. The error of each edge is `log(Z⁻¹ · Ti⁻¹ · Tj)` and the Jacobians use the approximate inverse right Jacobian.
3. It writes the result to `result_lie.g2o` in the current directory, as `VERTEX_SE3:QUAT` and `EDGE_SE3:QUAT` records.

From Python:

```python
from slamopt.pose_graph import read_g2o, write_g2o

with open("sphere.g2o") as fin:
    graph = read_g2o(fin)
print(graph.total_error())
report = graph.optimize(30)
print(report.initial_chi2, report.final_chi2, report.iterations)
with open("result.g2o", "w") as fout:
    write_g2o(graph, fout)
```

`information_g2o_to_gtsam` and `information_gtsam_to_g2o` reorder a 6x6 information matrix between two block orders: translation-first, as in g2o files, and rotation-first.

`slamopt.se3.SE3` provides the group operations: `exp`, `log`, `inverse`, `adjoint`, `quaternion`, and composition with `@`. The helpers `hat`, `vee`, `so3_exp`, `so3_log`, `quaternion_to_matrix`, `matrix_to_quaternion` and `jr_inv` work on the related rotation and Lie algebra quantities.

## What it does not do

* Bundle adjustment needs cameras in angle-axis form. Problems loaded with `use_quaternions=True` can be read, written and normalised, but `optimize` rejects them.
* No command uses the `G2O` option set. Whichever variant is chosen, only the one least-squares solver runs.
* The pose graph reader understands only `VERTEX_SE3:QUAT` and `EDGE_SE3:QUAT` records and skips other tokens.
* There is no viewer. Open the PLY and `.g2o` output in external tools.