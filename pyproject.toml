[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slamopt"
version = "0.1.0"
description = "Bundle adjustment and pose graph optimisation for BAL and g2o datasets"
requires-python = ">=3.10"
keywords = ["slam", "bundle adjustment", "pose graph", "g2o", "bal", "optimization", "lie algebra"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Processing",
    "Topic :: Scientific/Engineering :: Mathematics",
]
dependencies = [
    "numpy",
    "scipy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
slamopt-bundle = "slamopt.bundle_adjust:main"
slamopt-pose-graph = "slamopt.pose_graph:main"

[tool.hatch.build.targets.wheel]
packages = ["slamopt"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
