[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "yewai"
version = "0.1.0"
description = "Scan-matching localization, pure-pursuit steering, longitudinal control and chassis serial framing for a small robot vehicle"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "localization",
    "unscented kalman filter",
    "icp",
    "pure pursuit",
    "robotics",
    "lidar",
    "point cloud",
    "vehicle control",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["yewai"]

[tool.hatch.build.targets.sdist]
include = [
    "yewai",
    "tests",
]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
