[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "xsecanalysis"
version = "0.1.0"
description = "Event records, systematic universes, covariance matrices and forward folding for neutrino cross-section analyses"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "neutrino",
    "cross section",
    "systematics",
    "covariance",
    "unfolding",
    "particle physics",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["xsecanalysis"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
