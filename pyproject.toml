[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "arcontroller"
version = "0.1.0"
description = "Reconciliation logic, schedule matching and release tooling for self-hosted CI runner fleets"
requires-python = ">=3.10"
keywords = [
    "ci",
    "runners",
    "reconciler",
    "controller",
    "schedule",
    "recurrence",
    "release-signing",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "python-dateutil>=2.8",
    "requests>=2.28",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
signrel = "arcontroller.signrel:main"

[tool.hatch.build.targets.wheel]
packages = ["arcontroller"]

[tool.hatch.build.targets.sdist]
include = ["arcontroller", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
