[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "autometrics"
version = "0.1.0"
description = "Function call, latency and concurrency metrics exported in the Prometheus text format"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "metrics",
    "prometheus",
    "observability",
    "monitoring",
    "instrumentation",
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
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[tool.hatch.build.targets.wheel]
packages = ["autometrics"]

[tool.hatch.build.targets.sdist]
include = [
    "autometrics",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
