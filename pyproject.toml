[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "polyref"
version = "0.1.0"
description = "Content-addressed blob cache, NDJSON audit log, and affected-frontier closure for cross-language refactoring validation"
requires-python = ">=3.10"
dependencies = []
keywords = ["refactoring", "validation", "audit-log", "blob-store", "frontier", "dependency-graph"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Quality Assurance",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["polyref"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
