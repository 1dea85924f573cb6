[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nosqlite"
version = "0.1.0"
description = "A small document database that stores JSON documents as files on disk, with hash indexes on fields."
requires-python = ">=3.10"
dependencies = []
keywords = ["database", "nosql", "json", "document-store", "hash-index"]
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
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nosqlite"]

[tool.pytest.ini_options]
addopts = "-ra"
