[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "paxoslog"
version = "0.1.0"
description = "Building blocks for a Sequence Paxos replicated log: log storage, compaction, batching, leader bookkeeping and field caches."
requires-python = ">=3.10"
dependencies = []
keywords = ["paxos", "consensus", "replicated log", "distributed systems", "cache", "lfu", "lru"]
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
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["paxoslog"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
