[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "taskbench"
version = "0.1.0"
description = "Throughput benchmarks for a lock-based task scheduler and producer/consumer queues"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "benchmark",
    "task scheduler",
    "queue",
    "threads",
    "concurrency",
    "throughput",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Benchmark",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
taskbench-mcqueue = "taskbench.bench_mcqueue:main"
taskbench-mpqueue = "taskbench.bench_mpqueue:main"
taskbench-scheduler = "taskbench.bench_scheduler:main"

[tool.hatch.build.targets.wheel]
packages = ["taskbench"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
