[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "labkit"
version = "0.1.0"
description = "Resilience patterns, a file-backed transaction log, a versioned key-value store and exercise generation tools for hands-on labs"
requires-python = ">=3.10"
keywords = [
    "resilience",
    "circuit-breaker",
    "retry",
    "rate-limiter",
    "transaction-log",
    "key-value-store",
    "exercises",
    "teaching",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Education",
]
dependencies = [
    "pyyaml",
    "jinja2",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
labkit-kvstore = "labkit.kvstore_cli:main"
labkit-exercises = "labkit.exercises_cli:main"

[tool.hatch.build.targets.wheel]
packages = ["labkit"]

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
