[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dora"
version = "0.1.0"
description = "Storage layer for a beacon chain explorer: typed records, SQLite access, tiered caching and S3 object storage"
requires-python = ">=3.10"
keywords = [
    "beacon-chain",
    "explorer",
    "sqlite",
    "redis",
    "cache",
    "s3",
]
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
    "Topic :: Database",
]
dependencies = [
    "redis>=4.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[tool.hatch.build.targets.wheel]
packages = ["dora"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
