[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "deichain"
version = "0.1.0"
description = "A small proof-of-work blockchain simulation with miners, a validator, statistics and a transaction generator"
requires-python = ">=3.10"
dependencies = []
keywords = ["blockchain", "proof-of-work", "simulation", "mining", "sha256"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
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

[project.scripts]
deichain-controller = "deichain.controller:main"
deichain-txgen = "deichain.txgen:main"

[tool.hatch.build.targets.wheel]
packages = ["deichain"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
