[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "knoxstore"
version = "0.1.0"
description = "Deduplicating, compressed and encrypted backup storage with Reed-Solomon redundancy across several backends"
requires-python = ">=3.10"
keywords = [
    "backup",
    "archive",
    "deduplication",
    "encryption",
    "compression",
    "reed-solomon",
    "snapshot",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Backup",
    "Topic :: System :: Archiving :: Compression",
    "Topic :: Security :: Cryptography",
]
dependencies = [
    "cryptography",
    "zstandard",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
knoxstore-server = "knoxstore.server:main"

[tool.hatch.build.targets.wheel]
packages = ["knoxstore"]

[tool.hatch.build.targets.sdist]
include = ["knoxstore", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
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
