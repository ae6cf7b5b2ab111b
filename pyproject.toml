[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "py842"
version = "0.1.0"
description = "842 bitstream format definitions, big-endian CRC-32 and multithreaded block compression streams"
requires-python = ">=3.10"
dependencies = []
keywords = ["842", "compression", "crc32", "stream", "threads", "numa"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Archiving :: Compression",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
py842-cl2c = "py842.cl2c:main"
py842-gencrctable = "py842.gencrctable:main"

[tool.hatch.build.targets.wheel]
packages = ["py842"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
