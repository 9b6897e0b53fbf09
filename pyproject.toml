[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bftgset"
version = "0.1.0"
description = "A Byzantine fault tolerant grow-only set replicated with Bracha reliable broadcast over ZeroMQ"
requires-python = ">=3.10"
keywords = ["bft", "byzantine", "g-set", "crdt", "reliable-broadcast", "bracha", "zeromq", "distributed"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
]
dependencies = [
    "pyzmq",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
bftgset-client = "bftgset.cli:client_main"
bftgset-server = "bftgset.cli:server_main"
bftgset-bracha = "bftgset.cli:bracha_main"

[tool.hatch.build.targets.wheel]
packages = ["bftgset"]

[tool.pytest.ini_options]
addopts = "-ra"
