[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "reactornet"
version = "0.1.0"
description = "A reactor-style TCP networking library with HTTP request parsing, asynchronous logging and a small RPC layer"
requires-python = ">=3.10"
dependencies = []
keywords = ["reactor", "event-loop", "tcp", "http", "rpc", "logging", "epoll"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["reactornet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
