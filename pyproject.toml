[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rinha-backend"
version = "0.1.1"
description = "Payment intermediary HTTP service that queues payments in Redis and routes them to healthy payment processors"
requires-python = ">=3.10"
keywords = ["payments", "redis", "aiohttp", "circuit-breaker", "backend"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Framework :: AsyncIO",
    "Framework :: aiohttp",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "aiohttp>=3.9",
    "redis>=5.0.1",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "pytest-asyncio>=0.23",
]

[project.scripts]
rinha-backend = "rinha_backend.app:main"

[tool.hatch.build.targets.wheel]
packages = ["rinha_backend"]

[tool.hatch.build.targets.sdist]
include = ["rinha_backend", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
