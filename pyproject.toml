[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "keskit"
version = "0.1.0"
description = "Client-side types, event streams, a retrying HTTP client and YAML server configuration for a key encryption service"
requires-python = ">=3.10"
keywords = ["kms", "encryption", "keys", "vault", "configuration", "yaml"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security :: Cryptography",
    "Typing :: Typed",
]
dependencies = [
    "requests",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["keskit"]

[tool.pytest.ini_options]
addopts = "-ra"
