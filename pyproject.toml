[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dcconnect"
version = "0.3.6"
description = "State cache, event routing and rate-limited REST request queue for a Discord bot connector."
requires-python = ">=3.10"
dependencies = []
keywords = ["discord", "bot", "chat", "gateway", "rest", "rate-limit", "cache"]
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
    "Topic :: Communications :: Chat",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["dcconnect"]

[tool.pytest.ini_options]
addopts = "-ra"
