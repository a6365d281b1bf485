[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nebula4x"
version = "0.1.0"
description = "Turn-based space strategy simulation core: star systems, ships, colonies, research, sensors and combat"
requires-python = ">=3.10"
dependencies = []
keywords = ["strategy", "simulation", "4x", "space", "game"]
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
    "Topic :: Games/Entertainment :: Turn Based Strategy",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["nebula4x"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
