[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bearpe"
version = "0.1.0"
description = "Executable file parser with an interactive command shell for inspecting MS-DOS (MZ) executables"
requires-python = ">=3.10"
dependencies = []
keywords = ["executable", "parser", "mz", "dos", "binary", "reverse-engineering"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Disassemblers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
bearcommander = "bearpe.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["bearpe"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
