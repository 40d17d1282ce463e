[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "wsh"
version = "0.1.0"
description = "A small Unix command shell with aliases, history, pipelines and batch scripts"
requires-python = ">=3.10"
dependencies = []
keywords = ["shell", "command-line", "pipeline", "alias", "repl"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Shells",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
wsh = "wsh.shell:main"

[tool.hatch.build.targets.wheel]
packages = ["wsh"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
