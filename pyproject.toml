[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "atmodem"
version = "0.1.0"
description = "Thread-backed AT command handler for serial modems, with sync, async and batch commands and unsolicited result codes"
requires-python = ">=3.10"
dependencies = [
    "pyserial",
]
keywords = ["at-commands", "modem", "gsm", "serial", "uart", "urc"]
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
    "Topic :: Communications",
    "Topic :: Terminals :: Serial",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
atmodem = "atmodem.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["atmodem"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
