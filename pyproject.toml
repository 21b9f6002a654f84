[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rovdrivers"
version = "0.1.0"
description = "Drivers for an underwater vehicle controller: MS5803 pressure sensor state machine, servo pulse timing, I2C bus model and orientation math"
requires-python = ">=3.10"
dependencies = []
keywords = ["i2c", "pressure-sensor", "ms5803", "servo", "quaternion", "rov"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["rovdrivers"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
strict = true
