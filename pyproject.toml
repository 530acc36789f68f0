[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "eposfs"
version = "0.1.0"
description = "FAT12/16/32 filesystem access over sector images, plus small kernel memory-management models"
requires-python = ">=3.10"
dependencies = []
keywords = ["fat", "fat12", "fat16", "fat32", "filesystem", "disk-image", "bitmap", "allocator"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["eposfs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
