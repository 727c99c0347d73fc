[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "redoxfs"
version = "0.8.6"
description = "On-disk structures, block allocator and disk backends for the Redox filesystem format"
requires-python = ">=3.10"
keywords = ["filesystem", "redoxfs", "block allocator", "disk image", "htree", "seahash"]
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
    "Topic :: System :: Filesystems",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["redoxfs"]

[tool.pytest.ini_options]
addopts = "-ra"
