[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vein"
version = "0.3.0"
description = "Configuration, catalogue sync, schema migrations and admin views for a caching RubyGems proxy"
requires-python = ">=3.11"
keywords = ["rubygems", "proxy", "cache", "mirror", "ruby", "configuration"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "requests>=2.31",
    "pyyaml>=6.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
    "responses>=0.24",
]

[tool.hatch.build.targets.wheel]
packages = ["vein"]

[tool.hatch.build.targets.sdist]
include = ["vein", "tests"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
