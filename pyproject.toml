[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "megaphone"
version = "0.1.0"
description = "A small UDP discussion-thread server and client with IPv6 multicast notifications"
requires-python = ">=3.10"
dependencies = []
keywords = ["chat", "forum", "udp", "ipv6", "multicast", "threads"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
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

[project.scripts]
megaphone-server = "megaphone.server:main"
megaphone-client = "megaphone.client:main"

[tool.hatch.build.targets.wheel]
packages = ["megaphone"]

[tool.pytest.ini_options]
addopts = "-ra"
