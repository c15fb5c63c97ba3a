[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slsrelay"
version = "0.1.0"
description = "Building blocks of an SRT live streaming relay server: stream registries, relay managers, worker groups and a small HTTP notification client."
requires-python = ">=3.10"
dependencies = []
keywords = ["srt", "live-streaming", "relay", "streaming-server", "ring-buffer"]
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
    "Topic :: Multimedia :: Video",
    "Topic :: Internet",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["slsrelay"]

[tool.pytest.ini_options]
addopts = "-ra"
