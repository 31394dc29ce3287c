[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "blynkcore"
version = "0.5.4"
description = "Building blocks for IoT device clients: ring buffer, software timers, virtual pin handlers, M590 GSM modem driver and network helpers"
requires-python = ">=3.10"
dependencies = []
keywords = ["iot", "gsm", "modem", "at-commands", "timer", "fifo", "ntp", "virtual-pins"]
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
    "Topic :: Software Development :: Embedded Systems",
    "Topic :: Communications :: Telephony",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["blynkcore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
