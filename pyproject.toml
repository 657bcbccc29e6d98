[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tcpkit"
version = "0.1.0"
description = "Asyncio networking toolkit: RESP parsing and Redis clients, SOCKS5 daemon and shift-cipher proxy, timers, framing, echo, HTTP and UDP tools"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "asyncio",
    "networking",
    "socks5",
    "proxy",
    "redis",
    "resp",
    "http",
    "udp",
    "timers",
    "framing",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Framework :: AsyncIO",
    "Topic :: System :: Networking",
    "Topic :: Internet :: Proxy Servers",
    "Topic :: Internet :: WWW/HTTP",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
tcpkit-errors = "tcpkit.errors:main"
tcpkit-timers = "tcpkit.timer_queue:main"
tcpkit-monitor = "tcpkit.monitor:main"
tcpkit-socks5d = "tcpkit.socks5d:main"
tcpkit-proxy-local = "tcpkit.proxy:local_main"
tcpkit-proxy-server = "tcpkit.proxy:server_main"
tcpkit-monitored-local = "tcpkit.monitored:main"
tcpkit-httpd = "tcpkit.httpserver:main"
tcpkit-http-get = "tcpkit.httpclient:main"
tcpkit-fetch = "tcpkit.fetcher:main"
tcpkit-framing-server = "tcpkit.framing:server_main"
tcpkit-framing-client = "tcpkit.framing:client_main"
tcpkit-echo = "tcpkit.echo:main"
tcpkit-redis = "tcpkit.redisclient:main"

[tool.hatch.build.targets.wheel]
packages = ["tcpkit"]

[tool.hatch.build.targets.sdist]
include = ["tcpkit", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
