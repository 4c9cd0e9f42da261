"""Shared fixtures: a small authored feed and its runtime-ready form."""

import itertools
import sys
from pathlib import Path

import pytest

root = str(Path(__file__).parent.parent)
if root not in sys.path:
    sys.path.insert(0, root)

from connector.rule import AppTag, PatternType, Rule  # noqa: E402

APPS = (AppTag(container="gadgets", app_id="wiki"),)


class FakePortAllocator:
    """Hands out ports from a counter instead of touching sockets."""

    def __init__(self, start=40000, fail=False):
        self._ports = itertools.count(start)
        self.fail = fail
        self.calls = 0

    def allocate(self):
        self.calls += 1
        if self.fail:
            raise OSError("Address already in use")
        return next(self._ports)


class CountingSecrets:
    def __init__(self):
        self._n = itertools.count(1)

    def __call__(self):
        return f"secret-{next(self._n)}"


@pytest.fixture
def config_rules():
    """Authored rules: http hostport, socket, http urlexact."""
    return [
        Rule(
            rule_num=1,
            client_id="all",
            allowed_entities=("ops@example.com",),
            apps=APPS,
            pattern="http://wiki.corp:8080",
            pattern_type=PatternType.HOSTPORT,
        ),
        Rule(
            rule_num=2,
            client_id="all",
            allowed_entities=("dba@example.com",),
            apps=APPS,
            pattern="socket://db.corp:5432",
            pattern_type=PatternType.HOSTPORT,
        ),
        Rule(
            rule_num=3,
            client_id="c1",
            allowed_entities=("ops@example.com", "dev@example.com"),
            apps=APPS,
            pattern="http://wiki.corp:8080/page/a",
            pattern_type=PatternType.URLEXACT,
        ),
    ]


@pytest.fixture
def runtime_rules(config_rules):
    ports = (40001, None, 40003)
    return [
        Rule(
            rule_num=r.rule_num,
            client_id=r.client_id,
            allowed_entities=r.allowed_entities,
            apps=r.apps,
            pattern=r.pattern,
            pattern_type=r.pattern_type,
            http_proxy_port=port,
            socks_server_port=1080,
            secret_key=f"key-{r.rule_num}",
        )
        for r, port in zip(config_rules, ports)
    ]


@pytest.fixture
def port_allocator():
    return FakePortAllocator()


@pytest.fixture
def secret_factory():
    return CountingSecrets()
