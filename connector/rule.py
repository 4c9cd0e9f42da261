"""
connector.rule
~~~~~~~~~~~~~~
Resource rule data model.  A rule grants a set of principals (from a set of
apps) access to one resource pattern through one client.

Rules are frozen; every provisioning step hands back new instances via
``dataclasses.replace`` so an "all rules" view never aliases a per-client
view.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Dict, NamedTuple, Tuple
from urllib.parse import urlsplit

from .errors import RuleValidationError

HTTP = "http://"
HTTPS = "https://"
SOCKET = "socket://"
SCHEMES: Tuple[str, ...] = (HTTP, HTTPS, SOCKET)

ALL_CLIENTS = "all"
MAX_PORT = 65535
MAX_RULE_NUM = 2**31 - 1


class PatternType(enum.Enum):
    URLEXACT = "URLEXACT"
    HOSTPORT = "HOSTPORT"
    REGEX = "REGEX"  # deprecated, kept for old feeds


class Endpoint(NamedTuple):
    host: str
    port: int


@dataclass(frozen=True, slots=True)
class AppTag:
    container: str | None
    app_id: str | None


@dataclass(frozen=True, slots=True)
class Rule:
    rule_num: int = 0
    client_id: str | None = None
    allowed_entities: Tuple[str, ...] = ()
    apps: Tuple[AppTag, ...] = ()
    pattern: str | None = None
    pattern_type: PatternType | None = None
    http_proxy_port: int | None = None
    socks_server_port: int | None = None
    secret_key: str | None = field(default=None, repr=False)
    name: str | None = None

    @property
    def scheme(self) -> str | None:
        """The recognized scheme prefix of ``pattern`` or None."""
        if self.pattern is None:
            return None
        pattern = self.pattern.strip()
        for scheme in SCHEMES:
            if pattern.startswith(scheme):
                return scheme
        return None


def has_whitespace(value: str) -> bool:
    """True if *value* has whitespace once leading/trailing blanks are trimmed."""
    return any(ch.isspace() for ch in value.strip())


# ------------------------------------------------------------------ #
# raw feed records
# ------------------------------------------------------------------ #

_ALIASES = {
    "ruleNum": "rule_num",
    "clientId": "client_id",
    "allowedEntities": "allowed_entities",
    "patternType": "pattern_type",
    "httpProxyPort": "http_proxy_port",
    "socksServerPort": "socks_server_port",
    "secretKey": "secret_key",
}
_FIELDS = frozenset(Rule.__dataclass_fields__)


def rule_from_record(record: Dict[str, Any]) -> Rule:
    """Build a Rule from one raw feed record.

    Unknown keys are ignored and missing keys are left empty, so the
    validator is the one that reports what is wrong with the record.
    """
    values: Dict[str, Any] = {}
    for key, raw in record.items():
        key = _ALIASES.get(key, key)
        if key in _FIELDS and raw is not None:
            values[key] = raw

    rule_num = _to_int(values.get("rule_num", 0), "ruleNum", None)
    fields: Dict[str, Any] = {"rule_num": rule_num}

    for key in ("client_id", "pattern", "secret_key", "name"):
        if key in values:
            fields[key] = str(values[key])

    if "allowed_entities" in values:
        entities = _as_list(values["allowed_entities"], "allowedEntities", rule_num)
        fields["allowed_entities"] = tuple(str(e) for e in entities)
    if "apps" in values:
        apps = _as_list(values["apps"], "apps", rule_num)
        fields["apps"] = tuple(_app_from_raw(a, rule_num) for a in apps)
    if "pattern_type" in values:
        fields["pattern_type"] = parse_pattern_type(values["pattern_type"], rule_num)
    for key, label in (("http_proxy_port", "httpProxyPort"), ("socks_server_port", "socksServerPort")):
        if key in values:
            fields[key] = _to_int(values[key], label, rule_num)

    return Rule(**fields)


def parse_pattern_type(raw: Any, rule_num: int | None = None) -> PatternType:
    if isinstance(raw, PatternType):
        return raw
    try:
        return PatternType(str(raw).strip())
    except ValueError:
        raise RuleValidationError(f"'patternType' {raw} not supported.", rule_num) from None


def _as_list(raw: Any, label: str, rule_num: int) -> list:
    if isinstance(raw, (str, dict)):
        return [raw]
    try:
        return list(raw)
    except TypeError:
        raise RuleValidationError(f"'{label}' must be a list", rule_num) from None


def _app_from_raw(raw: Any, rule_num: int) -> AppTag:
    if isinstance(raw, AppTag):
        return raw
    if isinstance(raw, dict):
        container = raw.get("container")
        app_id = raw.get("appId", raw.get("app_id"))
        return AppTag(
            container=None if container is None else str(container),
            app_id=None if app_id is None else str(app_id),
        )
    if isinstance(raw, str) and ":" in raw:
        container, app_id = raw.split(":", 1)
        return AppTag(container=container, app_id=app_id)
    raise RuleValidationError(f"malformed 'apps' entry {raw!r}", rule_num)


def _to_int(raw: Any, label: str, rule_num: int | None) -> int:
    # int(True) and int(1.9) both succeed quietly
    if isinstance(raw, bool) or (isinstance(raw, float) and not raw.is_integer()):
        raise RuleValidationError(f"'{label}' {raw!r} is not a whole number", rule_num)
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise RuleValidationError(f"'{label}' {raw!r} is not a number", rule_num) from None


# ------------------------------------------------------------------ #
# pattern helpers
# ------------------------------------------------------------------ #

def parse_socket_pattern(pattern: str, rule_num: int | None = None) -> Endpoint:
    """Host and port of a ``socket://host:port`` pattern."""
    if not pattern.startswith(SOCKET):
        raise RuleValidationError(f"Invalid socket pattern: {pattern}", rule_num)
    host, sep, port = pattern[len(SOCKET):].rpartition(":")
    if not sep or not host:
        raise RuleValidationError(f"Invalid socket pattern: {pattern}", rule_num)
    try:
        port_num = int(port)
    except ValueError:
        raise RuleValidationError(f"Invalid socket pattern: {pattern}", rule_num) from None
    if not 0 <= port_num <= MAX_PORT:
        raise RuleValidationError(f"Invalid socket pattern: {pattern}", rule_num)
    return Endpoint(host.strip("[]"), port_num)


def https_host(rule: Rule) -> str:
    return _https_parts(rule).hostname or ""


def https_port(rule: Rule) -> int:
    return _https_parts(rule).port or 443


def _https_parts(rule: Rule):
    if rule.scheme != HTTPS:
        raise ValueError("Can only invoke on HTTPS rules")
    return urlsplit(rule.pattern.strip())
