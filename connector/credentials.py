"""
connector.credentials
~~~~~~~~~~~~~~~~~~~~~
Credential map for the SOCKS authenticator: secret key -> where that
credential may connect.

Socket rules go straight to their target.  HTTP rules go to the local http
proxy port, which does the per-URL checks itself.  HTTPS rules use the
local port when one was allocated and otherwise go to the TLS host.
"""

from __future__ import annotations

from typing import Dict, Iterable

from .errors import RuleConsistencyError, RuleValidationError
from .rule import HTTPS, SOCKET, Endpoint, Rule, https_host, https_port, parse_socket_pattern

LOOPBACK = "127.0.0.1"


def project_credentials(rules: Iterable[Rule], loopback: str = LOOPBACK) -> Dict[str, Endpoint]:
    creds: Dict[str, Endpoint] = {}
    for rule in rules:
        if rule.secret_key is None:
            raise RuleValidationError("Rule is missing secret key", rule.rule_num)
        if rule.secret_key in creds:
            raise RuleConsistencyError(
                f"Secret key of resource {rule.rule_num} is already in use", rule.rule_num
            )
        creds[rule.secret_key] = _target(rule, loopback)
    return creds


def _target(rule: Rule, loopback: str) -> Endpoint:
    if rule.scheme == SOCKET:
        return parse_socket_pattern(rule.pattern.strip(), rule.rule_num)
    if rule.http_proxy_port is not None:
        return Endpoint(loopback, rule.http_proxy_port)
    if rule.scheme == HTTPS:
        return Endpoint(https_host(rule), https_port(rule))
    raise RuleValidationError("has no http proxy port to route to", rule.rule_num)
