"""
connector.provisioner
~~~~~~~~~~~~~~~~~~~~~
Turns a feed of authored rules into the rule set one agent serves: scoped
to this client, with system rules appended, a SOCKS port, a secret per rule
and a local port for every plain-HTTP rule.

Every step returns a new tuple.  ``provision`` only hands back a rule set
once the whole batch made it through runtime validation.
"""

from __future__ import annotations

import dataclasses
import secrets
import socket
from typing import Callable, Iterable, Optional, Protocol, Sequence, Set, Tuple

from .errors import LegacyParseError, ProvisioningError
from .logger import RuleLogger
from .rule import ALL_CLIENTS, HTTP, MAX_RULE_NUM, AppTag, PatternType, Rule
from .validator import RuleValidator

LOOPBACK = "127.0.0.1"
HEALTHZ_PATH = "__SDCINTERNAL__/healthz"
_SECRET_ATTEMPTS = 16


class PortAllocator(Protocol):
    def allocate(self) -> int:
        """Return a local port that was free a moment ago."""


class SocketPortAllocator:
    """Asks the OS for an ephemeral port by binding to port 0 and closing.

    The port can be taken by someone else between ``close`` and the real
    listener binding it.  Nothing here retries.
    """

    def __init__(self, bind_host: str = LOOPBACK, socket_factory: Callable[..., socket.socket] = socket.socket):
        self.bind_host = bind_host
        self.socket_factory = socket_factory

    def allocate(self) -> int:
        family, _, _, _, addr = socket.getaddrinfo(self.bind_host, 0, type=socket.SOCK_STREAM)[0]
        sock = self.socket_factory(family, socket.SOCK_STREAM)
        try:
            sock.bind(addr)
            return sock.getsockname()[1]
        finally:
            sock.close()


def new_secret() -> str:
    return secrets.token_hex(16)


class Provisioner:
    def __init__(
        self,
        port_allocator: Optional[PortAllocator] = None,
        secret_factory: Optional[Callable[[], str]] = None,
        validator: Optional[RuleValidator] = None,
        logger: Optional[RuleLogger] = None,
    ) -> None:
        self.port_allocator = port_allocator or SocketPortAllocator()
        self.secret_factory = secret_factory or new_secret
        self.validator = validator or RuleValidator()
        self.logger = logger
        # every key handed out by this provisioner; grows by one rule set per
        # refresh, which keeps keys unique for the life of the process
        self._issued: Set[str] = set()

    # ------------------------------------------------------------------ #
    # pipeline
    # ------------------------------------------------------------------ #

    def provision(
        self,
        rules: Sequence[Rule],
        client_id: str,
        socks_server_port: int,
        system_rules: Iterable[Rule] = (),
    ) -> Tuple[Rule, ...]:
        """Authored feed in, runtime-ready rule set for *client_id* out."""
        rules = self.set_rule_num_from_name(rules)
        self.validator.validate_rules(rules)

        ready = self.scope_to_client(rules, client_id) + tuple(system_rules)
        ready = self.assign_socks_server_port(ready, socks_server_port)
        ready = self.assign_secret_keys(ready)
        ready = self.allocate_http_proxy_ports(ready)

        self.validator.validate_runtime_rules(ready)
        if self.logger:
            self.logger.provisioned(client_id, ready)
        return ready

    # ------------------------------------------------------------------ #
    # steps
    # ------------------------------------------------------------------ #

    def scope_to_client(self, rules: Iterable[Rule], client_id: str) -> Tuple[Rule, ...]:
        """Keep the rules for *client_id* or ``all``; wildcard rules are rewritten to *client_id*."""
        return tuple(
            r if r.client_id == client_id else dataclasses.replace(r, client_id=client_id)
            for r in rules
            if r.client_id in (client_id, ALL_CLIENTS)
        )

    def assign_socks_server_port(self, rules: Iterable[Rule], port: int) -> Tuple[Rule, ...]:
        return tuple(dataclasses.replace(r, socks_server_port=port) for r in rules)

    def assign_secret_keys(self, rules: Iterable[Rule]) -> Tuple[Rule, ...]:
        return tuple(dataclasses.replace(r, secret_key=self._fresh_secret()) for r in rules)

    def allocate_http_proxy_ports(self, rules: Iterable[Rule]) -> Tuple[Rule, ...]:
        out = []
        for rule in rules:
            # only plain http rules go through the local http proxy
            if rule.scheme != HTTP:
                out.append(rule)
                continue
            try:
                port = self.port_allocator.allocate()
            except OSError as exc:
                raise ProvisioningError(
                    f"Error while trying to obtain ephemeral ports: {exc}", rule.rule_num
                ) from exc
            if self.logger:
                self.logger.port_allocated(rule.rule_num, port)
            out.append(dataclasses.replace(rule, http_proxy_port=port))
        return tuple(out)

    def set_rule_num_from_name(self, rules: Iterable[Rule]) -> Tuple[Rule, ...]:
        """Old clients send the rule number in ``name``."""
        out = []
        for rule in rules:
            if rule.name is None:
                out.append(rule)
                continue
            try:
                rule_num = int(rule.name.strip())
            except ValueError as exc:
                raise LegacyParseError(f"Rule name {rule.name!r} is not a rule number") from exc
            out.append(dataclasses.replace(rule, rule_num=rule_num))
        return tuple(out)

    def create_system_rules(
        self,
        client_id: str,
        healthz_port: int,
        user: str,
        domain: str,
        healthz_gadget_users: str | Iterable[str] | None = None,
    ) -> Tuple[Rule, ...]:
        """Rules the agent always serves, numbered down from MAX_RULE_NUM.

        Currently only the healthz page:
        ``http://localhost:<port>/<client_id>/__SDCINTERNAL__/healthz``.
        """
        if isinstance(healthz_gadget_users, str):
            healthz_gadget_users = healthz_gadget_users.split(",")
        entities = [u.strip() for u in healthz_gadget_users or () if u.strip()]
        entities.append(f"{user}@{domain}")

        healthz = Rule(
            rule_num=MAX_RULE_NUM,
            client_id=client_id,
            allowed_entities=tuple(entities),
            apps=(AppTag(container=".*", app_id=".*"),),
            pattern=f"{HTTP}localhost:{healthz_port}/{client_id}/{HEALTHZ_PATH}",
            pattern_type=PatternType.URLEXACT,
        )
        return (healthz,)

    # ------------------------------------------------------------------ #
    # private
    # ------------------------------------------------------------------ #

    def _fresh_secret(self) -> str:
        for _ in range(_SECRET_ATTEMPTS):
            key = self.secret_factory()
            if key not in self._issued:
                self._issued.add(key)
                return key
        raise ProvisioningError("Secret generator keeps returning keys already in use")
