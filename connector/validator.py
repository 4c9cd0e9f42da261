"""
connector.validator
~~~~~~~~~~~~~~~~~~~
Two-level rule validation.

``validate`` checks what an author writes into the feed.  ``validate_runtime``
re-runs those checks and then requires the fields only the provisioner fills
in (ports, secret key).  Each check stops at the first problem it finds.
"""

from __future__ import annotations

from typing import Sequence, Set
from urllib.parse import urlsplit

from .errors import RuleConsistencyError, RuleValidationError
from .rule import HTTP, HTTPS, MAX_PORT, SOCKET, PatternType, Rule, has_whitespace, parse_pattern_type


class RuleValidator:
    # ------------------------------------------------------------------ #
    # rule sets
    # ------------------------------------------------------------------ #

    def validate_rules(self, rules: Sequence[Rule]) -> None:
        """Config-phase checks on every rule plus set consistency."""
        # An empty feed usually means the source was mangled, not that the
        # operator wants zero rules.
        if not rules:
            raise RuleConsistencyError(
                "Must specify at least one rule. An empty rule set usually means "
                "the rule feed could not be read correctly."
            )

        seen: Set[int] = set()
        for rule in rules:
            self.validate(rule)
            if rule.rule_num in seen:
                raise RuleConsistencyError(
                    f"Duplicate ruleNum entries not allowed. Resource: {rule.rule_num}",
                    rule.rule_num,
                )
            seen.add(rule.rule_num)

    def validate_runtime_rules(self, rules: Sequence[Rule]) -> None:
        self.validate_rules(rules)
        for rule in rules:
            self.validate_runtime(rule)

    # ------------------------------------------------------------------ #
    # single rules
    # ------------------------------------------------------------------ #

    def validate_runtime(self, rule: Rule) -> None:
        self.validate(rule)
        num = rule.rule_num

        # httpProxyPort, required for URLEXACT
        if rule.http_proxy_port is not None:
            if not 0 <= rule.http_proxy_port <= MAX_PORT:
                raise RuleValidationError(f"HttpProxyPort {rule.http_proxy_port} out of range.", num)
        elif parse_pattern_type(rule.pattern_type, num) is PatternType.URLEXACT:
            raise RuleValidationError(f"'httpProxyPort' required for each {HTTP} resource", num)

        if rule.socks_server_port is None:
            raise RuleValidationError("'socksServerPort' required for each resource", num)
        if not 0 <= rule.socks_server_port <= MAX_PORT:
            raise RuleValidationError(f"socksServerPort {rule.socks_server_port} out of range.", num)

        if rule.secret_key is None:
            raise RuleValidationError("Rule is missing secret key", num)

    def validate(self, rule: Rule) -> None:
        num = rule.rule_num
        if num <= 0:
            raise RuleValidationError(f"({rule.pattern}) must have ruleNum greater than 0.", num)

        # clientId
        if rule.client_id is None:
            raise RuleValidationError("'clientId' field must be present", num)
        if not rule.client_id.strip():
            raise RuleValidationError("'clientId' field must be present", num)
        if has_whitespace(rule.client_id):
            raise RuleValidationError(
                f"'clientId' field '{rule.client_id}' must not contain any white space.", num
            )

        # allowedEntities
        if not rule.allowed_entities:
            raise RuleValidationError("at least one 'allowedEntities' field must be present", num)
        for entity in rule.allowed_entities:
            if has_whitespace(entity):
                raise RuleValidationError(
                    f"'allowedEntities' field '{entity}' must not contain any white space.", num
                )
            if "@" not in entity:
                raise RuleValidationError(
                    f"'allowedEntities' field '{entity}' must be a valid fully qualified email address",
                    num,
                )

        # apps
        if not rule.apps:
            raise RuleValidationError("at least one 'app' field must be present", num)
        for app in rule.apps:
            if app.container is None or app.app_id is None:
                raise RuleValidationError("'apps' entries need both a container and an appId", num)
            if has_whitespace(app.container) or has_whitespace(app.app_id):
                raise RuleValidationError(
                    f"'apps' field <{app.container}:{app.app_id}> must not contain any white space.",
                    num,
                )

        # pattern
        if rule.pattern is None:
            raise RuleValidationError("'pattern' must be present.", num)
        pattern = rule.pattern.strip()
        if has_whitespace(pattern):
            raise RuleValidationError(f"'pattern' field '{pattern}' must not contain any white space.", num)
        if rule.scheme is None:
            raise RuleValidationError(f"Invalid pattern: {pattern}", num)

        # patternType
        if rule.pattern_type is None:
            raise RuleValidationError(f"'patternType' missing for {pattern}", num)
        self._check_pattern_type(parse_pattern_type(rule.pattern_type, num), pattern, num)

    def _check_pattern_type(self, pattern_type: PatternType, pattern: str, num: int) -> None:
        if pattern_type is PatternType.URLEXACT:
            if pattern.startswith((HTTPS, SOCKET)):
                raise RuleValidationError(
                    "Pattern type: URLEXACT works only with http. Use HOSTPORT for https or socket",
                    num,
                )
        elif pattern_type is PatternType.HOSTPORT:
            if pattern.startswith((HTTP, HTTPS)):
                try:
                    parts = urlsplit(pattern)
                    _ = parts.port  # raises on a malformed port
                except ValueError as exc:
                    raise RuleValidationError(f"Invalid pattern URL: {exc}", num) from exc
                if not parts.hostname:
                    raise RuleValidationError(f"Invalid pattern URL: no host in {pattern}", num)
                if len(parts.path) > 1:
                    raise RuleValidationError(
                        f"'pattern' {pattern} cannot contain any path elements "
                        "when using HOSTPORT pattern type",
                        num,
                    )
        elif pattern_type is PatternType.REGEX:
            pass  # legacy feeds, matched elsewhere
        else:
            raise RuleValidationError(f"'patternType' {pattern_type} not supported.", num)
