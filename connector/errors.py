"""
connector.errors
~~~~~~~~~~~~~~~~
Error types raised by the rule engine.  Every error shares one base so a
caller can catch the whole family, and carries an ``ErrorKind`` tag so a
start-up sequence can tell a bad feed from a bad host without reading the
message.
"""

from __future__ import annotations

import enum


class ErrorKind(enum.Enum):
    VALIDATION = "validation"
    CONSISTENCY = "consistency"
    PROVISIONING = "provisioning"
    LEGACY_PARSE = "legacy_parse"


class RuleError(Exception):
    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, msg: str, rule_num: int | None = None):
        self.msg = msg
        self.rule_num = rule_num
        super().__init__(msg)


class RuleValidationError(RuleError):
    kind = ErrorKind.VALIDATION

    def __init__(self, msg: str, rule_num: int | None = None):
        if rule_num is not None:
            msg = f"Resource {rule_num} {msg}"
        super().__init__(msg, rule_num)


class RuleConsistencyError(RuleError):
    kind = ErrorKind.CONSISTENCY


class ProvisioningError(RuleError):
    kind = ErrorKind.PROVISIONING


class LegacyParseError(RuleError):
    kind = ErrorKind.LEGACY_PARSE
