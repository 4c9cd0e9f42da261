"""
connector.logger
~~~~~~~~~~~~~~~~
JSON-lines event log for rule loading and provisioning, rotated daily.
Secret keys never reach this log.
"""

from __future__ import annotations

import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable

from .errors import RuleError
from .rule import Rule

_ISO = "%Y-%m-%dT%H:%M:%SZ"


def _now() -> str:  # RFC-3339 without microseconds
    return datetime.now(tz=timezone.utc).strftime(_ISO)


class _JSONFormatter(logging.Formatter):
    def format(self, record):  # type: ignore[override]
        if isinstance(record.msg, dict):
            return json.dumps(record.msg, separators=(",", ":"))
        return json.dumps(
            {"event": "message", "ts": _now(), "msg": record.getMessage()},
            separators=(",", ":"),
        )


class RuleLogger:
    def __init__(self, basename: str | Path | None = None, name: str = "connector"):
        log = logging.getLogger(name)
        log.setLevel(logging.INFO)
        log.propagate = False

        if basename is not None:
            basename = Path(basename).with_suffix("")  # connector
            jsonl_file = basename.with_suffix(".jsonl")
            if not any(getattr(h, "baseFilename", None) == str(jsonl_file.absolute()) for h in log.handlers):
                h = logging.handlers.TimedRotatingFileHandler(
                    jsonl_file, when="midnight", backupCount=7, encoding="utf-8"
                )
                h.setFormatter(_JSONFormatter())
                log.addHandler(h)
        elif not log.handlers:
            # keeps warnings off logging.lastResort
            log.addHandler(logging.NullHandler())

        self.log = log

    def rules_loaded(self, source: str, count: int):
        self.log.info({"event": "rules_loaded", "ts": _now(), "source": source, "count": count})

    def rule_rejected(self, stage: str, err: RuleError):
        self.log.warning(
            {
                "event": "rule_rejected",
                "ts": _now(),
                "stage": stage,
                "kind": err.kind.value,
                "rule": err.rule_num,
                "reason": err.msg,
            }
        )

    def port_allocated(self, rule_num: int, port: int):
        self.log.info({"event": "port_allocated", "ts": _now(), "rule": rule_num, "port": port})

    def provisioned(self, client_id: str, rules: Iterable[Rule]):
        self.log.info(
            {
                "event": "provisioned",
                "ts": _now(),
                "client": client_id,
                "rules": [_describe(r) for r in rules],
            }
        )

    def credentials_projected(self, count: int, socks_port: int):
        self.log.info(
            {"event": "credentials_projected", "ts": _now(), "count": count, "socks_port": socks_port}
        )


def _describe(rule: Rule) -> Dict[str, Any]:
    return {
        "num": rule.rule_num,
        "pattern": rule.pattern,
        "type": rule.pattern_type.value if rule.pattern_type else None,
        "http_port": rule.http_proxy_port,
    }
