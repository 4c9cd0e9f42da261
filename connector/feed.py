"""
connector.feed
~~~~~~~~~~~~~~
Reads the resource rule feed from disk.

resource_rules.json
-------------------
[
  {"ruleNum": 1, "clientId": "all", "allowedEntities": ["ops@example.com"],
   "apps": [{"container": "gadgets", "appId": "wiki"}],
   "pattern": "http://wiki.corp:8080/index", "patternType": "URLEXACT"}
]
"""

from __future__ import annotations

import json
import pathlib
from typing import List

from .errors import RuleConsistencyError
from .rule import Rule, rule_from_record


def load_rules(path: str | pathlib.Path) -> List[Rule]:
    path = pathlib.Path(path)
    try:
        records = json.loads(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as e:
        raise RuleConsistencyError(f"Rule feed {path} is not UTF-8 text: {e}") from e
    except json.JSONDecodeError as e:
        raise RuleConsistencyError(f"Rule feed {path} is not valid JSON: {e}") from e

    if isinstance(records, dict):
        records = records.get("entity", [])
    if not isinstance(records, list):
        raise RuleConsistencyError(f"Rule feed {path} must hold a list of rules")

    rules = []
    for record in records:
        if not isinstance(record, dict):
            raise RuleConsistencyError(f"Rule feed {path} has a non-object entry: {record!r}")
        rules.append(rule_from_record(record))
    return rules
