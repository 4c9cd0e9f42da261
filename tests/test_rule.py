"""Tests for the rule model and feed record conversion."""

import pytest

from connector.errors import RuleValidationError
from connector.rule import (
    HTTP,
    HTTPS,
    SOCKET,
    AppTag,
    Endpoint,
    PatternType,
    Rule,
    https_host,
    https_port,
    parse_socket_pattern,
    rule_from_record,
)


class TestRuleFromRecord:
    def test_camel_case_record(self):
        rule = rule_from_record(
            {
                "ruleNum": "5",
                "clientId": "all",
                "allowedEntities": ["ops@example.com"],
                "apps": [{"container": "gadgets", "appId": "wiki"}],
                "pattern": "http://wiki.corp/index",
                "patternType": "URLEXACT",
                "httpProxyPort": "8080",
            }
        )
        assert rule.rule_num == 5
        assert rule.client_id == "all"
        assert rule.allowed_entities == ("ops@example.com",)
        assert rule.apps == (AppTag("gadgets", "wiki"),)
        assert rule.pattern_type is PatternType.URLEXACT
        assert rule.http_proxy_port == 8080
        assert rule.socks_server_port is None
        assert rule.secret_key is None

    def test_unknown_fields_ignored(self):
        rule = rule_from_record({"ruleNum": 1, "color": "blue", "description": "x"})
        assert rule == Rule(rule_num=1)

    def test_missing_fields_left_empty(self):
        rule = rule_from_record({})
        assert rule.rule_num == 0
        assert rule.client_id is None
        assert rule.allowed_entities == ()
        assert rule.apps == ()
        assert rule.pattern is None

    def test_single_entity_string(self):
        rule = rule_from_record({"allowedEntities": "a@b.com"})
        assert rule.allowed_entities == ("a@b.com",)

    def test_app_shorthand(self):
        rule = rule_from_record({"apps": ["gadgets:wiki"]})
        assert rule.apps == (AppTag("gadgets", "wiki"),)

    def test_malformed_app(self):
        with pytest.raises(RuleValidationError, match="malformed 'apps'"):
            rule_from_record({"ruleNum": 3, "apps": [42]})

    def test_unsupported_pattern_type(self):
        with pytest.raises(RuleValidationError, match="not supported") as info:
            rule_from_record({"ruleNum": 9, "patternType": "GLOB"})
        assert info.value.rule_num == 9

    def test_bad_port(self):
        with pytest.raises(RuleValidationError, match="httpProxyPort"):
            rule_from_record({"ruleNum": 1, "httpProxyPort": "eighty"})

    @pytest.mark.parametrize("key, raw", [("allowedEntities", 5), ("apps", True), ("allowedEntities", 2.5)])
    def test_list_fields_must_be_lists(self, key, raw):
        with pytest.raises(RuleValidationError, match=f"'{key}' must be a list") as info:
            rule_from_record({"ruleNum": 4, key: raw})
        assert info.value.rule_num == 4

    @pytest.mark.parametrize("raw", [1.9, True, False])
    def test_rule_num_must_be_whole(self, raw):
        with pytest.raises(RuleValidationError, match="not a whole number"):
            rule_from_record({"ruleNum": raw})

    def test_whole_float_rule_num(self):
        assert rule_from_record({"ruleNum": 2.0}).rule_num == 2

    def test_fractional_port(self):
        with pytest.raises(RuleValidationError, match="socksServerPort"):
            rule_from_record({"ruleNum": 1, "socksServerPort": 1080.5})

    def test_app_parts_become_text(self):
        rule = rule_from_record({"apps": [{"container": 7, "appId": 8}]})
        assert rule.apps == (AppTag("7", "8"),)

    def test_legacy_name_kept(self):
        assert rule_from_record({"name": "12"}).name == "12"


class TestScheme:
    @pytest.mark.parametrize(
        "pattern, scheme",
        [
            ("http://a.com", HTTP),
            ("https://a.com", HTTPS),
            ("socket://a.com:22", SOCKET),
            ("ftp://a.com", None),
            (None, None),
        ],
    )
    def test_scheme(self, pattern, scheme):
        assert Rule(pattern=pattern).scheme == scheme


class TestSocketPattern:
    def test_host_and_port(self):
        assert parse_socket_pattern("socket://db.corp:5432") == Endpoint("db.corp", 5432)

    def test_ipv6(self):
        assert parse_socket_pattern("socket://[::1]:22") == Endpoint("::1", 22)

    @pytest.mark.parametrize("pattern", ["socket://db.corp", "socket://:22", "socket://db:x", "socket://db:70000"])
    def test_malformed(self, pattern):
        with pytest.raises(RuleValidationError, match="Invalid socket pattern"):
            parse_socket_pattern(pattern)


class TestHttpsHelpers:
    def test_default_port(self):
        rule = Rule(pattern="https://secure.corp")
        assert https_host(rule) == "secure.corp"
        assert https_port(rule) == 443

    def test_explicit_port(self):
        assert https_port(Rule(pattern="https://secure.corp:8443")) == 8443

    def test_not_https(self):
        with pytest.raises(ValueError, match="HTTPS"):
            https_host(Rule(pattern="http://plain.corp"))
