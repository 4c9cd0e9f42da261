"""
connector.agent
~~~~~~~~~~~~~~~
Start-up sequence: load the rule feed, provision it for this client and
hand the credential map to the SOCKS authenticator.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .config import Config
from .credentials import project_credentials
from .errors import RuleError
from .feed import load_rules
from .logger import RuleLogger
from .provisioner import PortAllocator, Provisioner
from .rule import Endpoint, Rule
from .socks import SocksAuthenticator, SocksSettings, socks_settings


def run_agent(config: Config) -> int:
    agent = ConnectorAgent(config)
    try:
        ready = agent.start()
    except RuleError as e:
        print(f"▸ Refusing to start: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"▸ Cannot read rule feed: {e}", file=sys.stderr)
        return 1

    print(
        f"▸ {len(ready.rules)} rules ready for client {config.client_id}, "
        f"SOCKS on {ready.socks.bind_address}:{ready.socks.port}"
    )
    return 0


@dataclass(frozen=True)
class ReadyRules:
    rules: Tuple[Rule, ...]
    credentials: Dict[str, Endpoint]
    socks: SocksSettings
    authenticator: SocksAuthenticator


class ConnectorAgent:
    def __init__(
        self,
        cfg: Config,
        port_allocator: Optional[PortAllocator] = None,
        logger: Optional[RuleLogger] = None,
    ) -> None:
        self.cfg = cfg
        self.logger = logger or RuleLogger(cfg.log_path)
        self.provisioner = Provisioner(port_allocator=port_allocator, logger=self.logger)

    def start(self) -> ReadyRules:
        feed = load_rules(self.cfg.rules_path)
        self.logger.rules_loaded(str(self.cfg.rules_path), len(feed))
        return self.refresh(feed)

    def refresh(self, feed) -> ReadyRules:
        """Provision *feed* from scratch.  Raises RuleError; nothing is kept on failure."""
        cfg = self.cfg
        try:
            system_rules = self.provisioner.create_system_rules(
                cfg.client_id, cfg.healthz_port, cfg.user, cfg.domain, cfg.healthz_gadget_users
            )
            rules = self.provisioner.provision(
                feed, cfg.client_id, cfg.socks_server_port, system_rules=system_rules
            )
            socks = socks_settings(cfg.socks_bind_host, cfg.socks_server_port)
            credentials = project_credentials(rules)
        except RuleError as e:
            self.logger.rule_rejected("provision", e)
            raise

        self.logger.credentials_projected(len(credentials), socks.port)
        return ReadyRules(
            rules=rules,
            credentials=credentials,
            socks=socks,
            authenticator=SocksAuthenticator(credentials),
        )
