from dataclasses import dataclass
import os
from typing import Optional

from dotenv import load_dotenv

@dataclass
class Config:
    client_id: str
    user: str
    domain: str
    rules_path: str
    socks_bind_host: str
    socks_server_port: int
    healthz_port: int
    healthz_gadget_users: Optional[str]
    log_path: str

def load_config(env_file: Optional[str] = None):
    load_dotenv(env_file, override=True)
    return Config(
        client_id=os.getenv("CONNECTOR_CLIENT_ID", "default"),
        user=os.getenv("CONNECTOR_USER", "admin"),
        domain=os.getenv("CONNECTOR_DOMAIN", "localhost"),
        rules_path=os.getenv("CONNECTOR_RULES_PATH", "resource_rules.json"),
        socks_bind_host=os.getenv("CONNECTOR_SOCKS_BIND_HOST", "127.0.0.1"),
        socks_server_port=int(os.getenv("CONNECTOR_SOCKS_SERVER_PORT", 1080)),
        healthz_port=int(os.getenv("CONNECTOR_HEALTHZ_PORT", 8123)),
        healthz_gadget_users=os.getenv("CONNECTOR_HEALTHZ_GADGET_USERS") or None,
        log_path=os.getenv("CONNECTOR_LOG_PATH", "connector.log"),
    )
