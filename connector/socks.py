"""
connector.socks
~~~~~~~~~~~~~~~
What the SOCKS listener needs at start-up: the resolved bind address and
a user/password authenticator built from the credential map.  The SOCKS
wire protocol itself lives in the proxy server, not here.

A client authenticates with the rule's secret key as its username.
"""

from __future__ import annotations

import hmac
import socket
from dataclasses import dataclass
from typing import Dict, Mapping

from .errors import ProvisioningError
from .rule import Endpoint


class AuthError(Exception):
    pass


@dataclass(frozen=True, slots=True)
class SocksSettings:
    bind_address: str
    port: int


def resolve_bind_address(host: str) -> str:
    try:
        return socket.getaddrinfo(host, None, type=socket.SOCK_STREAM)[0][4][0]
    except OSError as e:
        raise ProvisioningError(f"Couldnt lookup bind host {host!r}") from e


def socks_settings(bind_host: str, port: int) -> SocksSettings:
    return SocksSettings(bind_address=resolve_bind_address(bind_host), port=port)


class SocksAuthenticator:
    def __init__(self, credentials: Mapping[str, Endpoint]):
        self._credentials: Dict[str, Endpoint] = dict(credentials)

    def __len__(self) -> int:
        return len(self._credentials)

    def authenticate(self, username: str) -> Endpoint:
        """Return the one endpoint *username* may connect to."""
        if not username:
            raise AuthError("Missing credential")
        for key, endpoint in self._credentials.items():
            if hmac.compare_digest(key.encode(), username.encode()):
                return endpoint
        raise AuthError("Bad credentials")

    def permit(self, username: str, host: str, port: int) -> bool:
        try:
            endpoint = self.authenticate(username)
        except AuthError:
            return False
        return endpoint == Endpoint(host, port)
