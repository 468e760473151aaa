"""
Blocking RouterOS API transport built on routeros_api

All methods block on the network; RouterSession runs them in worker threads.
"""

import logging
from typing import Any, Dict, List, Optional

import routeros_api

logger = logging.getLogger(__name__)


class RouterOSTransport:
    """One authenticated RouterOS API connection"""

    def __init__(self, host: str, username: str, password: str, port: int = 8728,
                 timeout: float = 10.0, use_ssl: bool = False, ssl_verify: bool = False,
                 plaintext_login: bool = True):
        self.host = host
        self.port = port
        self.username = username
        self._password = password
        self.timeout = timeout
        self.use_ssl = use_ssl
        self.ssl_verify = ssl_verify
        self.plaintext_login = plaintext_login
        self._pool: Optional[routeros_api.RouterOsApiPool] = None
        self._api = None

    def open(self):
        """Connect and log in; raises the library's exceptions unchanged"""
        pool = routeros_api.RouterOsApiPool(
            self.host,
            username=self.username,
            password=self._password,
            port=self.port,
            use_ssl=self.use_ssl,
            ssl_verify=self.ssl_verify,
            plaintext_login=self.plaintext_login,
        )
        pool.set_timeout(self.timeout)
        self._pool = pool
        self._api = pool.get_api()
        logger.debug(f"RouterOS API connected to {self.host}:{self.port}")

    def list(self, path: str) -> List[Dict[str, Any]]:
        return list(self._resource(path).get())

    def add(self, path: str, **params):
        return self._resource(path).add(**params)

    def remove(self, path: str, item_id: str):
        return self._resource(path).remove(id=item_id)

    def close(self):
        pool, self._pool, self._api = self._pool, None, None
        if pool is not None:
            pool.disconnect()

    def _resource(self, path: str):
        if self._api is None:
            raise ConnectionError(f"Not connected to {self.host}:{self.port}")
        return self._api.get_resource(path)
