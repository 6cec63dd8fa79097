from typing import Dict, List, Mapping, Sequence

import structlog

from betvex_setup.exceptions import ConfigurationError

log = structlog.get_logger(__name__)


class SignerPool:
    """Rotates round-robin through the signing keys of each principal.

    Every principal (e.g. ``main`` or ``admin``) owns a fixed, ordered list of
    keys for the same account. Spreading concurrent transactions over several
    access keys keeps them from competing for the same nonce.

    :meth:`next_credential` returns the key at the current cursor and then
    advances it. Both happen without yielding to the gevent hub, so concurrent
    greenlets never observe the same cursor position.
    """

    def __init__(self, credentials: Mapping[str, Sequence[str]]) -> None:
        self._credentials: Dict[str, List[str]] = {}
        self._cursors: Dict[str, int] = {}
        for principal, keys in credentials.items():
            keys = list(keys)
            if not keys:
                raise ConfigurationError(f"Principal {principal!r} has no credentials")
            self._credentials[principal] = keys
            self._cursors[principal] = 0

    def __contains__(self, principal) -> bool:
        return principal in self._credentials

    def __repr__(self) -> str:
        sizes = {principal: len(keys) for principal, keys in self._credentials.items()}
        return f"<SignerPool {sizes}>"

    def size(self, principal: str) -> int:
        return len(self._keys_of(principal))

    def next_credential(self, principal: str) -> str:
        keys = self._keys_of(principal)
        index = self._cursors[principal]
        self._cursors[principal] = (index + 1) % len(keys)
        return keys[index]

    def _keys_of(self, principal: str) -> List[str]:
        try:
            return self._credentials[principal]
        except KeyError:
            raise ConfigurationError(f"Unknown principal {principal!r}") from None
