"""Certificate fingerprint pinning.

Management endpoints use self-signed certificates, so chain verification is
off. The stored certSha256 is checked instead: the SHA-256 of the DER
certificate the server presented must equal it.
"""

from __future__ import annotations

__all__ = [
    "fingerprints_match",
    "normalize_fingerprint",
    "peer_certificate_fingerprint",
]

import hashlib
import hmac
import re

import httpx

_NON_HEX = re.compile(r"[^0-9A-Fa-f]")


def normalize_fingerprint(value: str) -> str:
    """Uppercase hex with separators (colons, spaces) removed."""
    return _NON_HEX.sub("", value).upper()


def fingerprints_match(presented: str, pinned: str) -> bool:
    """Compare two fingerprints ignoring case and separators.

    An empty pinned value never matches.
    """
    a = normalize_fingerprint(presented)
    b = normalize_fingerprint(pinned)
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def peer_certificate_fingerprint(response: httpx.Response) -> str | None:
    """SHA-256 fingerprint of the certificate behind a response's connection.

    Reads the TLS object from the httpcore network stream, which is available
    as soon as response headers have arrived.

    Args:
        response: Response whose body has not necessarily been read.

    Returns:
        Uppercase hex fingerprint, or None when the connection is not TLS or
        the transport does not expose it.
    """
    stream = response.extensions.get("network_stream")
    if stream is None:
        return None

    ssl_object = stream.get_extra_info("ssl_object")
    if ssl_object is None:
        return None

    der = ssl_object.getpeercert(binary_form=True)
    if not der:
        return None
    return hashlib.sha256(der).hexdigest().upper()
