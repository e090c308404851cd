"""Certificate-bypassing HTTP forwarding gateway."""

from .forwarder import ProxyGateway, redact_target
from .result import EMPTY, Empty, Err, ErrorKind, GatewayResult, Ok, unwrap

__all__ = [
    "EMPTY",
    "Empty",
    "Err",
    "ErrorKind",
    "GatewayResult",
    "Ok",
    "ProxyGateway",
    "redact_target",
    "unwrap",
]
