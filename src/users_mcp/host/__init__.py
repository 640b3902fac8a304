"""Host process: user capabilities served over the protocol."""

from .sampling import SamplingClient
from .server import HostConnection, HostServer
from .users import build_registry, parse_generated_user, register_user_capabilities, strip_code_fence

__all__ = [
    "HostConnection",
    "HostServer",
    "SamplingClient",
    "build_registry",
    "parse_generated_user",
    "register_user_capabilities",
    "strip_code_fence",
]
