"""
Server-side request forgery guard for the preview proxy.

A URL may only be fetched if it is an absolute http(s) URL whose hostname is
one of the configured projects' hostnames and is not a loopback, private,
link-local or multicast address literal. The same check runs on the initial
URL and on every redirect target.
"""

import ipaddress
from typing import FrozenSet, Iterable, Union
from urllib.parse import urlsplit

from site_status.errors import SecurityRejection

INVALID_FORMAT = "invalid format"
PROTOCOL_NOT_ALLOWED = "protocol not allowed"
DOMAIN_NOT_ALLOWED = "domain not allowed"
LOCALHOST_BLOCKED = "localhost blocked"
PRIVATE_IP_BLOCKED = "private IP blocked"
PRIVATE_IPV6_BLOCKED = "private IPv6 blocked"

ALLOWED_SCHEMES = frozenset({"http", "https"})
LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "0.0.0.0", "::1"})

BLOCKED_IPV4_NETWORKS = tuple(
    ipaddress.IPv4Network(network)
    for network in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "224.0.0.0/3",  # multicast and everything reserved above it
    )
)

BLOCKED_IPV6_PREFIXES = ("fe80:", "fc", "fd")


def is_blocked_ipv4(address: ipaddress.IPv4Address) -> bool:
    return any(address in network for network in BLOCKED_IPV4_NETWORKS)


def _parse_ip(hostname: str) -> Union[ipaddress.IPv4Address, ipaddress.IPv6Address, None]:
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        return None


class UrlValidator:
    """
    Decides whether a candidate URL may be fetched.

    The allow-list is computed once from static project configuration and is
    read-only afterwards. Validation is a pure function of the URL and that list.
    """

    def __init__(self, allowed_hosts: Iterable[str]) -> None:
        self._allowed_hosts: FrozenSet[str] = frozenset(host.lower() for host in allowed_hosts)

    @property
    def allowed_hosts(self) -> FrozenSet[str]:
        return self._allowed_hosts

    def validate(self, raw_url: str) -> str:
        """
        Validates a URL, applying the rules in order; the first failure wins.

        Args:
            raw_url: The untrusted URL.

        Returns:
            str: The URL without its fragment, safe to dereference.

        Raises:
            SecurityRejection: With the reason of the first rule that failed.
        """
        try:
            parts = urlsplit(raw_url.strip())
            hostname = parts.hostname
            # Accessing the port validates it
            parts.port
        except (ValueError, AttributeError):
            raise SecurityRejection(INVALID_FORMAT)

        if not parts.scheme:
            raise SecurityRejection(INVALID_FORMAT)
        if parts.scheme not in ALLOWED_SCHEMES:
            raise SecurityRejection(PROTOCOL_NOT_ALLOWED)
        if not hostname:
            raise SecurityRejection(INVALID_FORMAT)

        hostname = hostname.lower()
        if hostname not in self._allowed_hosts:
            raise SecurityRejection(DOMAIN_NOT_ALLOWED)

        if hostname in LOOPBACK_HOSTS:
            raise SecurityRejection(LOCALHOST_BLOCKED)

        address = _parse_ip(hostname)
        if isinstance(address, ipaddress.IPv4Address) and is_blocked_ipv4(address):
            raise SecurityRejection(PRIVATE_IP_BLOCKED)

        if ":" in hostname:
            if hostname.startswith(BLOCKED_IPV6_PREFIXES):
                raise SecurityRejection(PRIVATE_IPV6_BLOCKED)
            if isinstance(address, ipaddress.IPv6Address):
                if address.is_loopback or address.is_unspecified:
                    raise SecurityRejection(LOCALHOST_BLOCKED)
                if address.ipv4_mapped and is_blocked_ipv4(address.ipv4_mapped):
                    raise SecurityRejection(PRIVATE_IP_BLOCKED)
                if address.is_link_local or address.is_private or address.is_multicast:
                    raise SecurityRejection(PRIVATE_IPV6_BLOCKED)

        return parts._replace(fragment="").geturl()
