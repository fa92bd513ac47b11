"""
Validation Utilities Module
IP address validation, normalization and classification
"""

import ipaddress


LOOPBACK_NETWORKS = (
    ipaddress.ip_network('127.0.0.0/8'),
    ipaddress.ip_network('::1/128'),
)

# RFC 1918
PRIVATE_NETWORKS = (
    ipaddress.ip_network('10.0.0.0/8'),
    ipaddress.ip_network('172.16.0.0/12'),
    ipaddress.ip_network('192.168.0.0/16'),
)


def _parse(address):
    try:
        return ipaddress.ip_address(address)
    except (ValueError, TypeError):
        return None


def is_valid_ip(address):
    """
    Validate if string is a valid IP address (IPv4 or IPv6)

    Args:
        address: String to validate

    Returns:
        Boolean indicating if valid IP address

    Example:
        >>> is_valid_ip("8.8.8.8")
        True
        >>> is_valid_ip("256.1.1.1")
        False
        >>> is_valid_ip("2001:4860:4860::8888")
        True
    """
    return _parse(address) is not None


def normalize_ip(address):
    """
    Normalize an IP address string

    IPv4-mapped IPv6 addresses (::ffff:a.b.c.d) are rewritten to the
    embedded IPv4 address. Everything else is returned as given, minus
    surrounding whitespace.

    Args:
        address: IP address string (IPv4, IPv6 or IPv4-mapped IPv6)

    Returns:
        Normalized IP string ('' for empty input)

    Example:
        >>> normalize_ip('::ffff:192.168.1.1')
        '192.168.1.1'
        >>> normalize_ip('2001:db8::1')
        '2001:db8::1'
    """
    if not address:
        return ''

    cleaned = str(address).strip()
    ip = _parse(cleaned)

    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        return str(ip.ipv4_mapped)

    return cleaned


def is_loopback(address):
    """
    Check if a normalized IP address is loopback (127.0.0.0/8 or ::1)

    Example:
        >>> is_loopback('127.1.2.3')
        True
        >>> is_loopback('192.168.1.1')
        False
    """
    ip = _parse(address)
    if ip is None:
        return False
    return any(ip in net for net in LOOPBACK_NETWORKS)


def is_private_ip(address):
    """
    Check if a normalized IP address is in an RFC 1918 private range

    Only 10/8, 172.16/12 and 192.168/16 count; other reserved blocks
    are treated as public.

    Example:
        >>> is_private_ip('172.31.255.255')
        True
        >>> is_private_ip('172.15.0.1')
        False
    """
    ip = _parse(address)
    if not isinstance(ip, ipaddress.IPv4Address):
        return False
    return any(ip in net for net in PRIVATE_NETWORKS)


def classify_ip(address):
    """
    Classify a client IP and decide the provider lookup key

    Loopback and private addresses carry no public location, so they all
    share the empty lookup key, which asks the provider for the server's
    own public IP. Unrecognised input never raises; it is treated as a
    public address and passed through.

    Args:
        address: Raw client IP string

    Returns:
        Dictionary with normalized_ip, is_loopback, is_private, lookup_key

    Example:
        >>> classify_ip('::ffff:127.0.0.1')['lookup_key']
        ''
        >>> classify_ip('8.8.8.8')['lookup_key']
        '8.8.8.8'
    """
    normalized = normalize_ip(address)
    loopback = is_loopback(normalized)
    private = is_private_ip(normalized)

    return {
        'normalized_ip': normalized,
        'is_loopback': loopback,
        'is_private': private,
        'lookup_key': '' if loopback or private else normalized,
    }
