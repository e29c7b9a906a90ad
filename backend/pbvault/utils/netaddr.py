# pbvault/utils/netaddr.py

import ipaddress

# Wide enough for the largest IPv6 address in decimal
IP_DECIMAL_WIDTH = 39


def encode_ip(address: str) -> str:
    """
    IPv4/IPv6 text → zero-padded decimal string of fixed width.
    Raises ValueError for anything that is not an IP address.
    """
    ip = ipaddress.ip_address((address or "").strip())
    return str(int(ip)).zfill(IP_DECIMAL_WIDTH)
