"""Client address resolution behind reverse proxies."""

from ipaddress import ip_address

from fastapi import Request

from qrlogin.config import QRLoginConfig


def get_client_ip(request: Request, config: QRLoginConfig) -> str | None:
    """Return the address the rate limiter should key on.

    Proxy headers (X-Forwarded-For first hop, then X-Real-IP) are read only
    when ``trust_proxy`` is on, or when the direct peer falls inside one of
    ``trusted_proxy_networks``. Otherwise the socket peer is used.
    """
    if request.client is None:
        return None

    peer = request.client.host
    if not _peer_is_trusted(peer, config):
        return peer

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    return peer


def _peer_is_trusted(peer: str, config: QRLoginConfig) -> bool:
    if config.trusted_proxy_networks:
        try:
            addr = ip_address(peer)
        except ValueError:
            return False
        return any(addr in net for net in config.trusted_proxy_networks)
    return config.trust_proxy
