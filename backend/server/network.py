"""
Backend URL resolution for pairing links.

The capture device scans a QR code and must reach this server over the LAN,
so "localhost" is useless to it. Unless BACKEND_URL overrides it, the URL is
built from the best-scoring local IPv4 address.
"""

from __future__ import annotations

import ipaddress
import socket
from typing import Optional
from urllib.parse import quote

import psutil

from config import AppConfig
from spec import LAN_INTERFACE_NAME_SCORES, LAN_PREFIX_SCORES, LAN_PRIVATE_172_SCORE


FALLBACK_HOST = "localhost"


def score_address(address: str, interface_name: str) -> int:
    """Higher is more likely to be reachable from a phone on the same LAN."""
    score = 0
    for prefix, points in LAN_PREFIX_SCORES:
        if address.startswith(prefix):
            score += points
            break
    else:
        if ipaddress.IPv4Address(address) in ipaddress.IPv4Network("172.16.0.0/12"):
            score += LAN_PRIVATE_172_SCORE

    lower = interface_name.lower()
    for needle, points in LAN_INTERFACE_NAME_SCORES:
        if needle in lower:
            score += points
    return score


def lan_candidates() -> list[tuple[int, str, str]]:
    """(score, address, interface) for every external IPv4 address, best first."""
    candidates: list[tuple[int, str, str]] = []
    for name, addrs in psutil.net_if_addrs().items():
        for addr in addrs:
            if addr.family != socket.AF_INET:
                continue
            if ipaddress.IPv4Address(addr.address).is_loopback:
                continue
            candidates.append((score_address(addr.address, name), addr.address, name))
    # Stable on ties: interface enumeration order wins
    candidates.sort(key=lambda c: c[0], reverse=True)
    return candidates


def local_ip() -> str:
    candidates = lan_candidates()
    return candidates[0][1] if candidates else FALLBACK_HOST


def resolve_backend_url(
    config: AppConfig,
    *,
    forwarded_proto: Optional[str],
    request_scheme: str,
) -> str:
    """BACKEND_URL if configured, else {proto}://{lan ip}:{port}."""
    if config.backend_url:
        return config.backend_url
    proto = (forwarded_proto or "").split(",")[0].strip() or request_scheme
    return f"{proto}://{local_ip()}:{config.port}"


def build_pairing_url(scheme: str, session_id: str, backend_url: str) -> str:
    """Deep link encoded in the QR code."""
    return f"{scheme}?session={quote(session_id, safe='')}&backend={quote(backend_url, safe='')}"
