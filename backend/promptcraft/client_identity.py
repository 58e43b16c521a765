from __future__ import annotations

from typing import Mapping, Optional

from fastapi import Request

UNKNOWN_CLIENT = "unknown"

FORWARDED_FOR_HEADER = "x-forwarded-for"
REAL_IP_HEADER = "x-real-ip"
CONNECTING_IP_HEADER = "cf-connecting-ip"


def _header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is not None:
        return value
    # Plain dicts are case-sensitive; starlette's Headers are not.
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None


def client_key_from_headers(headers: Mapping[str, str], remote_addr: Optional[str] = None) -> str:
    """Derive the rate-limit key for a requester.

    Precedence: first ``x-forwarded-for`` entry, ``x-real-ip``,
    ``cf-connecting-ip``, the transport address, then ``"unknown"``.
    Values are trusted as-is; proxies in front of the service must
    overwrite these headers for the key to mean anything.
    """
    forwarded_for = _header(headers, FORWARDED_FOR_HEADER)
    if forwarded_for:
        first = forwarded_for.split(",")[0].strip()
        if first:
            return first

    real_ip = _header(headers, REAL_IP_HEADER)
    if real_ip:
        return real_ip

    connecting_ip = _header(headers, CONNECTING_IP_HEADER)
    if connecting_ip:
        return connecting_ip

    if remote_addr:
        return remote_addr
    return UNKNOWN_CLIENT


def client_key_from_request(request: Request) -> str:
    remote_addr = request.client.host if request.client else None
    return client_key_from_headers(request.headers, remote_addr)
