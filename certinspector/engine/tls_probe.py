from __future__ import annotations

"""Raw TLS handshake and certificate extraction.

The handshake goes through pyOpenSSL because it exposes the certificates the
server actually presented, untrusted or not. Field access goes through
`cryptography`. Nothing here raises to the caller: a failed or slow handshake
is reported as "no certificate".
"""

import asyncio
import logging
import select
import socket
import time
from concurrent.futures import Executor
from typing import List, Optional, Sequence, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID
from OpenSSL import SSL

from .models import CertificateInfo, ChainLink
from .validator import parse_ip_literal

logger = logging.getLogger("certinspector")

DEFAULT_PORT = 443
DEFAULT_TIMEOUT = 5.0
# CN first, organization as the fallback label.
NAME_PRECEDENCE = (NameOID.COMMON_NAME, NameOID.ORGANIZATION_NAME)


def name_label(name: x509.Name) -> Optional[str]:
    for oid in NAME_PRECEDENCE:
        attributes = name.get_attributes_for_oid(oid)
        if attributes:
            value = attributes[0].value
            return value.decode("utf-8", errors="replace") if isinstance(value, bytes) else str(value)
    return None


def _hex_digest(certificate: x509.Certificate, algorithm: hashes.HashAlgorithm) -> str:
    return ":".join(f"{byte:02X}" for byte in certificate.fingerprint(algorithm))


def _link(certificate: x509.Certificate) -> ChainLink:
    return ChainLink(subject=name_label(certificate.subject), issuer=name_label(certificate.issuer))


def _issuer_of(certificate: x509.Certificate, presented: Sequence[x509.Certificate]) -> Optional[x509.Certificate]:
    if certificate.issuer == certificate.subject:
        return certificate
    for candidate in presented:
        if candidate is not certificate and candidate.subject == certificate.issuer:
            return candidate
    return None


def walk_chain(presented: Sequence[x509.Certificate]) -> Optional[List[ChainLink]]:
    """Follow issuer links from the leaf (first element) towards the root.

    Stops at a missing link, a self-signed certificate or a repeated
    certificate, then records the terminal certificate itself. A chain that
    holds only the leaf is reported as None.
    """
    if not presented:
        return None

    chain: List[ChainLink] = []
    current = presented[0]
    visited = {id(current)}
    while True:
        parent = _issuer_of(current, presented)
        if parent is None or parent is current or id(parent) in visited:
            break
        chain.append(_link(current))
        visited.add(id(parent))
        current = parent
    chain.append(_link(current))
    return chain if len(chain) > 1 else None


def certificate_info(
    presented: Sequence[x509.Certificate],
    tls_version: Optional[str],
    response_time_millis: int,
) -> Optional[CertificateInfo]:
    if not presented:
        return None
    leaf = presented[0]
    chain = walk_chain(presented)
    return CertificateInfo(
        subject=name_label(leaf.subject),
        issuer=name_label(leaf.issuer),
        valid_from=leaf.not_valid_before_utc,
        valid_to=leaf.not_valid_after_utc,
        serial_number=format(leaf.serial_number, "X"),
        fingerprint=_hex_digest(leaf, hashes.SHA1()),
        fingerprint256=_hex_digest(leaf, hashes.SHA256()),
        tls_version=tls_version,
        response_time_millis=response_time_millis,
        chain=tuple(chain) if chain else None,
    )


def _verify_callback(connection: SSL.Connection, cert: object, errnum: int, depth: int, ok: int) -> bool:
    return bool(ok)


def _accept_any(connection: SSL.Connection, cert: object, errnum: int, depth: int, ok: int) -> bool:
    return True


def _build_context(verify_trust: bool) -> SSL.Context:
    """Client context that always builds a chain against the system trust store.

    Verification runs in both modes so the trust-store root can complete the
    chain; without `verify_trust` every verification error is accepted.
    Legacy protocol versions stay enabled so old servers are still reported.
    """
    context = SSL.Context(SSL.TLS_CLIENT_METHOD)
    context.set_min_proto_version(0)
    context.set_cipher_list(b"DEFAULT:@SECLEVEL=0")
    context.set_default_verify_paths()
    context.set_verify(SSL.VERIFY_PEER, _verify_callback if verify_trust else _accept_any)
    return context


def _wait_for_socket(sock: socket.socket, deadline: float, writable: bool) -> None:
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise socket.timeout("TLS handshake timed out")
    if writable:
        _, ready, _ = select.select([], [sock], [], remaining)
    else:
        ready, _, _ = select.select([sock], [], [], remaining)
    if not ready:
        raise socket.timeout("TLS handshake timed out")


def _handshake(
    hostname: str,
    port: int,
    timeout: float,
    verify_trust: bool,
) -> Tuple[List[x509.Certificate], Optional[str], int]:
    """Blocking handshake; returns presented certificates, protocol and latency."""
    started = time.perf_counter()
    deadline = time.monotonic() + timeout
    sock = socket.create_connection((hostname.strip("[]"), port), timeout=timeout)
    connection = SSL.Connection(_build_context(verify_trust), sock)
    try:
        if parse_ip_literal(hostname) is None:
            connection.set_tlsext_host_name(hostname.encode("idna"))
        connection.set_connect_state()
        # A socket with a timeout is non-blocking underneath, so OpenSSL asks to retry.
        while True:
            try:
                connection.do_handshake()
                break
            except SSL.WantReadError:
                _wait_for_socket(sock, deadline, writable=False)
            except SSL.WantWriteError:
                _wait_for_socket(sock, deadline, writable=True)
        elapsed = int((time.perf_counter() - started) * 1000)
        protocol = connection.get_protocol_version_name()
        # The verified chain ends at the trust-store root even when the server omits it.
        verified = connection.get_verified_chain() or connection.get_peer_cert_chain() or []
        presented = [cert.to_cryptography() for cert in verified]
        if not presented:
            leaf = connection.get_peer_certificate()
            if leaf is not None:
                presented = [leaf.to_cryptography()]
        return presented, protocol, elapsed
    finally:
        try:
            connection.shutdown()
        except (SSL.Error, OSError):
            pass
        connection.close()
        sock.close()


async def inspect_certificate(
    hostname: str,
    port: int = DEFAULT_PORT,
    timeout: float = DEFAULT_TIMEOUT,
    verify_trust: bool = False,
    io_executor: Optional[Executor] = None,
) -> Optional[CertificateInfo]:
    """Retrieve the leaf certificate of `hostname:port`, or None.

    With `verify_trust=False` (the default) expired, self-signed and
    mismatched certificates are returned like any other. With
    `verify_trust=True` a peer that does not chain to the system trust store
    yields None.
    """
    loop = asyncio.get_running_loop()
    try:
        presented, protocol, elapsed = await asyncio.wait_for(
            loop.run_in_executor(io_executor, _handshake, hostname, port, timeout, verify_trust),
            timeout=timeout,
        )
        return certificate_info(presented, protocol, elapsed)
    except asyncio.TimeoutError:
        logger.debug("TLS handshake with %s:%s timed out after %.1fs", hostname, port, timeout)
    except Exception as exc:
        logger.debug("TLS handshake with %s:%s failed: %s: %s", hostname, port, exc.__class__.__name__, exc)
    return None
