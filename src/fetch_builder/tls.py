"""
TLS trust and identity material for the request builder.

The trust store and the TLS configuration are allocated lazily: a builder
that never touches TLS settings keeps whatever configuration it was created
with, and the first CA or client certificate added allocates what is missing.
"""
import logging
import os
import re
import ssl
import tempfile
from dataclasses import dataclass, field
from typing import Iterator, List, Optional, Union

from .errors import CertificateError

logger = logging.getLogger(__name__)

LOG_PREFIX = "[FetchBuilder]"

_PEM_CERT_RE = re.compile(
    r"-----BEGIN CERTIFICATE-----.*?-----END CERTIFICATE-----",
    re.DOTALL,
)

PemData = Union[str, bytes]


def _as_text(data: PemData) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode("ascii", errors="replace")
    return data


def _check_der(der: bytes) -> None:
    """Raise ssl.SSLError if der is not a parseable X.509 certificate."""
    scratch = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    scratch.load_verify_locations(cadata=der)


def iter_pem_certificates(data: PemData) -> Iterator[bytes]:
    """Yield the DER bytes of every parseable certificate block in data."""
    for block in _PEM_CERT_RE.findall(_as_text(data)):
        try:
            der = ssl.PEM_cert_to_DER_cert(block)
            _check_der(der)
        except (ValueError, ssl.SSLError) as e:
            logger.debug(f"{LOG_PREFIX} Skipping unparseable PEM block: {e}")
            continue
        yield der


def parse_certificate(cert: PemData) -> bytes:
    """Return the DER bytes of a single certificate given as DER or PEM."""
    if isinstance(cert, str) or b"-----BEGIN" in cert:
        ders = list(iter_pem_certificates(cert))
        if len(ders) != 1:
            raise CertificateError("expected exactly one PEM certificate")
        return ders[0]
    der = bytes(cert)
    try:
        _check_der(der)
    except (ValueError, ssl.SSLError) as e:
        raise CertificateError("failed to parse certificate", e)
    return der


class CertPool:
    """A set of trusted root certificates."""

    def __init__(self) -> None:
        self._certs: List[bytes] = []

    def __len__(self) -> int:
        return len(self._certs)

    def __contains__(self, der: bytes) -> bool:
        return der in self._certs

    def append_certs_from_pem(self, data: PemData) -> bool:
        """
        Add every certificate found in PEM data.
        Blocks that fail to parse are skipped. Returns True if at least one
        certificate was added.
        """
        added = False
        for der in iter_pem_certificates(data):
            self._add_der(der)
            added = True
        return added

    def add_cert(self, cert: PemData) -> None:
        """Add a single certificate given as DER bytes or PEM."""
        self._add_der(parse_certificate(cert))

    def _add_der(self, der: bytes) -> None:
        if der not in self._certs:
            self._certs.append(der)

    def to_cadata(self) -> str:
        return "".join(ssl.DER_cert_to_PEM_cert(der) for der in self._certs)


@dataclass(frozen=True)
class KeyPair:
    """A PEM certificate chain and its private key, for mutual TLS."""
    cert_pem: bytes
    key_pem: bytes

    @classmethod
    def from_pem(cls, cert_pem: PemData, key_pem: PemData) -> "KeyPair":
        """Build a key pair, checking that the certificate and key parse and match."""
        pair = cls(
            cert_pem=cert_pem.encode() if isinstance(cert_pem, str) else bytes(cert_pem),
            key_pem=key_pem.encode() if isinstance(key_pem, str) else bytes(key_pem),
        )
        try:
            pair.load_into(ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT))
        except ssl.SSLError as e:
            raise CertificateError("failed to load certificate/key pair", e)
        return pair

    def load_into(self, context: ssl.SSLContext) -> None:
        # load_cert_chain only reads from the filesystem
        with tempfile.TemporaryDirectory() as tmp:
            cert_path = os.path.join(tmp, "cert.pem")
            key_path = os.path.join(tmp, "key.pem")
            with open(cert_path, "wb") as f:
                f.write(self.cert_pem)
            with open(key_path, "wb") as f:
                f.write(self.key_pem)
            # encrypted keys fail instead of prompting on the terminal
            context.load_cert_chain(cert_path, key_path, password=lambda: b"")


@dataclass
class TLSConfig:
    """TLS settings applied to the transport."""
    insecure_skip_verify: bool = False
    root_cas: Optional[CertPool] = None
    certificates: List[KeyPair] = field(default_factory=list)

    def to_ssl_context(self) -> ssl.SSLContext:
        """
        Build the SSL context.
        A custom trust store replaces the system roots; an empty one trusts
        nothing.
        """
        if self.root_cas is None:
            context = ssl.create_default_context()
        else:
            context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
            if len(self.root_cas):
                context.load_verify_locations(cadata=self.root_cas.to_cadata())

        if self.insecure_skip_verify:
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE

        for pair in self.certificates:
            pair.load_into(context)
        return context


class TLSMixin:
    """
    TLS operations of RequestBuilder.
    Expects the host class to provide ``_transport_config``,
    ``_keep_origin_err`` and ``_invalidate_transport``.
    """

    def _ensure_tls_config(self) -> TLSConfig:
        if self._transport_config.tls is None:
            self._transport_config.tls = TLSConfig()
        return self._transport_config.tls

    def _ensure_cert_pool(self) -> CertPool:
        tls = self._ensure_tls_config()
        if tls.root_cas is None:
            tls.root_cas = CertPool()
        return tls.root_cas

    def tls_config(self, config: Optional[TLSConfig]):
        """Replace the TLS configuration wholesale."""
        self._transport_config.tls = config
        self._invalidate_transport()
        return self

    def insecure_skip_verify(self, skip: bool):
        self._ensure_tls_config().insecure_skip_verify = skip
        self._invalidate_transport()
        return self

    def add_ca_file(self, ca_file: Union[str, "os.PathLike[str]"]):
        try:
            with open(ca_file, "rb") as f:
                content = f.read()
        except OSError as e:
            self._keep_origin_err(e)
            return self
        return self.add_ca_content(content)

    def add_ca_content(self, ca_content: PemData):
        """Trust every certificate in PEM content. Unparseable blocks are ignored."""
        self._ensure_cert_pool().append_certs_from_pem(ca_content)
        self._invalidate_transport()
        return self

    def add_ca_cert(self, cert: PemData):
        try:
            der = parse_certificate(cert)
        except CertificateError as e:
            self._keep_origin_err(e)
            return self
        self._ensure_cert_pool()._add_der(der)
        self._invalidate_transport()
        return self

    def cert_pool(self, pool: Optional[CertPool]):
        """Replace the trust store wholesale. None restores the system roots."""
        self._ensure_tls_config().root_cas = pool
        self._invalidate_transport()
        return self

    def add_cert_file(self, cert_file: Union[str, "os.PathLike[str]"], key_file: Union[str, "os.PathLike[str]"]):
        try:
            with open(cert_file, "rb") as f:
                cert_content = f.read()
            with open(key_file, "rb") as f:
                key_content = f.read()
        except OSError as e:
            self._keep_origin_err(e)
            return self
        return self.add_cert_content(cert_content, key_content)

    def add_cert_content(self, cert_content: PemData, key_content: PemData):
        try:
            pair = KeyPair.from_pem(cert_content, key_content)
        except CertificateError as e:
            self._keep_origin_err(e)
            return self
        return self.add_cert(pair)

    def add_cert(self, pair: KeyPair):
        """Attach a client identity for mutual TLS."""
        self._ensure_tls_config().certificates.append(pair)
        self._invalidate_transport()
        return self
