import logging
import os
import ssl
import tempfile

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from .errors import CertFileMissingError, CertLoadError, KeystoreWrongPasswordError

logger = logging.getLogger(__name__)


def load_pkcs12(key_file: str, password: str):
    """
    Read a PKCS#12 bundle and return ``(key_pem, chain_pem)``.

    The file is read once and closed; nothing else keeps a handle on it.
    """
    try:
        with open(key_file, 'rb') as f:
            data = f.read()
    except FileNotFoundError:
        raise CertFileMissingError("Key file not found: {}".format(key_file))
    except OSError as exc:
        raise CertLoadError("Cannot read key file {}: {}".format(key_file, exc))

    secret = password.encode('utf-8') if password else None
    try:
        key, cert, additional = pkcs12.load_key_and_certificates(data, secret)
    except ValueError as exc:
        raise KeystoreWrongPasswordError(
            "Cannot open {}: {}".format(key_file, exc))
    if key is None or cert is None:
        raise CertLoadError(
            "{} does not contain a private key and certificate".format(key_file))

    key_pem = key.private_bytes(serialization.Encoding.PEM,
                                serialization.PrivateFormat.PKCS8,
                                serialization.NoEncryption())
    chain_pem = cert.public_bytes(serialization.Encoding.PEM)
    for extra in additional or ():
        chain_pem += extra.public_bytes(serialization.Encoding.PEM)
    logger.debug("Loaded certificate %s", cert.subject.rfc4514_string())
    return key_pem, chain_pem


def load_ssl_context(key_file: str, password: str, *,
                     verify: bool = True) -> ssl.SSLContext:
    """
    Build a client TLS context authenticated with the PKCS#12 bundle.

    ``ssl`` can only load key material from files, so the PEM form lives in
    a private temporary directory just long enough to be loaded.
    """
    key_pem, chain_pem = load_pkcs12(key_file, password)
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    with tempfile.TemporaryDirectory() as tmp:
        cert_path = os.path.join(tmp, 'cert.pem')
        key_path = os.path.join(tmp, 'key.pem')
        with open(cert_path, 'wb') as f:
            f.write(chain_pem)
        with open(key_path, 'wb') as f:
            f.write(key_pem)
        try:
            context.load_cert_chain(cert_path, key_path)
        except ssl.SSLError as exc:
            raise CertLoadError("Problem loading certificate: {}".format(exc))
    return context


__all__ = ["load_pkcs12", "load_ssl_context"]
