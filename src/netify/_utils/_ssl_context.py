import os
import ssl
from typing import Any, Optional

import certifi
import truststore

CA_BUNDLE_ENV_VARS = ("SSL_CERT_FILE", "REQUESTS_CA_BUNDLE")
CA_DIR_ENV_VAR = "SSL_CERT_DIR"


def expand_path(path: Optional[str]) -> Optional[str]:
    """Expand environment variables and the user home directory in ``path``."""
    if not path:
        return path
    return os.path.expanduser(os.path.expandvars(path))


def create_ssl_context() -> ssl.SSLContext:
    """TLS context for outgoing requests.

    An explicit CA bundle (``SSL_CERT_FILE``, ``REQUESTS_CA_BUNDLE`` or
    ``SSL_CERT_DIR``) is used as the only trust source, with certifi's bundle
    filling in when only a directory is given. Otherwise the operating
    system's trust store is used through truststore.
    """
    ca_file = next(
        (
            expanded
            for name in CA_BUNDLE_ENV_VARS
            if (expanded := expand_path(os.environ.get(name)))
        ),
        None,
    )
    ca_dir = expand_path(os.environ.get(CA_DIR_ENV_VAR))

    if ca_file or ca_dir:
        return ssl.create_default_context(
            cafile=ca_file or certifi.where(), capath=ca_dir
        )
    return truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)


def get_httpx_client_kwargs() -> dict[str, Any]:
    """Keyword arguments shared by every httpx client netify creates.

    Timeouts are applied per request, so none is configured here.
    """
    return {
        "verify": create_ssl_context(),
        "follow_redirects": True,
        "trust_env": True,
    }
