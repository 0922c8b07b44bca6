"""SSL/TLS context construction for the secure terminal attempt, using stdlib ssl."""

import logging
import ssl
from typing import Optional

from ..exceptions import IrisTermError

logger = logging.getLogger(__name__)


class SSLError(IrisTermError):
    """Error during SSL context setup."""

    pass


class SSLWrapper:
    """Builds the client SSLContext handed to ``asyncio.open_connection``.

    Terminal hosts are internal machines that usually present self-signed
    certificates, so the negotiator creates this wrapper with
    ``verify=False``.
    """

    def __init__(
        self,
        verify: bool = True,
        cafile: Optional[str] = None,
        capath: Optional[str] = None,
        minimum_version: ssl.TLSVersion = ssl.TLSVersion.TLSv1_2,
    ):
        """
        Initialize the SSLWrapper.

        :param verify: Whether to verify the server's certificate and hostname.
        :param cafile: Path to CA certificate file.
        :param capath: Path to CA certificates directory.
        :param minimum_version: Lowest TLS version offered to the server.
        """
        self.verify = verify
        self.cafile = cafile
        self.capath = capath
        self.minimum_version = minimum_version
        self.context: Optional[ssl.SSLContext] = None

    def create_context(self) -> ssl.SSLContext:
        """
        Create an SSLContext for the secure attempt.

        - Built with ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        - verify=True: check_hostname=True and verify_mode=CERT_REQUIRED
        - verify=False: check_hostname=False and verify_mode=CERT_NONE
        - Cipher suite "HIGH:!aNULL:!MD5"

        :return: Configured SSLContext.
        :raises SSLError: If context creation fails.
        """
        try:
            ctx = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)

            if self.verify:
                ctx.check_hostname = True
                ctx.verify_mode = ssl.CERT_REQUIRED
                try:
                    if self.cafile:
                        ctx.load_verify_locations(cafile=self.cafile)
                    if self.capath:
                        ctx.load_verify_locations(capath=self.capath)
                    if not self.cafile and not self.capath:
                        ctx.load_default_certs()
                except (OSError, ssl.SSLError) as e:  # pragma: no cover - environment dependent
                    logger.warning(f"Failed to load CA locations: {e}")
            else:
                # check_hostname must be cleared before verify_mode can drop to CERT_NONE
                ctx.check_hostname = False
                ctx.verify_mode = ssl.CERT_NONE
                logger.warning(
                    "SSL certificate verification is DISABLED (verify=False); "
                    "the server certificate will be accepted as-is."
                )

            ctx.minimum_version = self.minimum_version

            try:
                ctx.set_ciphers("HIGH:!aNULL:!MD5")
            except ssl.SSLError as e:  # pragma: no cover - depends on OpenSSL build
                logger.debug(f"Cipher configuration failed, using defaults: {e}")

            self.context = ctx
            logger.debug("SSLContext created successfully")
            return ctx

        except ssl.SSLError as e:
            logger.error(f"SSL context creation failed: {e}")
            raise SSLError(
                f"SSL context creation failed: {e}", original_exception=e
            ) from e

    def get_context(self) -> ssl.SSLContext:
        """Get the SSLContext (create if not exists)."""
        if self.context is None:
            self.create_context()
        assert self.context is not None, "Context should be created by create_context"
        return self.context
