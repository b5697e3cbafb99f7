"""
Signed HTTP transport for Bedrock.

Requests are signed with AWS SigV4 through botocore and sent through a
requests session whose adapter retries transient failures with exponential
backoff. boto3/botocore are imported on first use so the rest of the package
works without them installed.
"""
import logging
from typing import Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .errors import ConfigurationError, DependencyMissingError

logger = logging.getLogger(__name__)

RETRY_STATUSES = (429, 500, 502, 503, 504)


def build_session(max_retries: int = 3, backoff_factor: float = 0.5) -> requests.Session:
    retry = Retry(
        total=max_retries,
        backoff_factor=backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset(["POST"]),
        # hand the last response back so the caller can report it
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)
    session = requests.Session()
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _import_signer():
    try:
        import boto3
        from botocore.auth import SigV4Auth
        from botocore.awsrequest import AWSRequest
    except ImportError as exc:
        raise DependencyMissingError(
            "Signing Bedrock requests requires boto3. Install it with `pip install boto3`."
        ) from exc
    return boto3, SigV4Auth, AWSRequest


class SignedSender:
    """
    Sends SigV4-signed POST requests.

    Credentials come from ``profile`` when given, otherwise from the default
    boto3 chain (environment, shared config, instance metadata). They are
    resolved on the first call and reused afterwards.
    """

    def __init__(
        self,
        region: str,
        profile: Optional[str] = None,
        service: str = "bedrock",
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        timeout: float = 60,
        session: Optional[requests.Session] = None,
    ):
        self.region = region
        self.profile = profile
        self.service = service
        self.timeout = timeout
        self.session = session or build_session(max_retries, backoff_factor)
        self._credentials = None

    def _resolve_credentials(self, boto3):
        if self._credentials is None:
            creds = boto3.Session(profile_name=self.profile).get_credentials()
            if creds is None:
                raise ConfigurationError(
                    "No AWS credentials found for Bedrock "
                    f"(profile={self.profile or 'default chain'})"
                )
            self._credentials = creds
        return self._credentials

    def sign(self, url: str, body: bytes, headers: Dict[str, str]) -> Dict[str, str]:
        """Return ``headers`` augmented with the SigV4 authentication headers."""
        boto3, SigV4Auth, AWSRequest = _import_signer()
        creds = self._resolve_credentials(boto3)
        request = AWSRequest(method="POST", url=url, data=body, headers=dict(headers))
        SigV4Auth(creds.get_frozen_credentials(), self.service, self.region).add_auth(request)
        return dict(request.headers.items())

    def send(self, url: str, body: str, headers: Dict[str, str]) -> requests.Response:
        data = body.encode("utf-8")
        signed = self.sign(url, data, headers)
        logger.debug("POST %s (%d bytes)", url, len(data))
        return self.session.post(url, data=data, headers=signed, timeout=self.timeout)
