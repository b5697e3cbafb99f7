import sys
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

import pytest
from botocore.credentials import Credentials

from bedrock_llm.errors import ConfigurationError, DependencyMissingError, HttpStatusError
from bedrock_llm.model_adapters.bedrock_adapter import BedrockConfig, BedrockModel
from bedrock_llm.transport import SignedSender, build_session

URL = "https://bedrock.us-east-1.amazonaws.com/model/amazon.titan-tg1-large/invoke"
HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}


class RecordingSession:
    def __init__(self):
        self.calls = []

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append({"url": url, "data": data, "headers": headers, "timeout": timeout})
        return "response"


def make_sender(**kwargs):
    sender = SignedSender(region="us-east-1", session=RecordingSession(), **kwargs)
    # skip credential discovery
    sender._credentials = Credentials("AKIDEXAMPLE", "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY")
    return sender


def test_session_retries_post_with_backoff():
    session = build_session(max_retries=5, backoff_factor=1.0)
    retry = session.get_adapter("https://bedrock.us-east-1.amazonaws.com").max_retries
    assert retry.total == 5
    assert retry.backoff_factor == 1.0
    assert "POST" in retry.allowed_methods
    assert 503 in retry.status_forcelist
    assert 429 in retry.status_forcelist
    assert retry.raise_on_status is False


def test_sign_adds_sigv4_headers():
    sender = make_sender()
    signed = sender.sign(URL, b'{"inputText": "hi"}', HEADERS)
    auth = signed["Authorization"]
    assert auth.startswith("AWS4-HMAC-SHA256 Credential=AKIDEXAMPLE/")
    assert "/us-east-1/bedrock/aws4_request" in auth
    assert "X-Amz-Date" in signed
    assert signed["Content-Type"] == "application/json"


def test_send_posts_signed_bytes_with_timeout():
    sender = make_sender(timeout=12)
    assert sender.send(URL, '{"inputText": "héllo"}', HEADERS) == "response"

    sent = sender.session.calls[0]
    assert sent["url"] == URL
    assert sent["data"] == '{"inputText": "héllo"}'.encode("utf-8")
    assert sent["timeout"] == 12
    assert "Authorization" in sent["headers"]


def test_missing_credentials_is_configuration_error(monkeypatch):
    class NoCredentialsSession:
        def __init__(self, profile_name=None):
            self.profile_name = profile_name

        def get_credentials(self):
            return None

    monkeypatch.setattr("boto3.Session", NoCredentialsSession)
    sender = SignedSender(region="us-east-1", profile="missing", session=RecordingSession())
    with pytest.raises(ConfigurationError) as err:
        sender.send(URL, "{}", HEADERS)
    assert "missing" in str(err.value)
    assert sender.session.calls == []


def test_profile_is_passed_to_boto3(monkeypatch):
    seen = []

    class ProfileSession:
        def __init__(self, profile_name=None):
            seen.append(profile_name)

        def get_credentials(self):
            return Credentials("AKIDEXAMPLE", "secret")

    monkeypatch.setattr("boto3.Session", ProfileSession)
    sender = SignedSender(region="us-east-1", profile="research", session=RecordingSession())
    sender.send(URL, "{}", HEADERS)
    sender.send(URL, "{}", HEADERS)
    # credentials are resolved once and reused
    assert seen == ["research"]


def test_missing_signer_raises_dependency_error(monkeypatch):
    monkeypatch.setitem(sys.modules, "botocore.auth", None)
    sender = make_sender()
    with pytest.raises(DependencyMissingError) as err:
        sender.send(URL, "{}", HEADERS)
    assert "pip install boto3" in str(err.value)
    assert isinstance(err.value, ImportError)


class CountingServer:
    """Local HTTP server that answers every POST with a fixed status."""

    def __init__(self, status):
        self.hits = 0
        server = self

        class Handler(BaseHTTPRequestHandler):
            def do_POST(self):
                server.hits += 1
                self.rfile.read(int(self.headers.get("Content-Length", 0)))
                payload = b'{"message": "nope"}'
                self.send_response(status)
                self.send_header("Content-Type", "application/json")
                self.send_header("Content-Length", str(len(payload)))
                self.end_headers()
                self.wfile.write(payload)

            def log_message(self, *args):
                pass

        self.httpd = ThreadingHTTPServer(("127.0.0.1", 0), Handler)
        self.url = f"http://127.0.0.1:{self.httpd.server_address[1]}"
        self.thread = threading.Thread(target=self.httpd.serve_forever, daemon=True)

    def __enter__(self):
        self.thread.start()
        return self

    def __exit__(self, *exc):
        self.httpd.shutdown()
        self.httpd.server_close()


def model_for(server_url, max_retries):
    config = BedrockConfig(
        model_id="amazon.titan-tg1-large",
        region="us-east-1",
        endpoint_url=server_url,
        max_retries=max_retries,
        backoff_factor=0,
    )
    sender = SignedSender(region="us-east-1", max_retries=max_retries, backoff_factor=0, timeout=5)
    # talk to the local server directly even if a proxy is configured
    sender.session.trust_env = False
    sender._credentials = Credentials("AKIDEXAMPLE", "secret")
    return BedrockModel(config, sender=sender)


def test_server_errors_are_retried_then_reported():
    with CountingServer(503) as server:
        model = model_for(server.url, max_retries=2)
        with pytest.raises(HttpStatusError) as err:
            model.call("hello")
    assert err.value.status_code == 503
    # first attempt plus two retries
    assert server.hits == 3


def test_client_errors_are_not_retried():
    with CountingServer(403) as server:
        model = model_for(server.url, max_retries=2)
        with pytest.raises(HttpStatusError) as err:
            model.call("hello")
    assert err.value.status_code == 403
    assert server.hits == 1
