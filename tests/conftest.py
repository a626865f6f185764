import pytest


HEADER = (
    "timestamp,client_ip,http_method,request_uri,user_agent,http_status,http_version,"
    "received_bytes,sent_bytes,client_response_time,ssl_protocol,original_request_uri_with_args"
)


def _make_line(
    status="200",
    ip="1.1.1.1",
    path="/a",
    method="GET",
    timestamp="2024-01-15T10:30:45Z",
    user_agent="Mozilla/5.0",
    http_version="HTTP/1.1",
    received="512",
    sent="1024",
    response_time="0.123",
    ssl_protocol="TLSv1.2",
    uri_with_args=None,
) -> str:
    fields = [
        timestamp, ip, method, path, user_agent, str(status), http_version,
        str(received), str(sent), str(response_time), ssl_protocol,
        uri_with_args if uri_with_args is not None else path,
    ]
    return ",".join(fields)


@pytest.fixture
def csv_header() -> str:
    """Header line of an access-log export."""
    return HEADER


@pytest.fixture
def make_line():
    """Factory building one valid 12-field data line; keyword arguments override fields."""
    return _make_line


@pytest.fixture
def make_csv():
    """Factory building a CSV payload (bytes) from data lines, header included."""
    def _build(*lines: str, header: str = HEADER, newline: str = "\n") -> bytes:
        return newline.join([header, *lines]).encode("utf-8")
    return _build


@pytest.fixture(autouse=True)
def isolated_config_env(monkeypatch, tmp_path):
    """Keep local config files and AccessLens env vars out of the tests."""
    import os
    for name in list(os.environ):
        if name.startswith("ACCESSLENS_") or name == "IPINFO_TOKEN":
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)
