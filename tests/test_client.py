import time
import urllib.parse
from urllib.parse import SplitResult

import pytest

import gmi
from gmi import client, error
from gmi.client import Client, normalize_url, parse_header, resolve
from gmi.status import Status
from gmi.test import GeminiServer, response

SUCCESS_BODY = """# This is a top-level heading
Followed by some body text
* Bullet 1
* Bullet 2
"""


def slow(url: str) -> bytes:
    time.sleep(1)
    return response(20, "text/gemini", "too late")


def dribble(url: str):
    yield response(20, "text/gemini")
    for _ in range(4):
        time.sleep(0.15)
        yield b"chunk\n"


@pytest.fixture(scope="module")
def server():
    routes = {
        "/success": response(20, "text/gemini", SUCCESS_BODY),
        "/charset": response(20, "text/gemini; charset=iso-8859-1", "caf\xe9".encode("latin-1")),
        "/bogus-charset": response(20, "text/gemini; charset=bogus-enc", "hi"),
        "/binary": response(20, "image/png", b"\x89PNG"),
        "/empty": response(20, "text/gemini"),
        "/input": response(10, "Please enter a value"),
        "/sensitive-input": response(11, "Password"),
        "/redirect-relative": response(31, "/redirected-permanently-to-this"),
        "/redirected-temporarily-to-this": response(
            20, "text/gemini", "# Should have been temporarily redirected here\n"
        ),
        "/redirected-permanently-to-this": response(
            20, "text/gemini", "# Should have been permanently redirected here\n"
        ),
        "/dir/redirect-dot-segments": response(31, "../redirected-permanently-to-this"),
        "/redirect-other-scheme": response(30, "https://example.org/"),
        "/loop": response(30, "/loop"),
        "/bad-request": response(59, "bad request"),
        "/failure-temporary": response(40, "temporary failure"),
        "/server-unavailable": response(41, "maintenance"),
        "/slow-down": response(44, "10"),
        "/failure-permanent": response(50, "permanent failure"),
        "/not-found": response(51, "not found"),
        "/gone": response(52, "gone"),
        "/cert-required": response(60, "need a cert"),
        "/cert-not-authorised": response(61, "not yours"),
        "/cert-not-valid": response(62, "expired"),
        "/unknown-status": response(27, "odd"),
        "/invalid-header": b"invalid header\r\n",
        "/no-header": b"",
        "/no-newline": b"20 text/gemini",
        "/long-header": b"20 " + b"x" * 2000 + b"\r\n",
        "/slow": slow,
        "/dribble": dribble,
    }
    with GeminiServer(routes) as s:
        s.route(
            "/redirect-temporary",
            response(30, s.url_for("/redirected-temporarily-to-this")),
        )
        yield s


@pytest.fixture
def requests(server):
    del server.requests[:]
    return server.requests


@pytest.fixture
def gemini(server):
    return Client(client.timeout(5), client.verify(cafile=server.certfile))


def test_parse_header():
    assert parse_header("20 text/gemini") == (20, "text/gemini")
    assert parse_header("20 text/gemini\r\n") == (20, "text/gemini")
    assert parse_header("51 not found \n") == (51, "not found")
    assert parse_header("31 gemini://a/ b\r\n") == (31, "gemini://a/ b")
    assert parse_header("20") == (20, "")
    assert parse_header("20\r\n") == (20, "")


@pytest.mark.parametrize("header", ["invalid header", "", "x20 text/gemini", "2O ok", "-1 x"])
def test_parse_header_error(header):
    with pytest.raises(error.HeaderParseError) as mc:
        parse_header(header)
    assert "could not extract response status code" in str(mc.value)
    assert f"'{header.split(' ')[0]}'" in str(mc.value)


def test_normalize_url():
    assert normalize_url("gemini://some.url/page").geturl() == "gemini://some.url/page"
    assert normalize_url("some.url/page").geturl() == "gemini://some.url/page"
    assert normalize_url("some.url:1966").port == 1966
    assert isinstance(normalize_url("GEMINI://some.url"), SplitResult)


@pytest.mark.parametrize(
    "url", ["-gemini://", "gemini://", "gemini:///path", "some.url:port/", "1x://a/"]
)
def test_normalize_url_invalid(url):
    with pytest.raises(error.URLParseError) as mc:
        normalize_url(url)
    assert "error parsing supplied URL" in str(mc.value)


@pytest.mark.parametrize(
    "url", ["http://localhost/", "https://example.org/", "gopher://example.org/"]
)
def test_normalize_url_unsupported_scheme(url):
    with pytest.raises(error.UnsupportedSchemeError) as mc:
        normalize_url(url)
    assert "unsupported URL scheme" in str(mc.value)


def test_normalize_url_too_long():
    with pytest.raises(error.URLParseError):
        normalize_url("gemini://some.url/" + "a" * 1024)


class RecordingDialer:
    def __init__(self):
        self.urls = []

    def connect(self, url):
        self.urls.append(url)
        raise error.ConnectError("no network in this test", url=url.geturl())


@pytest.mark.parametrize(
    "url", ["http://localhost/", "ftp://localhost/", "-gemini://", "gemini://"]
)
def test_get_rejects_before_connecting(url):
    dialer = RecordingDialer()
    c = Client(client.dialer(dialer))
    with pytest.raises((error.UnsupportedSchemeError, error.URLParseError)):
        c.get(url)
    assert dialer.urls == []


def test_get_without_scheme_uses_gemini():
    dialer = RecordingDialer()
    c = Client(client.dialer(dialer))
    with pytest.raises(error.ConnectError):
        c.get("some.url/page")
    with pytest.raises(error.ConnectError):
        c.get("gemini://some.url/page")
    assert [u.geturl() for u in dialer.urls] == [
        "gemini://some.url/page",
        "gemini://some.url/page",
    ]


def test_success(gemini, server, requests):
    resp = gemini.get(server.url_for("/success"))
    assert resp.status is Status.SUCCESS
    assert resp.meta == "text/gemini"
    assert resp.body == SUCCESS_BODY.encode()
    assert resp.content_length == len(SUCCESS_BODY.encode())
    assert resp.text == SUCCESS_BODY
    assert resp.url == server.url_for("/success")
    assert resp.redirects == ()
    assert resp.duration.total_seconds() >= 0
    assert requests == [server.url_for("/success")]


def test_success_no_scheme(gemini, server, requests):
    resp = gemini.get(f"{server.address}/success")
    assert resp.status is Status.SUCCESS
    assert resp.body == SUCCESS_BODY.encode()
    assert requests == [server.url_for("/success")]


def test_success_is_repeatable(gemini, server):
    first = gemini.get(server.url_for("/success"))
    second = gemini.get(server.url_for("/success"))
    assert first.body == second.body
    assert first.status == second.status


def test_success_empty_body(gemini, server):
    resp = gemini.get(server.url_for("/empty"))
    assert resp.body == b""
    assert resp.content_length == 0


def test_success_charset(gemini, server):
    resp = gemini.get(server.url_for("/charset"))
    assert resp.mime_type == "text/gemini"
    assert resp.charset == "iso-8859-1"
    assert resp.text == "caf\xe9"


def test_unknown_charset_defaults_to_utf8(gemini, server):
    resp = gemini.get(server.url_for("/bogus-charset"))
    assert resp.meta == "text/gemini; charset=bogus-enc"
    assert resp.charset == "utf-8"
    assert resp.text == "hi"


def test_unsupported_mime_type(gemini, server):
    with pytest.raises(error.UnsupportedMIMETypeError) as mc:
        gemini.get(server.url_for("/binary"))
    assert "unsupported MIME type 'image/png'" in str(mc.value)
    assert mc.value.meta == "image/png"


@pytest.mark.parametrize("path", ["/input", "/sensitive-input"])
def test_input_is_unsupported(gemini, server, path):
    with pytest.raises(error.UnsupportedFeatureError) as mc:
        gemini.get(server.url_for(path))
    assert "unsupported feature" in str(mc.value)


def test_temporary_redirect(gemini, server, requests):
    resp = gemini.get(server.url_for("/redirect-temporary"))
    assert resp.status is Status.SUCCESS
    assert resp.body == b"# Should have been temporarily redirected here\n"
    assert resp.url == server.url_for("/redirected-temporarily-to-this")
    assert resp.redirects == (server.url_for("/redirect-temporary"),)
    assert requests == [
        server.url_for("/redirect-temporary"),
        server.url_for("/redirected-temporarily-to-this"),
    ]


def test_relative_redirect(gemini, server, requests):
    resp = gemini.get(server.url_for("/redirect-relative"))
    assert resp.body == b"# Should have been permanently redirected here\n"
    assert len(requests) == 2


def test_redirect_dot_segments(gemini, server, requests):
    resp = gemini.get(server.url_for("/dir/redirect-dot-segments"))
    assert resp.url == server.url_for("/redirected-permanently-to-this")
    assert resp.body == b"# Should have been permanently redirected here\n"


@pytest.mark.parametrize(
    "reference,expected",
    [
        ("g", "gemini://a/b/c/g"),
        ("./g", "gemini://a/b/c/g"),
        ("g/", "gemini://a/b/c/g/"),
        ("/g", "gemini://a/g"),
        ("//g", "gemini://g"),
        ("?y", "gemini://a/b/c/d;p?y"),
        ("g?y", "gemini://a/b/c/g?y"),
        ("#s", "gemini://a/b/c/d;p?q#s"),
        ("", "gemini://a/b/c/d;p?q"),
        (".", "gemini://a/b/c/"),
        ("..", "gemini://a/b/"),
        ("../g", "gemini://a/b/g"),
        ("../../../../g", "gemini://a/g"),
        ("/./g", "gemini://a/g"),
        ("gemini://other.host/x/../y", "gemini://other.host/y"),
        ("https://example.org/", "https://example.org/"),
    ],
)
def test_resolve(reference, expected):
    assert resolve("gemini://a/b/c/d;p?q", reference) == expected


def test_resolve_against_empty_path():
    assert resolve("gemini://a", "g") == "gemini://a/g"


def test_stdlib_url_schemes_are_untouched():
    assert client.SCHEME not in urllib.parse.uses_relative
    assert client.SCHEME not in urllib.parse.uses_netloc


def test_redirect_to_other_scheme(gemini, server, requests):
    with pytest.raises(error.UnsupportedSchemeError):
        gemini.get(server.url_for("/redirect-other-scheme"))
    assert len(requests) == 1


def test_redirect_loop(gemini, server, requests):
    with pytest.raises(error.RedirectLoopError) as mc:
        gemini.get(server.url_for("/loop"))
    assert len(requests) == 6
    assert mc.value.redirects == tuple([server.url_for("/loop")] * 6)


def test_redirect_limit(server, requests):
    c = Client(client.insecure(), client.max_redirects(0))
    with pytest.raises(error.RedirectLoopError):
        c.get(server.url_for("/redirect-temporary"))
    assert len(requests) == 1


def test_bad_request(gemini, server):
    with pytest.raises(error.BadRequestError) as mc:
        gemini.get(server.url_for("/bad-request"))
    assert mc.value.meta == "bad request"


@pytest.mark.parametrize(
    "path,status,cls",
    [
        ("/failure-temporary", 40, error.TemporaryFailureError),
        ("/server-unavailable", 41, error.TemporaryFailureError),
        ("/slow-down", 44, error.TemporaryFailureError),
        ("/failure-permanent", 50, error.PermanentFailureError),
        ("/not-found", 51, error.PermanentFailureError),
        ("/gone", 52, error.PermanentFailureError),
        ("/no-such-route", 51, error.PermanentFailureError),
    ],
)
def test_server_errors(gemini, server, path, status, cls):
    with pytest.raises(error.ServerError) as mc:
        gemini.get(server.url_for(path))
    assert type(mc.value) is cls
    assert mc.value.status == status
    assert mc.value.url == server.url_for(path)


def test_not_found_detail(gemini, server):
    with pytest.raises(error.ServerError, match="not found"):
        gemini.get(server.url_for("/not-found"))


def test_cert_required(gemini, server):
    with pytest.raises(error.CertificateRequiredError) as mc:
        gemini.get(server.url_for("/cert-required"))
    assert "resource requires a client certificate" in str(mc.value)
    assert mc.value.meta == "need a cert"


class FakeStream:
    def __init__(self, *chunks):
        self.chunks = list(chunks)
        self.sent = []
        self.timeouts = []
        self.reads = 0
        self.closed = False

    def sendall(self, data):
        self.sent.append(data)

    def recv(self, bufsize):
        self.reads += 1
        return self.chunks.pop(0) if self.chunks else b""

    def settimeout(self, value):
        self.timeouts.append(value)

    def close(self):
        self.closed = True


class StreamDialer:
    def __init__(self, stream):
        self.stream = stream

    def connect(self, url):
        return self.stream


def test_cert_required_does_not_read_body():
    stream = FakeStream(b"60 need a cert\r\n", b"this body must not be read")
    c = Client(client.dialer(StreamDialer(stream)))
    with pytest.raises(error.CertificateRequiredError) as mc:
        c.get("gemini://some.url/private")
    assert mc.value.meta == "need a cert"
    assert stream.sent == [b"gemini://some.url/private\r\n"]
    assert stream.reads == 1
    assert stream.chunks == [b"this body must not be read"]
    assert stream.closed


def test_read_timeout_applies_to_custom_dialer():
    stream = FakeStream(b"20 text/gemini\r\n", b"hello")
    c = Client(client.dialer(StreamDialer(stream)), client.read_timeout(3))
    resp = c.get("gemini://some.url/")
    assert resp.body == b"hello"
    # send, header, body, end of stream
    assert stream.timeouts == [3, 3, 3, 3]


def test_no_timeout_with_custom_dialer():
    stream = FakeStream(b"20 text/gemini\r\n", b"hello")
    resp = Client(client.dialer(StreamDialer(stream))).get("gemini://some.url/")
    assert resp.body == b"hello"
    assert stream.timeouts == []


@pytest.mark.parametrize("path", ["/cert-not-authorised", "/cert-not-valid"])
def test_certificate_errors(gemini, server, path):
    with pytest.raises(error.CertificateError, match="certificate problem"):
        gemini.get(server.url_for(path))


def test_unknown_status(gemini, server):
    with pytest.raises(error.UnknownStatusError) as mc:
        gemini.get(server.url_for("/unknown-status"))
    assert mc.value.status == 27


def test_invalid_header(gemini, server):
    with pytest.raises(error.HeaderParseError) as mc:
        gemini.get(server.url_for("/invalid-header"))
    assert "'invalid'" in str(mc.value)
    assert mc.value.url == server.url_for("/invalid-header")


@pytest.mark.parametrize("path", ["/no-header", "/no-newline", "/long-header"])
def test_header_read_errors(gemini, server, path):
    with pytest.raises(error.HeaderReadError, match="could not read response header"):
        gemini.get(server.url_for(path))


def test_deadline(gemini, server):
    with pytest.raises(error.TimeoutError):
        gemini.get(server.url_for("/slow"), timeout=0.2)


def test_read_timeout(server):
    c = Client(client.insecure(), client.read_timeout(0.2))
    with pytest.raises(TimeoutError):
        c.get(server.url_for("/slow"))


def test_read_timeout_applies_to_each_read(server):
    c = Client(client.insecure(), client.read_timeout(0.5))
    resp = c.get(server.url_for("/dribble"))
    assert resp.body == b"chunk\n" * 4


def test_verify_rejects_untrusted_server(server):
    c = Client(client.timeout(5))
    with pytest.raises(error.ConnectError) as mc:
        c.get(server.url_for("/success"))
    assert "failed to connect to" in str(mc.value)


def test_default_client(server):
    assert gmi.default_client() is gmi.default_client()
    assert gmi.default_client().config.connect_timeout == 9
    resp = gmi.get(server.url_for("/success"))
    assert resp.body == SUCCESS_BODY.encode()


def test_options_are_validated():
    with pytest.raises(ValueError):
        client.timeout(0)
    with pytest.raises(ValueError):
        client.read_timeout(-1)
    with pytest.raises(ValueError):
        client.max_redirects(-1)


def test_config_is_immutable():
    c = Client(client.timeout(3), client.max_redirects(2))
    assert c.config.connect_timeout == 3
    assert c.config.max_redirects == 2
    with pytest.raises(AttributeError):
        c.config.max_redirects = 10  # type: ignore[misc]
