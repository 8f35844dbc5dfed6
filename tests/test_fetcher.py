import asyncio

import httpx

from conftest import make_fetcher


def run(coro):
    return asyncio.run(coro)


def test_get_reads_body_and_metadata():
    def handler(request):
        assert request.method == "GET"
        return httpx.Response(
            200,
            content=b"<html><title>t</title></html>",
            headers=[("Content-Type", "text/html; charset=utf-8"), ("X-Trace", "1"), ("X-Trace", "2")],
        )

    result = run(make_fetcher(handler).fetch("http://example.com/"))

    assert result.success
    assert result.status_code == 200
    assert result.content == b"<html><title>t</title></html>"
    assert result.content_length == len(result.content)
    assert result.is_html
    assert ("x-trace", "1") in result.headers and ("x-trace", "2") in result.headers
    assert result.duration_ms >= 0


def test_head_has_no_body():
    def handler(request):
        assert request.method == "HEAD"
        return httpx.Response(200, headers={"Content-Type": "application/pdf", "Content-Length": "2048"})

    result = run(make_fetcher(handler).fetch("http://example.com/doc.pdf", "head"))

    assert result.success
    assert result.method == "HEAD"
    assert result.content == b""
    assert result.content_length == 2048
    assert not result.is_html


def test_error_status_is_still_a_response():
    result = run(make_fetcher(lambda request: httpx.Response(404, content=b"gone")).fetch("http://example.com/x"))

    assert result.success
    assert result.status_code == 404
    assert result.content == b"gone"


def test_follows_redirects():
    def handler(request):
        if request.url.path == "/old":
            return httpx.Response(301, headers={"Location": "http://example.com/new"})
        return httpx.Response(200, content=b"moved")

    result = run(make_fetcher(handler).fetch("http://example.com/old"))

    assert result.status_code == 200
    assert result.final_url == "http://example.com/new"
    assert result.url == "http://example.com/old"


def test_connection_error_is_reported_not_raised():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = run(make_fetcher(handler).fetch("http://down.example.com/"))

    assert not result.success
    assert result.status_code == -1
    assert "ConnectError" in result.error


def test_timeout_aborts_request():
    async def handler(request):
        await asyncio.sleep(5)
        return httpx.Response(200)

    result = run(make_fetcher(handler, timeout=0.05).fetch("http://slow.example.com/"))

    assert not result.success
    assert result.status_code == -1
    assert result.error.startswith("Timeout")


def test_oversized_body_is_rejected():
    def handler(request):
        return httpx.Response(200, content=b"x" * 100)

    result = run(make_fetcher(handler, max_response_size=10).fetch("http://big.example.com/"))

    assert not result.success
    assert "too large" in result.error
