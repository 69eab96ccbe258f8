from __future__ import annotations

import asyncio

import pytest

from conftest import encode_readme
from repo_harvest.errors import UnsupportedEncodingError
from repo_harvest.readme import FOUND, MISSING, UNAVAILABLE, ReadmeFetcher, decode_content


def _fetch(make_gateway, full_name: str, branch: str | None):
    async def runner():
        gateway, client = make_gateway()
        async with client:
            return await ReadmeFetcher(gateway).fetch(full_name, branch)

    return asyncio.run(runner())


def test_fetch_decodes_base64_with_line_breaks(stub, make_gateway):
    text = "# Demo\n\nA longer README body that wraps across several base64 lines. " * 3
    stub.readmes["acme/demo"] = {"content": encode_readme(text), "encoding": "base64"}

    assert _fetch(make_gateway, "acme/demo", "main") == text
    assert stub.requests[0].url.path == "/repos/acme/demo/readme"
    assert stub.requests[0].url.params["ref"] == "main"


def test_fetch_rejects_unknown_encoding(stub, make_gateway):
    stub.readmes["acme/demo"] = {"content": "//4jAA==", "encoding": "utf-16"}

    with pytest.raises(UnsupportedEncodingError) as exc:
        _fetch(make_gateway, "acme/demo", "main")

    assert exc.value.encoding == "utf-16"


def test_fetch_returns_none_when_readme_missing(stub, make_gateway):
    assert _fetch(make_gateway, "acme/empty", "main") is None


@pytest.mark.parametrize(
    "payload",
    [
        {"encoding": "base64"},
        {"content": "IyBEZW1v"},
        {"type": "file"},
    ],
)
def test_fetch_returns_none_for_incomplete_payload(stub, make_gateway, payload):
    stub.readmes["acme/demo"] = payload

    assert _fetch(make_gateway, "acme/demo", "main") is None


def test_fetch_looks_up_default_branch_when_not_given(stub, make_gateway):
    stub.default_branches["acme/demo"] = "trunk"
    stub.readmes["acme/demo"] = {"content": encode_readme("hello"), "encoding": "base64"}

    assert _fetch(make_gateway, "acme/demo", None) == "hello"
    assert [request.url.path for request in stub.requests] == ["/repos/acme/demo", "/repos/acme/demo/readme"]
    assert stub.requests[1].url.params["ref"] == "trunk"


def test_fetch_without_branch_gives_none_when_repository_unknown(stub, make_gateway):
    assert _fetch(make_gateway, "acme/gone", None) is None
    assert len(stub.requests) == 1


def test_decode_content_treats_invalid_base64_as_absent():
    assert decode_content("not base64!!", "base64") is None


def _lookup(make_gateway, full_name: str, branch: str | None):
    async def runner():
        gateway, client = make_gateway()
        async with client:
            return await ReadmeFetcher(gateway).lookup(full_name, branch)

    return asyncio.run(runner())


def test_lookup_tells_missing_from_unavailable(stub, make_gateway):
    stub.readmes["acme/demo"] = {"content": encode_readme("hi"), "encoding": "base64"}
    stub.failing_readmes.add("acme/flaky")

    found = _lookup(make_gateway, "acme/demo", "main")
    assert (found.status, found.text) == (FOUND, "hi")
    assert _lookup(make_gateway, "acme/empty", "main").status == MISSING
    assert _lookup(make_gateway, "acme/flaky", "main").status == UNAVAILABLE
    assert _lookup(make_gateway, "acme/flaky", "main").text is None


def test_lookup_treats_incomplete_payload_as_missing(stub, make_gateway):
    stub.readmes["acme/demo"] = {"type": "file"}

    assert _lookup(make_gateway, "acme/demo", "main").status == MISSING


def test_fetch_rejects_empty_name(stub, make_gateway):
    with pytest.raises(ValueError):
        _fetch(make_gateway, "  ", "main")
