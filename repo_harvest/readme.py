"""README retrieval through the repository contents API."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Protocol

from .errors import UnsupportedEncodingError
from .github_client import ApiResponse

LOGGER = logging.getLogger(__name__)

FOUND = "found"
MISSING = "missing"
UNAVAILABLE = "unavailable"


class ContentGateway(Protocol):
    async def get_response(self, path: str, params: dict[str, str] | None = None) -> ApiResponse: ...


@dataclass(slots=True, frozen=True)
class ReadmeLookup:
    """Outcome of one README lookup.

    ``missing`` means GitHub confirmed there is no usable README; ``unavailable``
    means the call failed and the lookup is worth repeating later.
    """

    status: str
    text: str | None = None


class ReadmeFetcher:
    def __init__(self, gateway: ContentGateway) -> None:
        self._gateway = gateway

    async def fetch(self, full_name: str, branch: str | None = None) -> str | None:
        """Return the decoded README of ``full_name`` at ``branch``, or ``None``."""

        return (await self.lookup(full_name, branch)).text

    async def lookup(self, full_name: str, branch: str | None = None) -> ReadmeLookup:
        """Look up the README of ``full_name`` at ``branch``.

        Without a branch the repository's default branch is looked up first.
        A 404, an incomplete payload or undecodable content is ``missing``; any
        other failed call is ``unavailable``. An encoding other than base64
        raises :class:`UnsupportedEncodingError`.
        """

        if not full_name or not full_name.strip():
            raise ValueError("full_name must not be empty")

        if not branch:
            response = await self._gateway.get_response(f"repos/{full_name}")
            if response.payload is None:
                return _failed(response)
            branch = response.payload.get("default_branch")
            if not branch:
                return ReadmeLookup(MISSING)

        response = await self._gateway.get_response(f"repos/{full_name}/readme", params={"ref": str(branch)})
        if response.payload is None:
            return _failed(response)

        content = response.payload.get("content")
        encoding = response.payload.get("encoding")
        if content is None or encoding is None:
            LOGGER.debug("README payload for %s lacks content or encoding", full_name)
            return ReadmeLookup(MISSING)
        text = decode_content(str(content), str(encoding), source=full_name)
        if text is None:
            return ReadmeLookup(MISSING)
        return ReadmeLookup(FOUND, text)


def _failed(response: ApiResponse) -> ReadmeLookup:
    # a 2xx without a JSON object body is a malformed answer, not an outage
    if response.status_code == 404 or response.is_success:
        return ReadmeLookup(MISSING)
    return ReadmeLookup(UNAVAILABLE)


def decode_content(content: str, encoding: str, *, source: str = "") -> str | None:
    if encoding != "base64":
        raise UnsupportedEncodingError(encoding)
    cleaned = content.replace("\n", "").replace("\r", "")
    try:
        data = base64.b64decode(cleaned, validate=True)
    except (binascii.Error, ValueError):
        LOGGER.warning("README of %s is not valid base64", source or "<unknown>")
        return None
    return data.decode("utf-8", errors="replace")


__all__ = ["ReadmeFetcher", "ReadmeLookup", "decode_content", "FOUND", "MISSING", "UNAVAILABLE"]
