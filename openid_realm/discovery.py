# Copyright (c) 2018 Yubico AB
# All rights reserved.
#
#   Redistribution and use in source and binary forms, with or
#   without modification, are permitted provided that the following
#   conditions are met:
#
#    1. Redistributions of source code must retain the above copyright
#       notice, this list of conditions and the following disclaimer.
#    2. Redistributions in binary form must reproduce the above
#       copyright notice, this list of conditions and the following
#       disclaimer in the documentation and/or other materials provided
#       with the distribution.
#
# THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS
# "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT
# LIMITED TO, THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS
# FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE
# COPYRIGHT HOLDER OR CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT,
# INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING,
# BUT NOT LIMITED TO, PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES;
# LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER
# CAUSED AND ON ANY THEORY OF LIABILITY, WHETHER IN CONTRACT, STRICT
# LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN
# ANY WAY OUT OF THE USE OF THIS SOFTWARE, EVEN IF ADVISED OF THE
# POSSIBILITY OF SUCH DAMAGE.

"""Relying party discovery.

A realm publishes the return_to endpoints it vouches for in an XRDS document,
located through the Yadis protocol. The realm verifier consumes discovery
through the :data:`RpDiscovery` call signature only, so any callable with that
signature can stand in for :class:`YadisRpDiscovery`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum, unique
from html.parser import HTMLParser
from threading import Event
from typing import Callable, Optional, Sequence
from urllib.parse import urljoin
from xml.etree import ElementTree

import httpx

__all__ = [
    "RP_RETURN_TO_TYPE",
    "RpEndpoint",
    "DiscoveryError",
    "RpDiscovery",
    "YadisRpDiscovery",
    "parse_xrds",
]

logger = logging.getLogger(__name__)


RP_RETURN_TO_TYPE = "http://specs.openid.net/auth/2.0/return_to"

XRDS_CONTENT_TYPE = "application/xrds+xml"
XRDS_LOCATION_HEADER = "X-XRDS-Location"
_HTML_CONTENT_TYPES = ("text/html", "application/xhtml+xml", "")

_XRDS_TAG = "{xri://$xrds}XRDS"
_XRD_NS = "{xri://$xrd*($v*2.0)}"

DEFAULT_TIMEOUT = 10.0
DEFAULT_MAX_SIZE = 1024 * 1024


@dataclass(frozen=True)
class RpEndpoint:
    """A return_to endpoint published by a relying party.

    :param url: The endpoint URL.
    :param priority: The priority of the service it was published in, if any.
    :param types: The service types of the service element.
    """

    url: str
    priority: Optional[int] = None
    types: Sequence[str] = field(default=(RP_RETURN_TO_TYPE,))


class DiscoveryError(Exception):
    """Raised when relying party discovery can't be completed."""

    @unique
    class ERR(IntEnum):
        """Error codes for DiscoveryError."""

        OTHER_ERROR = 1
        FETCH_FAILED = 2
        NO_DOCUMENT = 3
        BAD_DOCUMENT = 4
        TOO_LARGE = 5
        CANCELLED = 6

        def __call__(self, cause=None):
            return DiscoveryError(self, cause)

    def __init__(self, code, cause=None):
        self.code = DiscoveryError.ERR(code)
        self.cause = cause
        super().__init__(self.code, cause)

    def __str__(self):
        r = "Discovery error: {0} - {0.name}".format(self.code)
        if self.cause:
            r += f" (cause: {self.cause})"
        return r

    __repr__ = __str__


# Called as discovery(realm, timeout, event), raising DiscoveryError on failure.
RpDiscovery = Callable[[str, Optional[float], Optional[Event]], Sequence[RpEndpoint]]


def _priority(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        priority = int(value)
    except ValueError:
        return None
    return priority if priority >= 0 else None


def _by_priority(elements):
    # Elements without a priority go last, otherwise document order is kept
    return sorted(
        elements,
        key=lambda e: (
            _priority(e.get("priority")) is None,
            _priority(e.get("priority")) or 0,
        ),
    )


def parse_xrds(data: bytes) -> Sequence[RpEndpoint]:
    """Extracts return_to endpoints from an XRDS document.

    Only the final XRD element is considered. Services are ordered by priority,
    as are the URIs within each service.

    :param data: The XRDS document.
    :return: The published endpoints, in order of preference.
    """
    try:
        root = ElementTree.fromstring(data)
    except ElementTree.ParseError as e:
        raise DiscoveryError.ERR.BAD_DOCUMENT(e)

    if root.tag != _XRDS_TAG:
        raise DiscoveryError.ERR.BAD_DOCUMENT(f"Unexpected root element {root.tag}")
    xrds = root.findall(_XRD_NS + "XRD")
    if not xrds:
        raise DiscoveryError.ERR.BAD_DOCUMENT("No XRD element in XRDS document")

    endpoints = []
    for service in _by_priority(xrds[-1].findall(_XRD_NS + "Service")):
        types = tuple(
            (t.text or "").strip() for t in service.findall(_XRD_NS + "Type")
        )
        if RP_RETURN_TO_TYPE not in types:
            continue
        priority = _priority(service.get("priority"))
        for uri in _by_priority(service.findall(_XRD_NS + "URI")):
            url = (uri.text or "").strip()
            if url:
                endpoints.append(RpEndpoint(url, priority, types))
    return endpoints


class _XrdsLocationParser(HTMLParser):
    """Finds a <meta http-equiv="X-XRDS-Location"> element in an HTML page."""

    def __init__(self):
        super().__init__()
        self.location: Optional[str] = None

    def handle_starttag(self, tag, attrs):
        if tag != "meta" or self.location is not None:
            return
        values = {k.lower(): v for k, v in attrs if v is not None}
        if values.get("http-equiv", "").lower() == XRDS_LOCATION_HEADER.lower():
            self.location = values.get("content") or None


def _content_type(response: httpx.Response) -> str:
    return response.headers.get("content-type", "").split(";")[0].strip().lower()


class YadisRpDiscovery:
    """Relying party discovery using Yadis and XRDS.

    The realm is fetched with an Accept header asking for XRDS. If the response
    isn't XRDS, the document location is taken from the X-XRDS-Location header,
    or from the equivalent HTML meta element, and fetched in turn.

    :param client: (optional) The httpx.Client to use for requests.
    :param max_size: (optional) Largest accepted document, in bytes.
    """

    def __init__(
        self,
        client: Optional[httpx.Client] = None,
        max_size: int = DEFAULT_MAX_SIZE,
    ):
        self._client = client or httpx.Client(
            follow_redirects=True, timeout=DEFAULT_TIMEOUT
        )
        self.max_size = max_size

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, typ, value, traceback):
        self.close()

    def _fetch(
        self, url: str, timeout: Optional[float], event: Optional[Event]
    ) -> tuple[httpx.Response, bytes]:
        if event is not None and event.is_set():
            raise DiscoveryError.ERR.CANCELLED()

        kwargs = {"headers": {"Accept": f"{XRDS_CONTENT_TYPE}, text/html"}}
        if timeout is not None:
            kwargs["timeout"] = timeout

        logger.debug(f"Fetching Yadis document from: {url}")
        try:
            with self._client.stream("GET", url, follow_redirects=True, **kwargs) as r:
                r.raise_for_status()
                body = bytearray()
                for chunk in r.iter_bytes():
                    if event is not None and event.is_set():
                        raise DiscoveryError.ERR.CANCELLED()
                    body += chunk
                    if len(body) > self.max_size:
                        raise DiscoveryError.ERR.TOO_LARGE(
                            f"Document at {url} exceeds {self.max_size} bytes"
                        )
                return r, bytes(body)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            raise DiscoveryError.ERR.FETCH_FAILED(e)

    def _xrds_location(self, response: httpx.Response, body: bytes) -> Optional[str]:
        location = response.headers.get(XRDS_LOCATION_HEADER)
        if not location and _content_type(response) in _HTML_CONTENT_TYPES:
            try:
                text = body.decode(response.charset_encoding or "utf-8", "replace")
            except LookupError:
                text = body.decode("utf-8", "replace")
            parser = _XrdsLocationParser()
            parser.feed(text)
            parser.close()
            location = parser.location
        if not location:
            return None
        try:
            return urljoin(str(response.url), location.strip())
        except ValueError as e:
            raise DiscoveryError.ERR.BAD_DOCUMENT(e)

    def __call__(
        self,
        realm: str,
        timeout: Optional[float] = None,
        event: Optional[Event] = None,
    ) -> Sequence[RpEndpoint]:
        """Discovers the return_to endpoints published by a realm.

        :param realm: The realm URL, which must not contain a wildcard.
        :param timeout: (optional) Timeout in seconds for each request.
        :param event: (optional) Signal to abort discovery.
        :return: The published endpoints, in order of preference.
        """
        response, body = self._fetch(realm, timeout, event)

        if _content_type(response) != XRDS_CONTENT_TYPE:
            location = self._xrds_location(response, body)
            if location is None:
                raise DiscoveryError.ERR.NO_DOCUMENT(f"No XRDS location for {realm}")
            logger.debug(f"Following XRDS location: {location}")
            response, body = self._fetch(location, timeout, event)

        endpoints = parse_xrds(body)
        logger.debug(f"Discovered {len(endpoints)} RP endpoint(s) for: {realm}")
        return endpoints
