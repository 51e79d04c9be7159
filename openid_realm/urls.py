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

"""URL parsing helpers shared by the realm matcher and discovery.

Parsing never raises: a URL that can't be used for realm matching yields None.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

__all__ = ["ParsedUrl", "parse_url", "default_port", "WILDCARD_PREFIX"]


WILDCARD_PREFIX = "*."

DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
    "ftp": 21,
}


def default_port(scheme: str) -> int | None:
    """Returns the conventional port for a URL scheme, if known."""
    return DEFAULT_PORTS.get(scheme.lower())


@dataclass(frozen=True)
class ParsedUrl:
    """The parts of an absolute URL which take part in realm matching."""

    scheme: str
    authority: str
    host: str
    port: int | None
    path: str
    fragment: str | None

    @property
    def effective_port(self) -> int | None:
        if self.port is not None:
            return self.port
        return default_port(self.scheme)

    @property
    def is_wildcard(self) -> bool:
        return self.authority.startswith(WILDCARD_PREFIX)


def parse_url(url: str) -> ParsedUrl | None:
    """Parses an absolute URL.

    :param url: The URL to parse.
    :return: The parsed URL, or None if the value is not an absolute URL with
        a scheme and a host, or if its port is invalid.
    """
    if not isinstance(url, str):
        return None
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return None

    if not parts.scheme or not parts.hostname:
        return None

    return ParsedUrl(
        scheme=parts.scheme,
        authority=parts.netloc,
        host=parts.hostname,
        port=port,
        path=parts.path,
        # urlsplit drops the distinction between "#" and no fragment at all
        fragment=parts.fragment if "#" in url else None,
    )
