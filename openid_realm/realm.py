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

"""Structural matching of a return_to URL against an OpenID 2.0 realm.

A realm such as ``http://*.example.com/app/`` authorizes any return_to URL
using the same scheme and port, on example.com or one of its subdomains, with
a path at or below ``/app/``. These checks are purely syntactic; confirming
that the relying party actually publishes the return_to URL is done by
:class:`openid_realm.verifier.RealmVerifier`.
"""

from __future__ import annotations

import logging
from enum import IntEnum, unique

from .denylist import DomainDenylist
from .urls import WILDCARD_PREFIX, ParsedUrl, parse_url

__all__ = ["Outcome", "match_realm"]

logger = logging.getLogger(__name__)


@unique
class Outcome(IntEnum):
    """Result codes of realm verification."""

    OK = 0
    DENIED_REALM = 1
    MALFORMED_REALM = 2
    MALFORMED_RETURN_TO_URL = 3
    FRAGMENT_NOT_ALLOWED = 4
    PROTOCOL_MISMATCH = 5
    PORT_MISMATCH = 6
    PATH_MISMATCH = 7
    DOMAIN_MISMATCH = 8
    RP_DISCOVERY_FAILED = 9
    RP_INVALID_ENDPOINT = 10

    @property
    def ok(self) -> bool:
        return self is Outcome.OK

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS = {
    Outcome.OK: "Return URL matches the realm.",
    Outcome.DENIED_REALM: "Realm domain is denied.",
    Outcome.MALFORMED_REALM: "Realm is not a valid URL.",
    Outcome.MALFORMED_RETURN_TO_URL: "Return URL is not a valid URL.",
    Outcome.FRAGMENT_NOT_ALLOWED: "Realm must not contain a fragment.",
    Outcome.PROTOCOL_MISMATCH: "Protocol of return URL does not match realm.",
    Outcome.PORT_MISMATCH: "Port of return URL does not match realm.",
    Outcome.PATH_MISMATCH: "Path of return URL is not below realm path.",
    Outcome.DOMAIN_MISMATCH: "Domain of return URL does not match realm.",
    Outcome.RP_DISCOVERY_FAILED: "Relying party discovery on the realm failed.",
    Outcome.RP_INVALID_ENDPOINT: (
        "Return URL matches none of the endpoints discovered from the realm."
    ),
}


def _domain_match(realm_host: str, return_to_host: str) -> bool:
    if realm_host.startswith(WILDCARD_PREFIX):
        # Keep the leading dot, so that *.example.com doesn't match example.com
        suffix = realm_host[1:].lower()
        return return_to_host.lower().endswith(suffix)
    return realm_host.lower() == return_to_host.lower()


def _port_match(realm_url: ParsedUrl, return_to_url: ParsedUrl) -> bool:
    return realm_url.effective_port == return_to_url.effective_port


def _path_match(realm_url: ParsedUrl, return_to_url: ParsedUrl) -> bool:
    realm_path = realm_url.path
    if not realm_path.endswith("/"):
        realm_path += "/"
    return_to_path = return_to_url.path
    if not return_to_path.endswith("/"):
        return_to_path += "/"
    return return_to_path.startswith(realm_path)


def match_realm(realm: str, return_to: str, denylist: DomainDenylist) -> Outcome:
    """Checks if a return_to URL falls within a realm.

    The checks are applied in a fixed order, and the first one to fail
    determines the result.

    :param realm: The realm (trust root) claimed by the relying party.
    :param return_to: The URL to validate.
    :param denylist: Realm domains to reject outright.
    :return: Outcome.OK if return_to matches the realm, otherwise the reason it
        does not.
    """
    logger.debug(f"Verifying realm: {realm} on return URL: {return_to}")

    realm_url = parse_url(realm)
    if realm_url is None:
        logger.error(f"Invalid realm URL: {realm}")
        return Outcome.MALFORMED_REALM

    if denylist.is_denied(realm_url.host):
        logger.warning(f"Denied realm domain: {realm_url.host}")
        return Outcome.DENIED_REALM

    return_to_url = parse_url(return_to)
    if return_to_url is None:
        logger.error(f"Invalid return URL: {return_to}")
        return Outcome.MALFORMED_RETURN_TO_URL

    # Only the realm is checked, return URLs may carry a fragment
    if realm_url.fragment is not None:
        logger.debug("Realm verification failed: URL fragments are not allowed.")
        return Outcome.FRAGMENT_NOT_ALLOWED

    if realm_url.scheme.lower() != return_to_url.scheme.lower():
        logger.debug("Realm verification failed: protocol mismatch.")
        return Outcome.PROTOCOL_MISMATCH

    if not _domain_match(realm_url.host, return_to_url.host):
        logger.debug("Realm verification failed: domain mismatch.")
        return Outcome.DOMAIN_MISMATCH

    if not _port_match(realm_url, return_to_url):
        logger.debug("Realm verification failed: port mismatch.")
        return Outcome.PORT_MISMATCH

    if not _path_match(realm_url, return_to_url):
        logger.debug("Realm verification failed: path mismatch.")
        return Outcome.PATH_MISMATCH

    logger.info(f"Return URL: {return_to} matches realm: {realm}")
    return Outcome.OK
