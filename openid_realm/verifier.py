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

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from threading import Event, Lock
from typing import Iterable, Optional, Sequence

from .denylist import DEFAULT_DENIED_DOMAINS, DomainDenylist
from .discovery import DEFAULT_TIMEOUT, DiscoveryError, RpDiscovery, YadisRpDiscovery
from .realm import Outcome, match_realm
from .urls import WILDCARD_PREFIX, parse_url

__all__ = ["RealmVerifier", "VerifierConfig", "ValidationCancelled"]

logger = logging.getLogger(__name__)


DEFAULT_PROBE_LABEL = "www"


class ValidationCancelled(Exception):
    """Raised when a validation is aborted by the caller."""


@dataclass(frozen=True)
class VerifierConfig:
    """Configuration of a RealmVerifier.

    Instances are immutable, the verifier replaces its configuration as a whole.

    :param denylist: Realm domains which are always rejected.
    :param enforce_rp_id: When False, failed validations are logged but
        reported as Outcome.OK.
    :param probe_label: Label substituted for the wildcard of a realm when
        performing discovery on it.
    """

    denylist: DomainDenylist = field(default_factory=DomainDenylist)
    enforce_rp_id: bool = True
    probe_label: str = DEFAULT_PROBE_LABEL

    def __post_init__(self):
        if not isinstance(self.denylist, DomainDenylist):
            raise TypeError("denylist must be of type DomainDenylist.")
        if not isinstance(self.enforce_rp_id, bool):
            raise TypeError("enforce_rp_id must be of type 'bool'.")
        if not isinstance(self.probe_label, str):
            raise TypeError("probe_label must be of type 'str'.")
        if not self.probe_label or any(c in self.probe_label for c in "*./:@"):
            raise ValueError(f"Invalid probe label: {self.probe_label!r}")


class RealmVerifier:
    """Verifies return_to URLs against OpenID 2.0 realms.

    A return_to URL is accepted when it structurally matches the realm, and
    also matches one of the return_to endpoints which relying party discovery
    on the realm yields.

    :param discovery: (optional) Relying party discovery to use, by default
        Yadis based discovery over HTTP.
    :param denied_domains: (optional) Regular expressions of realm domains to
        reject.
    :param enforce_rp_id: (optional) Whether failed validations are reported,
        or only logged.
    :param probe_label: (optional) Label replacing the wildcard of a realm for
        discovery.
    :param discovery_timeout: (optional) Timeout in seconds passed to discovery.
    """

    def __init__(
        self,
        discovery: Optional[RpDiscovery] = None,
        denied_domains: Iterable[str] = DEFAULT_DENIED_DOMAINS,
        enforce_rp_id: bool = True,
        probe_label: str = DEFAULT_PROBE_LABEL,
        discovery_timeout: Optional[float] = DEFAULT_TIMEOUT,
    ):
        self._owns_discovery = discovery is None
        self._discovery = discovery or YadisRpDiscovery()
        self._config = VerifierConfig(
            DomainDenylist(denied_domains), enforce_rp_id, probe_label
        )
        self._lock = Lock()
        self.discovery_timeout = discovery_timeout

    def close(self) -> None:
        """Closes the default discovery service, if the verifier created it.

        A discovery callable passed to the constructor is left to the caller.
        """
        if self._owns_discovery:
            self._discovery.close()

    def __enter__(self):
        return self

    def __exit__(self, typ, value, traceback):
        self.close()

    @property
    def config(self) -> VerifierConfig:
        """The current configuration."""
        return self._config

    def _reconfigure(self, **changes) -> None:
        with self._lock:
            self._config = replace(self._config, **changes)
        logger.debug(f"RealmVerifier reconfigured: {changes}")

    @property
    def denied_domains(self) -> Sequence[str]:
        return self._config.denylist.patterns

    def add_denied_domain(self, pattern: str) -> None:
        """Adds a regular expression of realm domains to reject.

        :param pattern: The regular expression, matched case-insensitively
            against the entire realm domain.
        """
        with self._lock:
            denylist = self._config.denylist.with_pattern(pattern)
            self._config = replace(self._config, denylist=denylist)
        logger.debug(f"Added denied realm domain: {pattern}")

    def set_denied_domains(self, patterns: Iterable[str]) -> None:
        """Replaces all regular expressions of realm domains to reject."""
        self._reconfigure(denylist=DomainDenylist(patterns))

    @property
    def enforce_rp_id(self) -> bool:
        return self._config.enforce_rp_id

    @enforce_rp_id.setter
    def enforce_rp_id(self, value: bool) -> None:
        self._reconfigure(enforce_rp_id=value)

    @property
    def probe_label(self) -> str:
        return self._config.probe_label

    @probe_label.setter
    def probe_label(self, value: str) -> None:
        self._reconfigure(probe_label=value)

    def match(self, realm: str, return_to: str) -> Outcome:
        """Checks if a return_to URL structurally matches a realm.

        No discovery is performed.

        :param realm: The realm claimed by the relying party.
        :param return_to: The URL to validate.
        :return: Outcome.OK, or the reason for the mismatch.
        """
        return match_realm(realm, return_to, self._config.denylist)

    def validate(
        self,
        realm: str,
        return_to: str,
        enforce_rp_id: Optional[bool] = None,
        *,
        event: Optional[Event] = None,
    ) -> Outcome:
        """Checks if a return_to URL is authorized by a realm.

        The return_to URL must match the realm itself, as well as one of the
        endpoints published by the realm.

        :param realm: The realm claimed by the relying party.
        :param return_to: The URL to validate.
        :param enforce_rp_id: (optional) Overrides the configured enforcement.
        :param event: (optional) Signal to abort the validation.
        :return: Outcome.OK, or the reason validation failed. When not enforcing,
            Outcome.OK is always returned.
        """
        config = self._config
        if enforce_rp_id is None:
            enforce_rp_id = config.enforce_rp_id

        result = match_realm(realm, return_to, config.denylist)
        if result != Outcome.OK:
            logger.error(f"Return URL: {return_to} does not match realm: {realm}")
        else:
            result = self._discovery_check(realm, return_to, config, event)

        if result != Outcome.OK and not enforce_rp_id:
            logger.warning(
                f"Failed to validate return URL: {return_to} against realm: "
                f"{realm}; not enforced, returning OK; error: {result.name}"
            )
            return Outcome.OK
        return result

    def _discovery_check(
        self,
        realm: str,
        return_to: str,
        config: VerifierConfig,
        event: Optional[Event],
    ) -> Outcome:
        realm_url = parse_url(realm)
        if realm_url is None:
            logger.error(f"Invalid realm URL: {realm}")
            return Outcome.MALFORMED_REALM
        if realm_url.is_wildcard:
            # Wildcards can't be resolved, probe a concrete host instead
            realm = realm.replace(WILDCARD_PREFIX, config.probe_label + ".", 1)

        try:
            endpoints = self._discovery(realm, self.discovery_timeout, event)
        except DiscoveryError as e:
            if event is not None and event.is_set():
                raise ValidationCancelled(f"Discovery on {realm} was cancelled") from e
            logger.error(f"Discovery failed on realm: {realm}: {e}")
            return Outcome.RP_DISCOVERY_FAILED

        for endpoint in endpoints:
            endpoint_url = parse_url(endpoint.url)
            if endpoint_url is not None and endpoint_url.is_wildcard:
                logger.warning(
                    "Wildcard not allowed in discovered RP endpoints; "
                    f"found: {endpoint.url}"
                )
                continue

            if match_realm(endpoint.url, return_to, config.denylist) == Outcome.OK:
                logger.info(
                    f"Return URL: {return_to} matched discovered RP endpoint: "
                    f"{endpoint.url}"
                )
                return Outcome.OK

        return Outcome.RP_INVALID_ENDPOINT
