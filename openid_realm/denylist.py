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

"""Realm domains which must never be trusted.

A denylist is immutable once built. Changing the patterns produces a new
instance, so a list which is in use is never partially rebuilt.
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

__all__ = ["DomainDenylist", "DEFAULT_DENIED_DOMAINS"]


DEFAULT_DENIED_DOMAINS: Sequence[str] = (
    # *.com, *.org, ...
    r"\*\.[^\.]+",
    # *.co.uk, *.ac.nz, ...
    r"\*\.[a-z]{2}\.[a-z]{2}",
)


class DomainDenylist:
    """An ordered set of regular expressions matched against realm domains.

    Each pattern is compiled case-insensitively and must match the whole domain.

    :param patterns: The regular expressions to deny.
    """

    def __init__(self, patterns: Iterable[str] = DEFAULT_DENIED_DOMAINS):
        self._patterns = tuple(patterns)
        self._compiled = tuple(self._compile(p) for p in self._patterns)

    @staticmethod
    def _compile(pattern: str) -> re.Pattern:
        if not isinstance(pattern, str):
            raise TypeError("Denied domain patterns must be of type 'str'.")
        try:
            return re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            raise ValueError(f"Invalid denied domain pattern {pattern!r}: {e}")

    @property
    def patterns(self) -> tuple[str, ...]:
        """The source patterns, in the order they were added."""
        return self._patterns

    def with_pattern(self, pattern: str) -> DomainDenylist:
        """Returns a new denylist with an additional pattern appended."""
        return DomainDenylist(self._patterns + (pattern,))

    def is_denied(self, domain: str) -> bool:
        """Checks if a realm domain is denied.

        :param domain: The host part of a realm, possibly a wildcard.
        :return: True if any pattern matches the entire domain.
        """
        return any(p.fullmatch(domain) for p in self._compiled)

    def __len__(self):
        return len(self._patterns)

    def __eq__(self, other):
        if not isinstance(other, DomainDenylist):
            return NotImplemented
        return self._patterns == other._patterns

    def __hash__(self):
        return hash(self._patterns)

    def __repr__(self):
        return f"DomainDenylist({list(self._patterns)!r})"
