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

from openid_realm.discovery import RpEndpoint


class FakeDiscovery:
    """Stands in for relying party discovery, recording each call."""

    def __init__(self, *urls, error=None):
        self.endpoints = [RpEndpoint(url) for url in urls]
        self.error = error
        self.calls = []

    def __call__(self, realm, timeout=None, event=None):
        self.calls.append((realm, timeout, event))
        if self.error is not None:
            raise self.error
        return list(self.endpoints)


def xrds(*services):
    """Builds an XRDS document from (priority, types, uris) tuples."""
    parts = []
    for priority, types, uris in services:
        attr = f' priority="{priority}"' if priority is not None else ""
        parts.append(
            f"<Service{attr}>"
            + "".join(f"<Type>{t}</Type>" for t in types)
            + "".join(f"<URI>{u}</URI>" for u in uris)
            + "</Service>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<xrds:XRDS xmlns:xrds="xri://$xrds" xmlns="xri://$xrd*($v*2.0)">'
        "<XRD>" + "".join(parts) + "</XRD>"
        "</xrds:XRDS>"
    ).encode("utf-8")
