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

from openid_realm.denylist import DomainDenylist
from openid_realm.realm import Outcome, match_realm
import unittest


def match(realm, return_to, denylist=None):
    if denylist is None:
        denylist = DomainDenylist()
    return match_realm(realm, return_to, denylist)


class TestMatchRealm(unittest.TestCase):
    def test_exact_match(self):
        self.assertEqual(
            match("http://example.com/", "http://example.com/"), Outcome.OK
        )
        self.assertEqual(
            match("https://example.com/", "https://example.com/path?x=1"), Outcome.OK
        )

    def test_host_case_insensitive(self):
        self.assertEqual(
            match("http://EXAMPLE.com/", "http://example.COM/"), Outcome.OK
        )

    def test_malformed_realm(self):
        self.assertEqual(
            match("example.com", "http://example.com/"), Outcome.MALFORMED_REALM
        )
        self.assertEqual(
            match("http://example.com:port/", "http://example.com/"),
            Outcome.MALFORMED_REALM,
        )
        self.assertEqual(
            match("http:///app/", "http://example.com/"), Outcome.MALFORMED_REALM
        )
        self.assertEqual(match(None, "http://example.com/"), Outcome.MALFORMED_REALM)

    def test_malformed_return_to(self):
        self.assertEqual(
            match("http://example.com/", "not a url"), Outcome.MALFORMED_RETURN_TO_URL
        )
        self.assertEqual(
            match("http://example.com/", "http://example.com:99999/"),
            Outcome.MALFORMED_RETURN_TO_URL,
        )

    def test_fragment_not_allowed(self):
        self.assertEqual(
            match("http://example.com/#frag", "http://example.com/"),
            Outcome.FRAGMENT_NOT_ALLOWED,
        )
        self.assertEqual(
            match("http://example.com/#", "http://example.com/"),
            Outcome.FRAGMENT_NOT_ALLOWED,
        )

    def test_fragment_in_return_to_allowed(self):
        self.assertEqual(
            match("http://example.com/", "http://example.com/#frag"), Outcome.OK
        )

    def test_protocol_mismatch(self):
        self.assertEqual(
            match("https://example.com/", "http://example.com/"),
            Outcome.PROTOCOL_MISMATCH,
        )
        self.assertEqual(
            match("HTTP://example.com/", "http://example.com/"), Outcome.OK
        )

    def test_domain_mismatch(self):
        self.assertEqual(
            match("http://example.com/", "http://www.example.com/"),
            Outcome.DOMAIN_MISMATCH,
        )
        self.assertEqual(
            match("http://example.com/", "http://example.org/"),
            Outcome.DOMAIN_MISMATCH,
        )

    def test_wildcard_domain(self):
        self.assertEqual(
            match("http://*.example.com/", "http://foo.bar.example.com/"), Outcome.OK
        )
        self.assertEqual(
            match("http://*.example.com/", "http://WWW.Example.com/"), Outcome.OK
        )
        self.assertEqual(
            match("http://*.example.com/", "http://example.com/"),
            Outcome.DOMAIN_MISMATCH,
        )
        self.assertEqual(
            match("http://*.example.com/", "http://badexample.com/"),
            Outcome.DOMAIN_MISMATCH,
        )

    def test_port_defaults(self):
        self.assertEqual(
            match("http://example.com/", "http://example.com:80/"), Outcome.OK
        )
        self.assertEqual(
            match("https://example.com:443/", "https://example.com/"), Outcome.OK
        )
        self.assertEqual(
            match("http://example.com:8080/", "http://example.com:8081/"),
            Outcome.PORT_MISMATCH,
        )
        self.assertEqual(
            match("http://example.com/", "http://example.com:443/"),
            Outcome.PORT_MISMATCH,
        )

    def test_path_prefix(self):
        self.assertEqual(
            match("http://example.com/app/", "http://example.com/app/callback"),
            Outcome.OK,
        )
        self.assertEqual(
            match("http://example.com/app", "http://example.com/app"), Outcome.OK
        )
        self.assertEqual(
            match("http://example.com", "http://example.com/any/path"), Outcome.OK
        )
        self.assertEqual(
            match("http://example.com/app/", "http://example.com/other"),
            Outcome.PATH_MISMATCH,
        )
        self.assertEqual(
            match("http://example.com/app", "http://example.com/application"),
            Outcome.PATH_MISMATCH,
        )

    def test_precedence(self):
        # Denied before the return URL is even parsed
        self.assertEqual(match("http://*.com/", "not a url"), Outcome.DENIED_REALM)
        # Fragment before protocol
        self.assertEqual(
            match("https://example.com/#x", "http://other.com/"),
            Outcome.FRAGMENT_NOT_ALLOWED,
        )
        # Protocol before domain
        self.assertEqual(
            match("https://example.com/", "http://other.com/"),
            Outcome.PROTOCOL_MISMATCH,
        )
        # Domain before port
        self.assertEqual(
            match("http://example.com:81/", "http://other.com/"),
            Outcome.DOMAIN_MISMATCH,
        )
        # Port before path
        self.assertEqual(
            match("http://example.com:8080/app/", "http://example.com/other"),
            Outcome.PORT_MISMATCH,
        )

    def test_denied_realm(self):
        self.assertEqual(
            match("http://*.com/", "http://example.com/"), Outcome.DENIED_REALM
        )
        self.assertEqual(
            match("http://*.co.uk/", "http://example.co.uk/"), Outcome.DENIED_REALM
        )
        self.assertEqual(
            match("http://*.example.co.uk/", "http://www.example.co.uk/"), Outcome.OK
        )

    def test_empty_denylist(self):
        denylist = DomainDenylist([])
        self.assertEqual(
            match("http://*.com/", "http://example.com/", denylist), Outcome.OK
        )

    def test_custom_denylist(self):
        denylist = DomainDenylist([r"evil\.example"])
        self.assertEqual(
            match("http://EVIL.example/", "http://evil.example/", denylist),
            Outcome.DENIED_REALM,
        )
        self.assertEqual(
            match("http://not-evil.example/", "http://not-evil.example/", denylist),
            Outcome.OK,
        )

    def test_idempotent(self):
        args = ("http://*.example.com/app/", "http://a.example.com/app/x")
        self.assertEqual(match(*args), match(*args))


class TestOutcome(unittest.TestCase):
    def test_values(self):
        self.assertEqual(Outcome.OK, 0)
        self.assertEqual(Outcome.RP_INVALID_ENDPOINT, 10)
        self.assertEqual(len(Outcome), 11)

    def test_ok(self):
        self.assertTrue(Outcome.OK.ok)
        self.assertFalse(Outcome.PATH_MISMATCH.ok)

    def test_descriptions(self):
        for outcome in Outcome:
            self.assertTrue(outcome.description)
