"""
Tests for the Namecheap XML client, driven through httpx.MockTransport.
"""

import asyncio

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from domainhub.services.namecheap_client import NamecheapClient, NamecheapAPIError, split_domain


def envelope(command: str, body: str, status: str = "OK", errors: str = "") -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        f'<ApiResponse Status="{status}" xmlns="http://api.namecheap.com/xml.response">'
        f"<Errors>{errors}</Errors>"
        f'<CommandResponse Type="{command}">{body}</CommandResponse>'
        "</ApiResponse>"
    )


def make_client(handler) -> NamecheapClient:
    return NamecheapClient(
        api_user="apiuser",
        api_key="apikey",
        username="apiuser",
        client_ip="10.0.0.1",
        sandbox=True,
        contact={"FirstName": "Ana", "LastName": "Silva"},
        transport=httpx.MockTransport(handler),
    )


class TestSplitDomain:

    def test_splits_at_first_dot(self) -> None:
        assert split_domain("site.com.br") == ("site", "com.br")

    def test_rejects_bare_label(self) -> None:
        with pytest.raises(ValueError):
            split_domain("localhost")

    @given(
        sld=st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789", min_size=1, max_size=30),
        tld=st.sampled_from(["com", "online", "site", "com.br"]),
    )
    @settings(max_examples=50)
    def test_rejoining_gives_the_domain_back(self, sld: str, tld: str) -> None:
        assert ".".join(split_domain(f"{sld}.{tld}")) == f"{sld}.{tld}"


class TestCheckAvailability:

    def test_parses_results_and_premium_price(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, text=envelope(
                "namecheap.domains.check",
                '<DomainCheckResult Domain="foo.online" Available="true" '
                'IsPremiumName="false" PremiumRegistrationPrice="0" />'
                '<DomainCheckResult Domain="Bar.com" Available="false" '
                'IsPremiumName="true" PremiumRegistrationPrice="250.50" />',
            ))

        result = asyncio.run(make_client(handler).check_availability(["foo.online", "bar.com"]))

        assert seen["Command"] == "namecheap.domains.check"
        assert seen["DomainList"] == "foo.online,bar.com"
        assert seen["ClientIp"] == "10.0.0.1"
        assert result["foo.online"] == {"available": True, "premium": False, "price": None}
        assert result["bar.com"] == {"available": False, "premium": True, "price": 250.5}

    def test_sandbox_endpoint_is_used(self) -> None:
        hosts = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            return httpx.Response(200, text=envelope("namecheap.domains.check", ""))

        asyncio.run(make_client(handler).check_availability(["a.online"]))
        assert hosts == ["api.sandbox.namecheap.com"]


class TestErrors:

    def test_error_envelope_raises_with_messages(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=envelope(
                "namecheap.domains.create",
                "",
                status="ERROR",
                errors='<Error Number="2033409">Insufficient funds</Error>',
            ))

        with pytest.raises(NamecheapAPIError, match="2033409:Insufficient funds"):
            asyncio.run(make_client(handler).create_domain("foo.online"))

    def test_http_failure_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="down")

        with pytest.raises(NamecheapAPIError, match="HTTP 503"):
            asyncio.run(make_client(handler).get_balance())

    def test_invalid_xml_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops")

        with pytest.raises(NamecheapAPIError, match="Invalid XML"):
            asyncio.run(make_client(handler).get_balance())

    def test_unconfigured_client_raises_before_any_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = NamecheapClient(api_user="", api_key="", transport=httpx.MockTransport(handler))
        client.api_user = ""
        client.api_key = ""
        with pytest.raises(NamecheapAPIError, match="not configured"):
            asyncio.run(client.get_balance())


class TestCreateDomain:

    def test_sends_contact_for_every_role(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, text=envelope(
                "namecheap.domains.create",
                '<DomainCreateResult Domain="foo.online" Registered="true" '
                'ChargedAmount="0.98" DomainID="9001" OrderID="77" />',
            ))

        result = asyncio.run(make_client(handler).create_domain("foo.online"))

        assert result == {
            "domain": "foo.online",
            "registered": True,
            "charged_amount": 0.98,
            "domain_id": "9001",
            "order_id": "77",
        }
        assert seen["Years"] == "1"
        for role in ("Registrant", "Tech", "Admin", "AuxBilling"):
            assert seen[f"{role}FirstName"] == "Ana"
            assert seen[f"{role}LastName"] == "Silva"

    def test_unregistered_result_raises(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=envelope(
                "namecheap.domains.create",
                '<DomainCreateResult Domain="foo.online" Registered="false" />',
            ))

        with pytest.raises(NamecheapAPIError, match="did not register"):
            asyncio.run(make_client(handler).create_domain("foo.online"))


class TestNameserversAndBalance:

    def test_set_custom_nameservers(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen.update(request.url.params)
            return httpx.Response(200, text=envelope(
                "namecheap.domains.dns.setCustom",
                '<DomainDNSSetCustomResult Domain="foo.com.br" Updated="true" />',
            ))

        assert asyncio.run(make_client(handler).set_custom_nameservers(
            "foo.com.br", ["ns1.cloudflare.com", "ns2.cloudflare.com"]
        ))
        assert seen["SLD"] == "foo"
        assert seen["TLD"] == "com.br"
        assert seen["Nameservers"] == "ns1.cloudflare.com,ns2.cloudflare.com"

    def test_get_balance_prefers_available_balance(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text=envelope(
                "namecheap.users.getBalances",
                '<UserGetBalancesResult Currency="USD" AvailableBalance="42.10" AccountBalance="50.00" />',
            ))

        assert asyncio.run(make_client(handler).get_balance()) == 42.10


class TestListDomains:

    def test_follows_pagination(self) -> None:
        pages = []

        def handler(request: httpx.Request) -> httpx.Response:
            page = int(request.url.params["Page"])
            pages.append(page)
            name = f"site{page}.com"
            return httpx.Response(200, text=envelope(
                "namecheap.domains.getList",
                "<DomainGetListResult>"
                f'<Domain ID="{page}" Name="{name}" Expires="03/15/2027" IsExpired="false" '
                'IsLocked="false" AutoRenew="true" IsPremium="false" />'
                "</DomainGetListResult>"
                "<Paging><TotalItems>150</TotalItems><CurrentPage>1</CurrentPage>"
                "<PageSize>100</PageSize></Paging>",
            ))

        domains = asyncio.run(make_client(handler).list_domains())

        assert pages == [1, 2]
        assert [d["name"] for d in domains] == ["site1.com", "site2.com"]
        assert domains[0]["expires"] == "2027-03-15"
        assert domains[0]["auto_renew"] is True
        assert domains[0]["is_expired"] is False
