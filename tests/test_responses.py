import json

import pytest

from conftest import FakeStorefrontClient, permit_success

from ipa_cli.api.responses import (
    CHALLENGE_MESSAGE,
    FailureResponse,
    PurchaseSuccess,
    SignInSuccess,
    decode_permit,
    decode_purchase,
    decode_sign_in,
)
from ipa_cli.exceptions import StorefrontError, UnknownStorefrontError
from ipa_cli.models.license import LicenseGrant


def test_sign_in_requires_m_allowed():
    data = {"dsPersonId": 8812345678, "passwordToken": "tok", "m-allowed": False}

    assert isinstance(decode_sign_in(data), FailureResponse)


def test_sign_in_success():
    result = decode_sign_in(
        {
            "m-allowed": True,
            "dsPersonId": 8812345678,
            "passwordToken": "tok",
            "accountInfo": {
                "appleId": "user@example.com",
                "address": {"firstName": "Jane", "lastName": "Appleseed"},
            },
        }
    )

    assert isinstance(result, SignInSuccess)
    assert result.person_id == "8812345678"
    assert result.account_name == "user@example.com"
    assert result.display_name == "Jane Appleseed"


def test_challenge_detection():
    assert FailureResponse(customerMessage=CHALLENGE_MESSAGE).is_challenge
    assert not FailureResponse(
        failureType="-5000", customerMessage=CHALLENGE_MESSAGE
    ).is_challenge
    assert not FailureResponse(customerMessage="Something else").is_challenge


def test_failure_codes_are_strings():
    failure = FailureResponse.model_validate({"failureType": -5000, "status": 1})

    assert failure.failure_type == "-5000"
    assert failure.status == 1


def test_permit_discriminant():
    assert isinstance(decode_permit({"failureType": ""}), FailureResponse)
    assert isinstance(decode_permit(permit_success()), LicenseGrant)


@pytest.mark.parametrize(
    "data",
    [
        {"failureType": "", "jingleDocType": "purchaseSuccess", "status": 0},
        {"jingleDocType": "purchaseFailure", "status": 0},
        {"jingleDocType": "purchaseSuccess", "status": 1},
        {"jingleDocType": "purchaseSuccess"},
        {},
    ],
)
def test_purchase_failures(data):
    assert isinstance(decode_purchase(data), FailureResponse)


def test_purchase_success():
    result = decode_purchase(
        {"jingleDocType": "purchaseSuccess", "status": 0, "metrics": {"a": 1}}
    )

    assert isinstance(result, PurchaseSuccess)
    assert result.metrics == {"a": 1}


@pytest.mark.asyncio
async def test_non_plist_reply_is_a_storefront_error(
    client: FakeStorefrontClient,
) -> None:
    client.reply("wa/volumeStoreDownloadProduct", b"<html>Bad Gateway</html>", 502)

    with pytest.raises(StorefrontError):
        await client.post_plist(
            client.AUTH_WITHOUT_CODE_URL
            + "WebObjects/MZFinance.woa/wa/volumeStoreDownloadProduct",
            {},
        )


@pytest.mark.asyncio
async def test_catalog_search(client: FakeStorefrontClient) -> None:
    client.reply(
        "search",
        json.dumps({"resultCount": 1, "results": [{"trackId": 1}]}).encode(),
    )

    results = await client.search("gb", "notes", limit=3)

    assert results == [{"trackId": 1}]
    (call,) = client.calls
    assert call.method == "GET"
    assert call.url == "https://itunes.apple.com/search"
    assert call.params["term"] == "notes"
    assert call.params["country"] == "GB"
    assert call.params["limit"] == "3"


@pytest.mark.asyncio
async def test_catalog_lookup(client: FakeStorefrontClient) -> None:
    client.reply("lookup", json.dumps({"results": []}).encode())

    assert await client.lookup("US", "com.example.foo") == []
    assert client.calls[0].params["bundleId"] == "com.example.foo"


@pytest.mark.asyncio
async def test_catalog_error_status(client: FakeStorefrontClient) -> None:
    client.reply("lookup", b"", status=503)

    with pytest.raises(StorefrontError):
        await client.lookup("US", "com.example.foo")


@pytest.mark.asyncio
async def test_catalog_rejects_unknown_country(client: FakeStorefrontClient) -> None:
    with pytest.raises(UnknownStorefrontError):
        await client.search("XX", "notes")

    assert client.calls == []


@pytest.mark.parametrize(
    ("decode", "data"),
    [
        (decode_sign_in, {"m-allowed": True, "dsPersonId": 1}),
        (decode_sign_in, {"m-allowed": True, "passwordToken": "tok"}),
        (decode_permit, {"songList": [{"md5": "", "sinfs": []}]}),
        (decode_permit, {"songList": [{"URL": "u", "sinfs": [{"id": "x"}]}]}),
        (decode_purchase, {"jingleDocType": "purchaseFailure", "status": "bad"}),
    ],
)
def test_malformed_reply_is_a_storefront_error(decode, data):
    with pytest.raises(StorefrontError, match="Malformed"):
        decode(data)
