import random

import pytest
from yarl import URL

from ipa_cli.exceptions import SessionUnavailableError
from ipa_cli.models.session import Identity, Session, create_guid

STOREFRONT_URL = URL("https://p71-buy.itunes.apple.com/")


class FixedRandom:
    def __init__(self, value: float):
        self.value = value

    def random(self) -> float:
        return self.value


def test_create_guid_format() -> None:
    guid = create_guid(rng=random.Random(42))

    assert len(guid) == 12
    assert guid == guid.upper()
    int(guid, 16)


def test_create_guid_uses_first_two_hex_digits() -> None:
    # int(0.5 * 16384 + 16) == 8208 == 0x2010
    assert create_guid(rng=FixedRandom(0.5)) == "202020202020"
    # int(0 * 16384 + 16) == 16 == 0x10
    assert create_guid(rng=FixedRandom(0.0)) == "101010101010"


def test_create_guid_honours_seed() -> None:
    # int(0.999 * 100 + 16) == 115 == 0x73
    assert create_guid(seed=100, rng=FixedRandom(0.999)) == "737373737373"


def test_machine_id_is_generated_lazily_and_once() -> None:
    calls = []

    def factory() -> str:
        calls.append(1)
        return "00112233AABB"

    session = Session(guid_factory=factory)
    assert calls == []

    assert session.machine_id == "00112233AABB"
    assert session.machine_id == "00112233AABB"
    assert len(calls) == 1


def test_restored_machine_id_is_not_regenerated() -> None:
    session = Session.from_dict(
        {"machine_id": "FFEEDDCCBBAA"}, guid_factory=lambda: "000000000000"
    )
    assert session.machine_id == "FFEEDDCCBBAA"


def test_identity_lifecycle() -> None:
    session = Session(machine_id="AABBCCDDEEFF")
    assert not session.is_authenticated

    with pytest.raises(SessionUnavailableError):
        session.require_identity()

    identity = Identity(person_id="1", token="t")
    session.sign_in(identity)
    assert session.require_identity() is identity

    session.invalidate()
    assert not session.is_authenticated


def test_round_trip_without_cookie_jar() -> None:
    session = Session(
        machine_id="AABBCCDDEEFF",
        identity=Identity(person_id="42", token="tok"),
        cookies=[{"name": "mz_at0", "value": "x", "domain": "apple.com"}],
    )

    restored = Session.from_dict(session.to_dict())

    assert restored.machine_id == "AABBCCDDEEFF"
    assert restored.identity == Identity(person_id="42", token="tok")
    assert restored.to_dict()["cookies"] == session.to_dict()["cookies"]


def test_signed_out_session_serializes_without_identity() -> None:
    data = Session(machine_id="AABBCCDDEEFF").to_dict()
    assert data["identity"] is None
    assert data["cookies"] == []


@pytest.mark.asyncio
async def test_cookies_survive_serialization() -> None:
    session = Session(machine_id="AABBCCDDEEFF")
    session.cookie_jar.update_cookies({"itspod": "25"}, STOREFRONT_URL)

    data = session.to_dict()
    assert [c["name"] for c in data["cookies"]] == ["itspod"]

    restored = Session.from_dict(data)
    cookies = restored.cookie_jar.filter_cookies(STOREFRONT_URL)

    assert cookies["itspod"].value == "25"


@pytest.mark.asyncio
async def test_cookie_jar_is_created_once() -> None:
    session = Session(machine_id="AABBCCDDEEFF")
    assert session.cookie_jar is session.cookie_jar
