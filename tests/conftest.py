import io
import plistlib
import zipfile
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Optional

import pytest

from ipa_cli.api.client import StorefrontClient, TransportResponse
from ipa_cli.models.session import Identity, Session

MACHINE_ID = "A1B2C3D4E5F6"

AUTHENTICATE = "wa/authenticate"
PERMIT = "wa/volumeStoreDownloadProduct"
PURCHASE = "wa/buyProduct"


@dataclass
class RecordedCall:
    method: str
    url: str
    headers: dict[str, str]
    params: dict[str, Any]
    body: Any


class FakeStorefrontClient(StorefrontClient):
    """StorefrontClient that records requests and answers from queued replies."""

    def __init__(self, session: Session):
        super().__init__(session)
        self.calls: list[RecordedCall] = []
        self.payloads: dict[str, bytes] = {}
        self._replies: dict[str, list[TransportResponse]] = defaultdict(list)

    def reply(self, endpoint: str, payload: Any, status: int = 200) -> None:
        """Queues a reply. The last reply for an endpoint is repeated."""
        if isinstance(payload, bytes):
            body = payload
        else:
            body = plistlib.dumps(payload)
        self._replies[endpoint].append(TransportResponse(status, body))

    def calls_to(self, endpoint: str) -> list[RecordedCall]:
        return [call for call in self.calls if call.url.endswith(endpoint)]

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[dict[str, str]] = None,
        params: Optional[dict[str, Any]] = None,
        data: Optional[bytes] = None,
    ) -> TransportResponse:
        self.calls.append(
            RecordedCall(
                method,
                url,
                dict(headers or {}),
                dict(params or {}),
                plistlib.loads(data) if data else None,
            )
        )
        for endpoint, queue in self._replies.items():
            if url.endswith(endpoint) and queue:
                return queue.pop(0) if len(queue) > 1 else queue[0]
        raise AssertionError(f"Unexpected request: {method} {url}")

    async def fetch_payload(self, url, progress=None, task_id=None) -> bytes:
        return self.payloads[url]


@pytest.fixture
def anonymous_session() -> Session:
    return Session(guid_factory=lambda: MACHINE_ID)


@pytest.fixture
def session() -> Session:
    return Session(
        machine_id=MACHINE_ID,
        identity=Identity(person_id="8812345678", token="password-token"),
    )


@pytest.fixture
def client(session: Session) -> FakeStorefrontClient:
    return FakeStorefrontClient(session)


@pytest.fixture
def anonymous_client(anonymous_session: Session) -> FakeStorefrontClient:
    return FakeStorefrontClient(anonymous_session)


def song_entry(**overrides: Any) -> dict[str, Any]:
    """A permit songList item as the storefront returns it."""
    entry = {
        "URL": "https://iosapps.itunes.apple.com/itunes-assets/foo.signed.dpkg.ipa",
        "md5": "",
        "sinfs": [{"id": 0, "sinf": b"\x00sinf-bytes\x01"}],
        "metadata": {
            "bundleDisplayName": "Foo",
            "bundleShortVersionString": "1.2.3",
            "softwareVersionBundleId": "com.example.foo",
            "itemId": 123456789,
            "artistName": "Example Inc.",
        },
    }
    entry.update(overrides)
    return entry


def permit_success(*entries: dict[str, Any]) -> dict[str, Any]:
    return {
        "jingleDocType": "purchaseSuccess",
        "status": 0,
        "songList": list(entries) or [song_entry()],
        "metrics": {"itemIds": [123456789], "currency": "USD"},
    }


def make_archive(files: dict[str, bytes], directories: tuple[str, ...] = ()) -> bytes:
    """Builds an in-memory zip archive. Directories are written first."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
        for directory in directories:
            zf.writestr(directory, b"")
        for name, data in files.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def read_archive_files(data: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        return {info.filename: zf.read(info) for info in zf.infolist()}
