"""Gmail transport tests with a mocked discovery service."""

from unittest.mock import MagicMock

import pytest

from mailmirror.config import Settings
from mailmirror.mailbox import METADATA_HEADERS, MailboxTransport, gmail
from mailmirror.mailbox.gmail import GmailTransport, refresh_token_credentials


@pytest.fixture
def service(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    mock = MagicMock()
    monkeypatch.setattr(gmail, "build", MagicMock(return_value=mock))
    return mock


def _transport() -> GmailTransport:
    return GmailTransport(lambda user_id: MagicMock(name=f"creds-{user_id}"))


def test_transport_satisfies_protocol() -> None:
    assert isinstance(_transport(), MailboxTransport)


def test_list_message_ids(service: MagicMock) -> None:
    messages = service.users.return_value.messages.return_value
    messages.list.return_value.execute.return_value = {
        "messages": [{"id": "a", "threadId": "t"}, {"id": "b", "threadId": "t"}],
        "nextPageToken": "next",
    }

    page = _transport().list_message_ids("u", "tok", 50)

    assert page.ids == ["a", "b"]
    assert page.next_page_token == "next"
    messages.list.assert_called_once_with(userId="me", maxResults=50, pageToken="tok")


def test_list_last_page(service: MagicMock) -> None:
    messages = service.users.return_value.messages.return_value
    messages.list.return_value.execute.return_value = {"resultSizeEstimate": 0}

    page = _transport().list_message_ids("u", None, 50)

    assert page.ids == []
    assert page.next_page_token is None
    messages.list.assert_called_once_with(userId="me", maxResults=50)


def test_get_message_metadata(service: MagicMock) -> None:
    messages = service.users.return_value.messages.return_value
    messages.get.return_value.execute.return_value = {
        "id": "a",
        "threadId": "t1",
        "snippet": "Hello there",
        "internalDate": "1710000000000",
        "labelIds": ["INBOX", "UNREAD"],
        "payload": {
            "headers": [
                {"name": "subject", "value": "Greetings"},
                {"name": "From", "value": "Alice <alice@x.com>"},
                {"name": "Date", "value": "Sat, 9 Mar 2024 16:00:00 +0000"},
            ]
        },
    }

    metadata = _transport().get_message_metadata("u", "a", METADATA_HEADERS)

    assert metadata.thread_id == "t1"
    assert metadata.subject == "Greetings"
    assert metadata.sender == "Alice <alice@x.com>"
    assert metadata.internal_date == 1_710_000_000_000
    assert metadata.is_read is False
    messages.get.assert_called_once_with(
        userId="me",
        id="a",
        format="metadata",
        metadataHeaders=["Subject", "From", "Date"],
    )


def test_service_is_cached_per_user(service: MagicMock) -> None:
    transport = _transport()
    messages = service.users.return_value.messages.return_value
    messages.list.return_value.execute.return_value = {}

    transport.list_message_ids("u", None, 10)
    transport.list_message_ids("u", None, 10)
    transport.list_message_ids("v", None, 10)

    assert gmail.build.call_count == 2  # type: ignore[attr-defined]


def test_refresh_token_required() -> None:
    with pytest.raises(ValueError, match="REFRESH_TOKEN"):
        refresh_token_credentials(Settings(gmail_refresh_token=""))
