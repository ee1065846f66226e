"""Gmail API implementation of the mailbox transport."""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import Resource, build

from mailmirror.config import Settings
from mailmirror.mailbox.transport import MessageMetadata, MessagePage

GMAIL_SCOPES: tuple[str, ...] = ("https://www.googleapis.com/auth/gmail.readonly",)
TOKEN_URI = "https://oauth2.googleapis.com/token"

CredentialsFactory = Callable[[str], Credentials]


def refresh_token_credentials(settings: Settings) -> CredentialsFactory:
    """Credentials factory for a single account configured by refresh token.

    Token issuance and per-user storage belong to the auth layer; this is
    the minimal factory for running against one mailbox.

    Args:
        settings: Service settings holding the OAuth client and refresh token.

    Returns:
        Callable mapping any user id to refreshed credentials.
    """
    if not settings.gmail_refresh_token:
        raise ValueError("MIRROR_GMAIL_REFRESH_TOKEN must be set to use the Gmail transport.")

    def factory(user_id: str) -> Credentials:
        creds = Credentials(
            None,
            refresh_token=settings.gmail_refresh_token,
            client_id=settings.gmail_client_id,
            client_secret=settings.gmail_client_secret,
            token_uri=TOKEN_URI,
            scopes=list(GMAIL_SCOPES),
        )
        if not creds.valid and creds.refresh_token:
            creds.refresh(Request())
        return creds

    return factory


def _header(headers: list[dict[str, Any]], name: str) -> str:
    wanted = name.lower()
    for item in headers:
        if item.get("name", "").lower() == wanted:
            return item.get("value", "")
    return ""


class GmailTransport:
    """Lists and reads Gmail messages with metadata-only requests.

    googleapiclient service objects are not thread-safe, so one service is
    cached per worker thread and per user.
    """

    def __init__(self, credentials_for: CredentialsFactory) -> None:
        self._credentials_for = credentials_for
        self._local = threading.local()

    def _service(self, user_id: str) -> Resource:
        services: dict[str, Resource] = getattr(self._local, "services", None) or {}
        self._local.services = services
        if user_id not in services:
            services[user_id] = build(
                "gmail",
                "v1",
                credentials=self._credentials_for(user_id),
                cache_discovery=False,
            )
        return services[user_id]

    def list_message_ids(
        self,
        user_id: str,
        page_token: str | None,
        max_results: int,
    ) -> MessagePage:
        params: dict[str, Any] = {"userId": "me", "maxResults": max_results}
        if page_token:
            params["pageToken"] = page_token
        response = self._service(user_id).users().messages().list(**params).execute()
        return MessagePage(
            ids=[item["id"] for item in response.get("messages", [])],
            next_page_token=response.get("nextPageToken"),
        )

    def get_message_metadata(
        self,
        user_id: str,
        message_id: str,
        header_names: tuple[str, ...],
    ) -> MessageMetadata:
        detail = (
            self._service(user_id)
            .users()
            .messages()
            .get(
                userId="me",
                id=message_id,
                format="metadata",
                metadataHeaders=list(header_names),
            )
            .execute()
        )
        headers = detail.get("payload", {}).get("headers", [])
        return MessageMetadata(
            id=detail.get("id", message_id),
            thread_id=detail.get("threadId"),
            subject=_header(headers, "Subject"),
            sender=_header(headers, "From"),
            date=_header(headers, "Date"),
            snippet=detail.get("snippet", ""),
            internal_date=int(detail.get("internalDate") or 0),
            is_read="UNREAD" not in detail.get("labelIds", []),
        )
