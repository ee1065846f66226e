"""Shared request dependencies."""

from typing import Annotated

from fastapi import Header

UserId = Annotated[
    str,
    Header(
        alias="X-User-Id",
        min_length=1,
        max_length=200,
        description="Mailbox owner, set by the upstream auth layer",
    ),
]
