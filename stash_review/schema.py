"""Wire schema for Stash REST API payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr

from stash_review.models import DiffType


class _Payload(BaseModel):
    """Base for inbound payloads: unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore", frozen=True)


class UserPayload(_Payload):
    id: StrictInt
    name: StrictStr
    slug: StrictStr
    email: StrictStr


class AnchorPayload(_Payload):
    path: StrictStr
    # Absent for comments attached to the whole file.
    line: StrictInt | None = None


class CommentPayload(_Payload):
    id: StrictInt
    text: StrictStr
    version: StrictInt
    anchor: AnchorPayload
    author: UserPayload


class PagePayload(_Payload):
    is_last_page: StrictBool | None = Field(default=None, alias="isLastPage")
    next_page_start: StrictInt | None = Field(default=None, alias="nextPageStart")


class CommentPagePayload(PagePayload):
    values: list[CommentPayload] | None = None


class ReviewerPayload(_Payload):
    user: UserPayload | None = None


class PullRequestPayload(_Payload):
    version: StrictInt
    reviewers: list[ReviewerPayload] | None = None


class PathPayload(_Payload):
    to_string: StrictStr = Field(alias="toString")


class LinePayload(_Payload):
    source: StrictInt
    destination: StrictInt
    comment_ids: list[StrictInt] | None = Field(default=None, alias="commentIds")


class SegmentPayload(_Payload):
    type: DiffType
    lines: list[LinePayload] | None = None


class HunkPayload(_Payload):
    segments: list[SegmentPayload] | None = None


class DiffCommentPayload(_Payload):
    """Comment node listed under a diff entry's lineComments or fileComments."""

    id: StrictInt
    text: StrictStr
    version: StrictInt
    author: UserPayload | None = None


class DiffEntryPayload(_Payload):
    # Null when the file is deleted by the pull request.
    destination: PathPayload | None = None
    hunks: list[HunkPayload] | None = None
    line_comments: list[DiffCommentPayload] | None = Field(default=None, alias="lineComments")
    file_comments: list[DiffCommentPayload] | None = Field(default=None, alias="fileComments")


class DiffListPayload(_Payload):
    diffs: list[DiffEntryPayload] | None = None
