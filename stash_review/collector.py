"""Extraction of Stash REST payloads into the review domain model."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import TypeVar

from pydantic import BaseModel, ValidationError

from stash_review.models import (
    Comment,
    CommentReport,
    Diff,
    DiffReport,
    DiffType,
    PullRequest,
    User,
)
from stash_review.schema import (
    CommentPagePayload,
    DiffCommentPayload,
    DiffEntryPayload,
    DiffListPayload,
    PagePayload,
    PullRequestPayload,
    UserPayload,
)

FILE_COMMENT_LINE = 0

PayloadT = TypeVar("PayloadT", bound=BaseModel)


class ReportExtractionError(ValueError):
    """Raised when a Stash payload is not valid JSON or does not have the expected shape."""

    def __init__(self, message: str, *, document: str) -> None:
        super().__init__(message)
        self.document = document


@dataclass(frozen=True, slots=True)
class CommentPage:
    """One page of the pull request comments listing."""

    report: CommentReport
    is_last_page: bool
    next_page_start: int


def _parse(payload_type: type[PayloadT], json_body: str | bytes, *, document: str) -> PayloadT:
    """Validate a JSON document against its wire schema."""
    try:
        return payload_type.model_validate_json(json_body)
    except ValidationError as error:
        raise ReportExtractionError(
            f"Invalid {document} payload: {error}",
            document=document,
        ) from error


def _to_user(payload: UserPayload) -> User:
    return User(id=payload.id, name=payload.name, slug=payload.slug, email=payload.email)


def _comments_from_page(payload: CommentPagePayload) -> CommentReport:
    report = CommentReport()
    for value in payload.values or []:
        report.add(
            Comment(
                id=value.id,
                message=value.text,
                path=value.anchor.path,
                line=value.anchor.line,
                author=_to_user(value.author),
                version=value.version,
            )
        )
    return report


def _is_last_page(payload: PagePayload) -> bool:
    if payload.is_last_page is None:
        return True
    return payload.is_last_page


def _next_page_start(payload: PagePayload) -> int:
    if payload.next_page_start is None:
        return 0
    return payload.next_page_start


def extract_user(json_body: str | bytes) -> User:
    """Extract a user from a Stash user payload."""
    return _to_user(_parse(UserPayload, json_body, document="user"))


def extract_comments(json_body: str | bytes) -> CommentReport:
    """Extract a comment report from one page of the comments listing."""
    return _comments_from_page(_parse(CommentPagePayload, json_body, document="comment list"))


def is_last_page(json_body: str | bytes) -> bool:
    """Return whether a paged payload is the last page; unpaged payloads count as last."""
    return _is_last_page(_parse(PagePayload, json_body, document="paged response"))


def get_next_page_start(json_body: str | bytes) -> int:
    """Return the start offset of the next page, 0 when the payload has none."""
    return _next_page_start(_parse(PagePayload, json_body, document="paged response"))


def extract_comment_page(json_body: str | bytes) -> CommentPage:
    """Extract comments and paging cursor from one page of the comments listing."""
    payload = _parse(CommentPagePayload, json_body, document="comment list")
    return CommentPage(
        report=_comments_from_page(payload),
        is_last_page=_is_last_page(payload),
        next_page_start=_next_page_start(payload),
    )


def extract_pull_request(
    project: str,
    repository: str,
    pull_request_id: str,
    json_body: str | bytes,
) -> PullRequest:
    """Extract a pull request; its identifiers come from the caller, not the payload."""
    payload = _parse(PullRequestPayload, json_body, document="pull request")
    pull_request = PullRequest(
        project=project,
        repository=repository,
        id=pull_request_id,
        version=payload.version,
    )
    for reviewer in payload.reviewers or []:
        if reviewer.user is not None:
            pull_request.add_reviewer(_to_user(reviewer.user))
    return pull_request


def _diff_comment(payload: DiffCommentPayload, *, path: str, line: int) -> Comment | None:
    if payload.author is None:
        return None
    return Comment(
        id=payload.id,
        message=payload.text,
        path=path,
        line=line,
        author=_to_user(payload.author),
        version=payload.version,
    )


def _diffs_for_entry(entry: DiffEntryPayload) -> list[Diff]:
    """Rebuild the diff lines of one file entry with their comments attached."""
    if entry.destination is None:
        return []
    path = entry.destination.to_string

    line_comments: defaultdict[int, list[DiffCommentPayload]] = defaultdict(list)
    for line_comment in entry.line_comments or []:
        line_comments[line_comment.id].append(line_comment)

    diffs: list[Diff] = []
    for hunk in entry.hunks or []:
        for segment in hunk.segments or []:
            if segment.type is DiffType.REMOVED:
                continue
            for line in segment.lines or []:
                diff = Diff(
                    type=segment.type,
                    path=path,
                    source=line.source,
                    destination=line.destination,
                )
                for comment_id in line.comment_ids or []:
                    for node in line_comments.get(comment_id, []):
                        comment = _diff_comment(node, path=path, line=line.destination)
                        if comment is not None:
                            diff.add_comment(comment)
                diffs.append(diff)

    if entry.file_comments:
        file_diff = Diff(
            type=DiffType.CONTEXT,
            path=path,
            source=FILE_COMMENT_LINE,
            destination=FILE_COMMENT_LINE,
            file_level=True,
        )
        for node in entry.file_comments:
            comment = _diff_comment(node, path=path, line=FILE_COMMENT_LINE)
            if comment is not None:
                file_diff.add_comment(comment)
        diffs.append(file_diff)

    return diffs


def extract_diffs(json_body: str | bytes) -> DiffReport:
    """Extract the diff report of a pull request, removed segments excluded."""
    payload = _parse(DiffListPayload, json_body, document="diff list")
    report = DiffReport()
    for entry in payload.diffs or []:
        for diff in _diffs_for_entry(entry):
            report.add(diff)
    return report
