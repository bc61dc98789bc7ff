"""Paged collection of pull request comments."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from loguru import logger

from stash_review.models import CommentReport

if TYPE_CHECKING:
    from stash_review.client import StashClient


class PaginationState(StrEnum):
    """States of the comment pagination loop."""

    FETCHING = "fetching"
    DONE = "done"


def collect_pull_request_comments(
    client: StashClient,
    project: str,
    repository: str,
    pull_request_id: str,
    path: str,
) -> CommentReport:
    """Fetch comment pages until the server reports the last one and merge them in order.

    A failure on any page propagates; no partial report is returned.
    """
    report = CommentReport()
    state = PaginationState.FETCHING
    start = 0
    while state is PaginationState.FETCHING:
        page = client.get_pull_request_comments_page(
            project, repository, pull_request_id, path, start
        )
        report.extend(page.report)
        logger.debug(
            f"Fetched {len(page.report)} comment(s) for '{path}' at start={start} "
            f"(last page: {page.is_last_page})"
        )
        if page.is_last_page:
            state = PaginationState.DONE
        else:
            start = page.next_page_start
    return report
