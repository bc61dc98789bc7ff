"""Domain model for Stash pull requests, comments and diffs."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import StrEnum


class DiffType(StrEnum):
    """Segment types reported by the Stash diff API."""

    CONTEXT = "CONTEXT"
    ADDED = "ADDED"
    REMOVED = "REMOVED"


@dataclass(frozen=True, slots=True)
class User:
    """Stash user. Two users are equal when their ids match."""

    id: int
    name: str = field(compare=False)
    slug: str = field(compare=False)
    email: str = field(compare=False)


@dataclass(frozen=True, slots=True)
class Comment:
    """Pull request comment anchored to a file and, optionally, a line."""

    id: int
    message: str
    path: str
    line: int | None
    author: User
    version: int


class CommentReport:
    """Ordered collection of comments, in server enumeration order."""

    def __init__(self) -> None:
        self._comments: list[Comment] = []

    def add(self, comment: Comment) -> None:
        self._comments.append(comment)

    def extend(self, report: CommentReport) -> None:
        """Append every comment of another report after the current ones."""
        self._comments.extend(report.comments)

    def contains(self, message: str, path: str, line: int | None) -> bool:
        """Return whether a comment matches message, path and line exactly."""
        return any(
            comment.message == message and comment.path == path and comment.line == line
            for comment in self._comments
        )

    @property
    def comments(self) -> tuple[Comment, ...]:
        return tuple(self._comments)

    def __len__(self) -> int:
        return len(self._comments)

    def __iter__(self) -> Iterator[Comment]:
        return iter(tuple(self._comments))


@dataclass(slots=True)
class PullRequest:
    """Pull request identity, optimistic-concurrency version and reviewers."""

    project: str
    repository: str
    id: str
    version: int | None = None
    reviewers: list[User] = field(default_factory=list)

    def add_reviewer(self, user: User) -> None:
        """Add a reviewer unless one with the same id is already present."""
        if not self.contains_reviewer(user):
            self.reviewers.append(user)

    def get_reviewer(self, user: User) -> User | None:
        for reviewer in self.reviewers:
            if reviewer.id == user.id:
                return reviewer
        return None

    def contains_reviewer(self, user: User) -> bool:
        return self.get_reviewer(user) is not None


@dataclass(slots=True)
class Diff:
    """One diff line of a file, with the comments attached to it.

    A file-level container (``file_level=True``) is typed CONTEXT with source and
    destination 0 and holds comments attached to the whole file.
    """

    type: DiffType
    path: str
    source: int
    destination: int
    comments: list[Comment] = field(default_factory=list)
    file_level: bool = False

    def add_comment(self, comment: Comment) -> None:
        self.comments.append(comment)

    def contains_comment(self, comment_id: int) -> bool:
        return any(comment.id == comment_id for comment in self.comments)

    @property
    def is_type_of_context(self) -> bool:
        return self.type is DiffType.CONTEXT


class DiffReport:
    """Ordered diff lines of a pull request. Repeated lines are kept."""

    def __init__(self) -> None:
        self._diffs: list[Diff] = []

    def add(self, diff: Diff) -> None:
        self._diffs.append(diff)

    @property
    def diffs(self) -> tuple[Diff, ...]:
        return tuple(self._diffs)

    def __len__(self) -> int:
        return len(self._diffs)

    def __iter__(self) -> Iterator[Diff]:
        return iter(tuple(self._diffs))

    def _find_line(self, path: str, destination: int) -> Diff | None:
        for diff in self._diffs:
            if not diff.file_level and diff.path == path and diff.destination == destination:
                return diff
        return None

    def get_type(self, path: str, destination: int) -> DiffType | None:
        """Return the diff type of a destination line, or None if it is not in the diff."""
        diff = self._find_line(path, destination)
        return diff.type if diff is not None else None

    def get_line(self, path: str, destination: int) -> int | None:
        """Map a destination line to the line number a comment must be anchored to.

        Context lines are anchored on their source line, added lines on their
        destination line.
        """
        diff = self._find_line(path, destination)
        if diff is None:
            return None
        if diff.is_type_of_context:
            return diff.source
        return diff.destination

    def get_diff_by_comment(self, comment_id: int) -> Diff | None:
        for diff in self._diffs:
            if diff.contains_comment(comment_id):
                return diff
        return None

    def get_comments(self) -> list[Comment]:
        return [comment for diff in self._diffs for comment in diff.comments]

    def get_file_comments(self, path: str) -> list[Comment]:
        return [
            comment
            for diff in self._diffs
            if diff.file_level and diff.path == path
            for comment in diff.comments
        ]
