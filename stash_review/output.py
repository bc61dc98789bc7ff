"""Plain-text rendering of Stash reports."""

from __future__ import annotations

from stash_review.models import Comment, CommentReport, DiffReport


def _render_comment(comment: Comment, *, indent: str = "") -> str:
    location = comment.path if comment.line is None else f"{comment.path}:{comment.line}"
    return (
        f"{indent}- #{comment.id} v{comment.version} `{location}` "
        f"by {comment.author.slug}: {comment.message}"
    )


def render_comment_report(report: CommentReport) -> str:
    """Render comments one per line, in report order."""
    if not len(report):
        return "No comments."
    return "\n".join(_render_comment(comment) for comment in report)


def render_diff_report(report: DiffReport, *, commented_only: bool = False) -> str:
    """Render diff lines with their comments nested below each line."""
    lines: list[str] = []
    for diff in report:
        if commented_only and not diff.comments:
            continue
        if diff.file_level:
            lines.append(f"{diff.path} (file)")
        else:
            lines.append(f"{diff.path} {diff.type} {diff.source} -> {diff.destination}")
        lines.extend(_render_comment(comment, indent="  ") for comment in diff.comments)
    if not lines:
        return "No diff lines."
    return "\n".join(lines)
