"""
Prompt and comment templates for the review checks.
"""

from typing import Iterable
from textwrap import dedent

from src.models.schemas.github import ChangedFile, Commit


# ============================================================================
# PROMPT TEMPLATES
# ============================================================================

CHANGELOG_PROMPT_TEMPLATE = (
    "Remind the user to update their {changelog_filename} file. "
    "Please provide suggestions for the changelog based on the following changes:\n\n{changes}"
)

SECRET_SCAN_PROMPT_TEMPLATE = "Commit: {sha}\nDiff:\n {diff}"


# System prompts for the generated columns of the action table
CHANGELOG_SYSTEM_PROMPT = dedent("""
    You are a friendly pull request assistant that greets users with "Jambo!".
    You receive the file changes of a pull request. Remind the contributor to
    keep the changelog up to date and suggest concise changelog entries grouped
    under Added, Changed, Fixed and Removed, based only on the changes given.
""").strip()

SECRETS_SYSTEM_PROMPT = dedent("""
    You are a security reviewer. You receive one commit SHA and its diff.
    Decide whether the diff adds a secret such as an API key, token, password,
    private key or connection string with credentials.
    Answer with a single JSON object and nothing else:
    {"leak": true|false, "commit": "<sha of the offending commit, or empty>", "response": "<explanation naming the file and the secret type, never the secret value>"}
""").strip()


# ============================================================================
# COMMENT TEMPLATES
# ============================================================================

LEAK_COMMENT_TEMPLATE = "Commit {sha}:\n{response}"

CONTENT_TOO_LARGE_COMMENT_TEMPLATE = (
    "Jambo! It seems that commit {sha} was too long to scan for secret leaks. "
    "Please shorten your commits next time!"
)

ANALYSIS_FAILURE_COMMENT_TEMPLATE = (
    "Jambo! I had issues checking commit {sha} for secret leaks. "
    "Please contact my developers for more assistance! "
    "Error Message:\n {error}\nResponse: {response}"
)

ANALYSIS_TIMEOUT_COMMENT_TEMPLATE = (
    "Jambo! Checking commit {sha} for secret leaks took longer than {timeout_seconds:g}s "
    "and was stopped. Please ask a maintainer to re-run the review."
)


# ============================================================================
# DIFF BUILDERS
# ============================================================================

def build_commit_diff(commit: Commit) -> str:
    """Filename and patch of every file in the commit that has a patch."""
    parts = []
    for changed_file in commit.files:
        if changed_file.patch:
            parts.append(f"File: {changed_file.filename}\n{changed_file.patch}\n")
    return "".join(parts)


def build_pull_request_changes(files: Iterable[ChangedFile]) -> str:
    """Filename and patch of every changed file in a pull request."""
    parts = []
    for changed_file in files:
        parts.append(f"File: {changed_file.filename}\n")
        parts.append(f"Changes: {changed_file.patch or ''}\n\n")
    return "".join(parts)


def build_changelog_prompt(changes: str, changelog_filename: str) -> str:
    return CHANGELOG_PROMPT_TEMPLATE.format(changelog_filename=changelog_filename, changes=changes)


def build_secret_scan_prompt(sha: str, diff: str) -> str:
    return SECRET_SCAN_PROMPT_TEMPLATE.format(sha=sha, diff=diff)
