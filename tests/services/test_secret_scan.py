"""
Tests for the per-commit secret scan pipeline.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import httpx
import pytest

from src.core.review_config import GitHubAPIConfig, ReviewLimits, ReviewSettings
from src.exceptions.review_exceptions import (
    AnalysisFailureKind,
    GenerationTransportException,
    GitHubAPIException,
    StreamDecodeException,
)
from src.models.schemas.generation import TableType
from src.models.schemas.github import ChangedFile, Commit, IssueComment
from src.models.schemas.review import CommitScanStatus
from src.services.github.pr_api_client import PRApiClient
from src.services.jamai.client import JamAIClient
from src.services.review.secret_scan import SecretScanPipeline
from tests.conftest import data_line, sse_body

CLEAN = '{"leak": false, "commit": "", "response": "nothing found"}'


def make_commit(sha, parents=1, files=()):
    return Commit(sha=sha, parents=[f"p{i}" for i in range(parents)], files=list(files))


@pytest.fixture
def github_client():
    client = AsyncMock()
    client.get_commit.side_effect = lambda repo_name, sha: make_commit(
        sha, files=[ChangedFile(filename=f"{sha}.py", patch=f"+token = '{sha}'")]
    )
    client.create_issue_comment.return_value = IssueComment(id=900)
    return client


@pytest.fixture
def jamai_client():
    client = AsyncMock()
    client.generate_text.return_value = CLEAN
    return client


def posted_bodies(github_client):
    return [c.args[2] for c in github_client.create_issue_comment.call_args_list]


@pytest.mark.asyncio
async def test_merge_commits_are_skipped(github_client, jamai_client, pull_request, review_config):
    github_client.list_pr_commits.return_value = [make_commit("merge1", parents=2), make_commit("abc123")]
    pipeline = SecretScanPipeline(github_client, jamai_client, review_config, bot_version="v1")

    report = await pipeline.run(pull_request)

    assert report.analyzed_shas() == ["abc123"]
    assert report.outcomes[0].status == CommitScanStatus.SKIPPED_MERGE
    github_client.get_commit.assert_called_once_with("octo/widgets", "abc123")
    jamai_client.generate_text.assert_called_once()


@pytest.mark.asyncio
async def test_scans_non_merge_commits_in_order_with_one_call_each(
    github_client, jamai_client, pull_request, review_config
):
    github_client.list_pr_commits.return_value = [
        make_commit("aaa"),
        make_commit("bbb", parents=2),
        make_commit("ccc"),
    ]
    pipeline = SecretScanPipeline(github_client, jamai_client, review_config, bot_version="v1")

    report = await pipeline.run(pull_request)

    assert report.analyzed_shas() == ["aaa", "ccc"]
    assert jamai_client.generate_text.call_count == 2
    first, second = jamai_client.generate_text.call_args_list
    assert first.args[0] == TableType.ACTION
    assert first.args[1] == "octo_widgets_v1"
    assert first.args[2] == {"PullReqSecretsBody": "Commit: aaa\nDiff:\n File: aaa.py\n+token = 'aaa'\n"}
    assert first.args[3] == "SecretsJSONResponse"
    assert second.args[2]["PullReqSecretsBody"].startswith("Commit: ccc\n")
    github_client.create_issue_comment.assert_not_called()
    assert all(o.status in (CommitScanStatus.SILENT, CommitScanStatus.SKIPPED_MERGE) for o in report.outcomes)


@pytest.mark.asyncio
async def test_duplicate_commits_are_analyzed_once(github_client, jamai_client, pull_request, review_config):
    github_client.list_pr_commits.return_value = [make_commit("aaa"), make_commit("aaa")]
    pipeline = SecretScanPipeline(github_client, jamai_client, review_config)

    report = await pipeline.run(pull_request)

    assert report.analyzed_shas() == ["aaa"]
    jamai_client.generate_text.assert_called_once()


@pytest.mark.asyncio
async def test_leak_without_override_is_attributed_to_scanned_commit(
    github_client, jamai_client, pull_request, review_config
):
    github_client.list_pr_commits.return_value = [make_commit("abc123")]
    jamai_client.generate_text.return_value = '{"leak": true, "commit": "", "response": "X"}'
    pipeline = SecretScanPipeline(github_client, jamai_client, review_config)

    report = await pipeline.run(pull_request)

    assert posted_bodies(github_client) == ["Commit abc123:\nX"]
    outcome = report.outcomes[0]
    assert outcome.status == CommitScanStatus.COMMENTED
    assert outcome.attributed_commit == "abc123"
    assert outcome.comment_id == 900


@pytest.mark.asyncio
async def test_leak_with_override_is_attributed_to_override(
    github_client, jamai_client, pull_request, review_config
):
    github_client.list_pr_commits.return_value = [make_commit("abc123")]
    jamai_client.generate_text.return_value = '{"leak": true, "commit": "def456", "response": "Y"}'
    pipeline = SecretScanPipeline(github_client, jamai_client, review_config)

    report = await pipeline.run(pull_request)

    assert posted_bodies(github_client) == ["Commit def456:\nY"]
    assert report.outcomes[0].attributed_commit == "def456"


@pytest.mark.asyncio
async def test_context_window_failure_posts_too_large_message(
    github_client, jamai_client, pull_request, review_config
):
    github_client.list_pr_commits.return_value = [make_commit("big1"), make_commit("next1")]
    jamai_client.generate_text.side_effect = [
        "litellm.ContextWindowExceededError: input too long",
        CLEAN,
    ]
    pipeline = SecretScanPipeline(github_client, jamai_client, review_config)

    report = await pipeline.run(pull_request)

    bodies = posted_bodies(github_client)
    assert len(bodies) == 1
    assert "commit big1 was too long to scan" in bodies[0]
    assert report.outcomes[0].failure_kind == AnalysisFailureKind.CONTENT_TOO_LARGE
    assert report.outcomes[1].status == CommitScanStatus.SILENT


@pytest.mark.asyncio
async def test_generic_decode_failure_includes_raw_text_and_continues(
    github_client, jamai_client, pull_request, review_config
):
    github_client.list_pr_commits.return_value = [make_commit("bad1"), make_commit("abc123")]
    jamai_client.generate_text.side_effect = [
        "Sorry, I cannot help with that.",
        '{"leak": true, "response": "Z"}',
    ]
    pipeline = SecretScanPipeline(github_client, jamai_client, review_config)

    report = await pipeline.run(pull_request)

    bodies = posted_bodies(github_client)
    assert "I had issues checking commit bad1" in bodies[0]
    assert "Response: Sorry, I cannot help with that." in bodies[0]
    assert bodies[1] == "Commit abc123:\nZ"
    assert report.outcomes[0].failure_kind == AnalysisFailureKind.GENERIC
    assert report.outcomes[0].verdict.raw_text == "Sorry, I cannot help with that."


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        GenerationTransportException("POST rows/add", "connection refused"),
        StreamDecodeException("{bad", "invalid JSON"),
    ],
)
async def test_generation_errors_fail_only_that_commit(
    error, github_client, jamai_client, pull_request, review_config
):
    github_client.list_pr_commits.return_value = [make_commit("aaa"), make_commit("bbb")]
    jamai_client.generate_text.side_effect = [error, CLEAN]
    pipeline = SecretScanPipeline(github_client, jamai_client, review_config)

    report = await pipeline.run(pull_request)

    assert [o.status for o in report.outcomes] == [CommitScanStatus.FAILED, CommitScanStatus.SILENT]
    assert report.outcomes[0].failure_kind == AnalysisFailureKind.GENERIC
    assert "I had issues checking commit aaa" in posted_bodies(github_client)[0]


@pytest.mark.asyncio
async def test_diff_fetch_failure_scans_with_empty_diff(github_client, jamai_client, pull_request, review_config):
    github_client.list_pr_commits.return_value = [make_commit("aaa")]
    github_client.get_commit.side_effect = GitHubAPIException("boom")
    pipeline = SecretScanPipeline(github_client, jamai_client, review_config)

    report = await pipeline.run(pull_request)

    row = jamai_client.generate_text.call_args.args[2]
    assert row == {"PullReqSecretsBody": "Commit: aaa\nDiff:\n "}
    assert report.outcomes[0].status == CommitScanStatus.SILENT


@pytest.mark.asyncio
async def test_deadline_is_reported_as_cancelled(github_client, jamai_client, pull_request):
    config = ReviewSettings(limits=ReviewLimits(analysis_timeout_seconds=0.05))
    github_client.list_pr_commits.return_value = [make_commit("slow1")]

    async def never_finishes(*args, **kwargs):
        await asyncio.sleep(10)

    jamai_client.generate_text.side_effect = never_finishes
    pipeline = SecretScanPipeline(github_client, jamai_client, config)

    report = await pipeline.run(pull_request)

    assert report.outcomes[0].failure_kind == AnalysisFailureKind.CANCELLED
    assert "commit slow1" in posted_bodies(github_client)[0]


@pytest.mark.asyncio
async def test_comment_failure_does_not_abort_scan(github_client, jamai_client, pull_request, review_config):
    github_client.list_pr_commits.return_value = [make_commit("aaa"), make_commit("bbb")]
    github_client.create_issue_comment.side_effect = [GitHubAPIException("forbidden"), IssueComment(id=5)]
    jamai_client.generate_text.return_value = '{"leak": true, "response": "key"}'
    pipeline = SecretScanPipeline(github_client, jamai_client, review_config)

    report = await pipeline.run(pull_request)

    assert [o.comment_id for o in report.outcomes] == [None, 5]


@pytest.mark.asyncio
async def test_listing_failure_returns_report_with_error(github_client, jamai_client, pull_request, review_config):
    github_client.list_pr_commits.side_effect = GitHubAPIException("unavailable")
    pipeline = SecretScanPipeline(github_client, jamai_client, review_config)

    report = await pipeline.run(pull_request)

    assert report.outcomes == []
    assert report.error_message == "unavailable"
    jamai_client.generate_text.assert_not_called()


@pytest.mark.asyncio
async def test_parallel_scan_keeps_attribution_and_skips_merges(github_client, jamai_client, pull_request):
    config = ReviewSettings(limits=ReviewLimits(max_concurrent_commits=3))
    github_client.list_pr_commits.return_value = [
        make_commit("aaa"),
        make_commit("mmm", parents=2),
        make_commit("bbb"),
        make_commit("ccc"),
    ]

    async def verdict_for(table_type, table_id, row, column):
        sha = row["PullReqSecretsBody"].split("\n", 1)[0].removeprefix("Commit: ")
        await asyncio.sleep(0.01 if sha == "aaa" else 0)
        if sha == "bbb":
            return CLEAN
        return f'{{"leak": true, "response": "found in {sha}"}}'

    jamai_client.generate_text.side_effect = verdict_for
    pipeline = SecretScanPipeline(github_client, jamai_client, config)

    report = await pipeline.run(pull_request)

    assert sorted(posted_bodies(github_client)) == ["Commit aaa:\nfound in aaa", "Commit ccc:\nfound in ccc"]
    assert [o.sha for o in report.outcomes] == ["aaa", "mmm", "bbb", "ccc"]
    assert jamai_client.generate_text.call_count == 3


@pytest.mark.asyncio
async def test_unexpected_error_fails_only_that_commit(github_client, jamai_client, pull_request, review_config):
    github_client.list_pr_commits.return_value = [make_commit("aaa"), make_commit("bbb")]
    github_client.get_commit.side_effect = [ValueError("bad payload"), make_commit("bbb")]
    pipeline = SecretScanPipeline(github_client, jamai_client, review_config, bot_version="v1")

    report = await pipeline.run(pull_request)

    first, second = report.outcomes
    assert first.status == CommitScanStatus.FAILED
    assert first.failure_kind == AnalysisFailureKind.GENERIC
    assert "bad payload" in posted_bodies(github_client)[0]
    assert second.status == CommitScanStatus.SILENT
    assert jamai_client.generate_text.call_count == 1


def github_transport(commit_bodies, posted):
    """GitHub API serving two listed commits and recording posted comments."""

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/repos/octo/widgets/pulls/7/commits":
            return httpx.Response(200, json=[
                {"sha": "aaa", "parents": [{"sha": "p0"}]},
                {"sha": "bbb", "parents": [{"sha": "aaa"}]},
            ])
        if path.startswith("/repos/octo/widgets/commits/"):
            return commit_bodies[path.rsplit("/", 1)[1]]
        if path == "/repos/octo/widgets/issues/7/comments" and request.method == "POST":
            posted.append(json.loads(request.content)["body"])
            return httpx.Response(201, json={"id": 500 + len(posted), "body": "", "user": {"login": "bot"}})
        return httpx.Response(404, json={"message": "Not Found"})

    return httpx.MockTransport(handler)


def jamai_transport(prompts, reply_for):
    """Generation service streaming `reply_for(prompt)` for the secrets column."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/gen_tables/action/rows/add"
        prompt = json.loads(request.content)["data"][0]["PullReqSecretsBody"]
        prompts.append(prompt)
        return httpx.Response(200, content=sse_body(reply_for(prompt)))

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_streamed_reply_drives_leak_comment_end_to_end(pull_request, review_config):
    posted, prompts = [], []
    commit_bodies = {
        sha: httpx.Response(200, json={
            "sha": sha,
            "parents": [{"sha": "p0"}],
            "files": [{"filename": "config.py", "patch": f"+KEY = '{sha}'"}],
        })
        for sha in ("aaa", "bbb")
    }

    def reply_for(prompt):
        if prompt.startswith("Commit: aaa"):
            return [
                data_line("PullReqResponse", "other column"),
                data_line("SecretsJSONResponse", '{"leak": true, ', '"commit": "", '),
                data_line("SecretsJSONResponse", '"response": "API key in config.py"}'),
                "data: [DONE]",
            ]
        return [data_line("SecretsJSONResponse", CLEAN), "data: [DONE]"]

    async with PRApiClient(
        token="t",
        base_url="https://github.test",
        config=GitHubAPIConfig(retry_attempts=0),
        transport=github_transport(commit_bodies, posted),
    ) as github, JamAIClient(
        base_url="https://jamai.test/api/v1/gen_tables",
        api_key="k",
        project_id="p",
        transport=jamai_transport(prompts, reply_for),
    ) as jamai:
        report = await SecretScanPipeline(github, jamai, review_config, bot_version="v1").run(pull_request)

    assert posted == ["Commit aaa:\nAPI key in config.py"]
    assert [o.status for o in report.outcomes] == [CommitScanStatus.COMMENTED, CommitScanStatus.SILENT]
    assert report.outcomes[0].comment_id == 501
    assert "File: config.py\n+KEY = 'aaa'" in prompts[0]


@pytest.mark.asyncio
async def test_non_json_commit_body_falls_back_to_empty_diff_and_scan_continues(pull_request, review_config):
    posted, prompts = [], []
    commit_bodies = {
        "aaa": httpx.Response(200, text="<html>upstream proxy error</html>"),
        "bbb": httpx.Response(200, json={"sha": "bbb", "parents": [{"sha": "aaa"}], "files": []}),
    }

    async with PRApiClient(
        token="t",
        base_url="https://github.test",
        config=GitHubAPIConfig(retry_attempts=0),
        transport=github_transport(commit_bodies, posted),
    ) as github, JamAIClient(
        base_url="https://jamai.test/api/v1/gen_tables",
        api_key="k",
        project_id="p",
        transport=jamai_transport(prompts, lambda prompt: [data_line("SecretsJSONResponse", CLEAN)]),
    ) as jamai:
        report = await SecretScanPipeline(github, jamai, review_config, bot_version="v1").run(pull_request)

    assert report.analyzed_shas() == ["aaa", "bbb"]
    assert [o.status for o in report.outcomes] == [CommitScanStatus.SILENT, CommitScanStatus.SILENT]
    assert prompts == ["Commit: aaa\nDiff:\n ", "Commit: bbb\nDiff:\n "]
    assert posted == []
