"""Unit tests for pipeline and commit status endpoints."""

import pytest

from bbagent.features.bitbucket import pipelines
from bbagent.features.bitbucket.validation import ValidationError
from tests.helpers.bitbucket import REPO, FakeBitbucket, make_client


REPO_PATH = f"/repositories/acme/{REPO}"


class TestNormalizePipelineUuid:
    """Tests for brace normalization."""

    def test_adds_braces(self) -> None:
        assert pipelines.normalize_pipeline_uuid("abc-1") == "{abc-1}"

    def test_keeps_braces(self) -> None:
        assert pipelines.normalize_pipeline_uuid("{abc-1}") == "{abc-1}"


class TestPipelineStatus:
    """Tests for fetching a single pipeline."""

    def test_braces_are_escaped(self) -> None:
        """Test that the braced UUID is sent percent-encoded."""
        fake = FakeBitbucket()
        fake.route(
            "GET",
            f"{REPO_PATH}/pipelines/%7Babc-1%7D",
            {
                "uuid": "{abc-1}",
                "build_number": 42,
                "state": {"name": "COMPLETED", "result": {"name": "SUCCESSFUL"}},
            },
        )

        pipeline = pipelines.get_pipeline_status(make_client(fake), REPO, "abc-1")

        assert pipeline.build_number == 42
        assert pipeline.state is not None
        assert pipeline.state.result is not None
        assert pipeline.state.result.name == "SUCCESSFUL"

    def test_requires_uuid(self) -> None:
        with pytest.raises(ValidationError, match="pipeline UUID is required"):
            pipelines.get_pipeline_status(make_client(FakeBitbucket()), REPO, " ")


class TestListPipelines:
    """Tests for listing pipeline runs."""

    def test_page_length_follows_limit(self) -> None:
        """Test that small limits shrink the page and trim the result."""
        fake = FakeBitbucket()
        fake.route(
            "GET",
            f"{REPO_PATH}/pipelines/",
            {
                "values": [{"build_number": n} for n in (3, 2, 1)],
                "next": "https://api.example.test/2.0/never-fetched",
            },
        )

        result = pipelines.list_pipelines(make_client(fake), REPO, limit=2)

        assert [p.build_number for p in result] == [3, 2]
        assert fake.requests[0].url.params["pagelen"] == "2"
        assert len(fake.requests) == 1


class TestCommitStatuses:
    """Tests for commit and pull request build statuses."""

    def test_commit_statuses(self) -> None:
        fake = FakeBitbucket()
        fake.route(
            "GET",
            f"{REPO_PATH}/commit/abc123/statuses",
            {"values": [{"key": "ci", "state": "SUCCESSFUL"}]},
        )

        statuses = pipelines.get_commit_statuses(make_client(fake), REPO, "abc123")

        assert [(s.key, s.state) for s in statuses] == [("ci", "SUCCESSFUL")]

    def test_pr_pipelines_use_source_commit(self) -> None:
        """Test that PR statuses are read from the source commit."""
        fake = FakeBitbucket()
        fake.route(
            "GET",
            f"{REPO_PATH}/pullrequests/7",
            {"id": 7, "source": {"commit": {"hash": "abc123"}}},
        )
        fake.route(
            "GET",
            f"{REPO_PATH}/commit/abc123/statuses",
            {"values": [{"key": "ci", "state": "INPROGRESS"}]},
        )

        statuses = pipelines.get_pr_pipelines(make_client(fake), REPO, 7)

        assert statuses[0].state == "INPROGRESS"

    def test_pr_without_source_commit(self) -> None:
        fake = FakeBitbucket()
        fake.route("GET", f"{REPO_PATH}/pullrequests/7", {"id": 7})

        with pytest.raises(ValidationError, match="no source commit"):
            pipelines.get_pr_pipelines(make_client(fake), REPO, 7)
