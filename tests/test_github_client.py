"""Tests for pipeline/digestlib/github_client.py."""

# Standard Library
import json
import os
import sys
from datetime import datetime
from datetime import timezone
from types import SimpleNamespace

import pytest
import requests
from github.GithubException import GithubException

# add pipeline directory to path for digestlib imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "pipeline"))

from digestlib import activity_analyzers
from digestlib import github_client
from digestlib.activity_records import IssueRecord
from digestlib.errors import RateLimitError
from digestlib.errors import ResponseParseError


#============================================
class FakeHttpResponse:
	def __init__(self, status_code=200, content=b"", payload=None):
		self.status_code = status_code
		self.content = content
		self.payload = payload

	def json(self):
		if self.payload is None:
			raise ValueError("no json")
		return self.payload


#============================================
class FakeSession:
	def __init__(self, get_response=None, post_response=None):
		self.get_response = get_response
		self.post_response = post_response
		self.requests = []

	def get(self, url, headers=None, timeout=None):
		self.requests.append(("GET", url, headers))
		if isinstance(self.get_response, Exception):
			raise self.get_response
		return self.get_response

	def post(self, url, json=None, headers=None, timeout=None):
		self.requests.append(("POST", url, json))
		return self.post_response


#============================================
def make_stub_client(overview_object=None, github=None, session=None, logs=None):
	"""
	Build GitHubClient instance without touching the network.
	"""
	client = github_client.GitHubClient.__new__(github_client.GitHubClient)
	client.token = "t0ken"
	client.log_fn = None if logs is None else logs.append
	client.jitter = False
	client._rate_check_count = 0
	client._low_remaining_threshold = 5
	client._max_proactive_sleep_seconds = 10
	client._api_call_count = 0
	client._api_calls_by_context = {}
	client.session = session
	if github is None:
		github = SimpleNamespace(get_rate_limit=lambda: overview_object)
	client.client = github
	return client


#============================================
def test_core_rate_limit_snapshot_from_core_attribute() -> None:
	"""
	Rate limit should parse from overview.core shape.
	"""
	reset_time = datetime(2026, 2, 22, 3, 30, 0, tzinfo=timezone.utc)
	overview = SimpleNamespace(core=SimpleNamespace(remaining=42, reset=reset_time))
	client = make_stub_client(overview)
	remaining, parsed_reset = client.get_core_rate_limit_snapshot()
	assert remaining == 42
	assert parsed_reset == reset_time
	assert client.api_usage_snapshot()["api_call_count"] == 1


#============================================
def test_core_rate_limit_snapshot_from_resources_dict() -> None:
	"""
	Rate limit should parse from overview.resources['core'] shape.
	"""
	overview = SimpleNamespace(resources={"core": SimpleNamespace(remaining=3, reset=1761110400)})
	client = make_stub_client(overview)
	remaining, parsed_reset = client.get_core_rate_limit_snapshot()
	assert remaining == 3
	assert parsed_reset.tzinfo is not None


#============================================
def test_maybe_wait_for_rate_limit_handles_unknown_shape() -> None:
	"""
	Unknown rate-limit shape should not crash wait checks.
	"""
	logs = []
	client = make_stub_client(SimpleNamespace(resources={}), logs=logs)
	client.maybe_wait_for_rate_limit("unit-test", force=True)
	assert any("unavailable" in line for line in logs)


#============================================
def test_forbidden_error_becomes_rate_limit_error() -> None:
	"""
	A 403 from PyGithub is raised as RateLimitError with reset details.
	"""
	reset_time = datetime(2026, 2, 22, 3, 30, 0, tzinfo=timezone.utc)
	overview = SimpleNamespace(core=SimpleNamespace(remaining=0, reset=reset_time))
	client = make_stub_client(overview)

	def call_fn():
		raise GithubException(403, {"message": "rate limited"}, None)

	with pytest.raises(RateLimitError) as error_info:
		client.call_with_retry("GET /repos/o/r", call_fn)
	assert "remaining=0" in str(error_info.value)


#============================================
def test_other_github_errors_propagate() -> None:
	client = make_stub_client()

	def call_fn():
		raise GithubException(404, {"message": "missing"}, None)

	with pytest.raises(GithubException):
		client.call_with_retry("GET /repos/o/r", call_fn)


#============================================
def test_fetch_returns_none_on_404() -> None:
	logs = []
	session = FakeSession(get_response=FakeHttpResponse(status_code=404))
	client = make_stub_client(session=session, logs=logs)
	assert client.fetch("https://api.github.com/repos/o/r/community/profile") is None
	assert any("status 404" in line for line in logs)
	headers = session.requests[0][2]
	assert headers["Authorization"] == "Bearer t0ken"


#============================================
def test_fetch_returns_none_on_network_error() -> None:
	session = FakeSession(get_response=requests.ConnectionError("down"))
	client = make_stub_client(session=session)
	assert client.fetch_commit_patch("https://github.com/o/r/commit/abc") is None
	assert session.requests[0][1] == "https://github.com/o/r/commit/abc.patch"


#============================================
def test_get_repo_profile_invalid_payload_is_none() -> None:
	"""
	A profile body without health_percentage is treated as invalid.
	"""
	body = json.dumps({"description": "x", "files": {}}).encode("utf-8")
	session = FakeSession(get_response=FakeHttpResponse(content=body))
	client = make_stub_client(session=session)
	assert client.get_repo_profile("o", "r") is None


#============================================
def test_get_repo_profile_without_readme() -> None:
	body = json.dumps({"health_percentage": 50, "description": "A tool", "files": {"readme": None}})
	session = FakeSession(get_response=FakeHttpResponse(content=body.encode("utf-8")))
	client = make_stub_client(session=session)
	profile = client.get_repo_profile("o", "r")
	assert profile.full_name == "o/r"
	assert profile.readme == "A tool"


#============================================
def test_list_issues_filters_pull_requests_and_bad_items() -> None:
	"""
	Pull requests are dropped and malformed issues are skipped with a log.
	"""
	issue = {
		"number": 1,
		"title": "Bug",
		"url": "https://api.github.com/repos/o/r/issues/1",
		"html_url": "https://github.com/o/r/issues/1",
		"user": {"login": "a"},
		"body": None,
		"labels": [],
		"created_at": "2024-05-01T00:00:00Z",
	}
	pull = dict(issue, number=2, pull_request={"url": "x"})
	broken = {"number": 3}
	queries = []

	def search_issues(query):
		queries.append(query)
		return [SimpleNamespace(raw_data=raw) for raw in (issue, pull, broken)]

	overview = SimpleNamespace(core=SimpleNamespace(remaining=100, reset=0))
	github = SimpleNamespace(search_issues=search_issues, get_rate_limit=lambda: overview)
	logs = []
	client = make_stub_client(github=github, logs=logs)
	since = datetime(2024, 4, 24, tzinfo=timezone.utc)
	issues = client.list_issues("o/r", since, user="a")
	assert [record.number for record in issues] == [1]
	assert queries == ["repo:o/r is:issue involves:a updated:>2024-04-24T00:00:00Z"]
	assert any("Skipping malformed issue" in line for line in logs)


#============================================
def test_search_discussions_parses_nodes() -> None:
	payload = {"data": {"search": {"nodes": [
		{},
		{
			"title": "Q",
			"url": "https://github.com/o/r/discussions/2",
			"author": {"login": "b"},
			"body": "?",
			"updatedAt": "2024-05-01T00:00:00Z",
			"comments": {"nodes": []},
		},
	]}}}
	session = FakeSession(post_response=FakeHttpResponse(payload=payload))
	client = make_stub_client(session=session)
	discussions = client.search_discussions("repo:o/r")
	assert len(discussions) == 1
	assert discussions[0].title == "Q"
	assert session.requests[0][2]["variables"] == {"search": "repo:o/r", "first": 30}


#============================================
def test_parse_discussion_search_errors() -> None:
	"""
	GraphQL errors and missing fields raise ResponseParseError.
	"""
	with pytest.raises(ResponseParseError):
		github_client.parse_discussion_search({"errors": [{"message": "bad"}]})
	with pytest.raises(ResponseParseError):
		github_client.parse_discussion_search({"data": {}})
	with pytest.raises(ResponseParseError):
		github_client.parse_discussion_search({"data": {"search": {"nodes": None}}})
	assert github_client.parse_discussion_search({"data": {"search": {"nodes": []}}}) == []


#============================================
class SummaryChain:
	def __init__(self):
		self.request_ids = []

	def run(self, system_prompt, user_prompt_1, request_id_1, output_budget_1,
			user_prompt_2, request_id_2, output_budget_2, error_context, profile=None):
		self.request_ids.append(request_id_1)
		return f"summary of {request_id_1}"


#============================================
def make_issue_record(number: int):
	return IssueRecord(
		number=number,
		title="Crash",
		url=f"https://api.github.com/repos/o/r/issues/{number}",
		html_url=f"https://github.com/o/r/issues/{number}",
		user_login="a",
		body="It breaks",
		labels=(),
		created_at=datetime(2024, 5, 1, tzinfo=timezone.utc),
	)


#============================================
def make_rate_limited_repo_github(forbidden_number: int):
	"""
	Build a PyGithub stand-in whose comment fetch for one issue returns 403.
	"""
	def get_issue(number):
		if number == forbidden_number:
			raise GithubException(403, {"message": "API rate limit exceeded"}, None)
		comment = SimpleNamespace(raw_data={"user": {"login": "b"}, "body": "same here"})
		return SimpleNamespace(get_comments=lambda: [comment])

	repo_obj = SimpleNamespace(get_issue=get_issue)
	overview = SimpleNamespace(core=SimpleNamespace(remaining=0, reset=0))
	return SimpleNamespace(get_repo=lambda full_name: repo_obj, get_rate_limit=lambda: overview)


#============================================
def test_list_issue_comments_rate_limited_returns_empty() -> None:
	"""
	A 403 on one comment fetch is logged and yields no comments.
	"""
	logs = []
	client = make_stub_client(github=make_rate_limited_repo_github(2), logs=logs)
	assert client.list_issue_comments("o/r", 2) == []
	assert any("Failed to list comments for o/r#2" in line for line in logs)
	comments = client.list_issue_comments("o/r", 1)
	assert [comment.user_login for comment in comments] == ["b"]


#============================================
def test_issue_batch_survives_rate_limited_comment_fetch() -> None:
	"""
	Issue 2 of 3 hitting a 403 on its comments does not stop the batch.
	"""
	client = make_stub_client(github=make_rate_limited_repo_github(2))
	chain = SummaryChain()
	issues = [make_issue_record(number) for number in (1, 2, 3)]
	result = activity_analyzers.process_issues(
		chain, issues, lambda issue: client.list_issue_comments("o/r", issue.number),
	)
	assert result is not None
	assert result.attempted == 3
	assert result.processed == 3
	assert chain.request_ids == ["issue_1", "issue_2", "issue_3"]


#============================================
def test_issue_batch_skips_item_whose_fetch_raises() -> None:
	"""
	A rate-limit error escaping one item's fetch skips that item only.
	"""
	client = make_stub_client(github=make_rate_limited_repo_github(2))
	chain = SummaryChain()
	logs = []

	def comments_fn(issue):
		if issue.number == 2:
			client.call_with_retry(
				"GET /repos/o/r/issues/2/comments",
				lambda: client.client.get_repo("o/r").get_issue(2),
			)
		return []

	issues = [make_issue_record(number) for number in (1, 2, 3)]
	result = activity_analyzers.process_issues(chain, issues, comments_fn, log_fn=logs.append)
	assert result.attempted == 3
	assert result.processed == 2
	assert chain.request_ids == ["issue_1", "issue_3"]
	assert any("rate limit exceeded" in line for line in logs)


#============================================
def test_get_readme_rate_limited_returns_empty() -> None:
	def get_readme():
		raise GithubException(403, {"message": "API rate limit exceeded"}, None)

	repo_obj = SimpleNamespace(get_readme=get_readme)
	overview = SimpleNamespace(core=SimpleNamespace(remaining=0, reset=0))
	github = SimpleNamespace(get_repo=lambda full_name: repo_obj, get_rate_limit=lambda: overview)
	client = make_stub_client(github=github)
	assert client.get_readme("o/r") == ""


#============================================
def test_list_commits_nested_rate_limit_and_network_errors() -> None:
	"""
	Errors raised inside the nested repo lookup still end in an empty list.
	"""
	overview = SimpleNamespace(core=SimpleNamespace(remaining=100, reset=0))

	def forbidden_repo(full_name):
		raise GithubException(403, {"message": "API rate limit exceeded"}, None)

	github = SimpleNamespace(get_repo=forbidden_repo, get_rate_limit=lambda: overview)
	client = make_stub_client(github=github)
	since = datetime(2024, 4, 24, tzinfo=timezone.utc)
	assert client.list_commits("o/r", since) == []
	assert client.list_issues("o/r", since) == []

	def broken_repo(full_name):
		raise requests.ConnectionError("reset by peer")

	client = make_stub_client(github=SimpleNamespace(get_repo=broken_repo, get_rate_limit=lambda: overview))
	assert client.list_commits("o/r", since) == []
	assert client.is_code_contributor("o", "r", "a") is False
