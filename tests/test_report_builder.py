"""Tests for pipeline/digestlib/report_builder.py."""

# Standard Library
import os
import sys
from datetime import datetime
from datetime import timezone

# add pipeline directory to path for digestlib imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "pipeline"))

from digestlib import report_builder
from digestlib.activity_records import CommentRecord
from digestlib.activity_records import CommitRecord
from digestlib.activity_records import DiscussionRecord
from digestlib.activity_records import IssueRecord
from digestlib.activity_records import RepoProfile


NOW = datetime(2024, 5, 8, 0, 0, tzinfo=timezone.utc)
WHEN = datetime(2024, 5, 3, 9, 0, tzinfo=timezone.utc)


#============================================
class FakeChain:
	def __init__(self, fail_ids=None):
		self.fail_ids = set(fail_ids or [])
		self.request_ids = []

	def run(self, system_prompt, user_prompt_1, request_id_1, output_budget_1,
			user_prompt_2, request_id_2, output_budget_2, error_context, profile=None):
		self.request_ids.append(request_id_1)
		if request_id_1 in self.fail_ids:
			return None
		return f"summary of {request_id_1}"


#============================================
class FakeFetcher:
	"""
	In-memory GitHubClient stand-in.
	"""

	def __init__(self, profile=True, commits=None, issues=None, discussions=None, contributor=True):
		self.profile = None
		if profile:
			self.profile = RepoProfile(full_name="o/r", description="A tool", readme="Readme", updated_at=None)
		self.commits = commits or []
		self.issues = issues or []
		self.discussions = discussions or []
		self.contributor = contributor
		self.calls = []

	def get_repo_profile(self, owner, repo):
		self.calls.append(("profile", owner, repo))
		return self.profile

	def is_code_contributor(self, owner, repo, user_name):
		return self.contributor

	def list_commits(self, full_name, since, author=None):
		self.calls.append(("commits", full_name, since, author))
		return self.commits

	def fetch_commit_patch(self, html_url):
		return "Subject: change\n"

	def list_issues(self, full_name, since, user=None):
		self.calls.append(("issues", full_name, since, user))
		return self.issues

	def list_issue_comments(self, full_name, number):
		return [CommentRecord(user_login="bob", body="+1")]

	def search_discussions(self, query, first=30):
		self.calls.append(("discussions", query))
		return self.discussions


#============================================
def sample_commit() -> CommitRecord:
	sha = "abcdef1234567890"
	return CommitRecord(
		sha=sha,
		html_url=f"https://github.com/o/r/commit/{sha}",
		author_login="alice",
		message="Fix",
		committed_at=WHEN,
	)


#============================================
def sample_issue() -> IssueRecord:
	return IssueRecord(
		number=31,
		title="Crash",
		url="https://api.github.com/repos/o/r/issues/31",
		html_url="https://github.com/o/r/issues/31",
		user_login="carol",
		body="It crashes",
		labels=(),
		created_at=WHEN,
	)


#============================================
def sample_discussion() -> DiscussionRecord:
	return DiscussionRecord(
		title="Ideas",
		url="https://github.com/o/r/discussions/8",
		author_login="dave",
		body="Thoughts?",
		updated_at=WHEN,
	)


#============================================
def test_invalid_repo_short_circuits() -> None:
	"""
	A missing community profile reports an invalid repo and fetches nothing else.
	"""
	notes = []
	fetcher = FakeFetcher(profile=False)
	result = report_builder.build_report(fetcher, FakeChain(), "o", "r", notify_fn=notes.append, now=NOW)
	assert result.valid_repo is False
	assert result.text == report_builder.INVALID_REPO_MESSAGE
	assert notes == [report_builder.INVALID_REPO_MESSAGE]
	assert fetcher.calls == [("profile", "o", "r")]


#============================================
def test_nothing_to_report_without_user() -> None:
	notes = []
	chain = FakeChain()
	result = report_builder.build_report(FakeFetcher(), chain, "o", "r", notify_fn=notes.append, now=NOW)
	assert result.empty is True
	assert result.text == "No useful data found, nothing to report"
	assert chain.request_ids == []
	assert "found 0 commits: " in notes
	assert any("weekly progress of o/r" in note for note in notes)


#============================================
def test_nothing_to_report_with_user() -> None:
	result = report_builder.build_report(FakeFetcher(), FakeChain(), "o", "r", user_name="zed", now=NOW)
	assert result.empty is True
	assert "No useful data found for zed" in result.text


#============================================
def test_full_report_flow() -> None:
	"""
	All three sources are summarized and correlated into the final report.
	"""
	notes = []
	fetcher = FakeFetcher(
		commits=[sample_commit()],
		issues=[sample_issue()],
		discussions=[sample_discussion()],
	)
	chain = FakeChain()
	result = report_builder.build_report(
		fetcher, chain, "o", "r", user_name="alice", n_days=7, notify_fn=notes.append, now=NOW,
	)
	assert result.empty is False
	assert (result.commit_count, result.issue_count, result.discussion_count) == (1, 1, 1)
	assert chain.request_ids == ["commit-abcde", "issue_31", "discussion-8", "correlate-99"]
	lines = result.text.split("\n")
	assert lines[0] == "found 1 commits: abcdef1"
	assert lines[1] == "found 1 issues: 31"
	assert lines[2] == "found 1 discussions: 8"
	assert lines[3] == "summary of correlate-99"
	assert "exploring alice's GitHub contributions to `o/r` project" in notes
	since = datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc)
	assert ("commits", "o/r", since, "alice") in fetcher.calls
	assert ("discussions", "repo:o/r involves:alice updated:>2024-05-01T00:00:00Z") in fetcher.calls


#============================================
def test_correlation_failure_reports_no_report() -> None:
	fetcher = FakeFetcher(issues=[sample_issue()])
	chain = FakeChain(fail_ids={"correlate-99"})
	result = report_builder.build_report(fetcher, chain, "o", "r", now=NOW)
	assert result.text == "no report generated"
	assert result.issue_count == 1


#============================================
def test_all_batches_failing_is_nothing_to_report() -> None:
	fetcher = FakeFetcher(issues=[sample_issue()])
	chain = FakeChain(fail_ids={"issue_31"})
	result = report_builder.build_report(fetcher, chain, "o", "r", now=NOW)
	assert result.empty is True
	assert "correlate-99" not in chain.request_ids


#============================================
def test_non_contributor_notice() -> None:
	notes = []
	fetcher = FakeFetcher(contributor=False)
	report_builder.build_report(fetcher, FakeChain(), "o", "r", user_name="zed", notify_fn=notes.append, now=NOW)
	assert notes[0].startswith("zed hasn't contributed code to o/r.")


#============================================
def test_discussion_query_without_user() -> None:
	since = datetime(2024, 5, 1, 0, 0, tzinfo=timezone.utc)
	query = report_builder.discussion_query("o", "r", None, since)
	assert query == "repo:o/r updated:>2024-05-01T00:00:00Z"
