import json
import random
import time
from datetime import datetime
from datetime import timezone

import requests
from github import Auth
from github import Github
from github.GithubException import GithubException

from digestlib import activity_records
from digestlib.errors import RateLimitError
from digestlib.errors import ResponseParseError


API_ROOT = "https://api.github.com"
GRAPHQL_URL = f"{API_ROOT}/graphql"
# failures that skip one fetch instead of stopping the report
FETCH_ERRORS = (GithubException, RateLimitError, requests.RequestException)
DISCUSSION_SEARCH_QUERY = """
query($search: String!, $first: Int!) {
  search(query: $search, type: DISCUSSION, first: $first) {
    nodes {
      ... on Discussion {
        title
        url
        body
        updatedAt
        author { login }
        comments(first: 20) {
          nodes {
            author { login }
            body
          }
        }
      }
    }
  }
}
"""


#============================================
class GitHubClient:
	"""
	Thin PyGithub wrapper that returns typed activity records.

	Malformed items are logged and skipped; failed fetches return None or an
	empty list so one bad item never stops a batch.
	"""

	def __init__(self, token: str, log_fn=None, jitter: bool = True, session=None):
		self.token = token
		self.log_fn = log_fn
		self.jitter = jitter
		self._rate_check_count = 0
		self._low_remaining_threshold = 5
		self._max_proactive_sleep_seconds = 10
		self._api_call_count = 0
		self._api_calls_by_context: dict[str, int] = {}
		self.session = session or requests.Session()
		self.client = self._build_github_client(token)

	#============================================
	def _build_github_client(self, token: str) -> Github:
		"""
		Create Github client with PyGithub's own retry disabled.
		"""
		if token:
			return Github(auth=Auth.Token(token), retry=None)
		return Github(retry=None)

	#============================================
	def log(self, message: str) -> None:
		"""
		Emit one log line when logger is configured.
		"""
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def record_api_call(self, context: str) -> None:
		"""
		Track one outbound GitHub API call.
		"""
		self._api_call_count += 1
		self._api_calls_by_context[context] = self._api_calls_by_context.get(context, 0) + 1

	#============================================
	def api_usage_snapshot(self) -> dict:
		"""
		Return API call counters for reporting.
		"""
		return {
			"api_call_count": self._api_call_count,
			"api_calls_by_context": dict(self._api_calls_by_context),
		}

	#============================================
	def normalize_datetime(self, value: datetime) -> datetime:
		"""
		Normalize datetime to timezone-aware UTC.
		"""
		if value.tzinfo is None:
			return value.replace(tzinfo=timezone.utc)
		return value.astimezone(timezone.utc)

	#============================================
	def parse_rate_limit_reset(self, reset_value) -> datetime:
		"""
		Normalize PyGithub reset values to timezone-aware UTC datetime.
		"""
		if isinstance(reset_value, datetime):
			return self.normalize_datetime(reset_value)
		if isinstance(reset_value, (int, float)):
			return datetime.fromtimestamp(float(reset_value), tz=timezone.utc)
		if isinstance(reset_value, str):
			return datetime.fromisoformat(reset_value.replace("Z", "+00:00"))
		raise RuntimeError(f"Unsupported rate-limit reset value: {reset_value!r}")

	#============================================
	def get_core_rate_limit_snapshot(self) -> tuple[int, datetime]:
		"""
		Read core rate-limit remaining/reset across PyGithub versions.
		"""
		self.record_api_call("GET /rate_limit")
		overview = self.client.get_rate_limit()
		rate_limit = getattr(overview, "core", None)
		if rate_limit is None:
			resources = getattr(overview, "resources", None)
			if isinstance(resources, dict):
				rate_limit = resources.get("core")
			elif resources is not None:
				rate_limit = getattr(resources, "core", None)
		if rate_limit is None:
			raise RuntimeError("Rate limit data does not expose core resource fields.")
		remaining = int(getattr(rate_limit, "remaining"))
		reset_time = self.parse_rate_limit_reset(getattr(rate_limit, "reset"))
		return remaining, reset_time

	#============================================
	def maybe_wait_for_rate_limit(self, context: str, force: bool = False) -> None:
		"""
		Sleep until reset when rate limit is very low.
		"""
		self._rate_check_count += 1
		if (not force) and (self._rate_check_count % 15 != 0):
			return
		try:
			remaining, reset_time = self.get_core_rate_limit_snapshot()
		except (RuntimeError, GithubException, requests.RequestException) as error:
			self.log(f"Rate limit check ({context}) unavailable: {error}")
			return
		self.log(
			f"Rate limit check ({context}): remaining={remaining}, "
			+ f"reset_at={reset_time.isoformat()}"
		)
		if remaining > self._low_remaining_threshold:
			return
		sleep_seconds = int((reset_time - datetime.now(timezone.utc)).total_seconds()) + 1
		if sleep_seconds <= 0:
			return
		if sleep_seconds > self._max_proactive_sleep_seconds:
			self.log(
				"Rate limit is low, but proactive wait exceeds cap "
				+ f"({sleep_seconds}s > {self._max_proactive_sleep_seconds}s); "
				+ "skipping proactive sleep and continuing."
			)
			return
		self.log(f"Rate limit is low ({remaining}); sleeping {sleep_seconds}s until reset.")
		time.sleep(sleep_seconds)

	#============================================
	def sleep_request_jitter(self) -> None:
		"""
		Add small random jitter before API calls.
		"""
		if self.jitter:
			time.sleep(random.random())

	#============================================
	def call_with_retry(self, context: str, call_fn):
		"""
		Run one API call with jitter, mapping 403 to RateLimitError.
		"""
		self.sleep_request_jitter()
		try:
			self.record_api_call(context)
			return call_fn()
		except GithubException as error:
			self.raise_from_github_error(error, context)

	#============================================
	def raise_from_github_error(self, error: Exception, context: str) -> None:
		"""
		Raise a human-readable rate-limit error or re-raise original.
		"""
		status = getattr(error, "status", None)
		if status != 403:
			raise error
		reset_text = "unknown"
		remaining_text = "unknown"
		try:
			remaining, reset_time = self.get_core_rate_limit_snapshot()
			reset_text = reset_time.isoformat()
			remaining_text = str(remaining)
		except (RuntimeError, GithubException, requests.RequestException) as snapshot_error:
			self.log(f"Rate limit snapshot failed: {snapshot_error}")
		raise RateLimitError(
			"GitHub API rate limit exceeded while "
			+ f"{context}; remaining={remaining_text}; reset_at={reset_text}. "
			+ "Provide settings.yaml github.token for higher limits."
		)

	#============================================
	def _headers(self, accept: str) -> dict[str, str]:
		headers = {
			"User-Agent": "github-activity-digest",
			"Accept": accept,
		}
		if self.token:
			headers["Authorization"] = f"Bearer {self.token}"
		return headers

	#============================================
	def fetch(self, url: str, accept: str = "application/vnd.github+json") -> bytes | None:
		"""
		GET one URL and return the raw body, or None on any failure.
		"""
		self.sleep_request_jitter()
		self.record_api_call(f"GET {url}")
		try:
			response = self.session.get(url, headers=self._headers(accept), timeout=30)
		except requests.RequestException as error:
			self.log(f"Fetch failed for {url}: {error}")
			return None
		if response.status_code != 200:
			self.log(f"Fetch failed for {url}: status {response.status_code}")
			return None
		return response.content

	#============================================
	def fetch_commit_patch(self, html_url: str) -> str | None:
		"""
		Fetch the .patch rendering of one commit page.
		"""
		body = self.fetch(f"{html_url}.patch", accept="text/plain")
		if body is None:
			return None
		return body.decode("utf-8", errors="replace")

	#============================================
	def get_readme(self, full_name: str) -> str:
		"""
		Return decoded README text, or '' when the repository has none.
		"""
		self.maybe_wait_for_rate_limit(f"get_readme {full_name}")
		try:
			repo_obj = self.get_repo(full_name)
			content = self.call_with_retry(
				f"GET /repos/{full_name}/readme",
				lambda: repo_obj.get_readme(),
			)
		except FETCH_ERRORS as error:
			self.log(f"README unavailable for {full_name}: {error}")
			return ""
		return content.decoded_content.decode("utf-8", errors="replace")

	#============================================
	def get_repo(self, full_name: str):
		"""
		Get one repository object by full name.
		"""
		return self.call_with_retry(
			f"GET /repos/{full_name}",
			lambda: self.client.get_repo(full_name),
		)

	#============================================
	def get_repo_profile(self, owner: str, repo: str) -> activity_records.RepoProfile | None:
		"""
		Fetch the community profile; None means invalid or private repository.
		"""
		full_name = f"{owner}/{repo}"
		body = self.fetch(f"{API_ROOT}/repos/{full_name}/community/profile")
		if body is None:
			return None
		try:
			payload = json.loads(body)
			has_readme = isinstance(payload, dict) and bool((payload.get("files") or {}).get("readme"))
			readme = self.get_readme(full_name) if has_readme else ""
			return activity_records.parse_repo_profile(full_name, payload, readme)
		except (ValueError, ResponseParseError) as error:
			self.log(f"Error parsing community profile for {full_name}: {error}")
			return None

	#============================================
	def is_code_contributor(self, owner: str, repo: str, user: str) -> bool:
		"""
		Return True when user appears in the repository contributor list.
		"""
		full_name = f"{owner}/{repo}"
		self.maybe_wait_for_rate_limit(f"contributors {full_name}")
		try:
			repo_obj = self.get_repo(full_name)
			logins = self.call_with_retry(
				f"GET /repos/{full_name}/contributors",
				lambda: [contributor.login for contributor in repo_obj.get_contributors()],
			)
		except FETCH_ERRORS as error:
			self.log(f"Contributor list unavailable for {full_name}: {error}")
			return False
		wanted = user.lower()
		return any((login or "").lower() == wanted for login in logins)

	#============================================
	def _parse_items(self, raw_items: list, parse_fn, label: str) -> list:
		"""
		Parse raw payloads, logging and skipping malformed ones.
		"""
		records = []
		for raw in raw_items:
			try:
				records.append(parse_fn(raw))
			except ResponseParseError as error:
				self.log(f"Skipping malformed {label}: {error}")
		return records

	#============================================
	def list_issues(
		self,
		full_name: str,
		since: datetime,
		user: str | None = None,
	) -> list[activity_records.IssueRecord]:
		"""
		List issues (not pull requests) updated since window start.
		"""
		self.maybe_wait_for_rate_limit(f"list_issues {full_name}", force=True)
		since = self.normalize_datetime(since)
		since_text = since.strftime("%Y-%m-%dT%H:%M:%SZ")

		def call_fn():
			if user:
				query = f"repo:{full_name} is:issue involves:{user} updated:>{since_text}"
				return [issue.raw_data for issue in self.client.search_issues(query)]
			repo_obj = self.get_repo(full_name)
			issues = repo_obj.get_issues(state="all", since=since, sort="updated", direction="desc")
			return [issue.raw_data for issue in issues]

		context = "GET /search/issues" if user else f"GET /repos/{full_name}/issues"
		try:
			raw_items = self.call_with_retry(context, call_fn)
		except FETCH_ERRORS as error:
			self.log(f"Failed to list issues for {full_name}: {error}")
			return []
		raw_items = [raw for raw in raw_items if "pull_request" not in raw]
		return self._parse_items(raw_items, activity_records.parse_issue, "issue")

	#============================================
	def list_issue_comments(self, full_name: str, number: int) -> list[activity_records.CommentRecord]:
		"""
		List all comments on one issue.
		"""
		self.maybe_wait_for_rate_limit(f"list_issue_comments {full_name}#{number}")
		try:
			repo_obj = self.get_repo(full_name)
			raw_items = self.call_with_retry(
				f"GET /repos/{full_name}/issues/{number}/comments",
				lambda: [comment.raw_data for comment in repo_obj.get_issue(number).get_comments()],
			)
		except FETCH_ERRORS as error:
			self.log(f"Failed to list comments for {full_name}#{number}: {error}")
			return []
		return self._parse_items(raw_items, activity_records.parse_comment, "comment")

	#============================================
	def list_commits(
		self,
		full_name: str,
		since: datetime,
		author: str | None = None,
	) -> list[activity_records.CommitRecord]:
		"""
		List repository commits since window start, optionally by one author.
		"""
		self.maybe_wait_for_rate_limit(f"list_commits {full_name}", force=True)
		since = self.normalize_datetime(since)

		def call_fn():
			repo_obj = self.get_repo(full_name)
			if author:
				commits = repo_obj.get_commits(since=since, author=author)
			else:
				commits = repo_obj.get_commits(since=since)
			return [commit.raw_data for commit in commits]

		try:
			raw_items = self.call_with_retry(f"GET /repos/{full_name}/commits", call_fn)
		except FETCH_ERRORS as error:
			self.log(f"Failed to list commits for {full_name}: {error}")
			return []
		return self._parse_items(raw_items, activity_records.parse_commit, "commit")

	#============================================
	def search_discussions(self, query: str, first: int = 30) -> list[activity_records.DiscussionRecord]:
		"""
		Search discussions through the GraphQL API.
		"""
		self.sleep_request_jitter()
		self.record_api_call("POST /graphql search discussions")
		try:
			response = self.session.post(
				GRAPHQL_URL,
				json={"query": DISCUSSION_SEARCH_QUERY, "variables": {"search": query, "first": first}},
				headers=self._headers("application/json"),
				timeout=30,
			)
		except requests.RequestException as error:
			self.log(f"Discussion search failed: {error}")
			return []
		if response.status_code != 200:
			self.log(f"Discussion search failed: status {response.status_code}")
			return []
		try:
			nodes = parse_discussion_search(response.json())
		except (ValueError, ResponseParseError) as error:
			self.log(f"Error parsing discussion search response: {error}")
			return []
		# non-discussion search hits come back as empty objects
		nodes = [node for node in nodes if node]
		return self._parse_items(nodes, activity_records.parse_discussion, "discussion")


#============================================
def parse_discussion_search(payload) -> list:
	"""
	Extract data.search.nodes from a GraphQL search response.
	"""
	if not isinstance(payload, dict):
		raise ResponseParseError("GraphQL response must be an object")
	if payload.get("errors"):
		raise ResponseParseError(f"GraphQL errors: {payload['errors']}")
	data = payload.get("data")
	if not isinstance(data, dict):
		raise ResponseParseError("GraphQL response is missing 'data'")
	search = data.get("search")
	if not isinstance(search, dict):
		raise ResponseParseError("GraphQL response is missing 'data.search'")
	nodes = search.get("nodes")
	if not isinstance(nodes, list):
		raise ResponseParseError("GraphQL response 'data.search.nodes' must be a list")
	return nodes
