"""Build one weekly activity report for a repository, optionally for one user.

The fetcher is any object with the GitHubClient record methods; notify_fn
receives the progress lines a chat channel would show.
"""

# Standard Library
from dataclasses import dataclass
from datetime import datetime
from datetime import timedelta
from datetime import timezone

from digestlib import activity_analyzers
from digestlib import text_utils


INVALID_REPO_MESSAGE = "You've entered invalid owner/repo, or the target is private. Please try again."


#============================================
@dataclass
class ReportResult:
	text: str
	empty: bool = False
	valid_repo: bool = True
	commit_count: int = 0
	issue_count: int = 0
	discussion_count: int = 0


#============================================
def _emit(fn, message: str) -> None:
	if fn is not None:
		fn(message)


#============================================
def describe_found(kind: str, ids: list[str]) -> str:
	return f"found {len(ids)} {kind}: {', '.join(ids)}"


#============================================
def discussion_query(owner: str, repo: str, user_name: str | None, since: datetime) -> str:
	"""
	Build the discussion search query for the report window.
	"""
	since_text = since.strftime("%Y-%m-%dT%H:%M:%SZ")
	query = f"repo:{owner}/{repo} updated:>{since_text}"
	if user_name:
		query = f"repo:{owner}/{repo} involves:{user_name} updated:>{since_text}"
	return query


#============================================
def nothing_to_report(user_name: str | None) -> str:
	if user_name:
		return (
			f"No useful data found for {user_name}, "
			+ f"you may try `/search` to find out more about {user_name}"
		)
	return "No useful data found, nothing to report"


#============================================
def build_report(
	fetcher,
	chain,
	owner: str,
	repo: str,
	user_name: str | None = None,
	n_days: int = 7,
	notify_fn=None,
	log_fn=None,
	now: datetime | None = None,
	batch_policy: activity_analyzers.BatchPolicy | None = None,
	squeeze_policy=None,
	selector_policy=None,
	budgets: activity_analyzers.ChainBudgets | None = None,
) -> ReportResult:
	"""
	Gather a week of activity, summarize each source and correlate them.

	Args:
		fetcher: GitHubClient-like object.
		chain: ChatChain used for every summary.
		owner: repository owner.
		repo: repository name.
		user_name: optional user to focus on.
		n_days: trailing window length.
		notify_fn: Callable(str) receiving user-facing progress lines.
		log_fn: Callable(str) receiving diagnostic lines.
		now: window end; defaults to the current UTC time.
		batch_policy: item caps and word ceiling.
		squeeze_policy: squeeze sizes.
		selector_policy: tier thresholds.
		budgets: chain output sizes.

	Returns:
		ReportResult; empty=True marks an explicit nothing-to-report result.
	"""
	full_name = f"{owner}/{repo}"
	profile = fetcher.get_repo_profile(owner, repo)
	if profile is None:
		_emit(notify_fn, INVALID_REPO_MESSAGE)
		return ReportResult(text=INVALID_REPO_MESSAGE, empty=True, valid_repo=False)
	profile_data = f"About {full_name}: {profile.readme}"

	if user_name:
		if not fetcher.is_code_contributor(owner, repo, user_name):
			_emit(
				notify_fn,
				f"{user_name} hasn't contributed code to {full_name}. "
				+ f"Bot will try to find out {user_name}'s other contributions.",
			)
		addressee = f"{user_name}'s"
	else:
		_emit(
			notify_fn,
			"You didn't input a user's name. "
			+ f"Bot will then create a report on the weekly progress of {full_name}.",
		)
		addressee = "key community participants'"
	_emit(notify_fn, f"exploring {addressee} GitHub contributions to `{full_name}` project")

	now = now or datetime.now(timezone.utc)
	since = now - timedelta(days=n_days)
	report_lines = []
	result = ReportResult(text="")

	# commits
	commits = fetcher.list_commits(full_name, since, user_name)
	found = describe_found("commits", [text_utils.short_sha(c.html_url, 7) for c in commits])
	report_lines.append(found)
	_emit(notify_fn, found)
	commits_summary = None
	if commits:
		batch = activity_analyzers.process_commits(
			chain, commits,
			lambda commit: fetcher.fetch_commit_patch(commit.html_url),
			batch_policy=batch_policy,
			squeeze_policy=squeeze_policy,
			budgets=budgets,
			selector_policy=selector_policy,
			log_fn=log_fn,
		)
		if batch is None:
			_emit(log_fn, "processing commits failed")
		else:
			commits_summary = batch.summary_text
			result.commit_count = batch.processed

	# issues
	issues = fetcher.list_issues(full_name, since, user_name)
	found = describe_found("issues", [str(issue.number) for issue in issues])
	report_lines.append(found)
	_emit(notify_fn, found)
	issues_summary = None
	if issues:
		batch = activity_analyzers.process_issues(
			chain, issues,
			lambda issue: fetcher.list_issue_comments(full_name, issue.number),
			target_person=user_name,
			batch_policy=batch_policy,
			squeeze_policy=squeeze_policy,
			selector_policy=selector_policy,
			budgets=budgets,
			log_fn=log_fn,
		)
		if batch is None:
			_emit(log_fn, "processing issues failed")
		else:
			issues_summary = batch.summary_text
			result.issue_count = batch.processed

	# discussions
	discussions = fetcher.search_discussions(discussion_query(owner, repo, user_name, since))
	found = describe_found(
		"discussions",
		[text_utils.url_tail(d.url, "0") for d in discussions],
	)
	report_lines.append(found)
	_emit(notify_fn, found)
	discussions_summary = None
	if discussions:
		batch = activity_analyzers.process_discussions(
			chain, discussions,
			target_person=user_name,
			batch_policy=batch_policy,
			squeeze_policy=squeeze_policy,
			budgets=budgets,
			selector_policy=selector_policy,
			log_fn=log_fn,
		)
		if batch is None:
			_emit(log_fn, "processing discussions failed")
		else:
			discussions_summary = batch.summary_text
			result.discussion_count = batch.processed

	if commits_summary is None and issues_summary is None and discussions_summary is None:
		result.text = nothing_to_report(user_name)
		result.empty = True
		return result

	final_summary = activity_analyzers.correlate_activity(
		chain,
		profile_data,
		commits_summary,
		issues_summary,
		discussions_summary,
		target_person=user_name,
		budgets=budgets,
		selector_policy=selector_policy,
	)
	if final_summary is None:
		result.text = "no report generated"
		return result
	report_lines.append(final_summary)
	result.text = "\n".join(report_lines)
	return result
