"""Per-item summarizers, batch loops and cross-source correlation.

Each analyzer squeezes its input, picks a request profile, and runs one
analyze/condense chat chain. Batch loops summarize items one at a time and stop
once an item cap or an aggregate word ceiling is reached; items that fail are
logged and skipped.
"""

# Standard Library
from dataclasses import dataclass
from dataclasses import field

from digestlib import budget_allocator
from digestlib import model_selector
from digestlib import prompt_loader
from digestlib import text_squeezer
from digestlib import text_utils
from digestlib.activity_records import CommentRecord
from digestlib.activity_records import CommitRecord
from digestlib.activity_records import DiscussionRecord
from digestlib.activity_records import GitMemory
from digestlib.activity_records import IssueRecord
from digestlib.activity_records import MemoryType
from digestlib.errors import DigestError


CORRELATE_TOTAL_BUDGET = 16000
CORRELATE_WEIGHTS = {
	"profile": 1.0,
	"commits": 4.0,
	"issues": 4.0,
	"discussions": 2.0,
}
CORRELATE_LABELS = {
	"profile": "profile data",
	"commits": "commit logs",
	"issues": "issue post",
	"discussions": "discussion posts",
}
# character caps 6000/4000/9000/6000/4000 expressed as weights over their sum
USER_HOME_TOTAL_CHARS = 29000
USER_HOME_WEIGHTS = {
	"home_repo": 6.0,
	"user_profile": 4.0,
	"issues": 9.0,
	"repos": 6.0,
	"discussions": 4.0,
}


#============================================
@dataclass(frozen=True)
class ChainBudgets:
	"""
	Output sizes for the analyze and condense stages.
	"""
	analyze_output: int = 256
	condense_output: int = 128
	correlate_analyze_output: int = 512
	correlate_condense_output: int = 256


#============================================
@dataclass(frozen=True)
class BatchPolicy:
	max_issues: int = 16
	max_commits: int = 20
	max_discussions: int = 16
	aggregate_word_ceiling: int = 3000


#============================================
@dataclass
class BatchResult:
	summary_text: str = ""
	attempted: int = 0
	processed: int = 0
	memories: list[GitMemory] = field(default_factory=list)
	capped: bool = False


#============================================
def _log(log_fn, message: str) -> None:
	if log_fn is not None:
		log_fn(message)


#============================================
def target_label(target_person: str | None) -> str:
	return target_person or "key participants"


#============================================
def build_issue_text(
	issue: IssueRecord,
	comments: list[CommentRecord],
	body_budget: int,
	squeeze_policy: text_squeezer.SqueezePolicy,
) -> str:
	"""
	Flatten an issue and its comments into one squeezed text block.
	"""
	policy = squeeze_policy
	body = ""
	if issue.body:
		body = text_squeezer.squeeze(
			issue.body, body_budget, policy.issue_body_skew,
			fence=policy.fence, keep_fenced_blocks=policy.keep_fenced_blocks,
		)
	labels = ", ".join(issue.labels)
	parts = [
		f"User '{issue.user_login}', opened an issue titled '{issue.title}', "
		+ f"labeled '{labels}', with the following post: '{body}'."
	]
	for comment in comments:
		comment_body = ""
		if comment.body:
			comment_body = text_squeezer.squeeze(
				comment.body, policy.comment_size, policy.comment_skew,
				fence=policy.fence, keep_fenced_blocks=policy.keep_fenced_blocks,
			)
		parts.append(f"{comment.user_login} commented: {comment_body}")
	all_text = " ".join(parts)
	return text_squeezer.squeeze(
		all_text, policy.thread_size, policy.thread_skew,
		fence=policy.fence, keep_fenced_blocks=policy.keep_fenced_blocks,
	)


#============================================
def analyze_issue(
	chain,
	issue: IssueRecord,
	comments: list[CommentRecord],
	target_person: str | None = None,
	squeeze_policy: text_squeezer.SqueezePolicy | None = None,
	selector_policy: model_selector.SelectorPolicy | None = None,
	budgets: ChainBudgets | None = None,
	body_budget: int | None = None,
) -> tuple[str, GitMemory] | None:
	"""
	Summarize one issue thread.

	Args:
		chain: ChatChain used for the analyze/condense pair.
		issue: issue record.
		comments: comments on the issue, oldest first.
		target_person: user whose contribution is emphasized.
		squeeze_policy: squeeze sizes; defaults when None.
		selector_policy: tier thresholds; defaults when None.
		budgets: chain output sizes; defaults when None.
		body_budget: squeeze size for the opening post, from the batch mode.

	Returns:
		('<html_url> <summary>', GitMemory) or None when the chain fails.
	"""
	squeeze_policy = squeeze_policy or text_squeezer.SqueezePolicy()
	budgets = budgets or ChainBudgets()
	if body_budget is None:
		body_budget = squeeze_policy.issue_body_size
	issue_text = build_issue_text(issue, comments, body_budget, squeeze_policy)
	request_id = model_selector.issue_request_id(issue.number)
	profile = model_selector.select(len(issue_text), request_id=request_id, policy=selector_policy)
	# extended tier inputs get a proportionally larger condensed answer
	condense_output = max(budgets.condense_output, profile.max_output_size)
	system_prompt, analyze_prompt, condense_prompt = prompt_loader.load_chain_prompts("issue", {
		"creator": issue.user_login,
		"title": issue.title,
		"issue_text": issue_text,
		"target": target_label(target_person),
		"token_limit": str(condense_output),
	})
	summary = chain.run(
		system_prompt,
		analyze_prompt,
		request_id,
		budgets.analyze_output,
		condense_prompt,
		None,
		condense_output,
		f"Error generating issue summary #{issue.number}",
		profile=profile,
	)
	if summary is None:
		return None
	memory = GitMemory(
		memory_type=MemoryType.ISSUE,
		name=target_person or issue.user_login,
		tag_line=issue.title,
		source_url=issue.html_url,
		payload=summary,
		date=issue.created_at.date(),
	)
	return f"{issue.html_url} {summary}", memory


#============================================
def analyze_commit(
	chain,
	commit: CommitRecord,
	patch_text: str,
	squeeze_policy: text_squeezer.SqueezePolicy | None = None,
	budgets: ChainBudgets | None = None,
	selector_policy: model_selector.SelectorPolicy | None = None,
) -> str | None:
	"""
	Summarize one commit from its patch text.
	"""
	squeeze_policy = squeeze_policy or text_squeezer.SqueezePolicy()
	budgets = budgets or ChainBudgets()
	stripped = text_squeezer.squeeze_patch(
		patch_text,
		squeeze_policy.patch_size,
		squeeze_policy.patch_skew,
		max_lines=squeeze_policy.patch_max_lines,
		fence=squeeze_policy.fence,
	)
	request_id = model_selector.commit_request_id(commit.html_url)
	profile = model_selector.select(len(stripped), request_id=request_id, policy=selector_policy)
	system_prompt, analyze_prompt, condense_prompt = prompt_loader.load_chain_prompts("commit", {
		"user": commit.author_login,
		"patch": stripped,
		"tag_line": commit.message,
		"token_limit": str(budgets.condense_output),
	})
	return chain.run(
		system_prompt,
		analyze_prompt,
		request_id,
		budgets.analyze_output,
		condense_prompt,
		None,
		budgets.condense_output,
		f"analyze_commit-{text_utils.short_sha(commit.html_url, 5)}",
		profile=profile,
	)


#============================================
def analyze_discussion(
	chain,
	discussion: DiscussionRecord,
	target_person: str | None = None,
	squeeze_policy: text_squeezer.SqueezePolicy | None = None,
	budgets: ChainBudgets | None = None,
	selector_policy: model_selector.SelectorPolicy | None = None,
) -> tuple[str, GitMemory] | None:
	"""
	Summarize one discussion thread.
	"""
	squeeze_policy = squeeze_policy or text_squeezer.SqueezePolicy()
	budgets = budgets or ChainBudgets()
	discussion_text = text_squeezer.squeeze(
		discussion.as_text(),
		squeeze_policy.discussion_size,
		squeeze_policy.discussion_skew,
		fence=squeeze_policy.fence,
		keep_fenced_blocks=squeeze_policy.keep_fenced_blocks,
	)
	request_id = model_selector.discussion_request_id(discussion.url)
	profile = model_selector.select(len(discussion_text), request_id=request_id, policy=selector_policy)
	system_prompt, analyze_prompt, condense_prompt = prompt_loader.load_chain_prompts("discussion", {
		"discussion_text": discussion_text,
		"target": target_label(target_person),
		"token_limit": str(budgets.condense_output),
	})
	summary = chain.run(
		system_prompt,
		analyze_prompt,
		request_id,
		budgets.analyze_output,
		condense_prompt,
		None,
		budgets.condense_output,
		f"Error generating discussion summary {discussion.url}",
		profile=profile,
	)
	if summary is None:
		return None
	memory = GitMemory(
		memory_type=MemoryType.DISCUSSION,
		name=target_person or discussion.author_login,
		tag_line=discussion.title,
		source_url=discussion.url,
		payload=summary,
		date=discussion.updated_at.date(),
	)
	return f"{discussion.url} {summary}", memory


#============================================
def run_batch(
	items: list,
	analyze_fn,
	max_items: int,
	word_ceiling: int,
	label: str,
	log_fn=None,
) -> BatchResult | None:
	"""
	Summarize items one at a time under an item cap and a word ceiling.

	Args:
		items: records to summarize, in priority order.
		analyze_fn: Callable(item) -> (line, GitMemory) or None.
		max_items: stop after this many successful summaries.
		word_ceiling: stop once the accumulated text exceeds this word count.
		label: item kind for log lines.
		log_fn: Callable(str) or None.

	Returns:
		BatchResult, or None when no item produced a summary.
	"""
	result = BatchResult()
	lines = []
	word_total = 0
	for item in items:
		if result.processed >= max_items:
			_log(log_fn, f"Reached {label} cap of {max_items}; skipping remaining items")
			break
		if word_total > word_ceiling:
			result.capped = True
			_log(log_fn, f"{label} summaries exceed {word_ceiling} words; skipping remaining items")
			break
		result.attempted += 1
		try:
			analyzed = analyze_fn(item)
		except DigestError as error:
			_log(log_fn, f"Skipping {label} {result.attempted}: {error}")
			continue
		if analyzed is None:
			_log(log_fn, f"Skipping {label} {result.attempted}: no summary produced")
			continue
		line, memory = analyzed
		entry = f"{memory.date.isoformat()} {line}\n"
		lines.append(entry)
		word_total += text_utils.count_words(entry)
		result.memories.append(memory)
		result.processed += 1
	if result.processed == 0:
		_log(log_fn, f"No {label} items processed")
		return None
	result.summary_text = "".join(lines)
	return result


#============================================
def process_issues(
	chain,
	issues: list[IssueRecord],
	comments_fn,
	target_person: str | None = None,
	batch_policy: BatchPolicy | None = None,
	squeeze_policy: text_squeezer.SqueezePolicy | None = None,
	selector_policy: model_selector.SelectorPolicy | None = None,
	budgets: ChainBudgets | None = None,
	log_fn=None,
) -> BatchResult | None:
	"""
	Summarize a batch of issues; comments_fn(issue) returns its comments.
	"""
	batch_policy = batch_policy or BatchPolicy()
	selector_policy = selector_policy or model_selector.SelectorPolicy()
	mode = model_selector.batch_mode(len(issues), selector_policy)
	body_budget = model_selector.squeeze_budget_for(
		mode == "sparse",
		mode == "turbo",
		len(issues),
		selector_policy,
	)
	_log(log_fn, f"Summarizing {len(issues)} issues ({mode} mode, body budget {body_budget})")

	def analyze_fn(issue: IssueRecord):
		comments = comments_fn(issue) or []
		return analyze_issue(
			chain, issue, comments,
			target_person=target_person,
			squeeze_policy=squeeze_policy,
			selector_policy=selector_policy,
			budgets=budgets,
			body_budget=body_budget,
		)

	return run_batch(
		issues, analyze_fn,
		batch_policy.max_issues, batch_policy.aggregate_word_ceiling,
		"issue", log_fn=log_fn,
	)


#============================================
def process_commits(
	chain,
	commits: list[CommitRecord],
	patch_fn,
	batch_policy: BatchPolicy | None = None,
	squeeze_policy: text_squeezer.SqueezePolicy | None = None,
	budgets: ChainBudgets | None = None,
	selector_policy: model_selector.SelectorPolicy | None = None,
	log_fn=None,
) -> BatchResult | None:
	"""
	Summarize a batch of commits; patch_fn(commit) returns patch text or None.
	"""
	batch_policy = batch_policy or BatchPolicy()

	def analyze_fn(commit: CommitRecord):
		patch_text = patch_fn(commit)
		if patch_text is None:
			_log(log_fn, f"Skipping commit {commit.sha[:7]}: patch fetch failed")
			return None
		summary = analyze_commit(
			chain, commit, patch_text,
			squeeze_policy=squeeze_policy,
			budgets=budgets,
			selector_policy=selector_policy,
		)
		if summary is None:
			return None
		memory = GitMemory(
			memory_type=MemoryType.COMMIT,
			name=commit.author_login,
			tag_line=commit.message,
			source_url=commit.html_url,
			payload=summary,
			date=commit.committed_at.date(),
		)
		return summary, memory

	return run_batch(
		commits, analyze_fn,
		batch_policy.max_commits, batch_policy.aggregate_word_ceiling,
		"commit", log_fn=log_fn,
	)


#============================================
def process_discussions(
	chain,
	discussions: list[DiscussionRecord],
	target_person: str | None = None,
	batch_policy: BatchPolicy | None = None,
	squeeze_policy: text_squeezer.SqueezePolicy | None = None,
	budgets: ChainBudgets | None = None,
	selector_policy: model_selector.SelectorPolicy | None = None,
	log_fn=None,
) -> BatchResult | None:
	batch_policy = batch_policy or BatchPolicy()

	def analyze_fn(discussion: DiscussionRecord):
		return analyze_discussion(
			chain, discussion,
			target_person=target_person,
			squeeze_policy=squeeze_policy,
			budgets=budgets,
			selector_policy=selector_policy,
		)

	return run_batch(
		discussions, analyze_fn,
		batch_policy.max_discussions, batch_policy.aggregate_word_ceiling,
		"discussion", log_fn=log_fn,
	)


#============================================
def correlate_activity(
	chain,
	profile_data: str | None,
	commits_summary: str | None,
	issues_summary: str | None,
	discussions_summary: str | None,
	target_person: str | None = None,
	total_budget: int = CORRELATE_TOTAL_BUDGET,
	chars_per_unit: int = budget_allocator.DEFAULT_CHARS_PER_UNIT,
	budgets: ChainBudgets | None = None,
	selector_policy: model_selector.SelectorPolicy | None = None,
) -> str | None:
	"""
	Correlate commits, issues and discussions into one weekly narrative.

	The sources share total_budget size units by weight 1/4/4/2; absent
	sources give their share to the others.

	Returns:
		The condensed narrative, or None when nothing is present or the chain fails.
	"""
	budgets = budgets or ChainBudgets()
	sources = {
		"profile": (CORRELATE_WEIGHTS["profile"], profile_data),
		"commits": (CORRELATE_WEIGHTS["commits"], commits_summary),
		"issues": (CORRELATE_WEIGHTS["issues"], issues_summary),
		"discussions": (CORRELATE_WEIGHTS["discussions"], discussions_summary),
	}
	allocated = budget_allocator.allocate(total_budget, sources, chars_per_unit=chars_per_unit)
	if not allocated:
		return None
	source_parts = []
	for name in CORRELATE_WEIGHTS:
		if name in allocated:
			source_parts.append(f"{CORRELATE_LABELS[name]}: {allocated[name]}")
	sources_text = ", ".join(source_parts)
	target = f"{target_person}'s" if target_person else "key participants'"
	profile = model_selector.select(
		len(sources_text),
		request_id="correlate-99",
		policy=selector_policy,
	)
	system_prompt, analyze_prompt, condense_prompt = prompt_loader.load_chain_prompts("correlate", {
		"sources": sources_text,
		"target": target,
		"token_limit": str(budgets.correlate_condense_output),
	})
	return chain.run(
		system_prompt,
		analyze_prompt,
		"correlate-99",
		budgets.correlate_analyze_output,
		condense_prompt,
		None,
		budgets.correlate_condense_output,
		"correlate_commits_issues_discussions",
		profile=profile,
	)


#============================================
def correlate_user_and_home_project(
	chain,
	home_repo_data: str,
	user_profile: str,
	issues_data: str,
	repos_data: str,
	discussion_data: str,
	total_chars: int = USER_HOME_TOTAL_CHARS,
	budgets: ChainBudgets | None = None,
	selector_policy: model_selector.SelectorPolicy | None = None,
) -> str | None:
	"""
	Relate one user's activity elsewhere to the needs of a home project.
	"""
	budgets = budgets or ChainBudgets()
	sources = {
		"home_repo": (USER_HOME_WEIGHTS["home_repo"], home_repo_data),
		"user_profile": (USER_HOME_WEIGHTS["user_profile"], user_profile),
		"issues": (USER_HOME_WEIGHTS["issues"], issues_data),
		"repos": (USER_HOME_WEIGHTS["repos"], repos_data),
		"discussions": (USER_HOME_WEIGHTS["discussions"], discussion_data),
	}
	allocated = budget_allocator.allocate(total_chars, sources, chars_per_unit=1)
	if not allocated:
		return None
	values = {name: allocated.get(name, "") for name in USER_HOME_WEIGHTS}
	values["token_limit"] = str(budgets.correlate_condense_output)
	system_prompt, analyze_prompt, condense_prompt = prompt_loader.load_chain_prompts("user_home", values)
	profile = model_selector.select(
		sum(len(text) for text in allocated.values()),
		request_id="correlate-user-home",
		policy=selector_policy,
	)
	return chain.run(
		system_prompt,
		analyze_prompt,
		"correlate-user-home",
		budgets.correlate_analyze_output,
		condense_prompt,
		None,
		budgets.correlate_condense_output,
		"correlate-user-home-summary",
		profile=profile,
	)
