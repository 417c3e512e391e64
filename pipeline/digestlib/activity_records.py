"""Typed records for GitHub activity and strict parsing of raw payloads.

Every parser checks the fields it needs and raises ResponseParseError on a
mismatch, so a malformed item can be skipped without guessing at its content.
"""

# Standard Library
import enum
from dataclasses import dataclass
from dataclasses import field
from datetime import date
from datetime import datetime
from datetime import timezone

from digestlib.errors import ResponseParseError


#============================================
class MemoryType(enum.Enum):
	META = "meta"
	ISSUE = "issue"
	COMMIT = "commit"
	DISCUSSION = "discussion"


#============================================
@dataclass
class GitMemory:
	"""
	One summarized piece of activity.
	"""
	memory_type: MemoryType
	name: str
	tag_line: str
	source_url: str
	payload: str
	date: date


#============================================
@dataclass(frozen=True)
class IssueRecord:
	number: int
	title: str
	url: str
	html_url: str
	user_login: str
	body: str | None
	labels: tuple[str, ...]
	created_at: datetime


#============================================
@dataclass(frozen=True)
class CommentRecord:
	user_login: str
	body: str | None


#============================================
@dataclass(frozen=True)
class CommitRecord:
	sha: str
	html_url: str
	author_login: str
	message: str
	committed_at: datetime


#============================================
@dataclass(frozen=True)
class DiscussionRecord:
	title: str
	url: str
	author_login: str
	body: str
	updated_at: datetime
	comments: tuple[CommentRecord, ...] = field(default_factory=tuple)

	def as_text(self) -> str:
		"""
		Flatten the discussion into one text block for prompting.
		"""
		parts = [f"'{self.title}' opened by {self.author_login}: {self.body}"]
		for comment in self.comments:
			parts.append(f"{comment.user_login} commented: {comment.body or ''}")
		return " ".join(parts)


#============================================
@dataclass(frozen=True)
class RepoProfile:
	full_name: str
	description: str
	readme: str
	updated_at: datetime | None


#============================================
def parse_iso(ts: str) -> datetime:
	"""
	Parse an ISO timestamp into a timezone-aware datetime.
	"""
	if not isinstance(ts, str) or not ts:
		raise ResponseParseError(f"Invalid timestamp: {ts!r}")
	try:
		parsed = datetime.fromisoformat(ts.replace("Z", "+00:00"))
	except ValueError as error:
		raise ResponseParseError(f"Invalid timestamp: {ts!r}") from error
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed


#============================================
def _require(payload: dict, key: str, kind, context: str):
	if not isinstance(payload, dict):
		raise ResponseParseError(f"{context}: expected an object")
	if key not in payload:
		raise ResponseParseError(f"{context}: missing field '{key}'")
	value = payload[key]
	if not isinstance(value, kind):
		raise ResponseParseError(f"{context}: field '{key}' has type {type(value).__name__}")
	return value


#============================================
def _optional_str(payload: dict, key: str, context: str) -> str | None:
	value = payload.get(key)
	if value is None:
		return None
	if not isinstance(value, str):
		raise ResponseParseError(f"{context}: field '{key}' must be a string or null")
	return value


#============================================
def _login(payload: dict, key: str, context: str) -> str:
	"""
	Read a nested {login: ...} user object; deleted accounts map to 'ghost'.
	"""
	user = payload.get(key)
	if user is None:
		return "ghost"
	return _require(user, "login", str, f"{context}.{key}")


#============================================
def parse_issue(payload: dict) -> IssueRecord:
	context = "issue"
	number = _require(payload, "number", int, context)
	context = f"issue #{number}"
	labels = []
	for label in payload.get("labels") or []:
		labels.append(_require(label, "name", str, f"{context}.labels"))
	return IssueRecord(
		number=number,
		title=_require(payload, "title", str, context),
		url=_require(payload, "url", str, context),
		html_url=payload.get("html_url") or payload["url"],
		user_login=_login(payload, "user", context),
		body=_optional_str(payload, "body", context),
		labels=tuple(labels),
		created_at=parse_iso(_require(payload, "created_at", str, context)),
	)


#============================================
def parse_comment(payload: dict) -> CommentRecord:
	return CommentRecord(
		user_login=_login(payload, "user", "comment"),
		body=_optional_str(payload, "body", "comment"),
	)


#============================================
def parse_commit(payload: dict) -> CommitRecord:
	"""
	Parse one REST commit payload (GET /repos/{repo}/commits item).
	"""
	sha = _require(payload, "sha", str, "commit")
	context = f"commit {sha[:7]}"
	detail = _require(payload, "commit", dict, context)
	author_detail = _require(detail, "author", dict, f"{context}.commit")
	author = payload.get("author")
	if isinstance(author, dict) and isinstance(author.get("login"), str):
		login = author["login"]
	else:
		login = _require(author_detail, "name", str, f"{context}.commit.author")
	return CommitRecord(
		sha=sha,
		html_url=_require(payload, "html_url", str, context),
		author_login=login,
		message=_require(detail, "message", str, f"{context}.commit"),
		committed_at=parse_iso(_require(author_detail, "date", str, f"{context}.commit.author")),
	)


#============================================
def parse_discussion(node: dict) -> DiscussionRecord:
	"""
	Parse one GraphQL discussion search node.
	"""
	context = "discussion"
	url = _require(node, "url", str, context)
	context = f"discussion {url}"
	comments = []
	comment_block = node.get("comments") or {}
	if not isinstance(comment_block, dict):
		raise ResponseParseError(f"{context}: 'comments' must be an object")
	for comment in comment_block.get("nodes") or []:
		if not isinstance(comment, dict):
			raise ResponseParseError(f"{context}: comment node must be an object")
		comments.append(parse_comment({
			"user": comment.get("author"),
			"body": comment.get("body"),
		}))
	return DiscussionRecord(
		title=_require(node, "title", str, context),
		url=url,
		author_login=_login(node, "author", context),
		body=_optional_str(node, "body", context) or "",
		updated_at=parse_iso(_require(node, "updatedAt", str, context)),
		comments=tuple(comments),
	)


#============================================
def parse_repo_profile(full_name: str, payload: dict, readme: str) -> RepoProfile:
	"""
	Parse a community profile payload (GET /repos/{repo}/community/profile).
	"""
	context = f"community profile {full_name}"
	_require(payload, "health_percentage", int, context)
	description = _optional_str(payload, "description", context) or ""
	updated_text = _optional_str(payload, "updated_at", context)
	updated_at = parse_iso(updated_text) if updated_text else None
	return RepoProfile(
		full_name=full_name,
		description=description,
		readme=readme or description,
		updated_at=updated_at,
	)
