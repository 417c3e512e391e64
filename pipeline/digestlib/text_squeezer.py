"""Squeeze long, irregular text down to a size budget.

Fenced blocks and diff punctuation lines are dropped first since they rarely
carry analytical value; what remains is cut to a head part and a tail part
whose split is set by a skew ratio. Sizes are counted in characters, so a
cut never lands inside a multi-byte character.
"""

# Standard Library
import math
import re
from dataclasses import dataclass


DEFAULT_FENCE = "```"
DIFF_MARKER = "diff --git"
DIFF_MARKER_RE = re.compile(r"^diff --git", re.MULTILINE)
DIFF_NOISE_CHARS = frozenset("[]{}")
BLANK_RUN_RE = re.compile(r"\n{3,}")


#============================================
@dataclass(frozen=True)
class SqueezePolicy:
	"""
	Named squeeze budgets for each call site, in characters.
	"""
	issue_body_size: int = 500
	issue_body_skew: float = 0.6
	comment_size: int = 300
	comment_skew: float = 0.6
	thread_size: int = 9000
	thread_skew: float = 0.4
	discussion_size: int = 6000
	discussion_skew: float = 0.6
	patch_size: int = 18000
	patch_skew: float = 0.7
	patch_max_lines: int = 600
	fence: str = DEFAULT_FENCE
	keep_fenced_blocks: int = 0


#============================================
def clamp_skew(skew: float) -> float:
	"""
	Clamp a skew ratio into [0, 1]; NaN falls back to an even split.
	"""
	if skew != skew:
		return 0.5
	return min(1.0, max(0.0, float(skew)))


#============================================
def head_tail_sizes(target_size: int, skew: float) -> tuple[int, int]:
	"""
	Split target_size into head and tail sizes using skew.

	Args:
		target_size: total characters to keep.
		skew: fraction of target_size taken from the head.

	Returns:
		(head_size, tail_size) with head_size + tail_size == target_size.
	"""
	if target_size <= 0:
		return 0, 0
	# round half up so 500 * 0.6 gives 300/200 on every platform
	head_size = int(math.floor(target_size * clamp_skew(skew) + 0.5))
	head_size = min(head_size, target_size)
	tail_size = target_size - head_size
	return head_size, tail_size


#============================================
def strip_fenced_blocks(text: str, fence: str = DEFAULT_FENCE, keep_blocks: int = 0) -> str:
	"""
	Drop fenced blocks beyond the first keep_blocks matched pairs.

	An opening fence with no closing partner is left in place as prose.

	Args:
		text: input text.
		fence: delimiter string that opens and closes a block.
		keep_blocks: number of leading matched blocks to keep verbatim.

	Returns:
		Text with the extra fenced blocks removed, delimiters included.
	"""
	if not fence or fence not in text:
		return text
	parts = text.split(fence)
	kept = []
	for index, part in enumerate(parts):
		if index % 2 == 0:
			kept.append(part)
			continue
		# odd parts sit after an opening fence; matched only if a closing one follows
		matched = index + 1 < len(parts)
		if not matched:
			kept.append(fence + part)
			continue
		block_index = index // 2
		if block_index < keep_blocks:
			kept.append(fence + part + fence)
	return "".join(kept)


#============================================
def is_diff_like(text: str) -> bool:
	"""
	Return True when text contains at least one changed-file header line.
	"""
	return DIFF_MARKER_RE.search(text) is not None


#============================================
def strip_diff_noise(text: str) -> str:
	"""
	Drop bracket and brace lines inside changed-file sections of a diff.

	A section starts at a 'diff --git' line and ends at the next empty line.
	"""
	kept = []
	inside_diff_block = False
	for line in text.split("\n"):
		if line.startswith(DIFF_MARKER):
			inside_diff_block = True
			kept.append(line)
			continue
		if inside_diff_block and any(ch in DIFF_NOISE_CHARS for ch in line):
			continue
		kept.append(line)
		if not line.rstrip("\r"):
			inside_diff_block = False
	return "\n".join(kept)


#============================================
def strip_noise(text: str, fence: str = DEFAULT_FENCE, keep_fenced_blocks: int = 0) -> str:
	"""
	Apply fence stripping, and diff stripping when the text looks like a diff.
	"""
	signal = strip_fenced_blocks(text, fence, keep_fenced_blocks)
	if is_diff_like(signal):
		signal = strip_diff_noise(signal)
	signal = BLANK_RUN_RE.sub("\n\n", signal)
	return signal


#============================================
def fit_head_tail(text: str, target_size: int, skew: float) -> str:
	"""
	Keep the head and tail of text so the result fits target_size.
	"""
	if target_size <= 0:
		return ""
	if len(text) <= target_size:
		return text
	head_size, tail_size = head_tail_sizes(target_size, skew)
	head = text[:head_size]
	tail = text[len(text) - tail_size:] if tail_size > 0 else ""
	return head + tail


#============================================
def squeeze(
	text: str,
	target_size: int,
	skew: float,
	fence: str = DEFAULT_FENCE,
	keep_fenced_blocks: int = 0,
) -> str:
	"""
	Trim text to target_size characters, preserving head and tail signal.

	Text that already fits is returned unchanged. Longer text has its noise
	spans removed and is then cut to head_size characters from the start plus
	tail_size characters from the end, where head_size = round(target * skew).

	Args:
		text: input text, any length.
		target_size: maximum characters in the result.
		skew: fraction of the budget taken from the head of the text.
		fence: fenced block delimiter.
		keep_fenced_blocks: number of leading fenced blocks kept verbatim.

	Returns:
		A string of at most target_size characters ("" when target_size <= 0).
	"""
	if target_size <= 0:
		return ""
	text = text or ""
	if len(text) <= target_size:
		return text
	signal = strip_noise(text, fence, keep_fenced_blocks)
	return fit_head_tail(signal, target_size, skew)


#============================================
def squeeze_patch(
	patch_text: str,
	target_size: int,
	skew: float,
	max_lines: int = 600,
	fence: str = DEFAULT_FENCE,
) -> str:
	"""
	Squeeze a commit patch with a line-count guard.

	Patches longer than max_lines keep only the header part before the first
	'diff --git' marker, since a huge diff body is mostly noise. Shorter
	patches always get fence and diff noise stripped before fitting.

	Args:
		patch_text: raw patch text as served by GitHub.
		target_size: maximum characters in the result.
		skew: fraction of the budget taken from the head.
		max_lines: line count above which the diff body is discarded.
		fence: fenced block delimiter.

	Returns:
		A string of at most target_size characters.
	"""
	if target_size <= 0:
		return ""
	patch_text = patch_text or ""
	line_count = len(patch_text.splitlines())
	if line_count > max_lines:
		match = DIFF_MARKER_RE.search(patch_text)
		header = patch_text[:match.start()] if match else patch_text
		return fit_head_tail(header.rstrip(), target_size, skew)
	signal = strip_noise(patch_text, fence, 0)
	return fit_head_tail(signal, target_size, skew)
