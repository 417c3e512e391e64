"""Model tier and request profile selection.

A standard-context model handles most prompts; inputs above a size threshold
go to the extended-context model. Batch size also shapes the per-item squeeze
budget: sparse batches keep more text per item, turbo batches keep less so the
whole batch stays under an aggregate ceiling.
"""

# Standard Library
import enum
from dataclasses import dataclass

from digestlib import text_utils


#============================================
class ModelTier(enum.Enum):
	STANDARD = "standard"
	EXTENDED = "extended"


#============================================
@dataclass(frozen=True)
class ChatRequestProfile:
	"""
	Immutable per-call chat options.

	Derive variants with dataclasses.replace instead of mutating a shared value.
	"""
	model_tier: ModelTier = ModelTier.STANDARD
	system_prompt: str = ""
	max_output_size: int = 128
	temperature: float = 0.7
	request_id: str = ""
	restart: bool = True
	squeeze_budget: int = 500


#============================================
@dataclass(frozen=True)
class SelectorPolicy:
	"""
	Tunable thresholds and budgets for tier and squeeze selection.
	"""
	extended_threshold: int = 12000
	standard_max_output: int = 128
	extended_max_output: int = 192
	temperature: float = 0.7
	base_squeeze_budget: int = 500
	sparse_multiplier: float = 2.0
	sparse_squeeze_cap: int = 3000
	turbo_aggregate_ceiling: int = 24000
	turbo_min_squeeze_budget: int = 100
	sparse_item_threshold: int = 3
	turbo_item_threshold: int = 20


#============================================
def batch_mode(item_count: int, policy: SelectorPolicy | None = None) -> str:
	"""
	Classify a batch as 'sparse', 'turbo' or 'normal' by its item count.
	"""
	policy = policy or SelectorPolicy()
	if item_count < policy.sparse_item_threshold:
		return "sparse"
	if item_count > policy.turbo_item_threshold:
		return "turbo"
	return "normal"


#============================================
def squeeze_budget_for(
	sparse_mode: bool,
	turbo_mode: bool,
	item_count: int,
	policy: SelectorPolicy,
) -> int:
	"""
	Compute the per-item squeeze budget for a batch mode.
	"""
	base = policy.base_squeeze_budget
	if turbo_mode:
		share = policy.turbo_aggregate_ceiling // max(1, item_count)
		return max(policy.turbo_min_squeeze_budget, min(base, share))
	if sparse_mode:
		relaxed = int(base * policy.sparse_multiplier)
		return max(base, min(relaxed, policy.sparse_squeeze_cap))
	return base


#============================================
def select(
	input_size: int,
	sparse_mode: bool = False,
	*,
	turbo_mode: bool = False,
	item_count: int = 1,
	system_prompt: str = "",
	request_id: str = "",
	policy: SelectorPolicy | None = None,
) -> ChatRequestProfile:
	"""
	Choose a model tier and build the request profile for one call site.

	Args:
		input_size: measured size of the prompt input.
		sparse_mode: very little input is available; relax the squeeze budget.
		turbo_mode: a large batch; tighten the per-item squeeze budget.
		item_count: number of items sharing the turbo aggregate ceiling.
		system_prompt: system prompt carried by the profile.
		request_id: deterministic id for the logical entity.
		policy: thresholds and budgets; defaults when None.

	Returns:
		ChatRequestProfile with tier, output size and squeeze budget set.
	"""
	policy = policy or SelectorPolicy()
	if input_size > policy.extended_threshold:
		tier = ModelTier.EXTENDED
		max_output = policy.extended_max_output
	else:
		tier = ModelTier.STANDARD
		max_output = policy.standard_max_output
	profile = ChatRequestProfile(
		model_tier=tier,
		system_prompt=system_prompt,
		max_output_size=max_output,
		temperature=policy.temperature,
		request_id=request_id,
		restart=True,
		squeeze_budget=squeeze_budget_for(sparse_mode, turbo_mode, item_count, policy),
	)
	return profile


#============================================
def issue_request_id(number: int) -> str:
	return f"issue_{number}"


#============================================
def commit_request_id(url: str) -> str:
	return f"commit-{text_utils.short_sha(url, 5)}"


#============================================
def discussion_request_id(url: str) -> str:
	return f"discussion-{text_utils.url_tail(url, '0')}"
