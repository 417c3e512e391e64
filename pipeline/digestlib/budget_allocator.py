"""Proportional size budgets across several optional text sources.

Only sources whose text is present take part; their weights are renormalized
over that subset and each allocation is floored, so the allocations never add
up to more than the total budget.
"""

# Standard Library
import math
from dataclasses import dataclass
from typing import Mapping

from digestlib import text_squeezer
from digestlib import text_utils


DEFAULT_CHARS_PER_UNIT = 3
TRIM_POLICIES = ("head", "squeeze")


#============================================
@dataclass(frozen=True)
class TextBudget:
	"""
	One weighted text source; text None means the source is absent.
	"""
	ratio: float
	text: str | None = None

	@property
	def present(self) -> bool:
		return self.text is not None and self.ratio > 0


#============================================
def as_budgets(sources: Mapping) -> dict[str, TextBudget]:
	"""
	Normalize (ratio, text) tuples or TextBudget values into TextBudget values.
	"""
	budgets = {}
	for name, value in sources.items():
		if isinstance(value, TextBudget):
			budgets[name] = value
			continue
		ratio, text = value
		budgets[name] = TextBudget(ratio=float(ratio), text=text)
	return budgets


#============================================
def allocate_sizes(total_budget: int, sources: Mapping) -> dict[str, int]:
	"""
	Compute the size each present source may use out of total_budget.

	Args:
		total_budget: shared budget in size units.
		sources: mapping of name to TextBudget or (ratio, text) tuple.

	Returns:
		Mapping of present source name to floor(total * ratio / present_sum).
		Empty when nothing is present or the budget is not positive.
	"""
	if total_budget <= 0:
		return {}
	budgets = as_budgets(sources)
	present = {name: budget for name, budget in budgets.items() if budget.present}
	total_ratio = sum(budget.ratio for budget in present.values())
	if not present or total_ratio <= 0:
		return {}
	sizes = {}
	for name, budget in present.items():
		sizes[name] = int(math.floor(total_budget * (budget.ratio / total_ratio)))
	# float error must never push the sum above the total
	overflow = sum(sizes.values()) - total_budget
	if overflow > 0:
		largest = max(sizes, key=sizes.get)
		sizes[largest] -= overflow
	return sizes


#============================================
def allocate(
	total_budget: int,
	sources: Mapping,
	trim_policy: str = "head",
	chars_per_unit: int = DEFAULT_CHARS_PER_UNIT,
	skew: float = 0.6,
) -> dict[str, str]:
	"""
	Cut each present source down to its share of total_budget.

	Args:
		total_budget: shared budget in size units.
		sources: mapping of name to TextBudget or (ratio, text) tuple.
		trim_policy: 'head' keeps the first characters, 'squeeze' runs the
			head/tail squeezer with noise stripping.
		chars_per_unit: characters allowed per size unit.
		skew: head share used by the 'squeeze' policy.

	Returns:
		Mapping of present source name to its trimmed text. Absent sources
		are left out; an empty mapping means there is nothing to summarize.
	"""
	if trim_policy not in TRIM_POLICIES:
		raise ValueError(f"trim_policy must be one of {TRIM_POLICIES}; got {trim_policy}")
	budgets = as_budgets(sources)
	sizes = allocate_sizes(total_budget, budgets)
	trimmed = {}
	for name, size in sizes.items():
		text = budgets[name].text
		char_limit = size * chars_per_unit
		if trim_policy == "squeeze":
			trimmed[name] = text_squeezer.squeeze(text, char_limit, skew)
		else:
			trimmed[name] = text_utils.take_chars(text, char_limit)
	return trimmed
