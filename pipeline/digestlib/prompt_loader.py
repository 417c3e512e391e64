# Standard Library
import os
import re


PROMPT_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "prompts")
_PROMPT_CACHE = {}
TOKEN_RE = re.compile(r"\{\{(\w+)\}\}")


#============================================
def load_prompt(prompt_name: str) -> str:
	"""
	Load a prompt template from digestlib/prompts/.
	"""
	if not prompt_name:
		raise ValueError("prompt_name is required")
	path = os.path.join(PROMPT_DIR, prompt_name)
	if path in _PROMPT_CACHE:
		return _PROMPT_CACHE[path]
	if not os.path.exists(path):
		raise FileNotFoundError(f"Prompt file not found: {path}")
	with open(path, "r", encoding="utf-8") as handle:
		text = handle.read().strip()
	_PROMPT_CACHE[path] = text
	return text


#============================================
def render_prompt(template: str, values: dict[str, str]) -> str:
	"""
	Replace {{token}} placeholders with supplied values.
	"""
	if not template:
		return ""

	def replace_token(match) -> str:
		key = match.group(1)
		if key not in values:
			return match.group(0)
		value = values[key]
		return value if value is not None else ""

	# substituted values are never rescanned for tokens
	return TOKEN_RE.sub(replace_token, template)


#============================================
def render_named(prompt_name: str, values: dict[str, str]) -> str:
	"""
	Load one prompt template by file name and render it.
	"""
	return render_prompt(load_prompt(prompt_name), values)


#============================================
def load_chain_prompts(chain_name: str, values: dict[str, str]) -> tuple[str, str, str]:
	"""
	Render the system, analyze and condense prompts for one chat chain.

	Files are named <chain_name>_system.txt, <chain_name>_analyze.txt and
	<chain_name>_condense.txt.

	Returns:
		(system_prompt, analyze_prompt, condense_prompt)
	"""
	system_prompt = render_named(f"{chain_name}_system.txt", values)
	analyze_prompt = render_named(f"{chain_name}_analyze.txt", values)
	condense_prompt = render_named(f"{chain_name}_condense.txt", values)
	return system_prompt, analyze_prompt, condense_prompt
