import dataclasses
import os

import yaml

from digestlib import activity_analyzers
from digestlib import model_selector
from digestlib import text_squeezer


#============================================
def get_repo_root() -> str:
	"""
	Return repository root based on this module location.
	"""
	module_dir = os.path.dirname(os.path.abspath(__file__))
	return os.path.dirname(os.path.dirname(module_dir))


#============================================
def resolve_settings_path(path_text: str) -> str:
	"""
	Resolve settings path against cwd first, then repo root.
	"""
	if os.path.isabs(path_text):
		return path_text
	cwd_candidate = os.path.abspath(path_text)
	if os.path.isfile(cwd_candidate):
		return cwd_candidate
	repo_candidate = os.path.join(get_repo_root(), path_text)
	return os.path.abspath(repo_candidate)


#============================================
def load_settings(path_text: str) -> tuple[dict, str]:
	"""
	Load YAML settings dict and return it with resolved path.
	"""
	resolved_path = resolve_settings_path(path_text)
	if not os.path.isfile(resolved_path):
		return {}, resolved_path
	with open(resolved_path, "r", encoding="utf-8") as handle:
		data = yaml.safe_load(handle.read())
	if data is None:
		return {}, resolved_path
	if not isinstance(data, dict):
		raise RuntimeError(f"Settings file must contain a mapping: {resolved_path}")
	return data, resolved_path


#============================================
def get_nested_value(settings: dict, keys: list[str], default_value):
	"""
	Read nested mapping value by key path.
	"""
	current = settings
	for key in keys:
		if not isinstance(current, dict):
			return default_value
		if key not in current:
			return default_value
		current = current[key]
	return current


#============================================
def get_setting_str(settings: dict, keys: list[str], default_value: str) -> str:
	"""
	Read a string setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	return str(value).strip()


#============================================
def get_setting_int(settings: dict, keys: list[str], default_value: int) -> int:
	"""
	Read an integer setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	if isinstance(value, bool):
		raise RuntimeError(f"Invalid integer for setting path {'.'.join(keys)}: {value}")
	try:
		return int(value)
	except (TypeError, ValueError) as error:
		raise RuntimeError(f"Invalid integer for setting path {'.'.join(keys)}: {value}") from error


#============================================
def get_setting_float(settings: dict, keys: list[str], default_value: float) -> float:
	"""
	Read a float setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if value is None:
		return default_value
	if isinstance(value, bool):
		raise RuntimeError(f"Invalid number for setting path {'.'.join(keys)}: {value}")
	try:
		return float(value)
	except (TypeError, ValueError) as error:
		raise RuntimeError(f"Invalid number for setting path {'.'.join(keys)}: {value}") from error


#============================================
def get_setting_bool(settings: dict, keys: list[str], default_value: bool) -> bool:
	"""
	Read a boolean setting from nested path with fallback.
	"""
	value = get_nested_value(settings, keys, default_value)
	if isinstance(value, bool):
		return value
	if isinstance(value, str):
		text = value.strip().lower()
		if text in {"1", "true", "yes", "on"}:
			return True
		if text in {"0", "false", "no", "off"}:
			return False
		raise RuntimeError(f"Invalid boolean for setting path {'.'.join(keys)}: {value}")
	if isinstance(value, int):
		return value != 0
	if value is None:
		return default_value
	raise RuntimeError(f"Invalid boolean for setting path {'.'.join(keys)}: {value}")


#============================================
def get_github_token(settings: dict) -> str:
	"""
	Resolve the GitHub token from settings, then the GITHUB_TOKEN variable.
	"""
	value = get_setting_str(settings, ["github", "token"], "")
	if value:
		return value
	return os.environ.get("GITHUB_TOKEN", "").strip()


#============================================
def build_policy(settings: dict, section: str, policy_class):
	"""
	Build a frozen policy dataclass, overriding defaults from one settings section.

	Each field is read with the getter matching its default's type, so a
	wrong type in settings.yaml raises RuntimeError naming the key path.
	"""
	defaults = policy_class()
	overrides = {}
	for policy_field in dataclasses.fields(policy_class):
		keys = [section, policy_field.name]
		if get_nested_value(settings, keys, None) is None:
			continue
		default_value = getattr(defaults, policy_field.name)
		if isinstance(default_value, bool):
			overrides[policy_field.name] = get_setting_bool(settings, keys, default_value)
		elif isinstance(default_value, int):
			overrides[policy_field.name] = get_setting_int(settings, keys, default_value)
		elif isinstance(default_value, float):
			overrides[policy_field.name] = get_setting_float(settings, keys, default_value)
		else:
			overrides[policy_field.name] = get_setting_str(settings, keys, default_value)
	return dataclasses.replace(defaults, **overrides)


#============================================
def get_squeeze_policy(settings: dict) -> text_squeezer.SqueezePolicy:
	return build_policy(settings, "squeeze", text_squeezer.SqueezePolicy)


#============================================
def get_selector_policy(settings: dict) -> model_selector.SelectorPolicy:
	return build_policy(settings, "selector", model_selector.SelectorPolicy)


#============================================
def get_batch_policy(settings: dict) -> activity_analyzers.BatchPolicy:
	return build_policy(settings, "batch", activity_analyzers.BatchPolicy)


#============================================
def get_chain_budgets(settings: dict) -> activity_analyzers.ChainBudgets:
	return build_policy(settings, "chain", activity_analyzers.ChainBudgets)


#============================================
def get_llm_models(settings: dict) -> tuple[str, str]:
	"""
	Read (standard_model, extended_model); the extended model defaults to the standard one.
	"""
	standard = get_setting_str(settings, ["llm", "standard_model"], "")
	if not standard:
		raise RuntimeError(
			"No chat model configured in settings.yaml. Set llm.standard_model."
		)
	extended = get_setting_str(settings, ["llm", "extended_model"], "") or standard
	return standard, extended
