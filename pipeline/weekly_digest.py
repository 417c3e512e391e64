#!/usr/bin/env python3
import argparse
import sys
from datetime import datetime

import rich.console

from digestlib import chat_chain
from digestlib import chat_client
from digestlib import digest_settings
from digestlib import github_client
from digestlib import report_builder


RICH_CONSOLE = rich.console.Console()


#============================================
def log_step(message: str) -> None:
	"""
	Print one timestamped progress line.
	"""
	now_text = datetime.now().strftime("%H:%M:%S")
	line = f"[weekly_digest {now_text}] {message}"
	lower = message.lower()
	style = "cyan"
	if ("failed" in lower) or ("error" in lower):
		style = "bold red"
	elif ("rate limit" in lower) or ("skipping" in lower):
		style = "yellow"
	elif ("found " in lower) or ("returned" in lower):
		style = "green"
	RICH_CONSOLE.print(line, style=style, markup=False, highlight=False)


#============================================
def notify(message: str) -> None:
	"""
	Print one user-facing line without log decoration.
	"""
	RICH_CONSOLE.print(message, markup=False, highlight=False)


#============================================
def parse_args() -> argparse.Namespace:
	"""
	Parse command-line arguments.
	"""
	parser = argparse.ArgumentParser(
		description="Summarize a week of GitHub activity for a repository or one contributor."
	)
	parser.add_argument("owner", help="Repository owner.")
	parser.add_argument("repo", help="Repository name.")
	parser.add_argument(
		"--user",
		default="",
		help="Optional GitHub username to focus the report on.",
	)
	parser.add_argument(
		"--days",
		type=int,
		default=7,
		help="Trailing window length in days.",
	)
	parser.add_argument(
		"--settings",
		default="settings.yaml",
		help="YAML settings path for model names, budgets and the GitHub token.",
	)
	parser.add_argument(
		"--llm-base-url",
		default=None,
		help="Ollama base URL (defaults from settings.yaml).",
	)
	args = parser.parse_args()
	return args


#============================================
def main() -> int:
	args = parse_args()
	settings, settings_path = digest_settings.load_settings(args.settings)
	log_step(f"Using settings: {settings_path}")
	standard_model, extended_model = digest_settings.get_llm_models(settings)
	base_url = args.llm_base_url or digest_settings.get_setting_str(
		settings, ["llm", "base_url"], "http://localhost:11434"
	)
	client = chat_client.OllamaChatClient(
		standard_model=standard_model,
		extended_model=extended_model,
		base_url=base_url,
		timeout=digest_settings.get_setting_int(settings, ["llm", "timeout_seconds"], 120),
		log_fn=log_step,
	)
	chain = chat_chain.ChatChain(client, log_fn=log_step)
	fetcher = github_client.GitHubClient(digest_settings.get_github_token(settings), log_fn=log_step)

	result = report_builder.build_report(
		fetcher,
		chain,
		args.owner,
		args.repo,
		user_name=args.user.strip() or None,
		n_days=args.days,
		notify_fn=notify,
		log_fn=log_step,
		batch_policy=digest_settings.get_batch_policy(settings),
		squeeze_policy=digest_settings.get_squeeze_policy(settings),
		selector_policy=digest_settings.get_selector_policy(settings),
		budgets=digest_settings.get_chain_budgets(settings),
	)
	usage = fetcher.api_usage_snapshot()
	log_step(f"GitHub API calls: {usage['api_call_count']}")
	notify(result.text)
	if not result.valid_repo:
		return 1
	return 0


if __name__ == "__main__":
	sys.exit(main())
