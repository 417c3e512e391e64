"""
Ollama chat client with explicit restart/continue conversation state.
"""

from __future__ import annotations

# Standard Library
import random
import time
import urllib.parse
from dataclasses import dataclass

import requests

# local repo modules
from digestlib.errors import ChatClientError
from digestlib.errors import ResponseParseError
from digestlib.errors import TransportUnavailableError
from digestlib.model_selector import ChatRequestProfile
from digestlib.model_selector import ModelTier


#============================================
@dataclass(frozen=True)
class ChatResponse:
	choice: str


#============================================
def parse_chat_response(payload) -> ChatResponse:
	"""
	Validate an Ollama /api/chat response body and extract the reply.

	Raises:
		ResponseParseError: when message.content is missing, not a string or empty.
	"""
	if not isinstance(payload, dict):
		raise ResponseParseError(f"Chat response must be an object, got {type(payload).__name__}")
	if "error" in payload:
		raise ChatClientError(f"Chat backend error: {payload['error']}")
	message = payload.get("message")
	if not isinstance(message, dict):
		raise ResponseParseError("Chat response is missing the 'message' object")
	content = message.get("content")
	if not isinstance(content, str):
		raise ResponseParseError("Chat response 'message.content' must be a string")
	if not content.strip():
		raise ResponseParseError("Chat response 'message.content' is empty")
	return ChatResponse(choice=content.strip())


class OllamaChatClient:
	name = "Ollama"

	def __init__(
		self,
		standard_model: str,
		extended_model: str = "",
		base_url: str = "http://localhost:11434",
		timeout: int = 120,
		jitter: bool = True,
		session=None,
		log_fn=None,
	) -> None:
		self.standard_model = standard_model
		self.extended_model = extended_model or standard_model
		self.base_url = base_url.rstrip("/")
		self.timeout = int(timeout)
		self.jitter = bool(jitter)
		self.session = session or requests.Session()
		self.log_fn = log_fn
		self.messages: list[dict[str, str]] = []

	def log(self, message: str) -> None:
		if self.log_fn is not None:
			self.log_fn(message)

	def model_for(self, tier: ModelTier) -> str:
		if tier == ModelTier.EXTENDED:
			return self.extended_model
		return self.standard_model

	def _build_messages(self, prompt: str, profile: ChatRequestProfile) -> list[dict[str, str]]:
		messages: list[dict[str, str]] = []
		if profile.system_prompt:
			messages.append({"role": "system", "content": profile.system_prompt})
		messages.extend(self.messages)
		messages.append({"role": "user", "content": prompt})
		return messages

	def _record_history(self, prompt: str, assistant_message: str) -> None:
		self.messages.append({"role": "user", "content": prompt})
		self.messages.append({"role": "assistant", "content": assistant_message})

	def _validated_chat_endpoint(self) -> str:
		"""
		Build and validate the Ollama chat endpoint URL.
		"""
		parsed = urllib.parse.urlparse(self.base_url)
		if parsed.scheme not in {"http", "https"}:
			raise TransportUnavailableError("Ollama base_url must use http or https.")
		if not parsed.netloc:
			raise TransportUnavailableError("Ollama base_url must include a host.")
		return urllib.parse.urljoin(self.base_url + "/", "api/chat")

	def complete(self, request_id: str, prompt: str, profile: ChatRequestProfile) -> ChatResponse:
		"""
		Send one user turn; restart=True drops the previous conversation first.
		"""
		if profile.restart:
			self.messages = []
		payload: dict[str, object] = {
			"model": self.model_for(profile.model_tier),
			"messages": self._build_messages(prompt, profile),
			"stream": False,
			"options": {
				"num_predict": profile.max_output_size,
				"temperature": profile.temperature,
			},
		}
		if self.jitter:
			time.sleep(random.random())
		self.log(f"Chat request {request_id} ({profile.model_tier.value}, max {profile.max_output_size})")
		try:
			response = self.session.post(
				self._validated_chat_endpoint(),
				json=payload,
				headers={"X-Request-Id": request_id},
				timeout=self.timeout,
			)
		except requests.RequestException as exc:
			raise TransportUnavailableError("Ollama is unreachable.") from exc
		if response.status_code >= 400:
			raise ChatClientError(f"Ollama chat error: status {response.status_code}")
		try:
			body = response.json()
		except ValueError as exc:
			raise ResponseParseError("Ollama chat returned a non-JSON body") from exc
		result = parse_chat_response(body)
		self._record_history(prompt, result.choice)
		return result
