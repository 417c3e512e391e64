"""Two-stage chat chain: analyze, then condense in the same conversation.

Stage 1 asks for a broad analysis under one output budget. Stage 2 continues
the conversation and asks the model to condense its own answer under a second,
tighter budget. The chain either returns the stage-2 text or nothing; stage-1
text is never handed back as a substitute.
"""

# Standard Library
import dataclasses
import enum
from dataclasses import dataclass

from digestlib.model_selector import ChatRequestProfile


#============================================
class ChainStage(enum.Enum):
	ANALYZE = "analyze"
	CONDENSE = "condense"


#============================================
@dataclass(frozen=True)
class ChatChainResult:
	summary: str | None = None
	failed_stage: ChainStage | None = None
	error: str = ""

	@property
	def ok(self) -> bool:
		return self.summary is not None


#============================================
class ChatChain:
	"""
	Run analyze/condense chat pairs against a chat client.

	The client must provide complete(request_id, prompt, profile) returning an
	object with a 'choice' string, and must honor profile.restart.
	"""

	def __init__(self, client, log_fn=None):
		self.client = client
		self.log_fn = log_fn

	#============================================
	def log(self, message: str) -> None:
		if self.log_fn is not None:
			self.log_fn(message)

	#============================================
	def _send(self, request_id: str, prompt: str, profile: ChatRequestProfile) -> str:
		"""
		Send one turn and return the reply text; empty replies count as failures.
		"""
		response = self.client.complete(request_id, prompt, profile)
		choice = (getattr(response, "choice", "") or "").strip()
		if not choice:
			raise RuntimeError(f"empty response for {request_id}")
		return choice

	#============================================
	def run_detailed(
		self,
		system_prompt: str,
		user_prompt_1: str,
		request_id_1: str,
		output_budget_1: int,
		user_prompt_2: str,
		request_id_2: str | None,
		output_budget_2: int,
		error_context: str,
		profile: ChatRequestProfile | None = None,
	) -> ChatChainResult:
		"""
		Run both stages and report which stage failed, if any.

		Args:
			system_prompt: system prompt for the conversation.
			user_prompt_1: analysis request.
			request_id_1: deterministic id for stage 1.
			output_budget_1: max output size for stage 1.
			user_prompt_2: condensation request.
			request_id_2: id for stage 2; None reuses request_id_1.
			output_budget_2: max output size for stage 2.
			error_context: label included in failure logs.
			profile: base profile (tier, temperature); defaults when None.

		Returns:
			ChatChainResult with the stage-2 text, or the failed stage.
		"""
		base = profile or ChatRequestProfile()
		stage_1 = dataclasses.replace(
			base,
			system_prompt=system_prompt,
			max_output_size=output_budget_1,
			request_id=request_id_1,
			restart=True,
		)
		try:
			analysis = self._send(request_id_1, user_prompt_1, stage_1)
		except RuntimeError as error:
			self.log(f"{error_context}: analyze stage failed: {error}")
			return ChatChainResult(failed_stage=ChainStage.ANALYZE, error=str(error))
		self.log(f"{error_context}: analyze stage returned {len(analysis)} chars")

		second_id = request_id_2 or request_id_1
		stage_2 = dataclasses.replace(
			stage_1,
			max_output_size=output_budget_2,
			request_id=second_id,
			restart=False,
		)
		try:
			condensed = self._send(second_id, user_prompt_2, stage_2)
		except RuntimeError as error:
			self.log(f"{error_context}: condense stage failed: {error}")
			return ChatChainResult(failed_stage=ChainStage.CONDENSE, error=str(error))
		return ChatChainResult(summary=condensed)

	#============================================
	def run(
		self,
		system_prompt: str,
		user_prompt_1: str,
		request_id_1: str,
		output_budget_1: int,
		user_prompt_2: str,
		request_id_2: str | None,
		output_budget_2: int,
		error_context: str,
		profile: ChatRequestProfile | None = None,
	) -> str | None:
		"""
		Run both stages and return the condensed text, or None on any failure.
		"""
		result = self.run_detailed(
			system_prompt,
			user_prompt_1,
			request_id_1,
			output_budget_1,
			user_prompt_2,
			request_id_2,
			output_budget_2,
			error_context,
			profile=profile,
		)
		return result.summary
