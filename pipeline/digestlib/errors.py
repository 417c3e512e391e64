"""
Error types shared by the digest pipeline.
"""


#============================================
class DigestError(RuntimeError):
	"""
	Base class for digest pipeline failures.
	"""


#============================================
class ResponseParseError(DigestError):
	"""
	Raised when a payload does not match the expected structure.
	"""


#============================================
class ChatClientError(DigestError):
	"""
	Raised when a chat completion call fails.
	"""


#============================================
class TransportUnavailableError(ChatClientError):
	"""
	Raised when the chat backend cannot be reached.
	"""


#============================================
class RateLimitError(DigestError):
	"""
	Raised when GitHub API rate limits block further requests.
	"""
