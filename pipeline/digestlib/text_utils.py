import re


WORD_RE = re.compile(r"[A-Za-z0-9']+")


#============================================
def extract_words(text: str) -> list[str]:
	"""
	Return tokenized words for stable word-limit checks.
	"""
	words = WORD_RE.findall(text or "")
	return words


#============================================
def count_words(text: str) -> int:
	"""
	Count words using a stable regex-based tokenizer.
	"""
	return len(extract_words(text))


#============================================
def take_chars(text: str, char_limit: int) -> str:
	"""
	Keep the first char_limit characters without adding an ellipsis.
	"""
	if char_limit <= 0:
		return ""
	return text[:char_limit]


#============================================
def short_sha(url: str, length: int) -> str:
	"""
	Return the first characters of the last path segment of a commit URL.
	"""
	tail = (url or "").rstrip("/").rsplit("/", 1)[-1]
	if not tail:
		return "0" * length
	return tail[:length]


#============================================
def url_tail(url: str, default_value: str) -> str:
	"""
	Return the last path segment of a URL, or a default when it is empty.
	"""
	tail = (url or "").rstrip("/").rsplit("/", 1)[-1]
	return tail or default_value
