from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Literal

OutcomeKind = Literal["found", "not_found", "error"]
ErrorKind = Literal["unavailable", "bad_response"]


@dataclass(frozen=True)
class LookupOutcome:
	"""Result of one provider lookup.

	Attributes:
		kind: "found", "not_found" or "error".
		name: Linked name when kind == "found".
		message: Provider message, if the provider sent one.
		status: Provider status string for parsed responses.
		error_kind: "unavailable" or "bad_response" when kind == "error".
		attempts: Number of HTTP attempts made.
		raw_result: Provider "result" object serialized as JSON, for auditing.
	"""

	kind: OutcomeKind
	name: str | None = None
	message: str | None = None
	status: str | None = None
	error_kind: ErrorKind | None = None
	attempts: int = 1
	raw_result: str | None = None

	@classmethod
	def found(cls, name: str, **kwargs) -> "LookupOutcome":
		return cls(kind="found", name=name, **kwargs)

	@classmethod
	def not_found(cls, **kwargs) -> "LookupOutcome":
		return cls(kind="not_found", **kwargs)

	@classmethod
	def error(cls, error_kind: ErrorKind, **kwargs) -> "LookupOutcome":
		return cls(kind="error", error_kind=error_kind, **kwargs)


class AbstractNameLookupClient(ABC):
	"""Interface for mobile name lookup providers."""

	@abstractmethod
	async def lookup(self, ref_id: str, mobile: str, name: str = "") -> LookupOutcome:
		"""Resolve the name linked to a canonical mobile number.

		Args:
			ref_id: Caller-generated reference id, unique per call.
			mobile: Canonical 10-digit number.
			name: Optional name hint forwarded to the provider.

		Returns:
			LookupOutcome. A well-formed "no match" answer is not_found;
			transport failures after all retries and unparsable bodies are
			error outcomes. Never raises for provider-side answers.
		"""
		...

	async def aclose(self) -> None:
		"""Release network resources."""
