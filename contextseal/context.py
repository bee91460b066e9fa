"""
Encryption Context
==================

Helpers for the non-secret key/value metadata bound into every ciphertext,
and the assertion a caller makes about it before trusting a plaintext.

Philosophy:
    - Context is plain str -> str, order irrelevant
    - One canonical byte form, used as authenticated data
    - Key presence and key/value checks stay independent
"""

import json
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from .errors import ContextAssertionError, ValidationError

Context = Dict[str, str]


def normalize_context(context: Optional[Mapping[str, str]]) -> Context:
    """
    Validate and copy an encryption context.

    Returns:
        A plain dict copy; ``None`` becomes an empty context

    Raises:
        ValidationError: If a key or value is not a string, or is not encodable as UTF-8
    """
    if context is None:
        return {}
    if not isinstance(context, Mapping):
        raise ValidationError(f"Encryption context must be a mapping, got {type(context).__name__}")

    normalized = {}
    for key, value in context.items():
        if not isinstance(key, str):
            raise ValidationError(f"Encryption context key must be a string: {key!r}")
        if not isinstance(value, str):
            raise ValidationError(f"Encryption context value for {key!r} must be a string")
        try:
            key.encode('utf-8')
            value.encode('utf-8')
        except UnicodeEncodeError as e:
            raise ValidationError(f"Encryption context entry for {key!r} is not valid UTF-8") from e
        normalized[key] = value
    return normalized


def canonicalize_context(context: Mapping[str, str]) -> bytes:
    """Canonical bytes of a context: sorted keys, compact separators, UTF-8"""
    canonical_json = json.dumps(dict(context), sort_keys=True, separators=(',', ':'), ensure_ascii=False)
    return canonical_json.encode('utf-8')


def parse_context_pairs(pairs: Iterable[str]) -> Context:
    """Parse ``key=value`` strings (as given on the command line) into a context"""
    context = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValidationError(f"Expected key=value, got {pair!r}")
        context[key] = value
    return context


@dataclass(frozen=True)
class ExpectedAssertion:
    """
    What a caller requires of the authenticated context.

    Either check may be empty; an empty assertion always passes.
    """

    expected_keys: FrozenSet[str] = frozenset()
    expected_context: Mapping[str, str] = field(default_factory=dict)

    @classmethod
    def from_args(
        cls,
        expected_context_keys: Optional[Iterable[str]] = None,
        expected_context: Optional[Mapping[str, str]] = None,
    ) -> 'ExpectedAssertion':
        if isinstance(expected_context_keys, (str, bytes)):
            raise ValidationError(
                f"Expected context keys must be a collection of keys, not a single {type(expected_context_keys).__name__}"
            )
        return cls(
            expected_keys=frozenset(expected_context_keys or ()),
            expected_context=normalize_context(expected_context),
        )

    def missing_keys(self, actual: Mapping[str, str]) -> FrozenSet[str]:
        """Expected keys absent from the actual context"""
        return frozenset(key for key in self.expected_keys if key not in actual)

    def mismatched_pairs(self, actual: Mapping[str, str]) -> Dict[str, str]:
        """Expected pairs that are absent or carry a different value"""
        return {
            key: value
            for key, value in self.expected_context.items()
            if actual.get(key) != value
        }

    def check_keys(self, actual: Mapping[str, str]) -> None:
        missing = self.missing_keys(actual)
        if missing:
            raise ContextAssertionError(
                f"Encryption context is missing expected keys: {', '.join(sorted(missing))}",
                expected_keys=self.expected_keys,
                expected_context=self.expected_context,
                actual_context=actual,
                missing_keys=missing,
            )

    def check_pairs(self, actual: Mapping[str, str]) -> None:
        mismatched = self.mismatched_pairs(actual)
        if mismatched:
            raise ContextAssertionError(
                f"Encryption context does not match expected values for: {', '.join(sorted(mismatched))}",
                expected_keys=self.expected_keys,
                expected_context=self.expected_context,
                actual_context=actual,
                mismatched=mismatched,
            )

    def check(self, actual: Mapping[str, str]) -> None:
        """Run the key check, then the key/value check"""
        self.check_keys(actual)
        self.check_pairs(actual)


__all__ = [
    'Context',
    'normalize_context',
    'canonicalize_context',
    'parse_context_pairs',
    'ExpectedAssertion',
]
