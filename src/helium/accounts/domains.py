"""Proxy domain pool handed out to account holders."""

from __future__ import annotations

from collections.abc import Sequence

DEFAULT_DOMAINS: tuple[str, ...] = (
    "https://proxy1.example.com",
    "https://proxy2.example.com",
    "https://proxy3.example.com",
    "https://secure-proxy.example.com",
    "https://fast-proxy.example.com",
    "https://reliable-proxy.example.com",
)


class DomainPool:
    """Fixed list of proxy domains, assigned round-robin by generation count."""

    def __init__(self, domains: Sequence[str] = DEFAULT_DOMAINS) -> None:
        if not domains:
            raise ValueError("Domain pool requires at least one domain")
        self._domains = tuple(domains)

    @property
    def domains(self) -> list[str]:
        return list(self._domains)

    def pick(self, generated_count: int) -> str:
        """Return the domain for the ``generated_count``-th generation (1-based)."""
        if generated_count < 1:
            raise ValueError(f"generated_count must be >= 1, got {generated_count}")
        return self._domains[(generated_count - 1) % len(self._domains)]
