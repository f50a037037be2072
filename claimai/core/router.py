"""
Supervisor routing: which worker answers next, or whether the turn is over.

Routing is a pure function of the conversation. For the latest user text
``u`` and the set ``seen`` of workers that already answered in this turn:

1. if the number of specialized workers in ``seen`` reached ``max_hops``,
   go to the general worker if it has not answered yet, else terminate;
2. otherwise take the first rule whose matcher accepts ``u`` and whose
   worker is not in ``seen``;
3. otherwise go to the general worker if it has not answered yet;
4. otherwise terminate.

Since every selection adds a new name to ``seen``, a turn visits each
worker at most once and always terminates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Pattern, Protocol

from claimai.models.conversation import Conversation

GENERAL_WORKER = "general"
TRIAGE_WORKER = "triage_worker"
CLAIMS_DATA_WORKER = "claims_data_worker"


class IntentMatcher(Protocol):
    """Anything that decides whether a text belongs to a worker's domain."""

    def __call__(self, text: str) -> bool: ...


class KeywordMatcher:
    """Matches when the pattern occurs anywhere in the text (case-insensitive)."""

    def __init__(self, pattern: str | Pattern[str]):
        self.pattern = re.compile(pattern, re.IGNORECASE) if isinstance(pattern, str) else pattern

    def __call__(self, text: str) -> bool:
        return bool(text) and self.pattern.search(text) is not None

    def __repr__(self) -> str:
        return f"KeywordMatcher({self.pattern.pattern!r})"


class CooccurrenceMatcher:
    """Matches only when a domain keyword and a contextual hint both occur."""

    def __init__(self, keywords: str | Pattern[str], hints: str | Pattern[str]):
        self.keywords = KeywordMatcher(keywords)
        self.hints = KeywordMatcher(hints)

    def __call__(self, text: str) -> bool:
        return self.keywords(text) and self.hints(text)

    def __repr__(self) -> str:
        return f"CooccurrenceMatcher({self.keywords!r}, {self.hints!r})"


MAIL_MATCHER = KeywordMatcher(
    r"\b(e-?mails?|mails?|posteingang|postfach|inbox|nachrichten?|anh(ä|ae)nge?|attachments?"
    r"|kalender|calendar|termine?|einladung(en)?)\b"
)

CLAIMS_MATCHER = CooccurrenceMatcher(
    keywords=r"(schadenf(a|ä|ae)ll|sch(a|ä|ae)den|claims?\b|\bf(a|ä|ae)ll(e|es)?\b|versicherungsf(a|ä|ae)ll)",
    hints=r"\b(liste\w*|list|zeig\w*|show|anzahl|wie ?viele|how many|count|status|offene?n?|open"
    r"|übersicht|uebersicht|alle|all|neueste\w*|letzte\w*|summe)\b",
)


@dataclass(frozen=True)
class RouteRule:
    """Send texts accepted by ``matcher`` to ``worker``."""

    worker: str
    matcher: IntentMatcher


DEFAULT_RULES: tuple[RouteRule, ...] = (
    RouteRule(TRIAGE_WORKER, MAIL_MATCHER),
    RouteRule(CLAIMS_DATA_WORKER, CLAIMS_MATCHER),
)


@dataclass(frozen=True)
class RoutingDecision:
    """Next worker to run, or None to end the turn."""

    next_worker: str | None
    reason: str = ""

    @property
    def terminate(self) -> bool:
        return self.next_worker is None


class Router:
    """Applies the routing rules to a conversation."""

    def __init__(
        self,
        rules: Iterable[RouteRule] = DEFAULT_RULES,
        max_hops: int = 6,
        general_worker: str = GENERAL_WORKER,
        workers: Iterable[str] | None = None,
    ):
        """
        Args:
            rules: Ordered rules; the first match wins
            max_hops: Specialized workers allowed per turn before forcing the general one
            general_worker: Name of the catch-all worker
            workers: Registered worker names; rules for other workers are skipped
        """
        known = set(workers) if workers is not None else None
        self.rules = [r for r in rules if known is None or r.worker in known]
        self.max_hops = max_hops
        self.general_worker = general_worker

    @property
    def max_transitions(self) -> int:
        """Upper bound on decisions per turn that name a worker."""
        return len(self.rules) + 1

    def decide(self, conversation: Conversation) -> RoutingDecision:
        text = conversation.latest_user_text
        seen = set(conversation.seen_workers)
        general_done = self.general_worker in seen

        # The hop limit ends the turn: after the general worker, no rule is consulted again
        if conversation.hop_count >= self.max_hops:
            if not general_done:
                return RoutingDecision(self.general_worker, "hop limit reached")
            return RoutingDecision(None, "hop limit reached")

        for rule in self.rules:
            if rule.worker in seen:
                continue
            if rule.matcher(text):
                return RoutingDecision(rule.worker, f"matched {rule.worker}")

        if not general_done:
            return RoutingDecision(self.general_worker, "general handles the rest")

        return RoutingDecision(None, "all applicable workers answered")


def decide(
    conversation: Conversation,
    rules: Iterable[RouteRule] = DEFAULT_RULES,
    max_hops: int = 6,
) -> RoutingDecision:
    """Functional form of :meth:`Router.decide` with the given rules."""
    return Router(rules, max_hops=max_hops).decide(conversation)
