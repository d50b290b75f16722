"""Content scoring policies.

A policy maps a candidate to a score (0-100) and a list of flags. It must be
pure: no I/O, no clock, no randomness. The engine turns the score into a
recommended status using configured thresholds, so policies never decide
the status themselves.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Protocol

from blog_comments.comments.models import FlagSeverity, ModerationFlag


@dataclass(frozen=True)
class ModerationCandidate:
    """What the policy sees of a comment."""

    content: str
    author_registered: bool = False
    author_email: str | None = None


@dataclass
class PolicyVerdict:
    score: int
    flags: list[ModerationFlag] = field(default_factory=list)


class ModerationPolicy(Protocol):
    def analyze(self, candidate: ModerationCandidate) -> PolicyVerdict: ...


# ==============================================================================
# Heuristic policy
# ==============================================================================

SPAM_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"viagra",
        r"cialis",
        r"casino",
        r"poker",
        r"buy now",
        r"click here",
        r"download now",
        r"earn money",
        r"make money",
        r"work from home",
        r"limited time",
        r"act now",
        r"free money",
        r"cheap .+? online",
    )
]

BANNED_WORDS = ("idiota", "estúpido", "imbécil", "tonto", "basura")

TOXIC_WORDS = (
    "mierda",
    "puto",
    "puta",
    "cabrón",
    "hijo de",
    "vete a",
    "cállate",
    "muérete",
    "pendejo",
    "gilipollas",
)

PERSONAL_ATTACKS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"eres (un|una) .+? (idiota|estúpido|tonto)",
        r"no tienes ni idea",
        r"cállate",
        r"vete a .+?",
    )
]

URL_PATTERN = re.compile(r"https?://[^\s]+", re.IGNORECASE)
EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
PHONE_PATTERN = re.compile(r"(\+?\d{1,3}[-.\s]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}")
EXCLAMATION_PATTERN = re.compile(r"!{3,}")
SPECIAL_CHARS_PATTERN = re.compile(r"[!?$€£¥@#%&*]")


class HeuristicModerationPolicy:
    """Keyword and pattern based scoring.

    Starts from 100 and subtracts a penalty per finding:

    ============== ========= =========================================
    finding        severity  penalty
    ============== ========= =========================================
    length         critical  50
    spam           critical  80 (confidence 0.3 per pattern, +0.2 for
                             repeated words, +0.2 for symbol floods)
    banned words   high      20 per occurrence
    toxicity       low..crit 10 / 20 / 40 / 60 by accumulated toxicity
    email, phone   medium    20 each
    exclamations   low       10
    links          medium    10 per link above the maximum
    capitals       low       15
    ============== ========= =========================================
    """

    def __init__(
        self,
        min_length: int = 2,
        max_length: int = 5000,
        max_links: int = 2,
    ) -> None:
        self.min_length = min_length
        self.max_length = max_length
        self.max_links = max_links

    def analyze(self, candidate: ModerationCandidate) -> PolicyVerdict:
        content = candidate.content
        flags: list[ModerationFlag] = []
        score = 100

        length = len(content.strip())
        if length < self.min_length or length > self.max_length:
            flags.append(
                ModerationFlag(
                    type="length",
                    severity=FlagSeverity.CRITICAL,
                    reason=(
                        f"Longitud fuera de rango ({length} caracteres, "
                        f"permitido {self.min_length}-{self.max_length})"
                    ),
                    confidence=1.0,
                )
            )
            score -= 50

        spam_confidence, spam_reasons = self._spam_signals(content)
        if spam_confidence >= 0.5:
            flags.append(
                ModerationFlag(
                    type="spam",
                    severity=FlagSeverity.CRITICAL,
                    reason=", ".join(spam_reasons),
                    confidence=spam_confidence,
                )
            )
            score -= 80

        lowered = content.lower()
        banned = sum(
            len(re.findall(rf"\b{re.escape(word)}\b", lowered)) for word in BANNED_WORDS
        )
        if banned:
            flags.append(
                ModerationFlag(
                    type="offensive",
                    severity=FlagSeverity.HIGH,
                    reason=f"Contiene {banned} palabra(s) prohibida(s)",
                    confidence=0.9,
                )
            )
            score -= banned * 20

        toxic_flag, toxic_penalty = self._toxicity(lowered, content)
        if toxic_flag:
            flags.append(toxic_flag)
            score -= toxic_penalty

        emails = EMAIL_PATTERN.findall(content)
        if emails:
            flags.append(
                ModerationFlag(
                    type="email",
                    severity=FlagSeverity.MEDIUM,
                    reason=f"Contiene {len(emails)} email(s)",
                    confidence=0.7,
                )
            )
            score -= 20

        phones = PHONE_PATTERN.findall(content)
        if phones:
            flags.append(
                ModerationFlag(
                    type="phone",
                    severity=FlagSeverity.MEDIUM,
                    reason=f"Contiene {len(phones)} telefono(s)",
                    confidence=0.7,
                )
            )
            score -= 20

        if EXCLAMATION_PATTERN.search(content):
            flags.append(
                ModerationFlag(
                    type="exclamation",
                    severity=FlagSeverity.LOW,
                    reason="Exclamaciones excesivas",
                    confidence=0.5,
                )
            )
            score -= 10

        links = len(URL_PATTERN.findall(content))
        if links > self.max_links:
            flags.append(
                ModerationFlag(
                    type="links",
                    severity=FlagSeverity.MEDIUM,
                    reason=f"Contiene {links} enlaces (maximo {self.max_links})",
                    confidence=0.8,
                )
            )
            score -= (links - self.max_links) * 10

        letters = [ch for ch in content if ch.isascii() and ch.isalpha()]
        if len(letters) > 20:
            caps_ratio = sum(ch.isupper() for ch in letters) / len(letters)
            if caps_ratio > 0.5:
                flags.append(
                    ModerationFlag(
                        type="caps",
                        severity=FlagSeverity.LOW,
                        reason=f"{round(caps_ratio * 100)}% en mayusculas",
                        confidence=0.6,
                    )
                )
                score -= 15

        return PolicyVerdict(score=max(0, min(100, score)), flags=flags)

    def _spam_signals(self, content: str) -> tuple[float, list[str]]:
        confidence = 0.0
        reasons: list[str] = []

        for pattern in SPAM_PATTERNS:
            if pattern.search(content):
                confidence += 0.3
                reasons.append(f"Patron de spam: {pattern.pattern}")

        words = Counter(w for w in content.lower().split() if len(w) > 3)
        if words and max(words.values()) > 5:
            confidence += 0.2
            reasons.append("Palabras repetidas excesivamente")

        if len(SPECIAL_CHARS_PATTERN.findall(content)) > 10:
            confidence += 0.2
            reasons.append("Caracteres especiales excesivos")

        return round(min(confidence, 1.0), 2), reasons

    def _toxicity(
        self, lowered: str, content: str
    ) -> tuple[ModerationFlag | None, int]:
        count = 0
        toxicity = 0.0

        for word in TOXIC_WORDS:
            matches = len(re.findall(rf"\b{re.escape(word)}", lowered))
            count += matches
            toxicity += matches * 0.2

        for pattern in PERSONAL_ATTACKS:
            if pattern.search(content):
                count += 1
                toxicity += 0.3

        if not count:
            return None, 0

        toxicity = round(toxicity, 2)
        if toxicity >= 0.6:
            severity, penalty = FlagSeverity.CRITICAL, 60
        elif toxicity >= 0.4:
            severity, penalty = FlagSeverity.HIGH, 40
        elif toxicity >= 0.2:
            severity, penalty = FlagSeverity.MEDIUM, 20
        else:
            severity, penalty = FlagSeverity.LOW, 10

        flag = ModerationFlag(
            type="toxic",
            severity=severity,
            reason=f"Contiene {count} expresion(es) toxica(s)",
            confidence=min(toxicity, 1.0),
        )
        return flag, penalty
