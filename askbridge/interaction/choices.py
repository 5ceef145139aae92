"""Heuristic choice detection for free-form question text.

Agents often phrase questions as lists ("1. Postgres 2. MySQL") or inline
alternatives ("PostgreSQL, MySQL, or SQLite?").  ``detect_choices`` turns
such text into a clickable choice set so the UI can render buttons instead
of a bare text box.  Pattern families are tried in a fixed order and the
first family that recognises a list wins outright:

1. numbered  -- ``1. foo`` lines, inline ``1. foo 2. bar``, keycap emoji
2. lettered  -- ``A) foo`` lines, inline ``A. foo B. bar``
3. bulleted  -- ``- foo`` lines, inline ``Database? - foo - bar``
4. ``Option A: ...`` blocks
5. comma list after a trigger verb, ending in ``?``

A family that finds more than ``MAX_CHOICES`` options suppresses detection
entirely; the later (weaker) families never get a chance to fire.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from askbridge.interaction.models.request import Choice

MIN_CHOICES = 2
MAX_CHOICES = 9
MIN_OPTION_LENGTH = 3
MAX_COMMA_OPTION_LENGTH = 60

# A new list starts when the line gap between two items exceeds this.
_NUMBERED_LIST_GAP = 5
_OTHER_LIST_GAP = 3

# -- Early exits -------------------------------------------------------------

_NUMBERED_MARKER = re.compile(r"\b\d+[.)]")
_LETTERED_MARKER = re.compile(r"\b[A-Za-z][.)]\s")
_QUESTION_BLOCK = re.compile(r"\b(?:Question|Q)\s*\d+[.:]", re.IGNORECASE)

# -- Line patterns -----------------------------------------------------------

_NUMBERED_LINE = re.compile(r"^\s*\*{0,2}(\d+)[.):-]\s+\*{0,2}\s*(.+)$")
_LETTERED_LINE = re.compile(r"^\s*\*{0,2}([A-Za-z])[.):-]\s+\*{0,2}\s*(.+)$")
_BULLET_LINE = re.compile(r"^\s*[-*•]\s+(.+)$")
_EMOJI_LINE = re.compile(r"^\s*([0-9])\ufe0f?\u20e3\s+(.+)$")

# -- Inline patterns ---------------------------------------------------------

_STOP_WORDS = r"(?:Wait|wait|Please|please|Then|then|Select|select)"
_INLINE_NUMBERED = re.compile(
    r"(\d+)(?:[.):]|\s+-)\s+([^0-9]+?)"
    rf"(?=\s+\d+(?:[.):]|\s+-)\s|[.!]\s+{_STOP_WORDS}|[.?!]\s*$|$)"
)
_INLINE_EMOJI = re.compile(
    r"([0-9])\ufe0f?\u20e3\s+([^0-9\ufe0f\u20e3]+?)"
    rf"(?=\s*[0-9]\ufe0f?\u20e3|[.!]\s+{_STOP_WORDS}|[.?!]\s*$|$)"
)
_INLINE_LETTERED = re.compile(r"\b([A-Z])[.)]\s+(.+?)(?=\s+[A-Z][.)]\s|$)")
_INLINE_BULLET_SECTION = re.compile(r"[?:]\s*(-\s+.+?)(?:\.\s*(?:Wait|wait|Please|please)|[.?!]?\s*$)")
_INLINE_BULLET_SPLIT = re.compile(r"\s+-\s+")
_INLINE_BULLET_FILLER = re.compile(r"^(?:wait|please|response|for|choice|select)", re.IGNORECASE)

_OPTION_BLOCK = re.compile(
    r"option\s+([A-Za-z]|\d+)\s*:\s*(.+?)(?=\s*option\s+(?:[A-Za-z]|\d+)\s*:|\n|$)",
    re.IGNORECASE,
)

# -- Comma fallback ----------------------------------------------------------

_COMMA_TRIGGER = re.compile(
    r"\b(?:choose|pick|select|prefer|like|want|use|between|recommend)\b[\s:]+(?:between\s+)?(.+?)\?",
    re.IGNORECASE,
)
_LEADING_CONNECTIVE = re.compile(
    r"^(?:(?:would\s+you\s+)?like\s+)?(?:me\s+)?(?:to\s+)?"
    r"(?:use|go\s+with|try|pick|select|choose|have|work\s+with)\s+",
    re.IGNORECASE,
)
_COMMA_SPLIT = re.compile(r",\s*(?:or\s+)?|\s+or\s+", re.IGNORECASE)

_TRAILING_PUNCT = re.compile(r"[?!]+$")
_BOLD = re.compile(r"\*\*")


@dataclass(frozen=True)
class _Candidate:
    line: int
    marker: str
    text: str


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_choices(text: str) -> list[str] | None:
    """Return the detected option labels, in order, or ``None``."""
    choices = detect_choices(text)
    if not choices:
        return None
    return [choice.label for choice in choices]


def detect_choices(text: str) -> list[Choice]:
    """Return the structured choice set detected in *text* (may be empty).

    Numbered and lettered options answer with their marker (``"1"``, ``"B"``)
    so the agent receives the same token it wrote; every other family
    answers with the option label itself.
    """
    if not text or not text.strip():
        return []

    if len(_NUMBERED_MARKER.findall(text)) >= MAX_CHOICES + 1:
        return []
    if len(_LETTERED_MARKER.findall(text)) >= MAX_CHOICES + 1:
        return []
    if len(_QUESTION_BLOCK.findall(text)) >= 2:
        return []

    lines = text.split("\n")
    single_line = text.replace("\n", " ")

    for family in (_numbered, _lettered, _bulleted, _option_blocks):
        found = family(lines, single_line)
        if found is not None:
            return _finalize(found)

    return _finalize(_comma_list(single_line) or [])


def normalize_choices(choices: list[Choice] | None) -> list[Choice] | None:
    """Clean caller-supplied choices: drop blank labels and duplicate labels."""
    if not choices:
        return None
    seen: set[str] = set()
    result: list[Choice] = []
    for choice in choices:
        label = choice.label.strip()
        if not label or label in seen:
            continue
        seen.add(label)
        result.append(Choice(label=label, value=choice.value.strip() or label))
    return result or None


# ---------------------------------------------------------------------------
# Pattern families
#
# Each returns ``None`` when it does not apply, so the next family is tried,
# or a (possibly too long) list of choices when it does.
# ---------------------------------------------------------------------------


def _numbered(lines: list[str], single_line: str) -> list[Choice] | None:
    candidates = _match_lines(lines, _NUMBERED_LINE)
    if len(candidates) >= MIN_CHOICES:
        group = _first_numbered_group(candidates)
        if len(group) >= MIN_CHOICES:
            return [Choice(label=_clean(c.text), value=c.marker) for c in group]

    inline = _match_inline(single_line, _INLINE_NUMBERED, min_length=MIN_OPTION_LENGTH)
    if len(inline) >= MIN_CHOICES:
        return [Choice(label=_clean(text), value=marker) for marker, text in inline]

    emoji = _match_lines(lines, _EMOJI_LINE)
    if len(emoji) >= MIN_CHOICES:
        group = _first_group(emoji, _OTHER_LIST_GAP)
        if len(group) >= MIN_CHOICES:
            return [Choice(label=_clean(c.text), value=c.marker) for c in group]

    inline_emoji = _match_inline(single_line, _INLINE_EMOJI, min_length=2)
    if len(inline_emoji) >= MIN_CHOICES:
        return [Choice(label=_clean(text), value=marker) for marker, text in inline_emoji]

    return None


def _lettered(lines: list[str], single_line: str) -> list[Choice] | None:
    candidates = _match_lines(lines, _LETTERED_LINE)
    if len(candidates) >= MIN_CHOICES:
        group = _first_group(candidates, _OTHER_LIST_GAP)
        if len(group) >= MIN_CHOICES:
            return [Choice(label=_clean(c.text), value=c.marker.upper()) for c in group]

    inline = _match_inline(single_line, _INLINE_LETTERED, min_length=MIN_OPTION_LENGTH)
    if len(inline) >= MIN_CHOICES:
        return [Choice(label=_clean(text), value=marker) for marker, text in inline]

    return None


def _bulleted(lines: list[str], single_line: str) -> list[Choice] | None:
    candidates: list[_Candidate] = []
    for index, line in enumerate(lines):
        m = _BULLET_LINE.match(line)
        if m and len(m.group(1).strip()) >= MIN_OPTION_LENGTH:
            candidates.append(_Candidate(line=index, marker="", text=_BOLD.sub("", m.group(1)).strip()))
    if len(candidates) >= MIN_CHOICES:
        group = _first_group(candidates, _OTHER_LIST_GAP)
        if len(group) >= MIN_CHOICES:
            return [Choice(label=_clean(c.text), value=_clean(c.text)) for c in group]

    section = _INLINE_BULLET_SECTION.search(single_line)
    if section:
        parts = [part.lstrip("-").strip() for part in _INLINE_BULLET_SPLIT.split(section.group(1))]
        options = [part for part in parts if len(part) >= 2 and not _INLINE_BULLET_FILLER.match(part)]
        if len(options) >= MIN_CHOICES:
            return [Choice(label=_clean(part), value=_clean(part)) for part in options]

    return None


def _option_blocks(lines: list[str], single_line: str) -> list[Choice] | None:
    joined = "\n".join(lines)
    matches = [
        (m.group(1).upper(), m.group(2).strip())
        for m in _OPTION_BLOCK.finditer(joined)
        if len(m.group(2).strip()) >= MIN_OPTION_LENGTH
    ]
    if len(matches) >= MIN_CHOICES:
        return [Choice(label=_clean(text), value=f"Option {marker}") for marker, text in matches]
    return None


def _comma_list(single_line: str) -> list[Choice] | None:
    match = _COMMA_TRIGGER.search(single_line)
    if match is None:
        return None

    # Only the first segment can carry leading prose ("to use PostgreSQL").
    options_text = _LEADING_CONNECTIVE.sub("", match.group(1).strip(), count=1)
    parts = [part.strip() for part in _COMMA_SPLIT.split(options_text)]
    parts = [_clean(part) for part in parts if part and len(part) <= MAX_COMMA_OPTION_LENGTH]
    parts = [part for part in parts if part]
    if not MIN_CHOICES <= len(parts) <= MAX_CHOICES:
        return None
    return [Choice(label=part, value=part) for part in parts]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _match_lines(lines: list[str], pattern: re.Pattern[str]) -> list[_Candidate]:
    candidates: list[_Candidate] = []
    for index, line in enumerate(lines):
        m = pattern.match(line)
        if m and len(m.group(2).strip()) >= MIN_OPTION_LENGTH:
            candidates.append(_Candidate(line=index, marker=m.group(1), text=_BOLD.sub("", m.group(2)).strip()))
    return candidates


def _match_inline(text: str, pattern: re.Pattern[str], *, min_length: int) -> list[tuple[str, str]]:
    return [
        (m.group(1), m.group(2).strip()) for m in pattern.finditer(text) if len(m.group(2).strip()) >= min_length
    ]


def _first_numbered_group(candidates: list[_Candidate]) -> list[_Candidate]:
    """Cut at the first number restart or large gap: later lists are examples."""
    for i in range(1, len(candidates)):
        prev, curr = candidates[i - 1], candidates[i]
        if int(curr.marker) <= int(prev.marker) or curr.line - prev.line > _NUMBERED_LIST_GAP:
            return candidates[:i]
    return candidates


def _first_group(candidates: list[_Candidate], max_gap: int) -> list[_Candidate]:
    for i in range(1, len(candidates)):
        if candidates[i].line - candidates[i - 1].line > max_gap:
            return candidates[:i]
    return candidates


def _clean(text: str) -> str:
    return _TRAILING_PUNCT.sub("", _BOLD.sub("", text)).strip()


def _finalize(choices: list[Choice]) -> list[Choice]:
    """Apply the size ceiling and make labels unique within the set."""
    if len(choices) > MAX_CHOICES:
        return []
    seen: set[str] = set()
    unique: list[Choice] = []
    for choice in choices:
        if choice.label and choice.label not in seen:
            seen.add(choice.label)
            unique.append(choice)
    return unique if len(unique) >= MIN_CHOICES else []


# ---------------------------------------------------------------------------
# Approval detection
# ---------------------------------------------------------------------------

SHORT_QUESTION_THRESHOLD = 100

_NEEDS_SPECIFIC_INPUT = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"please (?:select|choose|pick) (?:an? )?option",
        r"select (?:an? )?option",
        r"let me know",
        r"tell me (?:what|how|when|if|about|more)",
        r"waiting (?:for|on) (?:your|the)",
        r"ready to (?:hear|see|get|receive)",
        r"what (?:is|are|should|would)",
        r"which (?:one|file|option|method|approach)",
        r"where (?:should|would|is|are)",
        r"how (?:should|would|do|can)",
        r"when (?:should|would)",
        r"who (?:should|would)",
        r"(?:enter|provide|specify|give|type|input|write)\s+(?:a|the|your)",
        r"what.*(?:name|value|path|url|content|text|message)",
        r"describe|explain|elaborate|clarify",
        r"what do you (?:think|want|need|prefer)",
        r"any (?:suggestions|recommendations|preferences|thoughts)",
        r"choose (?:from|between|one of)",
        r"select (?:from|one of|which)",
        r"pick (?:one|from|between)",
        r"\n\s*[1-9][.)]\s+\S",
        r"\n\s*[a-d][.)]\s+\S",
        r"option\s+[a-d]\s*:",
        r"\n\s*[-*•]\s+\S",
        r"would you like (?:me to|to):\s*\n",
        r"[┌├└│┐┤┘─╔╠╚║╗╣╝═]",
        r"\[.+\]\s+\[.+\]",
    )
]

_APPROVAL = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^(?:shall|should|can|could|may|would|will|do|does|did|is|are|was|were|have|has|had)\s+"
        r"(?:i|we|you|it|this|that)\b",
        r"(?:proceed|continue|go ahead|start|begin|execute|run|apply|commit|save|delete|remove|create|add|"
        r"update|modify|change|overwrite|replace).*\?$",
        r"(?:ok|okay|alright|ready|confirm|approve|accept|allow|enable|disable|skip|ignore|dismiss|close|"
        r"cancel|abort|stop|exit|quit).*\?$",
        r"(?:right|correct|yes|no)\s*\?$",
        r"(?:is that|does that|would that|should that)\s+(?:ok|okay|work|help|be\s+(?:ok|fine|good|acceptable))",
        r"(?:do you want|would you like|shall i|should i|can i|may i|could i)",
        r"(?:want me to|like me to|need me to)",
        r"(?:approve|confirm|authorize|permit|allow)\s+(?:this|the|these)",
        r"(?:yes or no|y/n|yes/no|\[y/n\]|\(y/n\))",
        r"(?:are you sure|do you confirm|please confirm|confirm that)",
        r"(?:this will|this would|this is going to)",
    )
]

_INTERROGATIVE = re.compile(r"^(?:what|which|where|when|why|how|who|whom|whose)\b", re.IGNORECASE)
_NUMBERED_LIST_LINE = re.compile(r"\n\s*\d+[.)]\s+")


def is_approval_question(text: str) -> bool:
    """Whether a choice-less question reads as a yes/no approval request."""
    stripped = text.strip()
    if not stripped:
        return False

    if any(p.search(text) for p in _NEEDS_SPECIFIC_INPUT):
        return False
    if len(_NUMBERED_LIST_LINE.findall(text)) >= 2:
        return False

    if any(p.search(stripped) for p in _APPROVAL):
        return True

    # Short yes/no-shaped questions that don't open with an interrogative.
    return len(stripped) < SHORT_QUESTION_THRESHOLD and stripped.endswith("?") and not _INTERROGATIVE.match(stripped)
