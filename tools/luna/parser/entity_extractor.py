"""Entity extraction for quick capture.

Pulls titles, dates, durations, priorities and habit frequencies out of
typed text. Every date is computed from the `now` passed in (the request
context clock), never from the wall clock.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta

from tools.luna.models import Entity, EntityType

_WEEKDAYS = {
    "monday": 0, "tuesday": 1, "wednesday": 2, "thursday": 3,
    "friday": 4, "saturday": 5, "sunday": 6,
}

# Capture phrasings, tried in order. Group 1 is the title.
_TITLE_PATTERNS: list[str] = [
    r"\b(?:add|create|make|new|set|start|begin|establish)\s+(?:up\s+)?(?:a\s+|an\s+|the\s+|my\s+)?(?:new\s+)?"
    r"(?:task|todo|to-do|reminder|goal|objective|habit|routine)s?\b\s*"
    r"(?:[:-]|(?:to|for|called|named|about|of)\b)?\s*(.*)$",
    r"\b(?:remind\s+me\s+to|don'?t\s+(?:let\s+me\s+)?forget\s+to|i\s+need\s+to|i\s+have\s+to|i\s+must)\s+(.+)$",
    r"\b(?:add|put)\s+(.+?)\s+(?:to|on|in)\s+(?:my\s+|the\s+)?(?:task\s+|todo\s+|to-do\s+)?(?:list|tasks|todos)\b",
    r"\b(?:task|todo|goal|habit)\s*:\s*(.+)$",
]

# es/fr/de/pt capture phrasings; verbs mirror the classifier's create terms
_ML_VERB = (
    r"(?:crea(?:r)?|agrega(?:r)?|a[ñn]ad(?:e|ir)|establece(?:r)?|nuev[oa]"
    r"|cr[ée]e(?:r)?|ajoute(?:r)?|fixe(?:r)?|[ée]tabli(?:r)?|nouvel(?:le)?|nouveau"
    r"|erstelle(?:n)?|hinzuf[üu]gen|f[üu]ge|lege|anlegen|neue[nrs]?|setze(?:n)?"
    r"|cria(?:r)?|adiciona(?:r)?|defin(?:e|ir)|nov[oa])"
)
_ML_FILLER = (
    r"(?:(?:una?|uma?|une?|la|el|le|les|des|mi|ma|mon|eine[nr]?|ein|die|das|den|meine[nr]?"
    r"|minha|meu|nuev[oa]|nouvel(?:le)?|nouveau|neue[nrs]?|nov[oa])\s+)*"
)
_ML_NOUN = (
    r"(?:tareas?|pendientes?|t[âa]ches?|aufgaben?|tarefas?|metas?|objetivos?|objectifs?"
    r"|ziele?|h[áa]bitos?|habitudes?|gewohnheit(?:en)?|rutinas?|rotinas?)"
)
_ML_LINK = r"(?:para|pour|f[üu]r|zum|zur|llamad[oa]|appel[ée]e?|chamad[oa]|namens)"

_TITLE_PATTERNS += [
    rf"\b{_ML_VERB}\s+{_ML_FILLER}{_ML_NOUN}\b\s*(?:[:-]|{_ML_LINK}\b)?\s*(.*)$",
    rf"\b{_ML_NOUN}\s*:\s*(.+)$",
]

# Titles that only point at something on screen
_VAGUE_TITLES = {"this", "that", "it", "something", "stuff", "things", "one", "a task", "a goal", "a habit"}


def extract_entities(text: str, now: datetime) -> list[Entity]:
    """Extract all entities from an utterance.

    Runs all extractors and returns combined results, title first.
    """
    entities: list[Entity] = []
    text_lower = text.lower()

    entities.extend(extract_datetime_entities(text_lower, now))
    entities.extend(extract_duration_entities(text_lower))
    entities.extend(extract_priority_entity(text_lower))
    entities.extend(extract_frequency_entity(text_lower))

    title = extract_title(text, entities)
    if title:
        entities.insert(0, Entity(type=EntityType.TITLE, value=title, raw_text=title))

    return entities


def extract_title(text: str, entities: list[Entity] | None = None) -> str | None:
    """Pull the thing being captured out of the utterance.

    "remind me to call mom tomorrow" -> "Call mom". Returns None when the
    text names no concrete title ("add this to my list").
    """
    stripped = text.strip().rstrip(".!?")
    title = None
    for pattern in _TITLE_PATTERNS:
        match = re.search(pattern, stripped, re.IGNORECASE)
        if match:
            title = match.group(1)
            break

    if title is None:
        return None

    # Remove the spans other extractors already claimed
    for entity in entities or []:
        if entity.raw_text:
            title = re.sub(re.escape(entity.raw_text), " ", title, flags=re.IGNORECASE)

    title = re.sub(r"\s+", " ", title).strip(" ,;:-")
    title = re.sub(r"^(?:to|for|about)\s+", "", title, flags=re.IGNORECASE)
    title = re.sub(r"\s+(?:by|on|at|for|due|with)$", "", title, flags=re.IGNORECASE)
    if not title or title.lower() in _VAGUE_TITLES:
        return None
    return title[0].upper() + title[1:]


def extract_datetime_entities(text: str, now: datetime) -> list[Entity]:
    """Extract date/time references from text.

    Handles: "today", "tomorrow", "in 2 hours", "at 3pm",
    "this afternoon", "next monday", "by friday".
    """
    entities: list[Entity] = []
    today = now.strftime("%Y-%m-%d")

    # Relative day references
    day_patterns: list[tuple[str, str]] = [
        (r"\btoday\b", today),
        (r"\btomorrow\b", (now + timedelta(days=1)).strftime("%Y-%m-%d")),
        (r"\bthis\s+(?:afternoon|evening)\b", today + "T14:00"),
        (r"\btonight\b", today + "T19:00"),
        (r"\bthis\s+morning\b", today + "T09:00"),
        (r"\bnext\s+week\b", (now + timedelta(days=7 - now.weekday())).strftime("%Y-%m-%d")),
    ]

    for pattern, value in day_patterns:
        match = re.search(pattern, text)
        if match:
            entities.append(Entity(
                type=EntityType.DATETIME,
                value=value,
                raw_text=match.group(),
            ))

    # "in X hours/minutes/days"
    relative_match = re.search(r"\bin\s+(\d+)\s+(hour|minute|min|hr|day)s?\b", text)
    if relative_match:
        amount = int(relative_match.group(1))
        unit = relative_match.group(2)
        if unit in ("hour", "hr"):
            target = now + timedelta(hours=amount)
        elif unit == "day":
            target = now + timedelta(days=amount)
        else:
            target = now + timedelta(minutes=amount)
        entities.append(Entity(
            type=EntityType.DATETIME,
            value=target.strftime("%Y-%m-%dT%H:%M"),
            raw_text=relative_match.group(),
        ))

    # "at X:XX" or "at Xpm/am"
    time_match = re.search(r"\bat\s+(\d{1,2})(?::(\d{2}))?\s*(am|pm|a\.m\.|p\.m\.)?(?!\w)", text)
    if time_match:
        hour = int(time_match.group(1))
        minute = int(time_match.group(2) or 0)
        ampm = (time_match.group(3) or "").replace(".", "").lower()

        if ampm == "pm" and hour < 12:
            hour += 12
        elif ampm == "am" and hour == 12:
            hour = 0

        if hour < 24 and minute < 60:
            target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
            if target < now:
                target += timedelta(days=1)
            entities.append(Entity(
                type=EntityType.DATETIME,
                value=target.strftime("%Y-%m-%dT%H:%M"),
                raw_text=time_match.group(),
            ))

    # Day of week: "next monday", "on friday", "by friday"
    dow_match = re.search(
        r"\b(?:next|on|this|by)\s+(monday|tuesday|wednesday|thursday|friday|saturday|sunday)\b",
        text,
    )
    if dow_match:
        days_ahead = (_WEEKDAYS[dow_match.group(1)] - now.weekday()) % 7
        if days_ahead == 0:
            days_ahead = 7  # "next monday" on a monday means next week
        entities.append(Entity(
            type=EntityType.DATETIME,
            value=(now + timedelta(days=days_ahead)).strftime("%Y-%m-%d"),
            raw_text=dow_match.group(),
        ))

    return entities


def extract_duration_entities(text: str) -> list[Entity]:
    """Extract duration references ("for 30 minutes", "half an hour") in minutes."""
    entities: list[Entity] = []

    match = re.search(r"\bfor\s+(\d+)\s+(minute|min|hour|hr)s?\b", text)
    half_hour = re.search(r"\b(?:for\s+)?half\s+(?:an?\s+)?hour\b", text)
    if match:
        amount = int(match.group(1))
        minutes = amount * 60 if match.group(2) in ("hour", "hr") else amount
        entities.append(Entity(
            type=EntityType.DURATION,
            value=str(minutes),
            raw_text=match.group(),
        ))
    elif half_hour:
        entities.append(Entity(
            type=EntityType.DURATION,
            value="30",
            raw_text=half_hour.group(),
        ))

    return entities


def extract_priority_entity(text: str) -> list[Entity]:
    """Extract priority from text ("high priority", "urgent", "no rush")."""
    priority_map = {
        r"\b(?:urgent|urgently|critical|asap|immediately)\b": "high",
        r"\b(?:high\s+priority|important)\b": "high",
        r"\b(?:medium|normal)\s+priority\b": "medium",
        r"\b(?:low\s+priority|whenever|no\s+rush)\b": "low",
    }

    for pattern, priority in priority_map.items():
        match = re.search(pattern, text)
        if match:
            # Only one priority per utterance
            return [Entity(type=EntityType.PRIORITY, value=priority, raw_text=match.group())]

    return []


def extract_frequency_entity(text: str) -> list[Entity]:
    """Extract habit frequency ("every day", "weekly", "3 times a week")."""
    frequency_map = {
        r"\b(?:every\s*day|daily|each\s+day|every\s+morning|every\s+night|every\s+evening)\b": "daily",
        r"\b(?:weekdays|every\s+weekday)\b": "weekdays",
        r"\b(?:\d+|once|twice)\s+(?:times\s+)?(?:a|per)\s+week\b": "weekly",
        r"\b(?:every\s+week|weekly)\b": "weekly",
        r"\b(?:every\s+month|monthly)\b": "monthly",
    }

    for pattern, frequency in frequency_map.items():
        match = re.search(pattern, text)
        if match:
            return [Entity(type=EntityType.FREQUENCY, value=frequency, raw_text=match.group())]

    return []


def first_entity(entities: list[Entity], entity_type: EntityType) -> Entity | None:
    for entity in entities:
        if entity.type == entity_type:
            return entity
    return None


__all__ = [
    "extract_datetime_entities",
    "extract_duration_entities",
    "extract_entities",
    "extract_frequency_entity",
    "extract_priority_entity",
    "extract_title",
    "first_entity",
]
