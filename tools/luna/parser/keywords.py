"""Weighted trigger tables for the intent classifier.

Terms are matched against normalized text (casefolded, accents stripped,
punctuation turned into spaces) as whole words or phrases. A trailing "*"
makes a term a prefix match ("task*" matches "tasks", "tasking").

Each category has category-level terms (is this about tasks at all?) and
action-level terms (what about tasks?). A candidate scores the category
terms plus its best action. Regex triggers cover structural cues that a
word list cannot express: arithmetic and navigation commands.
"""

from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass

from tools.luna.models import CATEGORY_ACTIONS, IntentCategory

# (term, weight)
Terms = tuple[tuple[str, float], ...]

# Fixed order used as the last tie-breaker
CATEGORY_ORDER: tuple[IntentCategory, ...] = (
    IntentCategory.TASK_MANAGEMENT,
    IntentCategory.GOAL_SETTING,
    IntentCategory.PLANNING,
    IntentCategory.ANALYTICS,
    IntentCategory.HABIT_FORMATION,
    IntentCategory.WORKFLOW,
    IntentCategory.GENERAL,
)


def normalize(text: str) -> str:
    """Casefold, strip accents and punctuation, collapse whitespace.

    "¿Qué hora es?" -> "que hora es", "don't" -> "don t"
    """
    folded = unicodedata.normalize("NFKD", text.casefold())
    stripped = "".join(ch for ch in folded if not unicodedata.combining(ch))
    stripped = re.sub(r"[^\w\s]", " ", stripped)
    return " ".join(stripped.split())


# =============================================================================
# Shared action vocabularies
# =============================================================================

CREATE_TERMS: Terms = (
    ("add", 1.0), ("create", 1.0), ("new", 0.8), ("make", 0.6),
    ("start", 0.6), ("begin", 0.6), ("establish", 0.8), ("list", 0.5),
    # es
    ("crear", 1.0), ("agregar", 1.0), ("anadir", 1.0), ("nuevo", 0.8),
    ("nueva", 0.8), ("establecer", 1.0),
    # fr
    ("creer", 1.0), ("ajouter", 1.0), ("nouveau", 0.8), ("nouvelle", 0.8),
    ("fixer", 1.0), ("etablir", 1.0),
    # de
    ("erstellen", 1.0), ("hinzufugen", 1.0), ("anlegen", 1.0), ("neu", 0.8),
    ("neue", 0.8), ("neuen", 0.8), ("neues", 0.8), ("setzen", 1.0),
    # pt
    ("criar", 1.0), ("adicionar", 1.0), ("novo", 0.8), ("nova", 0.8),
    ("definir", 1.0),
)

UPDATE_TERMS: Terms = (
    ("update*", 1.0), ("edit*", 1.0), ("modif*", 1.0), ("chang*", 1.0),
    ("adjust*", 1.0), ("revise", 1.0),
    ("actualizar", 1.0), ("cambiar", 1.0), ("andern", 1.0),
    ("aktualisieren", 1.0), ("atualizar", 1.0), ("alterar", 1.0),
)


# =============================================================================
# Category-level terms
# =============================================================================

CATEGORY_TERMS: dict[IntentCategory, Terms] = {
    IntentCategory.TASK_MANAGEMENT: (
        ("task*", 1.5), ("todo*", 1.5), ("to do list", 1.0),
        ("deadline*", 1.0), ("reminder*", 0.8), ("checklist*", 1.0),
        ("errand*", 1.0), ("chore*", 1.0), ("overdue", 0.8),
        ("tarea*", 1.5), ("pendiente*", 1.0), ("tache*", 1.5),
        ("aufgabe*", 1.5), ("tarefa*", 1.5),
    ),
    IntentCategory.GOAL_SETTING: (
        ("goal*", 1.5), ("objective*", 1.5), ("target*", 1.0),
        ("milestone*", 1.0), ("okr*", 1.0), ("ambition*", 1.0),
        ("aspiration*", 1.0), ("resolution*", 0.8),
        ("meta", 1.5), ("metas", 1.5), ("objetivo*", 1.5),
        ("proposito*", 1.0), ("objectif*", 1.5),
        ("ziel", 1.5), ("ziele", 1.5), ("zielen", 1.5),
    ),
    IntentCategory.PLANNING: (
        ("plan", 1.0), ("plans", 1.0), ("planning", 1.0), ("planner", 1.0),
        ("schedul*", 1.0), ("calendar*", 1.0), ("agenda*", 1.0),
        ("time block*", 1.0), ("timebox*", 1.0),
        ("planificar", 1.0), ("planear", 1.0), ("programar", 1.0),
        ("calendario", 1.0), ("planifier", 1.0), ("calendrier", 1.0),
        ("planen", 1.0), ("planung", 1.0), ("kalender", 1.0),
        ("planejar", 1.0), ("agendar", 1.0),
    ),
    IntentCategory.ANALYTICS: (
        ("analy*", 1.5), ("analiz*", 1.5), ("analis*", 1.5),
        ("statistic*", 1.0), ("stats", 1.0), ("metric*", 1.0),
        ("insight*", 1.0), ("trend*", 1.0), ("report*", 1.0),
        ("performance", 1.0), ("productivity", 0.5), ("productive", 0.5),
        ("data", 0.8), ("numbers", 0.5), ("dashboard", 0.5),
        ("completion rate", 1.0), ("how productive", 1.0),
        ("datos", 0.8), ("donnees", 0.8), ("daten", 0.8), ("dados", 0.8),
        ("informe*", 1.0), ("rapport*", 1.0), ("bericht*", 1.0),
        ("relatorio*", 1.0), ("estadistica*", 1.0), ("statistique*", 1.0),
        ("statistik*", 1.0), ("estatistica*", 1.0),
    ),
    IntentCategory.HABIT_FORMATION: (
        ("habit*", 1.5), ("routine*", 1.0), ("streak*", 1.0),
        ("ritual*", 1.0), ("consisten*", 0.5), ("meditat*", 0.8),
        ("workout*", 0.5), ("exercis*", 0.5), ("journaling", 0.5),
        ("habito*", 1.5), ("habitude*", 1.5), ("gewohnheit*", 1.5),
        ("rutina*", 1.0), ("rotina*", 1.0),
    ),
    IntentCategory.WORKFLOW: (
        ("workflow*", 1.5), ("process*", 1.0), ("automat*", 1.0),
        ("template*", 1.0), ("integrat*", 1.0), ("shortcut*", 1.0),
        ("pipeline*", 1.0), ("procedure*", 1.0), ("system*", 0.8),
        ("tools", 0.8), ("apps", 0.8), ("project*", 0.8),
        ("workspace*", 0.8), ("efficien*", 0.5),
        ("flujo*", 1.0), ("proceso*", 1.0), ("processus", 1.0),
        ("arbeitsablauf*", 1.0), ("prozess*", 1.0), ("fluxo*", 1.0),
        ("processo*", 1.0),
    ),
    IntentCategory.GENERAL: (),
}


# =============================================================================
# Action-level terms
# =============================================================================

_WEEKDAYS: Terms = tuple(
    (day, 0.5)
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
)

ACTION_TERMS: dict[IntentCategory, dict[str, Terms]] = {
    IntentCategory.TASK_MANAGEMENT: {
        "create": CREATE_TERMS + (
            ("remind me", 1.5), ("don t forget", 1.5), ("need to", 0.5),
            ("capture", 0.8), ("jot", 0.8),
        ),
        "organize": (
            ("organi*", 1.0), ("priorit*", 1.5), ("sort*", 1.0),
            ("arrang*", 1.0), ("triage", 1.0), ("most important", 1.0),
            ("urgent", 0.5), ("eisenhower", 1.5), ("structure", 0.8),
            ("organizar", 1.0), ("organiser", 1.0), ("organisieren", 1.0),
        ),
        "complete": (
            ("complete", 1.0), ("completed", 1.0), ("done", 1.0),
            ("finish*", 1.0), ("check off", 1.5), ("tick off", 1.5),
            ("cross off", 1.5), ("mark", 0.5),
            ("terminar", 1.0), ("terminer", 1.0), ("erledig*", 1.0),
            ("concluir", 1.0),
        ),
        "update": UPDATE_TERMS + (
            ("reschedul*", 1.0), ("postpone", 1.0), ("rename", 1.0),
            ("move", 0.5),
        ),
        "review": (
            ("review", 1.0), ("show", 0.5), ("list", 0.8), ("overdue", 1.0),
            ("upcoming", 1.0), ("due", 0.8), ("pending", 0.8),
            ("do i have", 1.0), ("what tasks", 1.0), ("what are my", 1.0),
            ("remaining", 0.8),
        ),
    },
    IntentCategory.GOAL_SETTING: {
        "create": CREATE_TERMS + (("set", 0.8), ("want to", 0.5)),
        "track": (
            ("track*", 1.5), ("progress", 1.0), ("monitor*", 1.0),
            ("check", 0.8), ("how am i doing", 1.0), ("measur*", 0.8),
            ("on track", 1.0), ("status", 0.8),
            ("seguimiento", 1.0), ("suivre", 1.0), ("verfolgen", 1.0),
            ("acompanhar", 1.0),
        ),
        "update": UPDATE_TERMS,
        "plan": (
            # Kept below the planning category weight for "plan"
            ("plan", 0.5), ("planning", 0.5), ("roadmap*", 1.5),
            ("break down", 1.0), ("steps", 1.0), ("achieve", 0.8),
            ("journey", 0.8), ("strateg*", 1.0), ("how to reach", 1.0),
        ),
    },
    IntentCategory.PLANNING: {
        "daily": (
            ("day", 1.0), ("today*", 0.8), ("tomorrow", 0.8), ("daily", 0.8),
            ("morning", 0.5), ("afternoon", 0.5), ("evening", 0.5),
            ("tonight", 0.5), ("organi*", 1.0),
            ("dia", 1.0), ("hoy", 0.8), ("manana", 0.8),
            ("journee", 1.0), ("jour", 0.8), ("aujourd hui", 0.8), ("demain", 0.8),
            ("tag", 0.8), ("heute", 0.8), ("morgen", 0.8),
            ("hoje", 0.8), ("amanha", 0.8),
        ) + _WEEKDAYS,
        "weekly": (
            ("week*", 1.5), ("semana*", 1.5), ("semaine*", 1.5), ("woche*", 1.5),
        ),
        "monthly": (
            ("month*", 1.5), ("quarter*", 1.0),
            ("este mes", 1.5), ("proximo mes", 1.5), ("mensual", 1.5),
            ("mois", 1.5), ("mensuel*", 1.5), ("monat*", 1.5), ("mensal", 1.5),
        ),
        "event": (
            ("meeting*", 1.0), ("event*", 1.0), ("party", 1.0),
            ("vacation*", 1.0), ("holiday*", 1.0), ("trip*", 1.0),
            ("itinerar*", 1.0), ("conference*", 1.0), ("retreat*", 1.0),
            ("appointment*", 1.0), ("birthday*", 0.8), ("wedding*", 1.0),
            ("reunion*", 1.0), ("evento*", 1.0), ("reuniao", 1.0),
            ("rendez vous", 1.0), ("termin", 1.0), ("termine", 1.0),
        ),
    },
    IntentCategory.ANALYTICS: {
        "analyze": (
            ("analy*", 1.0), ("analiz*", 1.0), ("analis*", 1.0),
            ("trend*", 0.8), ("completion rate", 0.5), ("track", 1.0),
            ("progress", 1.0), ("how productive", 1.0), ("usage", 0.5),
            ("breakdown", 0.8), ("review", 0.5),
        ),
        "report": (
            ("report*", 1.5), ("summar*", 1.0), ("recap", 1.0),
            ("generate", 0.5), ("informe*", 1.5), ("rapport*", 1.5),
            ("bericht*", 1.5), ("relatorio*", 1.5), ("resumen", 1.0),
        ),
        "insights": (
            ("insight*", 1.5), ("recommend*", 1.0), ("suggest*", 0.8),
            ("why", 0.8), ("pattern*", 1.0), ("advice", 0.8), ("tips", 0.5),
        ),
        "compare": (
            ("compar*", 1.5), ("vs", 1.0), ("versus", 1.0),
            ("difference", 1.0), ("last month", 0.5), ("last week", 0.5),
            ("over time", 0.8), ("before and after", 1.0),
        ),
    },
    IntentCategory.HABIT_FORMATION: {
        "create": CREATE_TERMS,
        "track": (
            ("track*", 1.5), ("log", 1.0), ("logged", 1.0), ("record", 1.0),
            ("mark", 0.5), ("done", 0.5), ("progress", 0.5),
            ("check in", 1.0), ("did i", 1.0),
            ("registrar", 1.0), ("enregistrer", 1.0),
        ),
        "build": (
            ("build*", 1.0), ("strengthen", 1.5), ("develop", 1.0),
            ("consisten*", 1.0), ("momentum", 1.0), ("improve", 0.5),
            ("fix", 0.8), ("stick to", 1.0), ("stick with", 1.0),
            ("keep up", 1.0),
        ),
        "break": (
            ("break", 1.0), ("quit", 1.5), ("stop", 1.0), ("eliminat*", 1.0),
            ("get rid of", 1.5), ("avoid", 0.8), ("reduce", 0.8),
            ("cut down", 1.0), ("dejar", 1.0), ("arreter", 1.0),
            ("aufhoren", 1.0), ("parar", 1.0),
        ),
    },
    IntentCategory.WORKFLOW: {
        "optimize": (
            ("optimi*", 1.5), ("streamlin*", 1.5), ("improv*", 1.0),
            ("enhanc*", 1.0), ("better", 0.5), ("efficien*", 1.0),
            ("faster", 0.8), ("organi*", 1.0), ("simplif*", 1.0),
            ("mejorar", 1.0), ("ameliorer", 1.0), ("verbessern", 1.0),
            ("melhorar", 1.0),
        ),
        "automate": (
            ("automat*", 1.5), ("recurring", 1.0), ("template*", 1.0),
            ("shortcut*", 1.0), ("repeat*", 0.8), ("trigger*", 1.0),
            ("set up", 0.5),
        ),
        "integrate": (
            ("connect*", 1.5), ("sync*", 1.5), ("integrat*", 1.5),
            ("link*", 1.0), ("combin*", 1.0), ("import", 0.8), ("export", 0.8),
        ),
        "design": (
            ("design*", 1.5), ("blueprint", 1.0), ("onboarding", 0.8),
            ("structure", 0.5), ("create", 0.5), ("build", 0.5),
        ),
    },
    IntentCategory.GENERAL: {
        "help": (
            ("help", 1.0), ("assist*", 1.0), ("struggl*", 1.0), ("stuck", 1.0),
            ("overwhelm*", 1.0), ("support", 0.5),
            ("ayuda", 1.0), ("aide", 1.0), ("hilfe", 1.0), ("ajuda", 1.0),
        ),
        "explain": (
            ("explain*", 1.5), ("what can you do", 1.5), ("how does", 1.0),
            ("tell me about", 1.0), ("what is", 0.5), ("features", 0.8),
            ("explicar", 1.5), ("expliquer", 1.5), ("erklar*", 1.5),
        ),
        "guide": (
            ("guide", 1.5), ("walk me through", 1.5), ("take me through", 1.5),
            ("get started", 1.0), ("getting started", 1.0),
            ("step by step", 1.0), ("how to", 0.8), ("tutorial", 1.0),
        ),
        "time": (
            ("what time", 2.0), ("time is it", 2.0), ("current time", 2.0),
            ("the time", 1.0), ("what day", 1.5), ("day is it", 1.5),
            ("the date", 1.5), ("what s the date", 1.0), ("what date", 1.5),
            ("que hora", 2.0), ("que horas", 2.0), ("quelle heure", 2.0),
            ("wie spat", 2.0), ("uhrzeit", 2.0),
            ("que dia", 1.5), ("quel jour", 1.5), ("welcher tag", 1.5),
        ),
        "calculate": (
            ("calculat*", 1.5), ("comput*", 1.0), ("math", 1.0),
            ("how much is", 0.8), ("divided by", 1.0), ("multiplied by", 1.0),
            ("percent of", 1.0), ("plus", 0.5), ("minus", 0.5),
            ("calcular", 1.5), ("calculer", 1.5), ("berechne*", 1.5),
            ("rechne*", 1.0),
        ),
        "navigate": (
            ("navigate to", 0.8), ("take me to", 0.8), ("go to", 0.5),
        ),
    },
}


# =============================================================================
# Regex triggers
# =============================================================================

# Words accepted as navigation destinations (normalized form)
DESTINATION_WORDS: tuple[str, ...] = (
    "tasks", "task", "todos", "todo", "goals", "goal", "habits", "habit",
    "calendar", "planner", "plan", "analytics", "reports", "report",
    "insights", "projects", "project", "notes", "note", "dashboard", "home",
    "settings", "preferences", "profile", "capture", "inbox",
    "tareas", "metas", "habitos", "calendario", "ajustes",
    "taches", "objectifs", "habitudes", "calendrier", "parametres",
    "aufgaben", "ziele", "gewohnheiten", "kalender", "einstellungen",
    "tarefas", "configuracoes",
)

_DEST = "|".join(sorted(DESTINATION_WORDS, key=len, reverse=True))
_DETERMINER = r"(?:(?:the|my|mis|mes|la|le|les|los|las|den|die|meine|minhas|meus)\s+)?"

NAVIGATION_PATTERNS: tuple[str, ...] = (
    rf"\b(?:go|take\s+me|bring\s+me|switch|jump|head|ir|aller|gehe|geh|vai)"
    rf"\s+(?:back\s+)?(?:to|a|au|aux|zu|zum|zur|para)\s+{_DETERMINER}(?P<dest>{_DEST})\b",
    rf"\bnavigate\s+(?:to\s+)?{_DETERMINER}(?P<dest>{_DEST})\b",
    rf"\b(?:open|abrir|ouvrir|offne|offnen)\s+{_DETERMINER}(?P<dest>{_DEST})\b",
)

# Matched against the casefolded raw text so operator symbols survive
ARITHMETIC_PATTERN = (
    r"\d[\d.,]*\s*"
    r"(?:[+*/×÷^]|x(?=\s*\d)|\s-\s|%\s*of\b|plus\b|minus\b|times\b"
    r"|multiplied\s+by\b|divided\s+by\b|over\b|percent\s+of\b)"
    r"\s*\(?\s*-?\d"
)

# (category, action) -> [(pattern, weight, source)] where source is
# "raw" (casefolded input) or "normalized"
REGEX_TRIGGERS: dict[tuple[IntentCategory, str], tuple[tuple[str, float, str], ...]] = {
    (IntentCategory.GENERAL, "calculate"): ((ARITHMETIC_PATTERN, 2.5, "raw"),),
    (IntentCategory.GENERAL, "navigate"): tuple(
        (pattern, 3.0, "normalized") for pattern in NAVIGATION_PATTERNS
    ),
}


# =============================================================================
# Stopwords (utterances made only of these carry no signal)
# =============================================================================

STOPWORDS: frozenset[str] = frozenset(
    # en
    "a an the and or but if in on at to for of with by from up about into over as "
    "is are am be been was were do does did i me my mine myself we us our you your "
    "it its this that these those please just some any so can could would should "
    "will shall may might must let lets s t m re ve ll d what where when why how "
    "who which hey hi hello ok okay um uh "
    # es
    "el la los las un una unos unas mi mis de del y en con por para al lo que es "
    # fr
    "le les une des du et mon ma mes au aux est "
    # de
    "der die das den dem des ein eine einen einem und mein meine meinen zu im ist "
    # pt
    "o os um uma uns umas meu minha meus minhas e do da dos das no na em".split()
)


# =============================================================================
# Compilation
# =============================================================================


@dataclass(frozen=True)
class Trigger:
    """A compiled trigger. `label` is what gets reported in matched_terms."""

    label: str
    pattern: re.Pattern
    weight: float
    source: str = "normalized"


def compile_term(term: str, weight: float) -> Trigger:
    prefix = term.endswith("*")
    body = normalize(term.rstrip("*"))
    regex = r"(?<!\w)" + re.escape(body) + (r"\w*" if prefix else "") + r"(?!\w)"
    return Trigger(label=term, pattern=re.compile(regex), weight=weight)


@dataclass(frozen=True)
class CompiledTables:
    category: dict[IntentCategory, tuple[Trigger, ...]]
    actions: dict[IntentCategory, dict[str, tuple[Trigger, ...]]]


_compiled: CompiledTables | None = None


def get_tables() -> CompiledTables:
    """Compile the trigger tables once and reuse them."""
    global _compiled
    if _compiled is None:
        category = {
            cat: tuple(compile_term(t, w) for t, w in terms)
            for cat, terms in CATEGORY_TERMS.items()
        }
        actions: dict[IntentCategory, dict[str, tuple[Trigger, ...]]] = {}
        for cat, known_actions in CATEGORY_ACTIONS.items():
            actions[cat] = {}
            for action in known_actions:
                triggers = [compile_term(t, w) for t, w in ACTION_TERMS[cat].get(action, ())]
                for pattern, weight, source in REGEX_TRIGGERS.get((cat, action), ()):
                    triggers.append(Trigger(
                        label=f"<{action}>",
                        pattern=re.compile(pattern, re.IGNORECASE),
                        weight=weight,
                        source=source,
                    ))
                actions[cat][action] = tuple(triggers)
        _compiled = CompiledTables(category=category, actions=actions)
    return _compiled


__all__ = [
    "ACTION_TERMS",
    "CATEGORY_ORDER",
    "CATEGORY_TERMS",
    "DESTINATION_WORDS",
    "NAVIGATION_PATTERNS",
    "STOPWORDS",
    "CompiledTables",
    "Trigger",
    "compile_term",
    "get_tables",
    "normalize",
]
