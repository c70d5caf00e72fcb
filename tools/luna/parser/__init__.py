"""Utterance parsing: trigger tables, intent classification, entity extraction."""

from tools.luna.parser.entity_extractor import extract_entities, extract_title
from tools.luna.parser.intent_classifier import Candidate, IntentClassifier, classify
from tools.luna.parser.keywords import normalize

__all__ = [
    "Candidate",
    "IntentClassifier",
    "classify",
    "extract_entities",
    "extract_title",
    "normalize",
]
