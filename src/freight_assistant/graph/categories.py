"""
categories.py
-------------
Keyword classifier mapping a question to one of the knowledge base topics.
Runs without a model call; anything unrecognized is `Category.GENERAL`.
"""
from __future__ import annotations

import re
from typing import Any, Dict, Tuple

from ..models import Category


CATEGORY_KEYWORDS: Dict[Category, Tuple[str, ...]] = {
    Category.BARLEY: ("barley", "malting barley", "feed barley"),
    Category.CHICKPEAS: ("chickpea", "chickpeas", "garbanzo", "kabuli", "desi chana", "chana"),
    Category.GREEN_LENTILS: ("green lentil", "green lentils", "laird"),
    Category.RED_LENTILS: ("red lentil", "red lentils", "masoor"),
    Category.MILLET: ("millet", "proso", "sorghum"),
    Category.OATS: ("oat", "oats", "oatmeal"),
    Category.PEAS: ("pea", "peas", "yellow peas", "split peas"),
    Category.AIR_CARGO: ("air cargo", "air freight", "airfreight", "airport", "flight", "awb", "airway bill"),
    Category.RAIL_LOGISTICS: ("rail", "railway", "railcar", "train", "wagon", "intermodal"),
    Category.OOG_CARGO: (
        "oog", "out of gauge", "out-of-gauge", "oversized", "over-dimensional",
        "heavy lift", "breakbulk", "flat rack", "project cargo",
    ),
}


def _pattern(keyword: str) -> re.Pattern:
    return re.compile(r"(?<![a-z0-9])" + re.escape(keyword) + r"(?![a-z0-9])")


_COMPILED = {
    category: tuple(_pattern(k) for k in keywords)
    for category, keywords in CATEGORY_KEYWORDS.items()
}


def classify_question(question: Any) -> Category:
    """
    Return the category with the most keyword hits.

    Ties go to the category declared first in `Category`, which puts commodities
    ahead of transport modes ("barley by rail" is a barley question).
    """
    if not isinstance(question, str) or not question.strip():
        return Category.GENERAL

    text = question.lower()
    best, best_hits = Category.GENERAL, 0
    for category in Category:
        patterns = _COMPILED.get(category, ())
        hits = sum(len(p.findall(text)) for p in patterns)
        if hits > best_hits:
            best, best_hits = category, hits
    return best
