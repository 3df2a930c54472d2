"""
Piste Names
===========

Deterministic Savoyard piste names and briefing selection for generated
levels. Names agree in gender and number with their noun.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from shift_engine.runs_core.level import Rank, Weather
from shift_engine.runs_core.rng import SeededRNG


@dataclass(frozen=True)
class PisteNoun:
    article: str
    noun: str
    gender: str  # M, F, MP or FP


@dataclass(frozen=True)
class Adjective:
    M: str
    F: str
    MP: str
    FP: str
    MV: Optional[str] = None  # masculine form before a vowel (beau -> bel)

    def form(self, gender: str) -> str:
        return getattr(self, gender)


def _nouns(*entries: Tuple[str, str, str]) -> Tuple[PisteNoun, ...]:
    return tuple(PisteNoun(a, n, g) for a, n, g in entries)


RANK_NOUNS: Dict[Rank, Tuple[PisteNoun, ...]] = {
    Rank.GREEN: _nouns(
        ("Le", "Pré", "M"), ("Le", "Chalet", "M"), ("Le", "Bois", "M"),
        ("Le", "Sentier", "M"), ("L'", "Alpage", "M"), ("La", "Clairière", "F"),
        ("La", "Forêt", "F"), ("La", "Chapelle", "F"), ("Les", "Sapins", "MP"),
    ),
    Rank.BLUE: _nouns(
        ("Le", "Lac", "M"), ("Le", "Torrent", "M"), ("Le", "Balcon", "M"),
        ("Le", "Refuge", "M"), ("Le", "Nant", "M"), ("La", "Cascade", "F"),
        ("La", "Combe", "F"), ("La", "Vallée", "F"), ("Les", "Crêtes", "FP"),
    ),
    Rank.RED: _nouns(
        ("Le", "Col", "M"), ("Le", "Glacier", "M"), ("Le", "Passage", "M"),
        ("Le", "Mur", "M"), ("La", "Crête", "F"), ("La", "Corniche", "F"),
        ("La", "Face", "F"), ("L'", "Arête", "F"), ("Les", "Rochers", "MP"),
    ),
    Rank.BLACK: _nouns(
        ("Le", "Ravin", "M"), ("Le", "Couloir", "M"), ("Le", "Précipice", "M"),
        ("Le", "Gouffre", "M"), ("L'", "Aiguille", "F"), ("L'", "Enfer", "M"),
        ("La", "Brèche", "F"), ("La", "Crevasse", "F"), ("La", "Faille", "F"),
    ),
}

RANK_ADJECTIVES: Dict[Rank, Tuple[Adjective, ...]] = {
    Rank.GREEN: (
        Adjective("Fleuri", "Fleurie", "Fleuris", "Fleuries"),
        Adjective("Ensoleillé", "Ensoleillée", "Ensoleillés", "Ensoleillées"),
        Adjective("Tranquille", "Tranquille", "Tranquilles", "Tranquilles"),
        Adjective("Paisible", "Paisible", "Paisibles", "Paisibles"),
    ),
    Rank.BLUE: (
        Adjective("Blanc", "Blanche", "Blancs", "Blanches"),
        Adjective("Enneigé", "Enneigée", "Enneigés", "Enneigées"),
        Adjective("Caché", "Cachée", "Cachés", "Cachées"),
        Adjective("Secret", "Secrète", "Secrets", "Secrètes"),
    ),
    Rank.RED: (
        Adjective("Perdu", "Perdue", "Perdus", "Perdues"),
        Adjective("Escarpé", "Escarpée", "Escarpés", "Escarpées"),
        Adjective("Gelé", "Gelée", "Gelés", "Gelées"),
        Adjective("Vertigineux", "Vertigineuse", "Vertigineux", "Vertigineuses"),
    ),
    Rank.BLACK: (
        Adjective("Noir", "Noire", "Noirs", "Noires"),
        Adjective("Maudit", "Maudite", "Maudits", "Maudites"),
        Adjective("Infernal", "Infernale", "Infernaux", "Infernales"),
        Adjective("Redoutable", "Redoutable", "Redoutables", "Redoutables"),
    ),
}

# Adjectives placed before the noun: "Le Grand Col", "Le Bel Alpage"
RANK_PREPOSED: Dict[Rank, Tuple[Adjective, ...]] = {
    Rank.GREEN: (
        Adjective("Petit", "Petite", "Petits", "Petites"),
        Adjective("Joli", "Jolie", "Jolis", "Jolies"),
        Adjective("Beau", "Belle", "Beaux", "Belles", MV="Bel"),
        Adjective("Vieux", "Vieille", "Vieux", "Vieilles", MV="Vieil"),
    ),
    Rank.BLUE: (
        Adjective("Grand", "Grande", "Grands", "Grandes"),
        Adjective("Haut", "Haute", "Hauts", "Hautes"),
        Adjective("Beau", "Belle", "Beaux", "Belles", MV="Bel"),
    ),
    Rank.RED: (
        Adjective("Grand", "Grande", "Grands", "Grandes"),
        Adjective("Mauvais", "Mauvaise", "Mauvais", "Mauvaises"),
    ),
    Rank.BLACK: (
        Adjective("Grand", "Grande", "Grands", "Grandes"),
        Adjective("Vieux", "Vieille", "Vieux", "Vieilles", MV="Vieil"),
    ),
}

RANK_GENITIVES: Dict[Rank, Tuple[str, ...]] = {
    Rank.GREEN: ("des Marmottes", "du Berger", "du Mélèze", "du Hameau", "des Myrtilles"),
    Rank.BLUE: ("des Chamois", "de la Vanoise", "du Beaufortain", "des Sources", "du Nant"),
    Rank.RED: ("de l'Aigle", "des Bouquetins", "des Aiguilles", "du Vent", "des Séracs"),
    Rank.BLACK: ("du Loup", "de l'Ours", "des Abîmes", "du Néant", "des Ombres"),
}

PARK_NAMES = (
    "Le Snowpark", "L'Évasion", "Le Tremplin", "La Rampe",
    "Le Boardercross", "Les Modules", "Le Slopestyle",
)

_VOWELS = "AEÉIOUÂÊÎÔÛ"


def _is_redundant(noun: str, genitive: str) -> bool:
    """"Le Nant du Nant" and friends."""
    return noun.lower() in genitive.lower()


def piste_name(rng: SeededRNG, rank: Rank, is_park: bool = False) -> str:
    """
    Generate a piste name.

    40% genitive ("Le Col de l'Aigle"), 30% postposed adjective ("Le Col
    Gelé"), 30% preposed adjective ("Le Grand Col").
    """
    if is_park:
        return rng.pick(PARK_NAMES)

    n = rng.pick(RANK_NOUNS[rank])
    space = "" if n.article == "L'" else " "
    roll = rng.frac()

    if roll < 0.4:
        gens = RANK_GENITIVES[rank]
        gen = rng.pick(gens)
        if _is_redundant(n.noun, gen):
            gen = next((g for g in gens if not _is_redundant(n.noun, g)), gen)
        return f"{n.article}{space}{n.noun} {gen}"

    if roll < 0.7:
        adj = rng.pick(RANK_ADJECTIVES[rank])
        return f"{n.article}{space}{n.noun} {adj.form(n.gender)}"

    pre = rng.pick(RANK_PREPOSED[rank])
    if n.gender == "M" and n.noun[0].upper() in _VOWELS and pre.MV:
        form = pre.MV
    else:
        form = pre.form(n.gender)
    # The elided article comes back once an adjective separates it from the noun
    if n.article == "L'":
        article = "La" if n.gender in ("F", "FP") else "Le"
    else:
        article = n.article
    return f"{article} {form} {n.noun}"


def pick_briefing(
    difficulty: str,
    steep_zone_count: int,
    hazards: Tuple[str, ...],
    is_night: bool,
    weather: Weather,
) -> Tuple[str, str]:
    """
    Choose the briefing speaker and dialogue key for a level.

    Returns:
        (speaker, dialogue_key) tuple.
    """
    if steep_zone_count >= 2 or "avalanche" in hazards:
        return ("Thierry", "dailyRunBriefingThierry")
    if is_night or weather == Weather.STORM:
        return ("Marie", "dailyRunBriefingMarie")
    if difficulty in ("green", "blue", "park"):
        return ("Émilie", "dailyRunBriefingEmilie")
    return ("Jean-Pierre", "dailyRunBriefingJP")
