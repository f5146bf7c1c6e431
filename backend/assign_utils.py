import csv
import json
import os
from collections import namedtuple
from typing import Any, Dict, List, Optional

# Constants
DEFAULT_TEAM_SIZE = 2
DEFAULT_ITERATIONS = 2 ** 20
DEFAULT_BATCH_SIZE = 4096

SOLO_YES = "Yes"
SOLO_NO = "No"

EXPLICIT_ATTRACTION_SCORE = 3
CATEGORY_ATTRACTION_SCORE = 1

MAX_EXPLICIT_CHOICES = 3

NO_ASSIGNMENT_MESSAGE = "Could not find an assignment that avoids the negative associations"

PhraseEffect = namedtuple("PhraseEffect", ["category", "want", "veto"])

# Closed vocabulary of the "last teammate" survey question. The phrases are
# the literal choices offered by the survey form, typos included.
FEEDBACK_PHRASES = {
    "Fantastic teammate.": PhraseEffect("strong", False, False),
    "Would love to work with them again.": PhraseEffect(None, True, False),
    "Both of us working together were greater than the sum of the individuals.": PhraseEffect("helpful", False, False),
    "Was not technically capable of pulling their weight.": PhraseEffect(None, False, True),
    "Did not have a great experience with them.": PhraseEffect("watch", False, True),
    "Did not put in sufficent effort.": PhraseEffect("lazy", False, True),
    "Was not sufficiently responsive.": PhraseEffect("lazy", False, True),
    "Procrastinated.": PhraseEffect("lazy", False, True),
    "Disrespectful.": PhraseEffect("problem", False, True),
    "Abusive.": PhraseEffect("problem", False, True),
}


def canonical_handle(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def split_list(raw: Optional[str]) -> List[str]:
    """Split a comma separated cell, dropping blank entries."""
    return [s.strip() for s in (raw or "").split(",") if s.strip()]


def read_delimited_norm(fp: str, delimiter: str = "\t") -> List[Dict[str, Any]]:
    """
    Read a delimited export with a header row.

    Lines starting with '#' are comments. Short rows leave their trailing
    columns out of the returned dict, extra cells are ignored.
    """
    if not os.path.exists(fp):
        raise FileNotFoundError(f"Input file not found: {fp}")
    with open(fp, "r", encoding="utf-8-sig", newline="") as f:
        lines = [line for line in f if not line.lstrip().startswith("#")]
    reader = csv.reader(lines, delimiter=delimiter)
    header = next(reader, None)
    if header is None:
        raise ValueError(f"{fp}: missing header row")
    header = [h.strip().lower() for h in header]
    rows = []
    for cells in reader:
        if not any(c.strip() for c in cells):
            continue
        rows.append({k: v.strip() for k, v in zip(header, cells) if k})
    return rows


def load_phrase_table(path: str) -> Dict[str, PhraseEffect]:
    with open(path, "r", encoding="utf-8") as f:
        blob = json.load(f)
    if not isinstance(blob, dict):
        raise ValueError(f"{path}: phrase table must be a JSON object keyed by phrase.")
    table = {}
    for phrase, effect in blob.items():
        if not isinstance(effect, dict):
            raise ValueError(f"{path}: entry for '{phrase}' must be an object.")
        category = effect.get("category") or None
        table[phrase.strip()] = PhraseEffect(
            category,
            bool(effect.get("want", False)),
            bool(effect.get("veto", False)),
        )
    return table
