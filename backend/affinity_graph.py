"""
affinity_graph.py — per-person attraction / repulsion model

Fuses three record streams into one PersonModel per classified person:

- classification rows seed the people and their categories,
- relation rows turn category membership into category-level attractors
  and repulsors,
- feedback rows add the solo flag, explicit wants / vetoes (capped at three,
  later fields first) and signals derived from the closed vocabulary of
  last-teammate phrases.

Feedback-derived category memberships are staged and applied before any
relation is propagated, so the result does not depend on the order of the
feedback rows.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Set, Tuple

from assign_utils import (
    FEEDBACK_PHRASES,
    MAX_EXPLICIT_CHOICES,
    SOLO_NO,
    SOLO_YES,
    PhraseEffect,
    canonical_handle,
    split_list,
)
from records import (
    ClassificationRecord,
    DuplicateIdentityError,
    FeedbackRecord,
    RelationRecord,
    UnknownFeedbackPhraseError,
)

logger = logging.getLogger("affinity_graph")


@dataclass(frozen=True)
class PersonModel:
    handle: str
    name: str = ""
    secondary_handle: str = ""
    email: str = ""
    categories: FrozenSet[str] = frozenset()
    attractors: FrozenSet[str] = frozenset()
    classification_attractors: FrozenSet[str] = frozenset()
    repulsors: FrozenSet[str] = frozenset()
    vetoes: Tuple[str, ...] = ()
    wants: Tuple[str, ...] = ()
    ok_solo: bool = False


@dataclass
class _PersonDraft:
    handle: str
    name: str
    secondary_handle: str
    email: str = ""
    vetoes: List[str] = field(default_factory=list)
    wants: List[str] = field(default_factory=list)
    feedback_vetoes: List[str] = field(default_factory=list)
    feedback_wants: List[str] = field(default_factory=list)
    ok_solo: bool = False
    seen_feedback: bool = False


def cap_choices(values: Iterable[str], limit: int = MAX_EXPLICIT_CHOICES) -> List[str]:
    """Deduplicate (first occurrence wins), reverse, keep the first ``limit``."""
    unique = list(dict.fromkeys(values))
    return list(reversed(unique))[:limit]


class AffinityGraphBuilder:
    """
    Builds the PersonModel mapping. ``build()`` runs the steps in order;
    a builder instance is single use.
    """

    def __init__(self, phrases: Optional[Mapping[str, PhraseEffect]] = None):
        self.phrases = FEEDBACK_PHRASES if phrases is None else phrases
        self.warnings: List[str] = []
        self._people: Dict[str, _PersonDraft] = {}
        self._members: Dict[str, Set[str]] = defaultdict(set)
        self._person_categories: Dict[str, Set[str]] = defaultdict(set)
        self._attractor_members: Dict[str, Set[str]] = {}
        self._repulsor_members: Dict[str, Set[str]] = {}
        self._aliases: Dict[str, str] = {}
        self._staged_categories: List[Tuple[str, str]] = []

    def _warn(self, message: str):
        self.warnings.append(message)
        logger.warning(message)

    def _add_category(self, handle: str, category: str):
        if not category:
            return
        self._members[category].add(handle)
        self._person_categories[handle].add(category)

    # 1 + 2: people and category indices
    def seed(self, classifications: Iterable[ClassificationRecord]):
        for rec in classifications:
            if rec.canonical_handle in self._people:
                raise DuplicateIdentityError(rec.canonical_handle)
            self._people[rec.canonical_handle] = _PersonDraft(
                handle=rec.canonical_handle,
                name=rec.name,
                secondary_handle=rec.secondary_handle,
            )
            for category in rec.category_labels():
                self._add_category(rec.canonical_handle, category)
        logger.info(f"Seeded {len(self._people)} people across {len(self._members)} categories")

    def build_aliases(self, feedback: Iterable[FeedbackRecord]):
        for rec in feedback:
            if rec.secondary_handle:
                self._aliases[rec.secondary_handle] = rec.canonical_handle

    def resolve_teammate(self, value: Optional[str]) -> Optional[str]:
        handle = canonical_handle(value)
        if not handle:
            return None
        if handle in self._aliases:
            return self._aliases[handle]
        # the survey sometimes gets the school handle instead of the secondary one
        if handle in self._people:
            return handle
        return None

    def _explicit_choices(self, who: str, values: Iterable[Optional[str]], kind: str) -> List[str]:
        valid = []
        for raw in values:
            if raw is None:
                continue
            handle = canonical_handle(raw)
            if not handle:
                continue
            if handle not in self._people:
                self._warn(f"Person {who} provided invalid person {handle} as {kind}.")
                continue
            valid.append(handle)
        return cap_choices(valid)

    def fuse_feedback(self, feedback: Iterable[FeedbackRecord]):
        for rec in feedback:
            person = self._people.get(rec.canonical_handle)
            if person is None:
                self._warn(
                    f"Feedback includes person {rec.canonical_handle} who isn't represented in the classifications."
                )
                continue
            if person.seen_feedback:
                self._warn(f"Person {person.handle} submitted feedback more than once; keeping the latest.")
            person.seen_feedback = True
            person.email = rec.email

            if rec.solo == SOLO_YES:
                person.ok_solo = True
            elif rec.solo == SOLO_NO:
                person.ok_solo = False

            teammate = self.resolve_teammate(rec.last_teammate_secondary_handle)
            if teammate is not None:
                for phrase in split_list(rec.last_teammate_feedback):
                    effect = self.phrases.get(phrase)
                    if effect is None:
                        raise UnknownFeedbackPhraseError(person.handle, phrase)
                    if effect.veto:
                        person.feedback_vetoes.append(teammate)
                    if effect.want:
                        person.feedback_wants.append(teammate)
                    if effect.category:
                        self._staged_categories.append((teammate, effect.category))

            person.vetoes = self._explicit_choices(person.handle, rec.vetoes, "veto")
            person.wants = self._explicit_choices(person.handle, rec.wants, "wanted teammate")

    def apply_staged_categories(self):
        for handle, category in self._staged_categories:
            self._add_category(handle, category)
        self._staged_categories = []

    def propagate_relations(self, relations: Iterable[RelationRecord]):
        for rel in relations:
            attract = self._attractor_members.setdefault(rel.subject_category, set())
            repel = self._repulsor_members.setdefault(rel.subject_category, set())
            members = self._members.get(rel.object_category, set())
            if rel.attracts:
                attract.update(members)
            if rel.repels:
                repel.update(members)

    def merge(self) -> Mapping[str, PersonModel]:
        models = {}
        for handle, person in self._people.items():
            vetoes = person.vetoes + person.feedback_vetoes
            wants = person.wants + person.feedback_wants
            repulsors = set(vetoes)
            attractors = set(wants)
            classification_attractors = set()
            categories = self._person_categories.get(handle, set())
            for category in sorted(categories):
                if category not in self._attractor_members:
                    self._warn(
                        f"Category {category} specified for person {handle}, but not in the relations."
                    )
                    continue
                classification_attractors |= self._attractor_members[category]
                repulsors |= self._repulsor_members[category]
            models[handle] = PersonModel(
                handle=handle,
                name=person.name,
                secondary_handle=person.secondary_handle,
                email=person.email,
                categories=frozenset(categories),
                attractors=frozenset(attractors),
                classification_attractors=frozenset(classification_attractors),
                repulsors=frozenset(repulsors),
                vetoes=tuple(vetoes),
                wants=tuple(wants),
                ok_solo=person.ok_solo,
            )
        return MappingProxyType(models)

    def build(
        self,
        classifications: Iterable[ClassificationRecord],
        feedback: Iterable[FeedbackRecord],
        relations: Iterable[RelationRecord],
    ) -> Mapping[str, PersonModel]:
        feedback = list(feedback)
        self.seed(classifications)
        self.build_aliases(feedback)
        self.fuse_feedback(feedback)
        self.apply_staged_categories()
        self.propagate_relations(relations)
        return self.merge()


def build_person_models(
    classifications: Iterable[ClassificationRecord],
    feedback: Iterable[FeedbackRecord],
    relations: Iterable[RelationRecord],
    phrases: Optional[Mapping[str, PhraseEffect]] = None,
) -> Mapping[str, PersonModel]:
    return AffinityGraphBuilder(phrases).build(classifications, feedback, relations)
