"""
partition_solver.py — random-restart search for fixed-size teams

Every trial shuffles the draft pool, cuts it into consecutive teams and
scores them. A team containing a pair where either member lists the other as
a repulsor invalidates the whole trial. Otherwise each ordered pair adds 3 for
an explicit attractor, else 1 for a category attractor. The best strictly
improving trial wins; ties keep the earlier one.

Trials are drawn in batches and scored with numpy over a repulsion matrix
and a goodness matrix indexed by pool position. With ``workers > 1`` the
budget is split over independent rng streams in a process pool and reduced by
max score (lowest worker index wins ties).
"""

import logging
import time
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np

from affinity_graph import PersonModel
from assign_utils import (
    CATEGORY_ATTRACTION_SCORE,
    DEFAULT_BATCH_SIZE,
    DEFAULT_ITERATIONS,
    DEFAULT_TEAM_SIZE,
    EXPLICIT_ATTRACTION_SCORE,
)

logger = logging.getLogger("partition_solver")


@dataclass(frozen=True)
class Team:
    members: Tuple[str, ...]
    score: int = 0

    @property
    def name(self) -> str:
        return "_".join(("team",) + self.members)


@dataclass(frozen=True)
class Partition:
    teams: Tuple[Team, ...]
    score: int
    solos: Tuple[str, ...] = field(default=())


# -------- scoring (reference, per team) --------

def pair_goodness(models: Mapping[str, PersonModel], a: str, b: str) -> Optional[int]:
    """Goodness of ``a`` towards ``b``; None when ``a`` repels ``b``."""
    person = models[a]
    if b in person.repulsors:
        return None
    if b in person.attractors:
        return EXPLICIT_ATTRACTION_SCORE
    if b in person.classification_attractors:
        return CATEGORY_ATTRACTION_SCORE
    return 0


def score_team(models: Mapping[str, PersonModel], members: Sequence[str]) -> Optional[int]:
    total = 0
    for a in members:
        for b in members:
            if a == b:
                continue
            g = pair_goodness(models, a, b)
            if g is None:
                return None
            total += g
    return total


def score_partition(models: Mapping[str, PersonModel], groups: Sequence[Sequence[str]]) -> Optional[List[Team]]:
    teams = []
    for members in groups:
        s = score_team(models, members)
        if s is None:
            return None
        teams.append(Team(tuple(members), s))
    return teams


# -------- straggler pre-pass --------

def pick_stragglers(
    models: Mapping[str, PersonModel],
    team_size: int,
    rng: np.random.Generator,
) -> Tuple[List[str], List[str]]:
    """Return (draft pool, solos). First fit over one shuffle of the population."""
    population = sorted(models)
    remaining = len(population) % team_size
    if remaining == 0:
        return population, []
    draft, solos = [], []
    for idx in rng.permutation(len(population)):
        handle = population[idx]
        if remaining > 0 and models[handle].ok_solo:
            solos.append(handle)
            remaining -= 1
        else:
            draft.append(handle)
    if remaining:
        logger.warning(
            f"Only {len(solos)} solo-eligible stragglers for {len(population) % team_size} leftover seats; "
            f"the last team will have {remaining} members."
        )
    return draft, solos


# -------- vectorised search --------

def build_matrices(models: Mapping[str, PersonModel], pool: Sequence[str]) -> Tuple[np.ndarray, np.ndarray]:
    """
    Repulsion (bool) and goodness (int) matrices over pool positions, with one
    trailing padding slot that neither repels nor attracts.
    """
    n = len(pool)
    index = {h: i for i, h in enumerate(pool)}
    repulse = np.zeros((n + 1, n + 1), dtype=bool)
    good = np.zeros((n + 1, n + 1), dtype=np.int64)
    for i, h in enumerate(pool):
        person = models[h]
        for other in person.classification_attractors:
            j = index.get(other)
            if j is not None:
                good[i, j] = CATEGORY_ATTRACTION_SCORE
        for other in person.attractors:
            j = index.get(other)
            if j is not None:
                good[i, j] = EXPLICIT_ATTRACTION_SCORE
        for other in person.repulsors:
            j = index.get(other)
            if j is not None:
                repulse[i, j] = True
    np.fill_diagonal(repulse, False)
    np.fill_diagonal(good, 0)
    return repulse, good


def evaluate_batch(perms: np.ndarray, repulse: np.ndarray, good: np.ndarray, team_size: int) -> np.ndarray:
    """Score each row of ``perms`` (already padded); invalid rows get -1."""
    batch = perms.shape[0]
    teams = perms.reshape(batch, -1, team_size)
    invalid = np.zeros(batch, dtype=bool)
    scores = np.zeros(batch, dtype=np.int64)
    for i in range(team_size):
        for j in range(team_size):
            if i == j:
                continue
            a = teams[:, :, i]
            b = teams[:, :, j]
            invalid |= repulse[a, b].any(axis=1)
            scores += good[a, b].sum(axis=1)
    scores[invalid] = -1
    return scores


def _search_chunk(
    repulse: np.ndarray,
    good: np.ndarray,
    team_size: int,
    iterations: int,
    seed_seq: np.random.SeedSequence,
    batch_size: int = DEFAULT_BATCH_SIZE,
    time_limit: Optional[float] = None,
) -> Tuple[int, Optional[np.ndarray], int]:
    """Returns (best score, best padded permutation or None, trials run)."""
    rng = np.random.default_rng(seed_seq)
    n = repulse.shape[0] - 1
    pad = (-n) % team_size
    base = np.arange(n)
    padding = np.full(pad, n, dtype=base.dtype)
    deadline = time.monotonic() + time_limit if time_limit is not None else None

    best_score, best_perm = -1, None
    done = 0
    while done < iterations:
        if deadline is not None and time.monotonic() > deadline:
            logger.info(f"Time limit reached after {done} trials")
            break
        b = min(batch_size, iterations - done)
        perms = rng.permuted(np.tile(base, (b, 1)), axis=1)
        if pad:
            perms = np.hstack([perms, np.tile(padding, (b, 1))])
        scores = evaluate_batch(perms, repulse, good, team_size)
        top = int(np.argmax(scores))
        if scores[top] > best_score:
            best_score = int(scores[top])
            best_perm = perms[top].copy()
        done += b
    logger.debug(f"Chunk finished: {done} trials, best score {best_score}")
    return best_score, best_perm, done


def split_budget(iterations: int, workers: int) -> List[int]:
    share, extra = divmod(iterations, workers)
    return [share + (1 if w < extra else 0) for w in range(workers)]


def solve(
    models: Mapping[str, PersonModel],
    team_size: int = DEFAULT_TEAM_SIZE,
    iterations: int = DEFAULT_ITERATIONS,
    seed: Optional[int] = None,
    workers: int = 1,
    batch_size: int = DEFAULT_BATCH_SIZE,
    time_limit: Optional[float] = None,
) -> Optional[Partition]:
    """
    Best valid partition found within the budget, or None when no trial
    produced a valid one. Deterministic for a given seed, worker count and
    batch size.
    """
    if team_size < 1:
        raise ValueError("team_size must be >= 1")
    if workers < 1:
        raise ValueError("workers must be >= 1")
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")

    root = np.random.SeedSequence(seed)
    straggler_seq, *worker_seqs = root.spawn(workers + 1)
    pool, solos = pick_stragglers(models, team_size, np.random.default_rng(straggler_seq))
    logger.info(f"Searching {len(pool)} people in teams of {team_size} ({len(solos)} solo)")

    solo_teams = tuple(Team((s,), 0) for s in solos)
    if not pool:
        return Partition(teams=solo_teams, score=0, solos=tuple(solos))

    repulse, good = build_matrices(models, pool)
    budgets = split_budget(iterations, workers)

    if workers == 1:
        results = [_search_chunk(repulse, good, team_size, budgets[0], worker_seqs[0], batch_size, time_limit)]
    else:
        with ProcessPoolExecutor(max_workers=workers) as ex:
            futures = [
                ex.submit(_search_chunk, repulse, good, team_size, budget, seq, batch_size, time_limit)
                for budget, seq in zip(budgets, worker_seqs)
            ]
            results = [f.result() for f in futures]

    best_score, best_perm = -1, None
    total_trials = 0
    for score, perm, done in results:
        total_trials += done
        if perm is not None and score > best_score:
            best_score, best_perm = score, perm
    logger.info(f"Ran {total_trials} trials; best score {best_score if best_perm is not None else 'n/a'}")

    if best_perm is None:
        return None

    groups = []
    for chunk in best_perm.reshape(-1, team_size):
        groups.append([pool[i] for i in chunk if i < len(pool)])
    teams = score_partition(models, groups)
    if teams is None:
        raise RuntimeError("Best trial failed re-validation")
    return Partition(teams=tuple(teams) + solo_teams, score=sum(t.score for t in teams), solos=tuple(solos))
