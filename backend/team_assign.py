"""
team_assign.py — survey-driven team assignment

Reads three tab-separated exports, builds the per-person affinity model and
searches random partitions for the best set of fixed-size teams that keeps
every vetoed pair apart.

Usage:
  python team_assign.py \
    --feedback student_feedback.tsv \
    --classifications student_classifications.tsv \
    --relations classification_relations.tsv \
    --team_size 2 --seed 7 --workers 4 --out teams.csv

Output goes to stdout, one team per line:
  alice,bob,team_alice_bob,4
"""

import argparse, csv, logging, sys
from dataclasses import dataclass
from typing import List, Mapping, Optional, Tuple

from affinity_graph import AffinityGraphBuilder, PersonModel
from assign_utils import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_ITERATIONS,
    DEFAULT_TEAM_SIZE,
    NO_ASSIGNMENT_MESSAGE,
    load_phrase_table,
)
from partition_solver import Partition, solve
from records import (
    ClassificationRecord,
    FeedbackRecord,
    RelationRecord,
    load_classifications,
    load_feedback,
    load_relations,
)

logger = logging.getLogger("team_assign")


@dataclass
class AssignmentConfig:
    feedback: Optional[str] = None
    classifications: Optional[str] = None
    relations: Optional[str] = None
    team_size: int = DEFAULT_TEAM_SIZE
    iterations: int = DEFAULT_ITERATIONS
    seed: Optional[int] = None
    workers: int = 1
    batch_size: int = DEFAULT_BATCH_SIZE
    time_limit: Optional[float] = None
    phrases: Optional[str] = None
    delimiter: str = "\t"
    out: Optional[str] = None


Records = Tuple[List[ClassificationRecord], List[FeedbackRecord], List[RelationRecord]]


def load_inputs(config: AssignmentConfig) -> Records:
    for name, path in (
        ("feedback", config.feedback),
        ("classifications", config.classifications),
        ("relations", config.relations),
    ):
        if not path:
            raise ValueError(f"Missing input path: {name}")
    return (
        load_classifications(config.classifications, config.delimiter),
        load_feedback(config.feedback, config.delimiter),
        load_relations(config.relations, config.delimiter),
    )


def build_models(config: AssignmentConfig, records: Records) -> Tuple[Mapping[str, PersonModel], List[str]]:
    phrases = load_phrase_table(config.phrases) if config.phrases else None
    builder = AffinityGraphBuilder(phrases)
    classifications, feedback, relations = records
    models = builder.build(classifications, feedback, relations)
    return models, builder.warnings


def run_assignment(config: AssignmentConfig, records: Optional[Records] = None) -> Optional[Partition]:
    records = records if records is not None else load_inputs(config)
    models, _ = build_models(config, records)
    return solve(
        models,
        team_size=config.team_size,
        iterations=config.iterations,
        seed=config.seed,
        workers=config.workers,
        batch_size=config.batch_size,
        time_limit=config.time_limit,
    )


# -------- output --------

def render_partition(partition: Optional[Partition]) -> List[str]:
    if partition is None:
        return [NO_ASSIGNMENT_MESSAGE]
    return [",".join(list(t.members) + [t.name, str(t.score)]) for t in partition.teams]


def write_partition_csv(partition: Partition, path: str):
    with open(path, "w", encoding="utf-8", newline="") as f:
        w = csv.DictWriter(f, fieldnames=["rank", "team_name", "members", "team_size", "score"])
        w.writeheader()
        for i, t in enumerate(partition.teams, start=1):
            w.writerow({
                "rank": i,
                "team_name": t.name,
                "members": ";".join(t.members),
                "team_size": len(t.members),
                "score": t.score,
            })


def main(argv=None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    )
    ap = argparse.ArgumentParser(
        description="Assign people to fixed-size teams from survey feedback, classifications and category relations."
    )
    ap.add_argument("--feedback", required=True, help="Feedback survey export")
    ap.add_argument("--classifications", required=True, help="Per-person category export")
    ap.add_argument("--relations", required=True, help="Category relation export")
    ap.add_argument("--team_size", type=int, default=DEFAULT_TEAM_SIZE)
    ap.add_argument("--iterations", type=int, default=DEFAULT_ITERATIONS)
    ap.add_argument("--seed", type=int)
    ap.add_argument("--workers", type=int, default=1)
    ap.add_argument("--batch_size", type=int, default=DEFAULT_BATCH_SIZE)
    ap.add_argument("--time_limit", type=float, help="Stop searching after this many seconds")
    ap.add_argument("--phrases", help="JSON file replacing the last-teammate phrase table")
    ap.add_argument("--delimiter", default="\t")
    ap.add_argument("--out", help="Also write the teams to this CSV")

    args = ap.parse_args(argv)

    cfg = AssignmentConfig(
        feedback=args.feedback,
        classifications=args.classifications,
        relations=args.relations,
        team_size=args.team_size,
        iterations=args.iterations,
        seed=args.seed,
        workers=args.workers,
        batch_size=args.batch_size,
        time_limit=args.time_limit,
        phrases=args.phrases,
        delimiter=args.delimiter,
        out=args.out,
    )

    try:
        partition = run_assignment(cfg)
    except (ValueError, FileNotFoundError) as exc:
        logger.error(str(exc))
        return 2

    for line in render_partition(partition):
        print(line)
    if partition is None:
        return 1
    if cfg.out:
        write_partition_csv(partition, cfg.out)
        logger.info(f"Wrote {len(partition.teams)} teams to {cfg.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
