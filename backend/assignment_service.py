import logging
from typing import Any, Dict, Optional

from notification_service import notify_team_assignment
from partition_solver import solve
from team_assign import AssignmentConfig, Records, build_models, load_inputs

logger = logging.getLogger("assignment_service")


def generate_assignment(
    config: AssignmentConfig,
    records: Optional[Records] = None,
    notify: bool = False,
    project: str = "the next project",
) -> Dict[str, Any]:
    logger.info("Preparing assignment request")
    records = records if records is not None else load_inputs(config)
    models, warnings = build_models(config, records)

    partition = solve(
        models,
        team_size=config.team_size,
        iterations=config.iterations,
        seed=config.seed,
        workers=config.workers,
        batch_size=config.batch_size,
        time_limit=config.time_limit,
    )
    if partition is None:
        logger.info("No valid assignment found")
        return {"found": False, "score": None, "teams": [], "warnings": warnings}

    if notify:
        sent = notify_team_assignment(partition, models, project)
        logger.info(f"Sent {sent} assignment notifications")

    teams = [
        {
            "rank": i,
            "team_name": t.name,
            "members": list(t.members),
            "team_size": len(t.members),
            "score": t.score,
            "solo": len(t.members) == 1 and t.members[0] in partition.solos,
        }
        for i, t in enumerate(partition.teams, start=1)
    ]
    return {"found": True, "score": partition.score, "teams": teams, "warnings": warnings}
