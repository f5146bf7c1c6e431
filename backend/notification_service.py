import logging
from typing import Mapping

from affinity_graph import PersonModel
from partition_solver import Partition, Team

logger = logging.getLogger("notification_service")


def send_email_notification(to_addr: str, subject: str, message: str) -> bool:
    """Logs the email instead of sending it. False when there is no address."""
    if not to_addr:
        logger.warning(f"No email address for '{subject}', skipping notification.")
        return False
    logger.info(f"--- EMAIL NOTIFICATION ---\nTo: {to_addr}\nSubject: {subject}\n\n{message}")
    return True


def team_message(name: str, handle: str, team: Team, project: str) -> str:
    others = [m for m in team.members if m != handle]
    if not others:
        return f"Hello {name}, you will be working solo on {project}."
    return f"Hello {name}, for {project} you will be working with {', '.join(others)}."


def notify_team_assignment(partition: Partition, models: Mapping[str, PersonModel], project: str = "the next project") -> int:
    """Tells every member with an address on file who their teammates are. Returns messages sent."""
    sent = 0
    for team in partition.teams:
        for handle in team.members:
            person = models.get(handle)
            if person is None or not person.email:
                continue
            msg = team_message(person.name or handle, handle, team, project)
            if send_email_notification(person.email, f"Team assignment: {team.name}", msg):
                sent += 1
    logger.info(f"Sent {sent} team assignment notifications for {project}")
    return sent
