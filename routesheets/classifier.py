"""
Cabinet failure classification.

Events sharing an electrical account are checked for mass failure patterns,
from the most to the least urgent; the first satisfied tier wins:

    1.   cabinet failure: unreachable events >= threshold (whole group).
    1.5  branch/phase fault: a geographically cohesive cluster of
         min_unreachable..threshold-1 unreachable events (that subset only).
    2.   voltage event: voltage error messages >= threshold (whole group).
    3.   circuit accumulation: group size >= threshold (whole group).
"""

from typing import Iterable

from loguru import logger

from routesheets.config import RoutingConfig
from routesheets.connectivity import is_cohesive_group
from routesheets.models import (
    PRIORITY_BRANCH_FAULT,
    PRIORITY_CABINET_FAILURE,
    PRIORITY_CIRCUIT_ACCUMULATION,
    PRIORITY_VOLTAGE_EVENT,
    CabinetJob,
    Event,
)
from routesheets.text import normalize_string


UNREACHABLE_CATEGORIES = ("unreachable", "inaccesible")
VOLTAGE_MARKERS = ("voltaje", "voltage")


def is_unreachable(event: Event) -> bool:
    return normalize_string(event.category) in UNREACHABLE_CATEGORIES


def is_voltage_event(event: Event) -> bool:
    message = normalize_string(event.error_message)
    return any(marker in message for marker in VOLTAGE_MARKERS)


def group_by_account(events: Iterable[Event]) -> dict[str, list[Event]]:
    """
    Group events by trimmed account number, in first-seen order. Events
    without an account number are left out.
    """
    groups: dict[str, list[Event]] = {}
    for e in events:
        account = (e.account_number or "").strip()
        if not account:
            continue
        groups.setdefault(account, []).append(e)
    return groups


def classify_account(
    account_number: str,
    group: list[Event],
    config: RoutingConfig,
) -> CabinetJob | None:
    """
    Classify the events of one account, None when no tier applies.
    """
    threshold = config.cabinet_failure_threshold
    unreachable = [e for e in group if is_unreachable(e)]

    if len(unreachable) >= threshold:
        return CabinetJob(
            kind="cabinet_failure",
            priority=PRIORITY_CABINET_FAILURE,
            account_number=account_number,
            events=tuple(group),
        )

    if config.branch_fault_min_unreachable <= len(unreachable) < threshold:
        if is_cohesive_group(unreachable, config.branch_fault_max_distance_m):
            return CabinetJob(
                kind="branch_fault",
                priority=PRIORITY_BRANCH_FAULT,
                account_number=account_number,
                events=tuple(unreachable),
            )

    if sum(1 for e in group if is_voltage_event(e)) >= threshold:
        return CabinetJob(
            kind="voltage_event",
            priority=PRIORITY_VOLTAGE_EVENT,
            account_number=account_number,
            events=tuple(group),
        )

    if len(group) >= threshold:
        return CabinetJob(
            kind="circuit_accumulation",
            priority=PRIORITY_CIRCUIT_ACCUMULATION,
            account_number=account_number,
            events=tuple(group),
        )
    return None


def classify_cabinet_jobs(
    events: Iterable[Event],
    config: RoutingConfig,
) -> list[CabinetJob]:
    """
    Cabinet jobs for every account showing a mass failure pattern, in the
    order accounts first appear in the events.
    """
    jobs: list[CabinetJob] = []
    for account, group in group_by_account(events).items():
        job = classify_account(account, group, config)
        if job is None:
            continue
        logger.debug(
            f"account {account}: {job.kind} ({len(job.events)}/{len(group)} events)"
        )
        jobs.append(job)
    return jobs
