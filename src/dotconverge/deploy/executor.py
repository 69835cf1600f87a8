# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from . import actions
from .selector import select_roles
from .templating import TemplateRenderer
from ..config.loader import load_roles
from ..config.models import PlaybookConfig, RoleSpec, TaskSpec
from ..errors import TaskFailedError
from ..execution.runner import CommandRunner
from ..facts.models import FactSet
from ..secrets.onepassword import OnePasswordCLI

# Observer bits
from ..observers.dispatcher import EventBus
from ..observers.events import (
    new_ctx,
    RunStarted,
    RoleStarted,
    TaskSkipped,
    TaskSucceeded,
    TaskFailed,
    RunSummary,
)

log = logging.getLogger("dotconverge")


@dataclass
class ConvergeOptions:
    tags: List[str] = field(default_factory=list)
    skip_tags: List[str] = field(default_factory=list)
    extra_vars: Dict[str, Any] = field(default_factory=dict)
    check: bool = False


@dataclass
class TaskOutcome:
    role: str
    task: str
    status: str                 # "ok" | "changed" | "skipped" | "failed"
    error: Optional[str] = None


@dataclass
class RunReport:
    roles: List[str] = field(default_factory=list)
    outcomes: List[TaskOutcome] = field(default_factory=list)

    def add(self, outcome: TaskOutcome) -> None:
        self.outcomes.append(outcome)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def failed(self) -> bool:
        return self.count("failed") > 0

    def summary(self) -> str:
        return (
            f"OK={self.count('ok')} CHANGED={self.count('changed')} "
            f"SKIPPED={self.count('skipped')} FAILED={self.count('failed')}"
        )


@dataclass(frozen=True)
class RunContext:
    """
    Per-run state shared by every task. Facts are not kept here: they are
    threaded through the loop so a set_fact produces a new FactSet.
    """
    playbook: PlaybookConfig
    dry_run: bool
    options: ConvergeOptions
    renderer: TemplateRenderer
    runner: CommandRunner
    secrets: OnePasswordCLI
    event_ctx: Dict[str, Any]


def _variables(rc: RunContext, facts: FactSet, item: Any = None) -> Dict[str, Any]:
    variables: Dict[str, Any] = dict(rc.playbook.vars)
    variables.update(rc.options.extra_vars)
    # facts win over playbook vars, like set_fact over vars
    variables.update(facts.as_dict())
    host_user = facts.get("host_user")
    variables["op_read"] = lambda ref: rc.secrets.read(ref, become_user=host_user)
    if item is not None:
        variables["item"] = item
    return variables


def _skipped_by_tags(role: RoleSpec, task: TaskSpec, skip_tags: List[str]) -> Optional[str]:
    hit = sorted(set(skip_tags) & (set(task.tags) | {role.name}))
    return f"skip-tags: {', '.join(hit)}" if hit else None


def _render_action(task: TaskSpec, rc: RunContext, variables: Dict[str, Any]) -> Any:
    action = task.action
    if task.action_name == "set_fact":
        return rc.renderer.render_value(action, variables)
    data = rc.renderer.render_value(action.model_dump(exclude_none=True), variables)
    return type(action).model_validate(data)


def _run_once(
    task: TaskSpec,
    role: RoleSpec,
    rc: RunContext,
    facts: FactSet,
    item: Any = None,
) -> Tuple[Optional[actions.ActionResult], Optional[str]]:
    """Returns (result, skip_reason); result is None when the guard is false."""
    variables = _variables(rc, facts, item)
    for guard in task.guards:
        if not rc.renderer.evaluate(guard, variables):
            return None, f"condition false: {guard}"

    handler = actions.get(task.action_name)
    ctx = actions.ActionContext(
        role=role,
        variables=variables,
        renderer=rc.renderer,
        runner=rc.runner,
        secrets=rc.secrets,
        dry_run=rc.dry_run,
        become_user=rc.renderer.render_value(task.become_user, variables),
        no_log=task.no_log,
    )
    result = handler(_render_action(task, rc, variables), ctx)
    return result, result.skipped_reason


def run_task(task: TaskSpec, role: RoleSpec, rc: RunContext, facts: FactSet) -> Tuple[str, FactSet, Optional[str]]:
    """
    Execute one task (every loop item). Returns (status, facts, skip_reason).
    Exceptions propagate; the caller turns them into a failure.
    """
    items: List[Any] = [None]
    if task.loop is not None:
        items = rc.renderer.resolve_loop(task.loop, _variables(rc, facts))

    changed = False
    ran = False
    reason: Optional[str] = "empty loop" if not items else None
    for item in items:
        result, why = _run_once(task, role, rc, facts, item)
        if result is None:
            reason = why
            continue
        ran = True
        changed |= result.changed
        if result.facts:
            facts = facts.with_facts(**result.facts)
        if why and not result.changed:
            reason = why

    if not ran:
        return "skipped", facts, reason
    if changed:
        return "changed", facts, None
    return "ok", facts, None


def converge(
    playbook: PlaybookConfig,
    facts: FactSet,
    options: Optional[ConvergeOptions] = None,
    observers: Optional[List] = None,
    runner: Optional[CommandRunner] = None,
    secrets: Optional[OnePasswordCLI] = None,
    run_id: Optional[str] = None,
) -> RunReport:
    """
    Run the selected roles in order, tasks in declared order.
    Stops at the first failing task with TaskFailedError; there is no
    rollback, re-running after a fix is safe because every task is idempotent.
    """
    options = options or ConvergeOptions()
    report = RunReport()

    bus = EventBus(observers or [])
    event_ctx = new_ctx(user=facts.get("host_user"), run_id=run_id)
    runner = runner or CommandRunner(label="task")

    rc = RunContext(
        playbook=playbook,
        dry_run=options.check,
        options=options,
        renderer=TemplateRenderer(),
        runner=runner,
        secrets=secrets or OnePasswordCLI(runner),
        event_ctx=event_ctx,
    )

    bus.emit(RunStarted(playbook=str(playbook.path), check=options.check, **event_ctx))

    order = select_roles(
        playbook.default_roles,
        tags=options.tags,
        exclude_roles=playbook.exclude_roles,
        bus=bus,
        run_ctx=event_ctx,
    )
    report.roles = list(order)
    log.debug("run order: %s", order)

    # load everything first: an unknown role must fail before any change
    roles = load_roles(playbook, order)

    for name in order:
        role = roles[name]
        bus.emit(RoleStarted(role=name, tasks=len(role.tasks), **event_ctx))

        for task in role.tasks:
            reason = _skipped_by_tags(role, task, options.skip_tags)
            if reason:
                report.add(TaskOutcome(role=name, task=task.name, status="skipped"))
                bus.emit(TaskSkipped(role=name, task=task.name, reason=reason, **event_ctx))
                continue

            t0 = time.time()
            try:
                status, facts, reason = run_task(task, role, rc, facts)
            except Exception as exc:
                err = str(exc)
                log.debug("task '%s' failed", task.name, exc_info=True)
                report.add(TaskOutcome(role=name, task=task.name, status="failed", error=err))
                bus.emit(TaskFailed(role=name, task=task.name, error=err, **event_ctx))
                _emit_summary(bus, report, event_ctx)
                raise TaskFailedError(name, task.name, err, report=report) from exc

            report.add(TaskOutcome(role=name, task=task.name, status=status))
            if status == "skipped":
                bus.emit(TaskSkipped(role=name, task=task.name, reason=reason or "", **event_ctx))
            else:
                duration_ms = int((time.time() - t0) * 1000)
                bus.emit(TaskSucceeded(
                    role=name, task=task.name, changed=(status == "changed"),
                    duration_ms=duration_ms, **event_ctx,
                ))

    _emit_summary(bus, report, event_ctx)
    return report


def _emit_summary(bus: EventBus, report: RunReport, event_ctx: Dict[str, Any]) -> None:
    bus.emit(RunSummary(
        ok=report.count("ok"),
        changed=report.count("changed"),
        skipped=report.count("skipped"),
        failed=report.count("failed"),
        **event_ctx,
    ))
