"""
Demo workspace seed — backs the ``flask seed-demo`` CLI command.

Builds one workspace whose sprint 1 started four weeks before ``today`` so
that every accountability check and every grid status has something to show:

    Olivia  owns sprints 1-5: approved plans early on, missing reviews,
            an unstarted current sprint with no plan and no issues.
    Ravi    reviews Olivia's work; owes a standup on Ada's week-5 spike;
            owns a project whose issues are all done.
    Ada     workspace admin; runs the spike.
"""

import logging
from datetime import datetime, time, timedelta, timezone

from tracker.models import db
from tracker.models.issue import DocumentAssociation, Issue
from tracker.models.project import Project
from tracker.models.sprint import Sprint, Standup
from tracker.models.workspace import Person, Workspace
from tracker.services import approval_service, document_store, sprint_calendar

logger = logging.getLogger(__name__)

OLIVIA, RAVI, ADA = 1, 2, 3


def _issue(workspace, title, state, assignee_id, relationship_type, related_id):
    issue = Issue(workspace_id=workspace.id, title=title, state=state, assignee_id=assignee_id)
    db.session.add(issue)
    db.session.flush()
    db.session.add(DocumentAssociation(
        document_id=issue.id, related_id=related_id, relationship_type=relationship_type,
    ))
    return issue


def seed_demo_workspace(today=None) -> Workspace:
    """Create the demo workspace and return it.  Commits."""
    today = today or sprint_calendar.utc_today()
    monday = today - timedelta(days=today.weekday())
    anchor = monday - timedelta(weeks=4)

    ws = Workspace(name="Demo Team", sprint_start_date=anchor)
    db.session.add(ws)
    db.session.flush()

    db.session.add_all([
        Person(workspace_id=ws.id, user_id=OLIVIA, name="Olivia", email="olivia@example.com"),
        Person(workspace_id=ws.id, user_id=RAVI, name="Ravi", email="ravi@example.com"),
        Person(workspace_id=ws.id, user_id=ADA, name="Ada", email="ada@example.com", is_admin=True),
    ])

    sprints = []
    for number in range(1, 6):
        sprint = Sprint(
            workspace_id=ws.id,
            sprint_number=number,
            owner_id=OLIVIA,
            accountable_id=RAVI,
            status="completed" if number < 5 else "planning",
        )
        db.session.add(sprint)
        sprints.append(sprint)
    db.session.flush()

    # Weeks 1-4 have issues; Olivia's week 5 (current) is untouched
    for sprint in sprints[:4]:
        _issue(ws, f"Week {sprint.sprint_number} task", "done", OLIVIA, "sprint", sprint.id)

    # Ada runs a parallel week-5 spike where Ravi has work assigned
    spike = Sprint(
        workspace_id=ws.id, sprint_number=5, title="Search spike",
        owner_id=ADA, accountable_id=RAVI, status="active",
    )
    db.session.add(spike)
    db.session.flush()
    _issue(ws, "Index benchmark", "in_progress", RAVI, "sprint", spike.id)
    db.session.commit()
    document_store.save_sprint_plan(spike.id, "Measure indexing throughput", author_id=ADA)

    for sprint in sprints[:4]:
        document_store.save_sprint_plan(sprint.id, f"Week {sprint.sprint_number} goals", author_id=OLIVIA)
    for sprint in sprints[:2]:
        approval_service.approve_document(
            approval_service.DocumentRef(approval_service.SPRINT_PLAN, sprint.id), actor_id=RAVI,
        )
    # Approved, then edited: reads as changed_since_approved
    document_store.save_sprint_plan(sprints[1].id, "Week 2 goals (revised)", author_id=OLIVIA)

    # Reviews for weeks 1-2 only; week 3's review is overdue
    for sprint in sprints[:2]:
        document_store.save_sprint_review(sprint.id, "Retro notes", plan_validated=True, author_id=OLIVIA)
    approval_service.request_document_changes(
        approval_service.DocumentRef(approval_service.SPRINT_REVIEW, sprints[1].id),
        actor_id=RAVI,
        feedback="Which goals slipped, and why?",
    )

    # Ravi posted a standup yesterday but not today
    db.session.add(Standup(
        workspace_id=ws.id,
        sprint_id=spike.id,
        author_id=RAVI,
        content="Search indexing spike",
        created_at=datetime.combine(today - timedelta(days=1), time(9, 0), tzinfo=timezone.utc),
    ))

    project = Project(workspace_id=ws.id, title="Search relaunch", owner_id=RAVI, accountable_id=ADA)
    db.session.add(project)
    db.session.flush()
    for title in ("Index rebuild", "Ranking tweaks"):
        _issue(ws, title, "done", RAVI, "project", project.id)
    db.session.add(Project(workspace_id=ws.id, owner_id=OLIVIA, accountable_id=ADA))
    db.session.commit()

    document_store.save_project_plan(project.id, "Relaunch lifts search CTR by 10%", author_id=RAVI)

    logger.info("Demo workspace seeded", extra={"workspace_id": ws.id})
    return ws
