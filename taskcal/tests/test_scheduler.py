from datetime import date, timedelta

from taskcal.db import session_scope
from taskcal.jobs.scheduler import PRUNE_JOB_ID, create_scheduler
from taskcal.models import Task
from taskcal.services.task_service import create_task, get_task


def test_prune_job_is_registered():
    scheduler = create_scheduler("UTC")
    scheduler.schedule_ledger_prune(retention_days=30, hour=4)
    jobs = scheduler.scheduler.get_jobs()
    assert [job.id for job in jobs] == [PRUNE_JOB_ID]
    assert jobs[0].args == (30,)


def test_prune_job_runs_against_the_database():
    old = (date.today() - timedelta(days=400)).isoformat()
    older = (date.today() - timedelta(days=500)).isoformat()
    with session_scope() as session:
        task_id = create_task(
            session,
            title="Journal",
            recurrence="FREQ=DAILY",
            scheduled=date.today().isoformat(),
            completed_instances=[older, old],
        ).id

    removed = create_scheduler("UTC")._prune_ledgers(30)

    assert removed == 1
    with session_scope() as session:
        task = get_task(session, task_id)
        assert isinstance(task, Task)
        assert task.completed_instances == [old]
