import pytest
from sqlalchemy.orm import Session

import crud
import lifecycle
import models
import referrals
import schemas
from errors import ForbiddenError, InvalidStatusError, NotFoundError, ValidationError
from history import record_status_change


# --- Helpers ---
def create_job(db: Session, user_id: str, status: str = "interested", title: str = "Engineer") -> models.JobOpportunity:
    return lifecycle.create_job(db, schemas.JobCreate(title=title, company="Acme", current_status=status), user_id)


def move_to(db: Session, job: models.JobOpportunity, status: str) -> None:
    """Stand-in for the tracker's ordinary status updates."""
    change = record_status_change(job, status, models.utcnow(), notes=f"Moved to {status}")
    change.apply_to(job)
    crud.add_history_entry(db, change.entry)
    db.commit()


def history_statuses(db: Session, job_id: str) -> list[str]:
    return [entry.status for entry in crud.get_history_for_job(db, job_id)]


# --- Tests ---
def test_create_job_records_initial_history(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)

    history = crud.get_history_for_job(db_session, job.id)
    assert len(history) == 1
    assert history[0].status == "interested"
    assert history[0].notes == "Job created"
    assert job.archived_at is None


def test_archive_with_reason(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)

    archived = lifecycle.archive(db_session, job.id, user_id, reason="position filled")

    assert archived.current_status == "archived"
    assert archived.archive_reason == "position filled"
    assert archived.archived_at is not None
    history = crud.get_history_for_job(db_session, job.id)
    assert len(history) == 2
    assert history[0].status == "archived"
    assert history[0].notes == "position filled"


def test_archive_without_reason_uses_default_note(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)

    lifecycle.archive(db_session, job.id, user_id)

    assert job.archive_reason is None
    assert crud.get_history_for_job(db_session, job.id, limit=1)[0].notes == "Job archived"


def test_archive_twice_is_invalid_status(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)
    lifecycle.archive(db_session, job.id, user_id)

    with pytest.raises(InvalidStatusError):
        lifecycle.archive(db_session, job.id, user_id)
    assert len(crud.get_history_for_job(db_session, job.id)) == 2


def test_archive_missing_job_is_not_found(db_session: Session, user_id: str):
    with pytest.raises(NotFoundError):
        lifecycle.archive(db_session, "does-not-exist", user_id)


def test_archive_someone_elses_job_is_forbidden_and_writes_nothing(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)

    with pytest.raises(ForbiddenError):
        lifecycle.archive(db_session, job.id, "intruder")

    db_session.refresh(job)
    assert job.current_status == "interested"
    assert len(crud.get_history_for_job(db_session, job.id)) == 1


def test_restore_returns_to_previous_status(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)
    move_to(db_session, job, "applied")
    lifecycle.archive(db_session, job.id, user_id)

    restored = lifecycle.restore(db_session, job.id, user_id)

    assert restored.current_status == "applied"
    assert restored.archived_at is None
    assert restored.archive_reason is None
    history = crud.get_history_for_job(db_session, job.id)
    assert history[0].status == "applied"
    assert history[0].notes == "Restored from archive to applied"


def test_restore_to_explicit_status(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)
    lifecycle.archive(db_session, job.id, user_id, reason="paused")

    restored = lifecycle.restore(db_session, job.id, user_id, restore_to_status="interviewing")

    assert restored.current_status == "interviewing"


def test_restore_falls_back_to_default_without_prior_history(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)
    lifecycle.archive(db_session, job.id, user_id)
    # Leave only the archive entry behind
    for entry in crud.get_history_for_job(db_session, job.id)[1:]:
        db_session.delete(entry)
    db_session.commit()

    restored = lifecycle.restore(db_session, job.id, user_id, default_status="wishlist")

    assert restored.current_status == "wishlist"


def test_restore_rejects_active_job_and_archived_target(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)

    with pytest.raises(InvalidStatusError):
        lifecycle.restore(db_session, job.id, user_id)

    lifecycle.archive(db_session, job.id, user_id)
    with pytest.raises(ValidationError):
        lifecycle.restore(db_session, job.id, user_id, restore_to_status="archived")


def test_archive_restore_cycles_append_two_entries_each(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)

    for _ in range(3):
        lifecycle.archive(db_session, job.id, user_id)
        lifecycle.restore(db_session, job.id, user_id)

    assert len(crud.get_history_for_job(db_session, job.id)) == 1 + 2 * 3
    assert job.current_status == "interested"


def test_bulk_archive_archives_every_job(db_session: Session, user_id: str):
    first = create_job(db_session, user_id, title="First")
    second = create_job(db_session, user_id, title="Second")

    count = lifecycle.bulk_archive(db_session, [first.id, second.id], user_id, reason="search over")

    assert count == 2
    for job in (first, second):
        db_session.refresh(job)
        assert job.current_status == "archived"
        assert job.archive_reason == "search over"
    assert first.archived_at == second.archived_at


def test_bulk_archive_aborts_when_any_job_already_archived(db_session: Session, user_id: str):
    active = create_job(db_session, user_id, title="Active")
    archived = create_job(db_session, user_id, title="Archived")
    lifecycle.archive(db_session, archived.id, user_id)

    with pytest.raises(InvalidStatusError) as exc_info:
        lifecycle.bulk_archive(db_session, [active.id, archived.id], user_id)

    assert exc_info.value.status_code == 400
    db_session.refresh(active)
    assert active.current_status == "interested"
    assert history_statuses(db_session, active.id) == ["interested"]
    assert len(crud.get_history_for_job(db_session, archived.id)) == 2


def test_bulk_archive_rejects_foreign_jobs(db_session: Session, user_id: str):
    mine = create_job(db_session, user_id)
    theirs = create_job(db_session, "someone-else")

    with pytest.raises(ForbiddenError):
        lifecycle.bulk_archive(db_session, [mine.id, theirs.id], user_id)

    db_session.refresh(mine)
    assert mine.current_status == "interested"


def test_bulk_archive_requires_ids(db_session: Session, user_id: str):
    with pytest.raises(ValidationError):
        lifecycle.bulk_archive(db_session, [], user_id)


def test_bulk_archive_rejects_repeated_ids(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)
    other = create_job(db_session, user_id, title="Other")

    with pytest.raises(ValidationError) as exc_info:
        lifecycle.bulk_archive(db_session, [job.id, other.id, job.id], user_id)

    assert exc_info.value.details == [{"field": "jobIds", "message": f"{job.id} is listed more than once"}]
    for untouched in (job, other):
        db_session.refresh(untouched)
        assert untouched.current_status == "interested"


@pytest.mark.parametrize("confirm", [None, False, "true", 1])
def test_permanent_delete_requires_literal_true(db_session: Session, user_id: str, confirm):
    job = create_job(db_session, user_id)

    with pytest.raises(ValidationError):
        lifecycle.permanently_delete(db_session, job.id, user_id, confirm)

    assert crud.get_job(db_session, job.id) is not None


def test_permanent_delete_checks_confirmation_before_ownership(db_session: Session, user_id: str):
    job = create_job(db_session, "someone-else")

    with pytest.raises(ValidationError):
        lifecycle.permanently_delete(db_session, job.id, user_id, None)
    with pytest.raises(ForbiddenError):
        lifecycle.permanently_delete(db_session, job.id, user_id, True)


def test_permanent_delete_cascades_to_dependents(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)
    lifecycle.archive(db_session, job.id, user_id)
    contact = crud.create_contact(
        db_session, schemas.ContactCreate(full_name="Ada Lovelace", linked_job_ids=[job.id]), user_id
    )
    db_session.add(models.JobContact(job_id=job.id, name="Hiring Manager", role="manager"))
    request = crud.create_referral_request(db_session, user_id=user_id, job_id=job.id, contact_id=contact.id)
    db_session.commit()
    job_id, request_id = job.id, request.id

    lifecycle.permanently_delete(db_session, job_id, user_id, True)

    assert crud.get_job(db_session, job_id) is None
    assert crud.get_history_for_job(db_session, job_id) == []
    assert db_session.query(models.JobContact).filter(models.JobContact.job_id == job_id).count() == 0
    assert db_session.get(models.ReferralRequest, request_id) is None
    # The professional contact outlives the job
    assert crud.get_contact_for_user(db_session, contact.id, user_id) is not None


def test_permanent_delete_reverses_applied_referral_impacts(db_session: Session, user_id: str):
    job = create_job(db_session, user_id)
    contact = crud.create_contact(db_session, schemas.ContactCreate(full_name="Ada Lovelace"), user_id)
    db_session.commit()
    accepted = referrals.create(
        db_session, user_id, schemas.ReferralRequestCreate(job_id=job.id, contact_id=contact.id, status="sent")
    )
    referrals.update(db_session, user_id, accepted.id, schemas.ReferralRequestUpdate(status="accepted"))
    referrals.create(
        db_session,
        user_id,
        schemas.ReferralRequestCreate(job_id=job.id, contact_id=contact.id, relationship_impact=-3),
    )
    db_session.refresh(contact)
    assert contact.relationship_strength == 50 + 2 - 3

    lifecycle.permanently_delete(db_session, job.id, user_id, True)

    db_session.refresh(contact)
    assert contact.relationship_strength == 50
    assert crud.list_referral_requests(db_session, user_id) == []
