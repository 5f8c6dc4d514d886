import analytics
import models


def make_request(contact: models.ProfessionalContact, status: str, success=None, impact=None) -> models.ReferralRequest:
    return models.ReferralRequest(
        user_id="u1",
        job_id="job-1",
        contact_id=contact.id,
        contact=contact,
        status=status,
        success=success,
        relationship_impact=impact,
    )


def test_empty_analytics_are_zeroed():
    result = analytics.summarize([])
    assert result.total == 0
    assert result.by_status == {}
    assert result.success_rate == 0
    assert result.successful == 0
    assert result.responded == 0
    assert result.by_contact == {}
    assert result.avg_relationship_impact == 0


def test_summary_counts_only_responses_for_rate_and_contacts():
    ada = models.ProfessionalContact(id="c-ada", user_id="u1", full_name="Ada Lovelace")
    alan = models.ProfessionalContact(id="c-alan", user_id="u1", full_name="Alan Turing")
    requests = [
        make_request(ada, "accepted", success=True, impact=2),
        make_request(ada, "declined", success=False, impact=-1),
        make_request(ada, "sent"),
        make_request(alan, "completed", success=True, impact=5),
        make_request(alan, "draft"),
    ]

    result = analytics.summarize(requests)

    assert result.total == 5
    assert result.by_status == {"accepted": 1, "declined": 1, "sent": 1, "completed": 1, "draft": 1}
    assert result.responded == 3
    assert result.successful == 2
    assert result.success_rate == 66.67
    assert result.by_contact["Ada Lovelace"].total == 2
    assert result.by_contact["Ada Lovelace"].successful == 1
    assert result.by_contact["Alan Turing"].total == 1
    assert result.by_contact["Alan Turing"].successful == 1
    assert result.avg_relationship_impact == 2.0


def test_contacts_without_responses_still_listed():
    grace = models.ProfessionalContact(id="c-grace", user_id="u1", full_name="Grace Hopper")
    result = analytics.summarize([make_request(grace, "pending")])

    assert result.success_rate == 0
    assert result.by_contact["Grace Hopper"].total == 0
    assert result.by_contact["Grace Hopper"].successful == 0


def test_analytics_serialise_with_camel_case_keys():
    ada = models.ProfessionalContact(id="c-ada", user_id="u1", full_name="Ada Lovelace")
    body = analytics.summarize([make_request(ada, "accepted", success=True, impact=2)]).model_dump(by_alias=True)

    assert body["successRate"] == 100.0
    assert body["byStatus"] == {"accepted": 1}
    assert body["avgRelationshipImpact"] == 2.0
    assert body["byContact"]["Ada Lovelace"] == {"total": 1, "successful": 1}
