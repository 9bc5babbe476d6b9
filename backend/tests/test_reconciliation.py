import asyncio
import copy

import pytest

from app.models.contribution import ResearchContribution
from app.schemas.contribution import ContributionCreate, parse_contribution_payload
from app.schemas.suggestion import RequestChangesRequest, SuggestionCreate, SuggestionStatus
from app.services.contribution.codec import to_canonical, to_storage
from app.services.contribution.field_names import to_form_name
from app.services.contribution.reconciliation import ReconciliationController
from app.services.contribution.results import ErrorKind, PersistenceError
from app.services.contribution.sql_store import SqlContributionStore
from app.services.contribution.store import ContributionStore
from app.services.contribution_service import ContributionService


PAPER = {
    "id": "c-1",
    "publicationType": "research_paper",
    "status": "changes_required",
    "title": "Street networks and walkability",
    "targetedResearchType": "scopus",
    "indexingCategories": ["scopus"],
    "quartile": "Q2",
    "sjr": 0.5,
    "editSuggestions": [
        {"id": "s-quartile", "fieldName": "quartile", "suggestedValue": "Top 1%", "status": "pending",
         "createdAt": "2024-01-01T10:00:00"},
        {"id": "s-sjr", "fieldName": "sjr", "suggestedValue": "0.9", "status": "pending",
         "createdAt": "2024-01-01T10:01:00"},
    ],
}


class FakeStore(ContributionStore):
    """内存中的 store，可按方法注入失败"""

    def __init__(self, data):
        self.data = copy.deepcopy(data)
        self.calls = []
        self.failures = {}
        self.gate = None
        self.fetch_limit = None

    def _maybe_fail(self, name):
        error = self.failures.get(name)
        if error is not None:
            raise error

    async def fetch_contribution(self, contribution_id):
        self.calls.append(("fetch", contribution_id))
        self._maybe_fail("fetch")
        if self.fetch_limit is not None and self.names().count("fetch") > self.fetch_limit:
            raise PersistenceError("fetch limit reached")
        return parse_contribution_payload(copy.deepcopy(self.data))

    async def update_contribution(self, contribution_id, partial_fields):
        self.calls.append(("update", dict(partial_fields)))
        self._maybe_fail("update")
        self.data.update(partial_fields)

    async def respond_to_suggestion(self, suggestion_id, accept):
        self.calls.append(("respond", suggestion_id, accept))
        if self.gate is not None:
            await self.gate.wait()
        self._maybe_fail("respond")
        for item in self.data["editSuggestions"]:
            if item["id"] == suggestion_id:
                item["status"] = "accepted" if accept else "rejected"
                if accept and item["suggestedValue"] is not None:
                    form_name = to_form_name(item["fieldName"])
                    value = to_canonical(form_name, item["suggestedValue"])
                    self.data[item["fieldName"]] = to_storage(form_name, value)

    async def resubmit_contribution(self, contribution_id):
        self.calls.append(("resubmit", contribution_id))
        self._maybe_fail("resubmit")
        self.data["status"] = "resubmitted"

    def names(self):
        return [c[0] for c in self.calls]


async def _loaded(data=PAPER):
    store = FakeStore(data)
    controller = ReconciliationController(store, "c-1")
    assert (await controller.load()).ok
    return store, controller


@pytest.mark.asyncio
async def test_load_builds_draft_and_ledger():
    _, controller = await _loaded()
    assert controller.draft.get("quartile") == "q2"
    assert controller.status == "changes_required"
    assert controller.pending_suggestion_for("quartile").id == "s-quartile"
    assert len(controller.ledger.all_pending()) == 2


@pytest.mark.asyncio
async def test_load_failure_is_returned_as_value():
    store = FakeStore(PAPER)
    store.failures["fetch"] = PersistenceError("offline")
    controller = ReconciliationController(store, "c-1")

    outcome = await controller.load()

    assert outcome.error == ErrorKind.PERSISTENCE
    assert not controller.loaded
    assert controller.can_resubmit() is False


@pytest.mark.asyncio
async def test_can_resubmit_only_after_every_suggestion_resolved():
    _, controller = await _loaded()
    assert controller.can_resubmit() is False

    await controller.accept("s-quartile")
    assert controller.can_resubmit() is False

    await controller.reject("s-sjr")
    assert controller.can_resubmit() is True


@pytest.mark.asyncio
async def test_resubmit_blocked_by_pending_suggestions():
    store, controller = await _loaded()
    outcome = await controller.resubmit()
    assert outcome.error == ErrorKind.PENDING_SUGGESTIONS
    assert "update" not in store.names()
    assert "resubmit" not in store.names()


@pytest.mark.asyncio
async def test_resubmit_blocked_by_validation():
    store, controller = await _loaded()
    await controller.reject("s-quartile")
    await controller.reject("s-sjr")
    controller.edit({"sjr": ""})

    outcome = await controller.resubmit()

    assert outcome.error == ErrorKind.VALIDATION
    assert [v.field for v in outcome.violations] == ["sjr"]
    assert "update" not in store.names()


@pytest.mark.asyncio
async def test_failed_save_stops_before_status_transition():
    store, controller = await _loaded()
    await controller.reject("s-quartile")
    await controller.reject("s-sjr")
    store.failures["update"] = PersistenceError("timeout")

    outcome = await controller.resubmit()

    assert outcome.error == ErrorKind.PERSISTENCE
    assert "resubmit" not in store.names()
    assert store.data["status"] == "changes_required"


@pytest.mark.asyncio
async def test_resubmit_saves_fields_before_transition():
    store, controller = await _loaded()
    await controller.accept("s-quartile")
    await controller.accept("s-sjr")

    outcome = await controller.resubmit()

    assert outcome.ok
    names = store.names()
    assert names.index("update") < names.index("resubmit")
    update = next(c[1] for c in store.calls if c[0] == "update")
    assert update["quartile"] == "Top_1_"
    assert update["sjr"] == 0.9
    assert controller.status == "resubmitted"


@pytest.mark.asyncio
async def test_accept_applies_value_even_if_refresh_fails():
    store, controller = await _loaded()
    store.failures["fetch"] = PersistenceError("refresh failed")

    outcome = await controller.accept("s-quartile")

    assert outcome.ok
    assert controller.draft.get("quartile") == "top1"
    assert controller.ledger.get("s-quartile").status == SuggestionStatus.ACCEPTED


@pytest.mark.asyncio
async def test_failed_accept_does_not_touch_draft():
    store, controller = await _loaded()
    store.failures["respond"] = PersistenceError("500")

    outcome = await controller.accept("s-quartile")

    assert outcome.error == ErrorKind.PERSISTENCE
    assert controller.draft.get("quartile") == "q2"
    assert controller.pending_suggestion_for("quartile") is not None


@pytest.mark.asyncio
async def test_parallel_accepts_keep_both_changes():
    store, controller = await _loaded()
    store.failures["fetch"] = PersistenceError("no refresh")
    store.gate = asyncio.Event()

    first = asyncio.create_task(controller.accept("s-quartile"))
    second = asyncio.create_task(controller.accept("s-sjr"))
    await asyncio.sleep(0)
    store.gate.set()
    results = await asyncio.gather(first, second)

    assert all(r.ok for r in results)
    assert controller.draft.get("quartile") == "top1"
    assert controller.draft.get("sjr") == "0.9"


@pytest.mark.asyncio
async def test_parallel_accept_resolution_survives_ledger_replacement():
    store, controller = await _loaded()
    # load 之后只允许第一次 refresh 成功
    store.fetch_limit = 2
    store.gate = asyncio.Event()

    first = asyncio.create_task(controller.accept("s-quartile"))
    second = asyncio.create_task(controller.accept("s-sjr"))
    await asyncio.sleep(0)
    store.gate.set()
    results = await asyncio.gather(first, second)

    assert all(r.ok for r in results)
    assert store.names().count("fetch") == 3
    assert controller.ledger.get("s-sjr").status == SuggestionStatus.ACCEPTED
    assert controller.ledger.all_pending() == []
    assert controller.can_resubmit() is True
    assert controller.draft.get("sjr") == "0.9"


@pytest.mark.asyncio
async def test_unsaved_edits_survive_refresh():
    _, controller = await _loaded()
    controller.edit({"title": "Walkability revisited"})

    await controller.accept("s-quartile")

    assert controller.draft.get("title") == "Walkability revisited"
    assert controller.draft.get("quartile") == "top1"


@pytest.mark.asyncio
async def test_edit_immutable_field_is_rejected():
    _, controller = await _loaded()
    outcome = controller.edit({"publicationType": "book"})
    assert outcome.error == ErrorKind.IMMUTABLE_FIELD
    assert controller.draft.publication_type == "research_paper"


@pytest.mark.asyncio
async def test_compute_required_follows_draft():
    _, controller = await _loaded()
    required = controller.compute_required()
    assert "quartile" in required
    assert "impactFactor" in required.cleared

    controller.edit({"targetedResearchType": "wos"})
    assert "quartile" not in controller.compute_required()
    assert controller.draft.get("quartile") == ""


@pytest.mark.asyncio
async def test_full_round_trip_through_database(db, session_factory):
    contribution = ContributionService.create_contribution(db, ContributionCreate(
        publication_type="research_paper",
        applicant_user_id="u-1",
        fields={
            "title": "Street networks and walkability",
            "targetedResearchType": "scopus",
            "indexingCategories": ["scopus"],
            "quartile": "Q2",
            "sjr": 0.5,
        },
    ))
    ContributionService.submit_contribution(db, contribution.id, "u-1")
    ContributionService.request_changes(db, contribution.id, RequestChangesRequest(
        reviewer_id="r-1",
        suggestions=[
            SuggestionCreate(field_name="quartile", suggested_value="Top 1%"),
            SuggestionCreate(field_name="sjr", suggested_value="0.9"),
        ],
    ))

    controller = ReconciliationController(SqlContributionStore(session_factory), contribution.id)
    assert (await controller.load()).ok
    quartile = controller.pending_suggestion_for("quartile")
    sjr = controller.pending_suggestion_for("sjr")

    assert (await controller.accept(quartile.id)).ok
    assert controller.draft.get("quartile") == "top1"
    assert (await controller.accept(quartile.id)).error == ErrorKind.ALREADY_RESOLVED

    assert (await controller.resubmit()).error == ErrorKind.PENDING_SUGGESTIONS
    assert (await controller.reject(sjr.id)).ok
    assert (await controller.resubmit()).ok

    db.expire_all()
    stored = db.query(ResearchContribution).filter(ResearchContribution.id == contribution.id).one()
    assert stored.status == "resubmitted"
    assert stored.revision_count == 1
    assert stored.fields["quartile"] == "Top_1_"
    assert stored.fields["sjr"] == 0.5


@pytest.mark.asyncio
async def test_accepted_yes_no_value_survives_refresh_from_database(db, session_factory):
    contribution = ContributionService.create_contribution(db, ContributionCreate(
        publication_type="research_paper",
        applicant_user_id="u-1",
        fields={
            "title": "Street networks and walkability",
            "targetedResearchType": "scopus",
            "indexingCategories": ["scopus"],
            "quartile": "Q2",
            "sjr": 0.5,
            "internationalAuthor": "No",
        },
    ))
    ContributionService.submit_contribution(db, contribution.id, "u-1")
    ContributionService.request_changes(db, contribution.id, RequestChangesRequest(
        reviewer_id="r-1",
        suggestions=[SuggestionCreate(field_name="internationalAuthor", suggested_value="Yes")],
    ))

    controller = ReconciliationController(SqlContributionStore(session_factory), contribution.id)
    assert (await controller.load()).ok
    suggestion = controller.pending_suggestion_for("hasInternationalAuthor")

    outcome = await controller.accept(suggestion.id)

    assert outcome.changes == {"hasInternationalAuthor": "yes"}
    assert controller.draft.get("hasInternationalAuthor") == "yes"
    db.expire_all()
    stored = db.query(ResearchContribution).filter(ResearchContribution.id == contribution.id).one()
    assert stored.fields["internationalAuthor"] is True
    assert "hasInternationalAuthor" not in stored.fields
