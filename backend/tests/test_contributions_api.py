"""
科研成果申报 REST 接口测试
"""


def _create_paper(client, **fields):
    base = {
        "title": "Street networks and walkability",
        "targetedResearchType": "scopus",
        "indexingCategories": ["scopus"],
        "quartile": "Q2",
        "sjr": 0.5,
    }
    base.update(fields)
    resp = client.post("/api/research", json={
        "publicationType": "research_paper",
        "applicantUserId": "u-1",
        "fields": base,
    })
    assert resp.status_code == 200
    return resp.json()["data"]


def _to_changes_required(client, contribution_id, suggestions):
    assert client.post(f"/api/research/{contribution_id}/submit").status_code == 200
    resp = client.post(f"/api/research/{contribution_id}/request-changes", json={
        "reviewerId": "r-1",
        "comments": "Please fix metrics",
        "suggestions": suggestions,
    })
    assert resp.status_code == 200
    return resp.json()["data"]


def test_create_and_get(client):
    data = _create_paper(client, internationalAuthor="Yes", notAField="dropped")
    assert data["status"] == "draft"
    assert data["publicationType"] == "research_paper"
    assert data["quartile"] == "Q2"
    assert data["internationalAuthor"] is True
    assert "notAField" not in data

    resp = client.get(f"/api/research/{data['id']}")
    assert resp.status_code == 200
    assert resp.json()["data"]["title"] == "Street networks and walkability"


def test_get_missing_contribution(client):
    assert client.get("/api/research/does-not-exist").status_code == 404


def test_requirements_endpoint(client):
    resp = client.get("/api/research/requirements", params={
        "publicationType": "research_paper",
        "categories": "subsidiary_if_above_20,scopus",
        "researchType": "wos",
    })
    assert resp.status_code == 200
    body = resp.json()
    assert "impactFactor" in body["required"]
    assert body["required"]["impactFactor"]["minimum"] == 20
    assert body["required"]["impactFactor"]["exclusive_minimum"] is True
    assert "quartile" not in body["required"]
    assert sorted(body["cleared"]) == ["quartile", "sjr"]


def test_update_rejects_immutable_change(client):
    data = _create_paper(client)
    resp = client.put(f"/api/research/{data['id']}", json={"publicationType": "book"})
    assert resp.status_code == 400


def test_update_clears_field_with_null(client):
    data = _create_paper(client)
    resp = client.put(f"/api/research/{data['id']}", json={"sjr": None, "quartile": "Top 5%"})
    assert resp.status_code == 200
    updated = resp.json()["data"]
    assert updated["sjr"] is None
    assert updated["quartile"] == "Top_5_"


def test_validate_and_submit_block_incomplete(client):
    data = _create_paper(client, quartile=None)

    resp = client.post(f"/api/research/{data['id']}/validate")
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is False
    assert body["violations"] == [
        {"field": "quartile", "reason": "missing", "message": "Quartile is required"},
    ]

    resp = client.post(f"/api/research/{data['id']}/submit")
    assert resp.status_code == 422
    assert resp.json()["detail"]["violations"][0]["field"] == "quartile"


def test_submitted_contribution_is_not_editable(client):
    data = _create_paper(client)
    assert client.post(f"/api/research/{data['id']}/submit").status_code == 200
    resp = client.put(f"/api/research/{data['id']}", json={"sjr": 0.7})
    assert resp.status_code == 400


def test_request_changes_refuses_duplicate_pending_field(client):
    data = _create_paper(client)
    assert client.post(f"/api/research/{data['id']}/submit").status_code == 200

    resp = client.post(f"/api/research/{data['id']}/request-changes", json={
        "reviewerId": "r-1",
        "suggestions": [
            {"fieldName": "sjr", "suggestedValue": "0.9"},
            {"fieldName": "sjr", "suggestedValue": "1.1"},
        ],
    })
    assert resp.status_code == 409

    current = client.get(f"/api/research/{data['id']}").json()["data"]
    assert current["status"] == "submitted"
    assert current["editSuggestions"] == []


def test_respond_flow_and_resubmission_gate(client):
    data = _create_paper(client)
    contribution = _to_changes_required(client, data["id"], [
        {"fieldName": "quartile", "suggestedValue": "Top 1%", "suggestionNote": "Check SCImago"},
        {"fieldName": "targetedResearchType", "suggestedValue": "SCI/SCIE"},
    ])
    assert contribution["status"] == "changes_required"
    suggestions = {s["fieldName"]: s for s in contribution["editSuggestions"]}
    assert suggestions["quartile"]["originalValue"] == "Q2"

    quartile_id = suggestions["quartile"]["id"]
    resp = client.post(f"/api/research/suggestions/{quartile_id}/respond", json={"accept": True})
    assert resp.status_code == 200
    assert resp.json()["status"] == "accepted"
    assert resp.json()["pendingCount"] == 1

    again = client.post(f"/api/research/suggestions/{quartile_id}/respond", json={"accept": False})
    assert again.status_code == 409

    blocked = client.post(f"/api/research/{data['id']}/resubmit")
    assert blocked.status_code == 409

    type_id = suggestions["targetedResearchType"]["id"]
    resp = client.post(f"/api/research/suggestions/{type_id}/respond", json={"accept": True})
    assert resp.json()["pendingCount"] == 0

    current = client.get(f"/api/research/{data['id']}").json()["data"]
    assert current["targetedResearchType"] == "wos"
    assert current["quartile"] is None
    assert current["sjr"] is None

    resp = client.post(f"/api/research/{data['id']}/resubmit")
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "resubmitted"

    history = client.get(f"/api/research/{data['id']}/history").json()
    assert {h["to_status"] for h in history} == {"draft", "submitted", "changes_required", "resubmitted"}


def test_request_changes_refuses_form_name_and_foreign_field(client):
    data = _create_paper(client)
    assert client.post(f"/api/research/{data['id']}/submit").status_code == 200

    for field_name in ("hasInternationalAuthor", "bookTitle"):
        resp = client.post(f"/api/research/{data['id']}/request-changes", json={
            "reviewerId": "r-1",
            "suggestions": [
                {"fieldName": "sjr", "suggestedValue": "0.9"},
                {"fieldName": field_name, "suggestedValue": "Yes"},
            ],
        })
        assert resp.status_code == 400
        assert field_name in resp.json()["detail"]

    current = client.get(f"/api/research/{data['id']}").json()["data"]
    assert current["status"] == "submitted"
    assert current["editSuggestions"] == []
    assert "hasInternationalAuthor" not in current


def test_accepting_backend_named_yes_no_suggestion_persists(client):
    data = _create_paper(client, internationalAuthor="No")
    contribution = _to_changes_required(client, data["id"], [
        {"fieldName": "internationalAuthor", "suggestedValue": "Yes"},
    ])
    suggestion_id = contribution["editSuggestions"][0]["id"]

    resp = client.post(f"/api/research/suggestions/{suggestion_id}/respond", json={"accept": True})
    assert resp.status_code == 200

    current = client.get(f"/api/research/{data['id']}").json()["data"]
    assert current["internationalAuthor"] is True
    assert "hasInternationalAuthor" not in current


def test_accepting_null_suggestion_keeps_current_value(client):
    data = _create_paper(client, journalName="Old Journal")
    contribution = _to_changes_required(client, data["id"], [
        {"fieldName": "journalName", "suggestedValue": None, "suggestionNote": "Please double check"},
    ])
    suggestion_id = contribution["editSuggestions"][0]["id"]

    resp = client.post(f"/api/research/suggestions/{suggestion_id}/respond", json={"accept": True})
    assert resp.status_code == 200
    assert resp.json()["status"] == "accepted"

    current = client.get(f"/api/research/{data['id']}").json()["data"]
    assert current["journalName"] == "Old Journal"


def test_respond_unknown_suggestion(client):
    resp = client.post("/api/research/suggestions/missing/respond", json={"accept": True})
    assert resp.status_code == 404


def test_health(client):
    resp = client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


def test_root_points_to_contribution_routes(client):
    body = client.get("/").json()
    assert body["contributions"] == "/api/research"
    assert body["docs"] == "/api/docs"
