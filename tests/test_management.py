from __future__ import annotations

import pytest


@pytest.fixture
def phases(client):
    return {p["name"]: p for p in client.get("/api/phases").json()}


@pytest.fixture
def project(client, auth_headers):
    r = client.post("/api/projects", json={"name": "Website"}, headers=auth_headers)
    assert r.status_code == 201
    return r.json()


def test_seeded_catalogue(client, phases):
    assert list(phases) == ["Planning", "Development", "Testing", "Delivery"]

    subs = client.get(f"/api/phases/{phases['Planning']['id']}/subphases").json()
    assert [s["name"] for s in subs] == ["Requirements", "Estimate"]

    companies = client.get("/api/companies").json()
    assert [(c["name"], c["type"]) for c in companies] == [("Internal", "internal")]


def test_unknown_phase_subphases(client):
    assert client.get("/api/phases/999/subphases").status_code == 404


def test_writes_need_a_token(client):
    assert client.post("/api/projects", json={"name": "Website"}).status_code == 401


class TestProjects:
    def test_defaults(self, project):
        assert project["status"] == "active"
        assert project["color"] == "#3B82F6"
        assert project["actualMinutes"] == 0
        assert project["progressPercentage"] == 0

    def test_end_before_start(self, client, auth_headers):
        r = client.post(
            "/api/projects",
            json={"name": "Late", "startDate": "2026-10-19", "endDate": "2026-10-01"},
            headers=auth_headers,
        )
        assert r.status_code == 400

    def test_update_end_before_start(self, client, auth_headers):
        r = client.post(
            "/api/projects", json={"name": "Website", "startDate": "2026-10-01"}, headers=auth_headers
        )
        url = f"/api/projects/{r.json()['id']}"

        r = client.patch(url, json={"endDate": "2026-09-01"}, headers=auth_headers)
        assert r.status_code == 400
        assert client.get(url).json()["endDate"] is None

        r = client.patch(url, json={"endDate": "2026-10-31"}, headers=auth_headers)
        assert r.json()["endDate"] == "2026-10-31"

    def test_update_and_delete(self, client, auth_headers, project):
        r = client.patch(f"/api/projects/{project['id']}", json={"progressPercentage": 30}, headers=auth_headers)
        assert r.json()["progressPercentage"] == 30

        assert client.delete(f"/api/projects/{project['id']}", headers=auth_headers).status_code == 204
        assert client.get(f"/api/projects/{project['id']}").status_code == 404


class TestProjectPhases:
    def test_add_list_update_remove(self, client, auth_headers, project, phases):
        url = f"/api/projects/{project['id']}/phases"
        r = client.post(url, json={"phaseId": phases["Testing"]["id"]}, headers=auth_headers)
        assert r.status_code == 201
        r = client.post(url, json={"phaseId": phases["Planning"]["id"], "progressPercentage": 20}, headers=auth_headers)
        pp = r.json()
        assert pp["status"] == "not_started"

        listed = client.get(url).json()
        assert [x["phaseName"] for x in listed] == ["Planning", "Testing"]
        assert listed[0]["progressPercentage"] == 20
        assert listed[0]["phaseColor"] == "#3B82F6"

        r = client.patch(
            f"{url}/{pp['id']}", json={"status": "in_progress", "progressPercentage": 50}, headers=auth_headers
        )
        assert r.status_code == 200
        assert (r.json()["status"], r.json()["progressPercentage"]) == ("in_progress", 50)

        assert client.delete(f"{url}/{pp['id']}", headers=auth_headers).status_code == 204
        assert client.delete(f"{url}/{pp['id']}", headers=auth_headers).status_code == 404

    def test_duplicate_phase(self, client, auth_headers, project, phases):
        url = f"/api/projects/{project['id']}/phases"
        client.post(url, json={"phaseId": phases["Planning"]["id"]}, headers=auth_headers)
        r = client.post(url, json={"phaseId": phases["Planning"]["id"]}, headers=auth_headers)
        assert r.status_code == 400
        assert r.json()["message"] == "The phase is already part of this project."

    def test_progress_bounds(self, client, auth_headers, project, phases):
        url = f"/api/projects/{project['id']}/phases"
        pp = client.post(url, json={"phaseId": phases["Planning"]["id"]}, headers=auth_headers).json()
        r = client.patch(f"{url}/{pp['id']}", json={"progressPercentage": 150}, headers=auth_headers)
        assert r.status_code == 400

    def test_unknown_project_or_phase(self, client, auth_headers, project):
        assert client.get("/api/projects/999/phases").status_code == 404
        r = client.post(f"/api/projects/{project['id']}/phases", json={"phaseId": 999}, headers=auth_headers)
        assert r.status_code == 404


class TestPhases:
    def test_duplicate_name(self, client, auth_headers, phases):
        r = client.post("/api/phases", json={"name": "Planning"}, headers=auth_headers)
        assert r.status_code == 400

    def test_subphase_crud(self, client, auth_headers, phases):
        dev = phases["Development"]["id"]
        r = client.post(f"/api/phases/{dev}/subphases", json={"name": "Review", "orderIndex": 1}, headers=auth_headers)
        assert r.status_code == 201
        sub = r.json()
        assert sub["phaseId"] == dev

        r = client.patch(f"/api/subphases/{sub['id']}", json={"name": "Code review"}, headers=auth_headers)
        assert r.json()["name"] == "Code review"

        assert client.delete(f"/api/subphases/{sub['id']}", headers=auth_headers).status_code == 204
        assert client.get(f"/api/phases/{dev}/subphases").json() == []


class TestUsersAndCompanies:
    def test_user_crud(self, client, auth_headers):
        r = client.post("/api/users", json={"name": "Ann", "email": "ann@example.com"}, headers=auth_headers)
        assert r.status_code == 201
        user = r.json()
        assert user["type"] == "internal"

        r = client.patch(f"/api/users/{user['id']}", json={"position": "Designer"}, headers=auth_headers)
        assert r.json()["position"] == "Designer"
        assert [u["name"] for u in client.get("/api/users").json()] == ["Ann"]

        assert client.delete(f"/api/users/{user['id']}", headers=auth_headers).status_code == 204
        assert client.get(f"/api/users/{user['id']}").status_code == 404

    def test_company_crud(self, client, auth_headers):
        r = client.post("/api/companies", json={"name": "Acme", "contactPerson": "Joe"}, headers=auth_headers)
        company = r.json()
        assert (company["type"], company["contactPerson"]) == ("client", "Joe")

        r = client.patch(f"/api/companies/{company['id']}", json={"name": "Acme Ltd"}, headers=auth_headers)
        assert r.json()["name"] == "Acme Ltd"

        assert client.delete(f"/api/companies/{company['id']}", headers=auth_headers).status_code == 204
        assert client.delete(f"/api/companies/{company['id']}", headers=auth_headers).status_code == 404
