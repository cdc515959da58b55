"""Integration tests for the structure view and per-division credential routes.

Covers:
- GET /structure for any role; never carries credentials
- read/add access matrix: normal only in their own division, elevated anywhere
- PUT partial updates: management/admin only, normal refused even at home
- 404 for missing divisions and credentials, 403 checked before 404
- authorization follows the live record, not the token's role claim
"""

import pytest
from conftest import bearer

from auth.models import ROLE_ADMIN, ROLE_MANAGEMENT, ROLE_NORMAL


@pytest.fixture(scope="module")
def unit(api_env):
    """One unit with two divisions and a credential already in the first."""
    u = api_env.make_unit("IT Division", "Finance Division")
    api_env.org_store.add_credential(u.divisions[0].id, "Jira", "svc-jira", "initial")
    return u


def _creds_url(division_id: int, credential_id: int | None = None) -> str:
    url = f"/api/v1/divisions/{division_id}/credentials"
    return f"{url}/{credential_id}" if credential_id is not None else url


class TestStructure:
    @pytest.mark.parametrize("role", [ROLE_NORMAL, ROLE_MANAGEMENT, ROLE_ADMIN])
    def test_any_role_sees_structure(self, api_env, unit, role) -> None:
        _, token = api_env.make_user(role=role)
        resp = api_env.client.get("/api/v1/structure", headers=bearer(token))
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}"

        listed = {u["id"]: u for u in resp.json()["units"]}
        assert unit.id in listed
        assert [d["name"] for d in listed[unit.id]["divisions"]] == ["IT Division", "Finance Division"]
        for d in listed[unit.id]["divisions"]:
            assert set(d) == {"id", "name"}

    def test_requires_auth(self, api_env) -> None:
        assert api_env.client.get("/api/v1/structure").status_code == 401


class TestReadAndAdd:
    def test_normal_reads_own_division(self, api_env, unit) -> None:
        it = unit.divisions[0]
        _, token = api_env.make_user(unit_id=unit.id, division_id=it.id)

        resp = api_env.client.get(_creds_url(it.id), headers=bearer(token))
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        body = resp.json()
        assert body["division"] == {"id": it.id, "name": "IT Division"}
        assert body["credentials"][0]["system"] == "Jira"
        assert body["credentials"][0]["password"] == "initial"

    def test_normal_refused_other_division(self, api_env, unit) -> None:
        it, finance = unit.divisions
        _, token = api_env.make_user(unit_id=unit.id, division_id=it.id)

        resp = api_env.client.get(_creds_url(finance.id), headers=bearer(token))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

        resp = api_env.client.post(
            _creds_url(finance.id),
            json={"system": "Bank", "username": "u", "password": "p"},
            headers=bearer(token),
        )
        assert resp.status_code == 403
        assert api_env.org_store.list_credentials(finance.id) == []

    def test_unassigned_normal_refused(self, api_env, unit) -> None:
        _, token = api_env.make_user()
        resp = api_env.client.get(_creds_url(unit.divisions[0].id), headers=bearer(token))
        assert resp.status_code == 403

    def test_normal_adds_to_own_division(self, api_env) -> None:
        u = api_env.make_unit("Ops")
        ops = u.divisions[0]
        _, token = api_env.make_user(unit_id=u.id, division_id=ops.id)

        first = api_env.client.post(
            _creds_url(ops.id),
            json={"system": "AWS", "username": "root", "password": "pw1"},
            headers=bearer(token),
        )
        assert first.status_code == 201, f"Expected 201, got {first.status_code}: {first.text}"
        assert first.json()["message"] == "Credential added"

        second = api_env.client.post(
            _creds_url(ops.id),
            json={"system": "GCP", "username": "owner", "password": "pw2"},
            headers=bearer(token),
        )
        systems = [c["system"] for c in second.json()["credentials"]]
        assert systems == ["AWS", "GCP"]

    @pytest.mark.parametrize("role", [ROLE_MANAGEMENT, ROLE_ADMIN])
    def test_elevated_reads_any_division(self, api_env, unit, role) -> None:
        _, token = api_env.make_user(role=role)
        for div in unit.divisions:
            resp = api_env.client.get(_creds_url(div.id), headers=bearer(token))
            assert resp.status_code == 200, f"Expected 200 for {div.name}, got {resp.status_code}"

    def test_add_missing_field_is_400(self, api_env, unit) -> None:
        _, token = api_env.make_user(role=ROLE_MANAGEMENT)
        resp = api_env.client.post(
            _creds_url(unit.divisions[1].id),
            json={"system": "Bank", "username": "u"},
            headers=bearer(token),
        )
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "validation_error"

    def test_missing_division_is_404(self, api_env) -> None:
        _, token = api_env.make_user(role=ROLE_MANAGEMENT)
        resp = api_env.client.get(_creds_url(999999), headers=bearer(token))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"

    def test_normal_gets_403_before_404(self, api_env, unit) -> None:
        _, token = api_env.make_user(unit_id=unit.id, division_id=unit.divisions[0].id)
        resp = api_env.client.get(_creds_url(999999), headers=bearer(token))
        assert resp.status_code == 403


class TestUpdate:
    def test_normal_cannot_update_even_own_division(self, api_env, unit) -> None:
        it = unit.divisions[0]
        cred = api_env.org_store.add_credential(it.id, "VPN", "ops", "vpn-pw")
        _, token = api_env.make_user(unit_id=unit.id, division_id=it.id)

        resp = api_env.client.put(_creds_url(it.id, cred.id), json={"password": "hacked"}, headers=bearer(token))
        assert resp.status_code == 403
        assert api_env.org_store.get_credential(it.id, cred.id).password == "vpn-pw"

    def test_management_partial_update(self, api_env, unit) -> None:
        finance = unit.divisions[1]
        cred = api_env.org_store.add_credential(finance.id, "Bank", "treasury", "old-pw")
        _, token = api_env.make_user(role=ROLE_MANAGEMENT)

        resp = api_env.client.put(
            _creds_url(finance.id, cred.id), json={"password": "new-pw"}, headers=bearer(token)
        )
        assert resp.status_code == 200, f"Expected 200, got {resp.status_code}: {resp.text}"
        body = resp.json()
        assert body["message"] == "Credential updated"
        assert body["credential"] == {"id": cred.id, "system": "Bank", "username": "treasury", "password": "new-pw"}

    def test_empty_update_leaves_credential_unchanged(self, api_env, unit) -> None:
        finance = unit.divisions[1]
        cred = api_env.org_store.add_credential(finance.id, "Payroll", "hr", "pw")
        _, token = api_env.make_user(role=ROLE_ADMIN)

        resp = api_env.client.put(_creds_url(finance.id, cred.id), json={}, headers=bearer(token))
        assert resp.status_code == 200
        assert resp.json()["credential"]["password"] == "pw"

    def test_missing_credential_is_404(self, api_env, unit) -> None:
        _, token = api_env.make_user(role=ROLE_MANAGEMENT)
        resp = api_env.client.put(_creds_url(unit.divisions[0].id, 999999), json={"password": "x"}, headers=bearer(token))
        assert resp.status_code == 404

    def test_credential_in_other_division_is_404(self, api_env, unit) -> None:
        it, finance = unit.divisions
        cred = api_env.org_store.add_credential(it.id, "Wiki", "admin", "pw")
        _, token = api_env.make_user(role=ROLE_MANAGEMENT)

        resp = api_env.client.put(_creds_url(finance.id, cred.id), json={"password": "x"}, headers=bearer(token))
        assert resp.status_code == 404
        assert api_env.org_store.get_credential(it.id, cred.id).password == "pw"


class TestLiveRecord:
    def test_demoted_user_loses_access_with_old_token(self, api_env, unit) -> None:
        user, token = api_env.make_user(role=ROLE_MANAGEMENT)
        finance = unit.divisions[1]
        assert api_env.client.get(_creds_url(finance.id), headers=bearer(token)).status_code == 200

        api_env.user_store.update_role(user.id, ROLE_NORMAL)
        resp = api_env.client.get(_creds_url(finance.id), headers=bearer(token))
        assert resp.status_code == 403, f"Expected 403 after demotion, got {resp.status_code}"

    def test_reassigned_user_follows_new_division(self, api_env, unit) -> None:
        it, finance = unit.divisions
        user, token = api_env.make_user(unit_id=unit.id, division_id=it.id)

        api_env.user_store.set_assignment(user.id, unit_id=unit.id, division_id=finance.id)
        assert api_env.client.get(_creds_url(it.id), headers=bearer(token)).status_code == 403
        assert api_env.client.get(_creds_url(finance.id), headers=bearer(token)).status_code == 200
