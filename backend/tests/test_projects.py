"""Tests for project visibility, creation, assignments, scope items and the dashboard."""

from app.models import ProjectAssignment


def test_admin_and_management_see_every_project(client, make_user, login_as, make_project):
    make_project(code="P-1")
    make_project(code="P-2")
    for role in ("admin", "management"):
        login_as(make_user(role=role))
        codes = sorted(p["project_code"] for p in client.get("/api/projects").json())
        assert codes == ["P-1", "P-2"]


def test_other_roles_see_only_assigned_projects(client, make_user, login_as, make_project):
    worker = make_user(role="production")
    make_project(code="P-1", assign=[worker])
    make_project(code="P-2")
    login_as(worker)

    projects = client.get("/api/projects").json()
    assert [p["project_code"] for p in projects] == ["P-1"]


def test_pm_creates_project_and_is_assigned(client, make_user, login_as, db_session):
    pm = make_user(role="pm")
    login_as(pm)

    response = client.post("/api/projects/new", json={"project_code": "FC-100", "name": "Hotel lobby"})

    assert response.status_code == 201
    project_id = response.json()["id"]
    assert response.json()["status"] == "tender"
    assignment = db_session.query(ProjectAssignment).filter_by(project_id=project_id).one()
    assert assignment.user_id == pm.id
    assert client.get(f"/api/projects/{project_id}").status_code == 200


def test_duplicate_project_code_is_a_conflict(client, make_user, login_as, make_project):
    make_project(code="FC-100")
    login_as(make_user(role="admin"))
    response = client.post("/api/projects/new", json={"project_code": "FC-100", "name": "Again"})
    assert response.status_code == 409


def test_production_cannot_open_new_project_route(client, make_user, login_as):
    login_as(make_user(role="production"))
    response = client.post("/api/projects/new", json={"project_code": "X", "name": "X"})
    assert response.status_code == 307
    assert response.headers["location"] == "/dashboard?error=unauthorized"


def test_admin_assigns_user(client, make_user, login_as, make_project):
    project = make_project()
    member = make_user(role="client")
    login_as(make_user(role="admin"))

    path = f"/api/projects/{project.id}/assignments"
    assert client.post(path, json={"user_id": member.id}).status_code == 201
    assert client.post(path, json={"user_id": member.id}).status_code == 409
    assert client.post(path, json={"user_id": 9999}).status_code == 404


def test_scope_items(client, make_user, login_as, make_project):
    pm = make_user(role="pm")
    project = make_project(assign=[pm])
    login_as(pm)
    path = f"/api/projects/{project.id}/scope"

    created = client.post(path, json={"item_code": "WD-02", "name": "Wardrobe <i>unit</i>"})
    client.post(path, json={"item_code": "WD-01", "name": "Desk"})

    assert created.status_code == 201
    assert created.json()["name"] == "Wardrobe unit"
    assert created.json()["status"] == "pending"
    assert [i["item_code"] for i in client.get(path).json()] == ["WD-01", "WD-02"]


def test_client_cannot_add_scope_items(client, make_user, login_as, make_project):
    viewer = make_user(role="client")
    project = make_project(assign=[viewer])
    login_as(viewer)
    response = client.post(f"/api/projects/{project.id}/scope", json={"item_code": "A", "name": "A"})
    assert response.status_code == 403


def test_dashboard_counts_visible_projects_by_status(client, make_user, login_as, make_project, db_session):
    pm = make_user(role="pm")
    first = make_project(code="P-1", assign=[pm])
    make_project(code="P-2", assign=[pm])
    make_project(code="P-3")
    first.status = "active"
    db_session.commit()
    login_as(pm)

    body = client.get("/api/dashboard").json()

    assert body == {"total_projects": 2, "projects_by_status": {"active": 1, "tender": 1}}
