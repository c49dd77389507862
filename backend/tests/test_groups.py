def test_create_group_makes_creator_member_and_admin(client, make_user):
    user_id, headers = make_user()
    payload = {"name": "Linear Algebra", "subject": "Mathematics", "description": "Weekly problem sets", "is_public": True}
    r = client.post("/groups", json=payload, headers=headers)
    assert r.status_code == 201
    body = r.json()
    assert body["id"]
    assert body["name"] == "Linear Algebra"
    assert body["description"] == "Weekly problem sets"
    assert body["subject"] == "Mathematics"
    assert body["is_public"] is True
    assert body["members"] == [user_id]
    assert body["admins"] == [user_id]
    assert body["join_requests"] == []


def test_create_group_defaults_to_private(client, make_user):
    _, headers = make_user()
    r = client.post("/groups", json={"name": "Chem", "subject": "Chemistry"}, headers=headers)
    assert r.status_code == 201
    assert r.json()["is_public"] is False


def test_create_group_requires_name_and_subject(client, make_user):
    _, headers = make_user()
    missing = client.post("/groups", json={"description": "no name"}, headers=headers)
    assert missing.status_code == 400
    blank = client.post("/groups", json={"name": " ", "subject": "Physics"}, headers=headers)
    assert blank.status_code == 400
    assert blank.json()["detail"] == "Name and subject are required"


def test_create_group_requires_auth(client):
    r = client.post("/groups", json={"name": "X", "subject": "Y"})
    assert r.status_code == 401


def test_list_returns_only_public_groups(client, make_user, make_group):
    _, headers = make_user()
    make_group(headers, name="Public Group 1", subject="Mathematics", is_public=True)
    make_group(headers, name="Public Group 2", subject="Physics", is_public=True)
    make_group(headers, name="Private Group", subject="Chemistry", is_public=False)

    r = client.get("/groups/list", headers=headers)
    assert r.status_code == 200
    groups = r.json()
    assert len(groups) == 2
    assert all(g["is_public"] for g in groups)
    assert client.get("/groups/list").status_code == 401


def test_my_groups_lists_memberships(client, make_user, make_group):
    owner_id, owner_h = make_user(name="Owner")
    _, other_h = make_user()
    mine = make_group(owner_h, name="Mine")
    make_group(other_h, name="Theirs")

    r = client.get("/groups/my-groups", headers=owner_h)
    assert r.status_code == 200
    groups = r.json()
    assert [g["id"] for g in groups] == [mine]
    assert groups[0]["members"][0]["name"] == "Owner"
    assert groups[0]["admins"] == [{"id": owner_id, "name": "Owner"}]


def test_get_group_requires_membership(client, make_user, make_group):
    _, owner_h = make_user()
    _, outsider_h = make_user()
    gid = make_group(owner_h, is_public=True)

    assert client.get(f"/groups/{gid}", headers=owner_h).status_code == 200
    r = client.get(f"/groups/{gid}", headers=outsider_h)
    assert r.status_code == 403
    assert r.json()["detail"] == "You are not a member of this group"
    assert client.get("/groups/12345", headers=owner_h).status_code == 404
