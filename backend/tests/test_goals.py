def test_goal_create_list_and_update_flow(client, make_user):
    _, headers = make_user()
    payload = {'title': 'Finish chapter 3', 'description': 'Graph algorithms', 'deadline': '2026-12-01T00:00:00'}
    created = client.post('/goals', json=payload, headers=headers)
    assert created.status_code == 201
    goal = created.json()
    assert goal['title'] == 'Finish chapter 3'
    assert goal['completed'] is False
    assert goal['progress'] == 0

    listed = client.get('/goals', headers=headers)
    assert listed.status_code == 200
    assert [g['id'] for g in listed.json()] == [goal['id']]

    upd = client.put(f"/goals/{goal['id']}", json={'progress': 60}, headers=headers)
    assert upd.status_code == 200
    assert upd.json()['progress'] == 60
    assert upd.json()['title'] == 'Finish chapter 3'

    done = client.put(f"/goals/{goal['id']}", json={'completed': True, 'progress': 100}, headers=headers)
    assert done.json()['completed'] is True


def test_goal_validation(client, make_user):
    _, headers = make_user()
    missing = client.post('/goals', json={'title': 'No deadline', 'description': 'x'}, headers=headers)
    assert missing.status_code == 400
    goal = client.post('/goals', json={'title': 'T', 'description': 'D', 'deadline': '2026-01-01T00:00:00'}, headers=headers).json()
    over = client.put(f"/goals/{goal['id']}", json={'progress': 150}, headers=headers)
    assert over.status_code == 400


def test_goals_are_private_to_their_owner(client, make_user):
    _, owner_h = make_user()
    _, other_h = make_user()
    goal = client.post('/goals', json={'title': 'T', 'description': 'D', 'deadline': '2026-01-01T00:00:00'}, headers=owner_h).json()

    assert client.get('/goals', headers=other_h).json() == []
    r = client.put(f"/goals/{goal['id']}", json={'progress': 10}, headers=other_h)
    assert r.status_code == 404
    assert r.json()['detail'] == 'Goal not found'
