STRONG = 'Friday1+1=2!'


def _create_room(client, name='Security Club', password='hunter2'):
    res = client.post('/api/rooms', json={'name': name, 'password': password})
    assert res.status_code == 201
    return res.get_json()['room_id']


def _join(client, room_id, name, password='hunter2'):
    res = client.post(f'/api/rooms/{room_id}/join', json={'name': name, 'password': password})
    assert res.status_code == 201
    return res.get_json()


def test_index_and_health(client):
    assert client.get('/').status_code == 200
    res = client.get('/api/health')
    assert res.status_code == 200
    assert res.get_json()['status'] == 'ok'


def test_create_room_requires_name_and_password(client):
    assert client.post('/api/rooms', json={'name': 'x'}).status_code == 400
    assert client.post('/api/rooms', json={'password': 'x'}).status_code == 400


def test_create_list_and_get_room(client):
    room_id = _create_room(client)
    listed = client.get('/api/rooms').get_json()
    assert [r['id'] for r in listed] == [room_id]
    assert 'password' not in listed[0]

    state = client.get(f'/api/rooms/{room_id}').get_json()
    assert state['name'] == 'Security Club'
    assert state['gameState']['status'] == 'waiting'
    assert 'password' not in state
    assert {g['type'] for g in state['games']} == {'password', 'network', 'encryption'}
    assert state['viewer']['is_member'] is False


def test_unknown_room_is_404(client):
    res = client.get('/api/rooms/does-not-exist')
    assert res.status_code == 404
    assert res.get_json()['code'] == 'room_not_found'


def test_join_flow_and_session_identity(client):
    room_id = _create_room(client)
    creator = _join(client, room_id, 'Alice')
    assert creator['is_creator'] is True
    assert creator['room']['playerCount'] == 1

    # the session remembers who this browser joined as
    viewer = client.get(f'/api/rooms/{room_id}').get_json()['viewer']
    assert viewer == {'player_id': creator['player_id'], 'is_member': True, 'is_creator': True}

    other = _join(client, room_id, 'Bob')
    assert other['is_creator'] is False
    assert other['room']['creatorId'] == creator['player_id']


def test_join_errors(client):
    room_id = _create_room(client)
    assert client.post(f'/api/rooms/{room_id}/join', json={'name': 'A'}).status_code == 400
    res = client.post(f'/api/rooms/{room_id}/join', json={'name': 'A', 'password': 'nope'})
    assert res.status_code == 403
    assert res.get_json()['code'] == 'incorrect_password'

    for i in range(8):
        _join(client, room_id, f'P{i}')
    res = client.post(f'/api/rooms/{room_id}/join', json={'name': 'Late', 'password': 'hunter2'})
    assert res.status_code == 409
    assert res.get_json()['code'] == 'room_full'


def test_start_rules(client):
    room_id = _create_room(client)
    alice = _join(client, room_id, 'Alice')
    res = client.post(f'/api/rooms/{room_id}/start', json={'player_id': alice['player_id'], 'game_type': 'password'})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'insufficient_players'

    bob = _join(client, room_id, 'Bob')
    res = client.post(f'/api/rooms/{room_id}/start', json={'player_id': bob['player_id'], 'game_type': 'password'})
    assert res.status_code == 403
    assert res.get_json()['code'] == 'not_authorized'

    res = client.post(f'/api/rooms/{room_id}/start', json={'player_id': alice['player_id']})
    assert res.status_code == 400
    res = client.post(f'/api/rooms/{room_id}/start', json={'player_id': alice['player_id'], 'game_type': 'chess'})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'invalid_game_type'

    res = client.post(f'/api/rooms/{room_id}/start', json={'player_id': alice['player_id'], 'game_type': 'password'})
    assert res.status_code == 200
    started = res.get_json()
    assert started['gameState']['status'] == 'playing'
    assert started['gameState']['round'] == 1
    assert started['gameState']['deadline'] is not None


def test_full_password_round(client):
    room_id = _create_room(client)
    alice = _join(client, room_id, 'Alice')['player_id']
    bob = _join(client, room_id, 'Bob')['player_id']
    client.post(f'/api/rooms/{room_id}/start', json={'player_id': alice, 'game_type': 'password'})

    game = client.get(f'/api/rooms/{room_id}/game?player_id={alice}').get_json()
    assert game['type'] == 'password'
    assert len(game['content']['requirements']) == 10
    assert game['progress']['finished'] is False

    check = client.post(f'/api/rooms/{room_id}/password/check', json={'password': STRONG}).get_json()
    assert check['all_met'] is True
    assert check['complexity'] == 50

    res = client.post(f'/api/rooms/{room_id}/answer', json={'player_id': alice, 'password': 'weak'})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'requirements_not_met'
    assert len(res.get_json()['requirements']) == 10

    res = client.post(f'/api/rooms/{room_id}/answer', json={'player_id': alice, 'password': STRONG})
    assert res.status_code == 200
    first = res.get_json()
    assert first['accepted'] is True
    assert first['score']['place'] == 1

    second = client.post(f'/api/rooms/{room_id}/answer', json={'player_id': bob, 'password': STRONG}).get_json()
    assert second['score']['place'] == 2

    state = client.get(f'/api/rooms/{room_id}').get_json()
    assert state['gameState']['status'] == 'roundEnd'
    assert state['allSubmitted'] is True
    assert state['gameState']['roundHistory'][0]['winners'] == [alice]

    board = client.get(f'/api/rooms/{room_id}/leaderboard?mode=in_round').get_json()
    assert [row['id'] for row in board['players']][0] == alice
    overall = client.get(f'/api/rooms/{room_id}/leaderboard?mode=overall').get_json()
    assert overall['mode'] == 'overall'
    assert overall['players'][0]['stats']['totalGames'] == 1

    # only the creator resets
    res = client.post(f'/api/rooms/{room_id}/reset', json={'player_id': bob})
    assert res.status_code == 403
    res = client.post(f'/api/rooms/{room_id}/reset', json={'player_id': alice})
    assert res.status_code == 200
    body = res.get_json()
    assert body['reset'] is True
    reset = body['room']
    assert reset['gameState']['status'] == 'waiting'
    assert reset['gameState']['round'] == 2
    assert all(p['score'] is None for p in reset['players'])

    # a second reset finds nothing to do
    again = client.post(f'/api/rooms/{room_id}/reset', json={'player_id': alice}).get_json()
    assert again['reset'] is False
    assert again['room']['gameState']['round'] == 2


def test_answer_requires_player_and_active_round(client):
    room_id = _create_room(client)
    assert client.post(f'/api/rooms/{room_id}/answer', json={'password': STRONG}).status_code == 400
    alice = _join(client, room_id, 'Alice')['player_id']
    res = client.post(f'/api/rooms/{room_id}/answer', json={'player_id': alice, 'password': STRONG})
    assert res.status_code == 409
    assert res.get_json()['code'] == 'round_not_in_progress'


def test_network_answer_must_be_a_number(client):
    room_id = _create_room(client)
    alice = _join(client, room_id, 'Alice')['player_id']
    _join(client, room_id, 'Bob')
    client.post(f'/api/rooms/{room_id}/start', json={'player_id': alice, 'game_type': 'network'})

    res = client.post(f'/api/rooms/{room_id}/answer', json={'player_id': alice, 'answer_index': 'b'})
    assert res.status_code == 400
    assert res.get_json()['code'] == 'invalid_answer'

    # the question is still open for a valid answer
    res = client.post(f'/api/rooms/{room_id}/answer', json={'player_id': alice, 'answer_index': '1'})
    assert res.status_code == 200
    assert res.get_json()['questionIndex'] == 1


def test_expire_before_deadline_is_noop(client):
    room_id = _create_room(client)
    alice = _join(client, room_id, 'Alice')['player_id']
    _join(client, room_id, 'Bob')
    client.post(f'/api/rooms/{room_id}/start', json={'player_id': alice, 'game_type': 'encryption'})
    res = client.post(f'/api/rooms/{room_id}/expire')
    assert res.status_code == 200
    body = res.get_json()
    assert body['expired'] is False
    assert body['room']['gameState']['status'] == 'playing'


def test_leaderboard_rejects_unknown_mode(client):
    room_id = _create_room(client)
    res = client.get(f'/api/rooms/{room_id}/leaderboard?mode=weekly')
    assert res.status_code == 400


def test_delete_room_command(flask_app, client):
    room_id = _create_room(client)
    runner = flask_app.test_cli_runner()
    result = runner.invoke(args=['delete-room', room_id])
    assert result.exit_code == 0
    assert client.get(f'/api/rooms/{room_id}').status_code == 404

    result = runner.invoke(args=['delete-room', room_id])
    assert result.exit_code != 0
