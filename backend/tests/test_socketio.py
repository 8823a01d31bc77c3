from matchroom import socketio

START_FEN = 'rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1'


def _names(received):
    return [pkt['name'] for pkt in received]


def _first(received, name):
    return next(pkt['args'][0] for pkt in received if pkt['name'] == name)


def test_socket_connect(sio_client):
    assert sio_client.is_connected('/ws')
    assert 'connected' in _names(sio_client.get_received('/ws'))


def test_join_requires_match_id(sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_match', {}, namespace='/ws')
    received = sio_client.get_received('/ws')
    assert _first(received, 'error') == {'message': 'match_id is required'}


def test_two_players_start_a_match(flask_app, sio_client):
    sio_client.get_received('/ws')
    sio_client.emit('join_match', {'match_id': 'abcd'}, namespace='/ws')
    received = sio_client.get_received('/ws')
    joined = _first(received, 'room_joined')
    assert joined['side'] == 'w'
    assert joined['match_id'] == 'ABCD'
    assert joined['players_count'] == 1

    opponent = socketio.test_client(flask_app, namespace='/ws')
    opponent.emit('join_match', {'match_id': 'ABCD'}, namespace='/ws')
    received = opponent.get_received('/ws')
    assert _first(received, 'room_joined')['side'] == 'b'
    assert _first(received, 'game_start') == {'fen': START_FEN}
    assert _first(sio_client.get_received('/ws'), 'game_start') == {'fen': START_FEN}

    # third connection is turned away
    third = socketio.test_client(flask_app, namespace='/ws')
    third.emit('join_match', {'match_id': 'ABCD'}, namespace='/ws')
    assert 'room_full' in _names(third.get_received('/ws'))
    third.disconnect(namespace='/ws')

    # white moves, both sides see it
    sio_client.emit('make_move', {'match_id': 'ABCD', 'move': {'from': 'e2', 'to': 'e4'}}, namespace='/ws')
    assert _first(opponent.get_received('/ws'), 'move_made')['san'] == 'e4'
    mine = sio_client.get_received('/ws')
    assert _first(mine, 'timer_update') == {'white': 63, 'black': 60}

    # disconnect hands the win to the player left behind
    opponent.disconnect(namespace='/ws')
    received = sio_client.get_received('/ws')
    assert 'opponent_disconnected' in _names(received)
    over = _first(received, 'game_over')
    assert over['winner'] == 'w'
    assert over['reason'] == 'opponent_disconnected'
    assert 'ABCD' not in flask_app.extensions['matches'].registry


def test_chat_between_players(flask_app, sio_client):
    sio_client.emit('join_match', {'match_id': 'CHAT'}, namespace='/ws')
    other = socketio.test_client(flask_app, namespace='/ws')
    other.emit('join_match', {'match_id': 'CHAT'}, namespace='/ws')
    sio_client.get_received('/ws')
    other.get_received('/ws')

    other.emit('chat_message', {'match_id': 'CHAT', 'text': 'hi there'}, namespace='/ws')
    assert _first(sio_client.get_received('/ws'), 'chat_message') == {'side': 'b', 'text': 'hi there'}
    other.disconnect(namespace='/ws')
