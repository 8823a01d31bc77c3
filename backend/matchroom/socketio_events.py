from flask import current_app, request
from flask_socketio import emit
from matchroom import socketio

MATCH_ID_MAX_LENGTH = 64


def _router():
    return current_app.extensions['matches']

def _get_sid() -> str:
    # request.sid exists in Socket.IO context
    return request.sid  # type: ignore

def _match_id(data):
    match_id = (data or {}).get('match_id') if isinstance(data, dict) else None
    if not isinstance(match_id, str) or not match_id.strip():
        emit('error', {'message': 'match_id is required'})
        return None
    match_id = match_id.strip().upper()
    if len(match_id) > MATCH_ID_MAX_LENGTH:
        emit('error', {'message': 'match_id is too long'})
        return None
    return match_id

def _dispatch(action, data):
    match_id = _match_id(data)
    if match_id is None:
        return
    _router().dispatch(action, match_id, _get_sid(), data)


def handle_connect():
    emit('connected', {'message': 'Connected to match server'})


def handle_disconnect(reason=None):
    _router().disconnect(_get_sid())


def handle_join_match(data):
    _dispatch('join', data)


def handle_make_move(data):
    _dispatch('move', data)


def handle_resign(data):
    _dispatch('resign', data)


def handle_offer_draw(data):
    _dispatch('offer_draw', data)


def handle_accept_draw(data):
    _dispatch('accept_draw', data)


def handle_reject_draw(data):
    _dispatch('reject_draw', data)


def handle_chat_message(data):
    _dispatch('chat', data)


def handle_client_game_over(data):
    _dispatch('report_end', data)


def handle_ping(data=None):
    emit('pong', data or {})


def register_socketio_handlers(namespace: str = '/ws') -> None:
    """Register Socket.IO event handlers on the match namespace."""
    socketio.on_event('connect', handle_connect, namespace=namespace)
    socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
    socketio.on_event('join_match', handle_join_match, namespace=namespace)
    socketio.on_event('make_move', handle_make_move, namespace=namespace)
    socketio.on_event('resign', handle_resign, namespace=namespace)
    socketio.on_event('offer_draw', handle_offer_draw, namespace=namespace)
    socketio.on_event('accept_draw', handle_accept_draw, namespace=namespace)
    socketio.on_event('reject_draw', handle_reject_draw, namespace=namespace)
    socketio.on_event('chat_message', handle_chat_message, namespace=namespace)
    socketio.on_event('client_game_over', handle_client_game_over, namespace=namespace)
    socketio.on_event('ping', handle_ping, namespace=namespace)
