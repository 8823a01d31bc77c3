from flask import Blueprint, jsonify, current_app

matches = Blueprint('matches', __name__)


def _router():
    return current_app.extensions['matches']


@matches.route('/active', methods=['GET'])
def get_active_matches():
    """
    Returns matches whose record is still waiting or ongoing.
    """
    records = _router().store.open_matches()
    return jsonify([r.to_dict() for r in records]), 200


@matches.route('/<string:match_id>/state', methods=['GET'])
def get_match_state(match_id):
    """
    Returns the stored record of a match, plus live details when the match
    is currently held in memory.
    """
    router = _router()
    match_id = match_id.upper()
    record = router.store.get(match_id)
    if record is None:
        return jsonify({'error': 'Match not found'}), 404

    payload = record.to_dict()
    session = router.registry.get(match_id)
    payload['live'] = session is not None
    if session is not None:
        payload['clock_running'] = session.clock.running
        payload['pending_draw_offer'] = session.pending_draw_offer
        payload['turn'] = session.turn
        payload['timers'] = session.clock.timers()
    return jsonify(payload), 200
