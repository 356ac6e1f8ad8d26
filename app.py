"""Flask API server for running seat market sessions."""

import logging
import threading
from datetime import datetime
from typing import Any, Dict, List, Optional
from flask import Flask, request, jsonify
from flask_cors import CORS
from pydantic import ValidationError

from seatmarket.config import get_config
from seatmarket.database import (
    init_database,
    save_round_results,
    get_round_history,
    save_high_score,
    get_high_scores,
    reset_all_data
)
from seatmarket.models import RoundResult, Session
from seatmarket.simulation import (
    SimulationConfig,
    ConfigValidationError,
    PhaseError,
    UnknownSessionError,
    UnknownTeamError,
    SessionRegistry,
    SessionHandle,
    TickScheduler,
    pooling_market_snapshot,
    summarize_session
)

app = Flask(__name__)
app.config['SECRET_KEY'] = get_config().flask_secret_key
CORS(app)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("seat_market.api")

# In-memory sessions
registry = SessionRegistry(seed=get_config().rng_seed)

_scheduler: Optional[TickScheduler] = None
_scheduler_lock = threading.Lock()


def get_scheduler() -> Optional[TickScheduler]:
    """Tick scheduler, or None when automatic ticking is disabled."""
    global _scheduler
    interval = get_config().tick_interval_seconds
    if interval <= 0:
        return None
    with _scheduler_lock:
        if _scheduler is None:
            _scheduler = TickScheduler(interval, on_complete=persist_round)
        return _scheduler


def persist_round(handle: SessionHandle, round_results: List[RoundResult]):
    """Store a finalized round. Storage failures are logged, never raised."""
    if not round_results:
        return
    try:
        init_database()
        save_round_results(handle.session_id, round_results)
        logger.info(
            f"Stored round {round_results[0]['round_number']} of session {handle.session_id} "
            f"({len(round_results)} teams)"
        )
    except Exception as e:
        logger.error(f"Failed to store round results for {handle.session_id}: {str(e)}", exc_info=True)


def session_view(session: Session) -> Dict[str, Any]:
    """JSON-safe view of a session."""
    return {
        'session_id': session['session_id'],
        'phase': session['phase'],
        'round_number': session['round_number'],
        'tick': session['tick'],
        'days_remaining': session['days_remaining'],
        'returned_demand_total': session['returned_demand_total'],
        'config': session['config'].to_dict(),
        'teams': list(session['teams'].values()),
        'allocation_summary': session['allocation_summary'],
        'pooling_market': pooling_market_snapshot(session),
        'last_round_results': session['last_round_results'],
        'created_at': session['created_at'],
        'updated_at': session['updated_at']
    }


def _body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValueError('Request body must be a JSON object')
    return body


@app.errorhandler(ValidationError)
def handle_validation_error(e: ValidationError):
    details = [
        {'loc': list(err['loc']), 'msg': err['msg'], 'type': err['type']}
        for err in e.errors()
    ]
    return jsonify({'error': 'Invalid request', 'details': details}), 400


@app.errorhandler(ConfigValidationError)
def handle_config_error(e: ConfigValidationError):
    return jsonify({'error': str(e)}), 400


@app.errorhandler(ValueError)
def handle_value_error(e: ValueError):
    return jsonify({'error': str(e)}), 400


@app.errorhandler(UnknownSessionError)
def handle_unknown_session(e: UnknownSessionError):
    return jsonify({'error': f"Session not found: {e.args[0]}"}), 404


@app.errorhandler(UnknownTeamError)
def handle_unknown_team(e: UnknownTeamError):
    return jsonify({'error': f"Team not found: {e.args[0]}"}), 404


@app.errorhandler(PhaseError)
def handle_phase_error(e: PhaseError):
    return jsonify({'error': str(e)}), 409


@app.route('/api/health', methods=['GET'])
def health():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'sessions': len(registry),
        'timestamp': datetime.now().isoformat()
    })


@app.route('/api/config/default', methods=['GET'])
def get_default_config():
    """Get default simulation configuration."""
    return jsonify(SimulationConfig().to_dict())


@app.route('/api/sessions', methods=['POST'])
def create_session():
    """Create a new session, optionally with a configuration."""
    body = _body()
    config = SimulationConfig.from_dict(body.get('config')) if body.get('config') else None
    handle = registry.create(config=config, session_id=body.get('session_id') or body.get('sessionId'))
    return jsonify(session_view(handle.session)), 201


@app.route('/api/sessions', methods=['GET'])
def list_sessions():
    """List all sessions."""
    session_list = [
        {
            'session_id': handle.session_id,
            'phase': handle.session['phase'],
            'round_number': handle.session['round_number'],
            'teams': len(handle.session['teams']),
            'created_at': handle.session['created_at']
        }
        for handle in registry.list()
    ]
    session_list.sort(key=lambda x: x['created_at'], reverse=True)

    return jsonify({
        'total': len(session_list),
        'sessions': session_list
    })


@app.route('/api/sessions/<session_id>', methods=['GET'])
def get_session(session_id: str):
    return jsonify(session_view(registry.get(session_id).session))


@app.route('/api/sessions/<session_id>', methods=['DELETE'])
def delete_session(session_id: str):
    """Delete a session, cancelling any scheduled ticks."""
    registry.get(session_id)
    scheduler = get_scheduler()
    if scheduler is not None:
        scheduler.stop(session_id)
    registry.remove(session_id)
    return jsonify({'message': 'Session deleted'}), 200


@app.route('/api/sessions/<session_id>/config', methods=['PATCH'])
def update_config(session_id: str):
    """Apply a configuration patch between rounds."""
    new_config = registry.get(session_id).update_config(_body())
    return jsonify(new_config.to_dict())


@app.route('/api/sessions/<session_id>/teams', methods=['POST'])
def register_team(session_id: str):
    body = _body()
    handle = registry.get(session_id)
    team = handle.register_team(body.get('name', ''), body.get('team_id') or body.get('teamId'))
    return jsonify(team), 201


@app.route('/api/sessions/<session_id>/teams/<team_id>', methods=['DELETE'])
def remove_team(session_id: str, team_id: str):
    registry.get(session_id).remove_team(team_id)
    return jsonify({'message': 'Team removed'}), 200


@app.route('/api/sessions/<session_id>/teams/<team_id>/decisions', methods=['PATCH'])
def update_decisions(session_id: str, team_id: str):
    """Update a team's price, bid or pooling allocation."""
    handle = registry.get(session_id)
    handle.update_team_decision(team_id, _body())
    return jsonify(handle.session['teams'][team_id])


@app.route('/api/sessions/<session_id>/start', methods=['POST'])
def start_simulation(session_id: str):
    """Close bidding, run the fix-seat auction and open the pooling market."""
    handle = registry.get(session_id)
    summary = handle.start_simulation()

    scheduler = get_scheduler()
    if scheduler is not None:
        scheduler.start(handle)

    logger.info(f"Session {session_id}: simulation phase started")
    return jsonify({
        'allocation_summary': summary,
        'pooling_market': pooling_market_snapshot(handle.session),
        'auto_tick': scheduler is not None
    })


@app.route('/api/sessions/<session_id>/tick', methods=['POST'])
def advance_tick(session_id: str):
    """Advance one tick by hand; finalizes the round when the horizon runs out."""
    handle = registry.get(session_id)
    completed = handle.advance_tick()

    round_results: List[RoundResult] = []
    if completed:
        round_results = handle.end_phase()
        persist_round(handle, round_results)

    session = handle.session
    return jsonify({
        'completed': completed,
        'tick': session['tick'],
        'days_remaining': session['days_remaining'],
        'phase': session['phase'],
        'pooling_market': pooling_market_snapshot(session),
        'results': round_results
    })


@app.route('/api/sessions/<session_id>/end', methods=['POST'])
def end_phase(session_id: str):
    """End the current round now. Repeated calls return no new results."""
    handle = registry.get(session_id)
    scheduler = get_scheduler()
    if scheduler is not None:
        scheduler.stop(session_id)

    round_results = handle.end_phase()
    persist_round(handle, round_results)

    return jsonify({
        'phase': handle.session['phase'],
        'round_number': handle.session['round_number'],
        'results': round_results
    })


@app.route('/api/sessions/<session_id>/pooling-market', methods=['GET'])
def get_pooling_market(session_id: str):
    return jsonify(pooling_market_snapshot(registry.get(session_id).session))


@app.route('/api/sessions/<session_id>/results', methods=['GET'])
def get_results(session_id: str):
    """Results of the last round and the full in-memory history."""
    session = registry.get(session_id).session
    return jsonify({
        'last_round_results': session['last_round_results'],
        'round_history': session['round_history']
    })


@app.route('/api/sessions/<session_id>/history', methods=['GET'])
def get_stored_history(session_id: str):
    """Round results as stored in the database."""
    round_number = request.args.get('round', type=int)
    init_database()
    return jsonify({'results': get_round_history(session_id, round_number)})


@app.route('/api/sessions/<session_id>/analytics', methods=['GET'])
def get_analytics(session_id: str):
    return jsonify(summarize_session(registry.get(session_id).session))


@app.route('/api/sessions/<session_id>/high-scores', methods=['POST'])
def record_high_scores(session_id: str):
    """Record every team's cumulative profit as a high score."""
    session = registry.get(session_id).session
    init_database()

    saved = []
    for team in session['teams'].values():
        if team['rounds_played'] <= 0:
            continue
        save_high_score(session_id, team['name'], team['total_profit'], team['rounds_played'])
        saved.append(team['name'])

    return jsonify({'saved': saved}), 201


@app.route('/api/high-scores', methods=['GET'])
def list_high_scores():
    limit = request.args.get('limit', default=10, type=int)
    init_database()
    return jsonify({'high_scores': get_high_scores(limit)})


@app.route('/api/admin/reset', methods=['POST'])
def reset_data():
    """Delete all stored round results and high scores."""
    init_database()
    reset_all_data()
    logger.info("All stored results have been reset")
    return jsonify({'message': 'All stored results have been reset'})


if __name__ == '__main__':
    config = get_config()
    logger.info("Starting Flask API server...")
    init_database()
    app.run(
        host='0.0.0.0',
        port=config.flask_port,
        debug=config.flask_debug
    )
