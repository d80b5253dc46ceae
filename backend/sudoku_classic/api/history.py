from flask import Blueprint, jsonify, current_app
from sudoku_classic.errors import RemoteStoreError, StoreAccessError
from sudoku_classic.services.history.stats import summarize
from sudoku_classic.services.identity import current_context, history_store, reconciler


history_bp = Blueprint('history', __name__)


@history_bp.route('', methods=['GET'])
def get_history():
    """
    Signed-in users get the reconciled view; guests the local ledger.
    """
    try:
        ctx = current_context()
        if ctx.signed_in:
            records = reconciler(ctx.device).fetch_merged(ctx.identity)
        else:
            records = history_store(ctx.device).list()
        statistics = summarize(history_store(ctx.device).list())
    except StoreAccessError as exc:
        current_app.logger.error(f"[history] read failed: {exc}")
        return jsonify({'error': 'History is unavailable'}), 500
    return jsonify({
        'records': [r.to_dict() for r in records],
        'statistics': statistics,
    })


@history_bp.route('/sync', methods=['POST'])
def sync_history():
    try:
        ctx = current_context()
        if not ctx.signed_in:
            return jsonify({'error': 'Sign in to sync history'}), 401
        uploaded = reconciler(ctx.device).sync(ctx.identity)
    except RemoteStoreError as exc:
        current_app.logger.error(f"[history-sync] uid={ctx.identity.uid} failed: {exc}")
        return jsonify({'error': 'Sync failed. Please try again.'}), 502
    except StoreAccessError as exc:
        current_app.logger.error(f"[history-sync] local store failed: {exc}")
        return jsonify({'error': 'History is unavailable'}), 500
    return jsonify({'uploaded': uploaded})


@history_bp.route('/stats', methods=['GET'])
def get_statistics():
    try:
        records = history_store().list()
    except StoreAccessError as exc:
        return jsonify({'error': str(exc)}), 500
    return jsonify(summarize(records))


@history_bp.route('', methods=['DELETE'])
def clear_history():
    try:
        history_store().clear()
    except StoreAccessError as exc:
        return jsonify({'error': str(exc)}), 500
    return jsonify({'message': 'History cleared'})
