from flask import Blueprint, jsonify, request, current_app
from hallserver.services.hall.errors import HallError, InvalidArgument, UpstreamUnavailable
from hallserver.services.hall.rank import RankRequest


hall_api = Blueprint('hall_api', __name__)


def _hall():
    return current_app.extensions['hall']


@hall_api.route('/rank', methods=['GET'])
def get_rank():
    hall = _hall()
    try:
        rank_request = RankRequest.parse(request.args.to_dict(), hall.rank_aggregator.default_page_size)
        response = hall.rank_aggregator.get_rank_list(rank_request)
    except InvalidArgument as exc:
        return jsonify({'error': str(exc)}), 400
    except UpstreamUnavailable as exc:
        current_app.logger.warning(f"[rank-http] upstream failure: {exc}")
        return jsonify({'error': 'Leaderboard store unavailable'}), 502
    except HallError as exc:
        current_app.logger.warning(f"[rank-http] failed: {exc}")
        return jsonify({'error': str(exc)}), 500
    response.session = rank_request.session
    return jsonify(response.to_dict())


@hall_api.route('/announcements', methods=['POST'])
def publish_announcement():
    data = request.get_json(silent=True) or {}
    text = (data.get('announcement') or '').strip()
    if not text:
        return jsonify({'error': 'announcement is required'}), 400
    try:
        record_id = _hall().pipeline.source.publish(text, sender='admin')
    except UpstreamUnavailable as exc:
        current_app.logger.warning(f"[announce-http] publish failed: {exc}")
        return jsonify({'error': 'Announcement store unavailable'}), 502
    return jsonify({'message': 'Announcement published', 'id': record_id}), 201


@hall_api.route('/connections', methods=['GET'])
def get_connections():
    return jsonify({'count': len(_hall().registry)})
