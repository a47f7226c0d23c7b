import threading

from conftest import FakeSource
from hallserver.services.hall.announce import ANNOUNCE_ROUTE, AnnouncementPipeline, AnnouncementSource
from hallserver.services.hall.errors import UpstreamUnavailable
from hallserver.services.hall.registry import SessionRegistry


def _registry(*ids):
    registry = SessionRegistry()
    for conn_id in ids:
        registry.add_connection(conn_id)
    return registry


def _drain(pipeline):
    pipeline.close()
    pipeline.run_fanout()


def test_poll_snapshots_recipients_and_route():
    sent = []
    registry = _registry('a', 'b')
    pipeline = AnnouncementPipeline(FakeSource(['hello']), registry, lambda *args: sent.append(args))

    assert pipeline.poll() is True
    # Connections added after the poll are not recipients of that announcement
    registry.add_connection('c')
    _drain(pipeline)

    assert sorted(sent) == [('a', ANNOUNCE_ROUTE, b'hello'), ('b', ANNOUNCE_ROUTE, b'hello')]


def test_poll_without_announcement_is_noop():
    pipeline = AnnouncementPipeline(FakeSource(), _registry('a'), lambda *args: None)
    assert pipeline.poll() is True
    assert pipeline.pending() == 0


def test_poll_read_failure_is_logged_not_raised(caplog):
    source = FakeSource(error=UpstreamUnavailable('store down'))
    pipeline = AnnouncementPipeline(source, _registry('a'), lambda *args: None)
    assert pipeline.poll() is True
    assert pipeline.pending() == 0
    assert 'store down' in caplog.text


def test_fanout_preserves_poll_order():
    sent = []
    pipeline = AnnouncementPipeline(FakeSource(['first', 'second', 'third']), _registry('a'),
                                    lambda conn_id, route, payload: sent.append(payload))
    for _ in range(3):
        pipeline.poll()
    _drain(pipeline)
    assert sent == [b'first', b'second', b'third']


def test_one_failed_recipient_does_not_stop_the_others(caplog):
    delivered = []

    def send(conn_id, route, payload):
        if conn_id == 'bad':
            raise ConnectionError('socket gone')
        delivered.append(conn_id)

    pipeline = AnnouncementPipeline(FakeSource(['hi', 'again']), _registry('a', 'bad', 'c'), send)
    pipeline.poll()
    pipeline.poll()
    _drain(pipeline)

    assert sorted(delivered) == ['a', 'a', 'c', 'c']
    assert 'conn=bad' in caplog.text


def test_each_recipient_is_spawned_separately():
    spawned = []
    pipeline = AnnouncementPipeline(FakeSource(['hi']), _registry('a', 'b', 'c'), lambda *args: None,
                                    spawn=lambda fn, *args: spawned.append(args[1]))
    pipeline.poll()
    _drain(pipeline)
    assert sorted(spawned) == ['a', 'b', 'c']


def test_full_queue_blocks_poll_until_fanout_catches_up():
    sent = []
    pipeline = AnnouncementPipeline(FakeSource(['one', 'two']), _registry('a'),
                                    lambda conn_id, route, payload: sent.append(payload), maxsize=1)
    pipeline.poll()

    producer = threading.Thread(target=pipeline.poll)
    producer.start()
    producer.join(0.2)
    assert producer.is_alive()

    consumer = threading.Thread(target=pipeline.run_fanout)
    consumer.start()
    producer.join(2)
    assert not producer.is_alive()

    pipeline.close()
    consumer.join(2)
    assert not consumer.is_alive()
    assert sent == [b'one', b'two']


def test_ticker_polls_until_closed():
    sent = []
    holder = {}

    def sleep(interval):
        holder['pipeline'].close()

    pipeline = AnnouncementPipeline(FakeSource(['tick']), _registry('a'),
                                    lambda conn_id, route, payload: sent.append(payload), sleep=sleep)
    holder['pipeline'] = pipeline
    pipeline.run_ticker()
    pipeline.run_fanout()
    assert sent == [b'tick']


def test_closed_pipeline_stops_polling():
    source = FakeSource(['late'])
    pipeline = AnnouncementPipeline(source, _registry('a'), lambda *args: None)
    pipeline.close()
    pipeline.poll()
    assert source.pending == ['late']


def test_source_returns_latest_newer_record_once(flask_app):
    source = AnnouncementSource(flask_app)
    assert source.poll_next() is None

    source.publish('older')
    source.publish('newest')
    assert source.poll_next() == 'newest'
    assert source.poll_next() is None

    source.publish('another')
    assert source.poll_next() == 'another'
    assert source.poll_next() is None


def test_hall_pipeline_reads_published_records(hall):
    sent = []
    hall.observe_connect('sid-1')
    hall.pipeline.source.publish('server maintenance at noon')
    pipeline = AnnouncementPipeline(hall.pipeline.source, hall.registry,
                                    lambda *args: sent.append(args))
    pipeline.poll()
    _drain(pipeline)
    assert sent == [('sid-1', ANNOUNCE_ROUTE, b'server maintenance at noon')]
