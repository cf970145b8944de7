import queue
import threading
import time
from dataclasses import dataclass

import pytest

from streamline.processor import Processor
from streamline.pump import AsyncPump, SourcePump, SyncPump, pressure, stop_all
from streamline.topology import ProcessorNode, Source

WAIT = 2.0
MSG_KEY = "test"


@dataclass(frozen=True)
class Msg:
    key: object
    value: object


class RecordingProcessor(Processor):
    def __init__(self, process_error=None, close_error=None):
        self.messages = []
        self.closed = False
        self.process_error = process_error
        self.close_error = close_error

    def process(self, msg):
        if self.process_error:
            raise self.process_error
        self.messages.append(msg)

    def close(self):
        self.closed = True
        if self.close_error:
            raise self.close_error


class RecordingMonitor:
    def __init__(self):
        self.calls = []

    def processed(self, name, latency, pressure):
        self.calls.append((name, latency, pressure))


class StubPipe:
    def __init__(self, duration=0.0):
        self.resets = 0
        self._duration = duration

    def reset(self):
        self.resets += 1

    def duration(self):
        return self._duration


class RepeatingSource(Source):
    def __init__(self, msg, consume_error=None, close_error=None):
        self.msg = msg
        self.consume_error = consume_error
        self.close_error = close_error
        self.closed = False

    def consume(self):
        time.sleep(0.001)
        if self.consume_error:
            raise self.consume_error
        return self.msg

    def commit(self, metadata):
        pass

    def close(self):
        self.closed = True
        if self.close_error:
            raise self.close_error


class RecordingPump:
    def __init__(self, error=None):
        self.accepted = []
        self.error = error
        self.got_message = threading.Event()
        self.stopped = False

    def accept(self, msg):
        self.accepted.append(msg)
        self.got_message.set()
        if self.error:
            raise self.error

    def stop(self):
        self.stopped = True


class ErrorCollector:
    def __init__(self):
        self.errors = []
        self.done = threading.Event()

    def __call__(self, err):
        self.errors.append(err)
        self.done.set()


def make_msg():
    return Msg(MSG_KEY, MSG_KEY)


def make_sync(processor, monitor=None, pipe=None):
    return SyncPump(monitor or RecordingMonitor(), ProcessorNode(MSG_KEY, processor), pipe or StubPipe())


def make_async(processor, monitor=None, pipe=None, error_fn=lambda err: None):
    return AsyncPump(
        monitor or RecordingMonitor(), ProcessorNode(MSG_KEY, processor), pipe or StubPipe(), error_fn
    )


def make_source_pump(source, pumps=(), monitor=None, error_fn=lambda err: None):
    return SourcePump(monitor or RecordingMonitor(), MSG_KEY, source, list(pumps), error_fn)


def test_sync_pump_close():
    processor = RecordingProcessor()
    pump = SyncPump(RecordingMonitor(), ProcessorNode(MSG_KEY, processor), StubPipe())
    pump.stop()

    pump.close()

    assert processor.closed is True


def test_async_pump_close():
    processor = RecordingProcessor()
    pump = AsyncPump(RecordingMonitor(), ProcessorNode(MSG_KEY, processor), StubPipe(), lambda err: None)
    pump.stop()

    pump.close()

    assert processor.closed is True


def test_sync_pump_close_error():
    processor = RecordingProcessor(close_error=RuntimeError("test"))
    pump = SyncPump(RecordingMonitor(), ProcessorNode(MSG_KEY, processor), StubPipe())
    pump.stop()

    with pytest.raises(RuntimeError, match="test"):
        pump.close()


def test_async_pump_close_error():
    processor = RecordingProcessor(close_error=RuntimeError("test"))
    pump = AsyncPump(RecordingMonitor(), ProcessorNode(MSG_KEY, processor), StubPipe(), lambda err: None)
    pump.stop()

    with pytest.raises(RuntimeError, match="test"):
        pump.close()


def test_sync_pump_lock_as_context_manager():
    pump = SyncPump(RecordingMonitor(), ProcessorNode(MSG_KEY, RecordingProcessor()), StubPipe())

    with pump:
        assert pump._lock.locked() is True
    assert pump._lock.locked() is False


def test_async_pump_lock_as_context_manager():
    pump = AsyncPump(
        RecordingMonitor(), ProcessorNode(MSG_KEY, RecordingProcessor()), StubPipe(), lambda err: None
    )

    with pump:
        assert pump._lock.locked() is True
    assert pump._lock.locked() is False
    pump.stop()


def test_sync_pump_acquire_release():
    pump = SyncPump(RecordingMonitor(), ProcessorNode(MSG_KEY, RecordingProcessor()), StubPipe())

    pump.acquire()
    held = pump._lock.locked()
    pump.release()

    assert held is True
    assert pump._lock.locked() is False


def test_sync_pump_accept():
    msg = make_msg()
    processor = RecordingProcessor()
    monitor = RecordingMonitor()
    pipe = StubPipe()
    pump = make_sync(processor, monitor, pipe)

    pump.accept(msg)

    assert processor.messages == [msg]
    assert pipe.resets == 1
    assert len(monitor.calls) == 1
    name, latency, back_pressure = monitor.calls[0]
    assert name == MSG_KEY
    assert latency >= 0
    assert back_pressure == -1


def test_sync_pump_subtracts_pipe_duration():
    monitor = RecordingMonitor()
    pump = make_sync(RecordingProcessor(), monitor, StubPipe(duration=10.0))

    pump.accept(make_msg())

    assert monitor.calls[0][1] < 0


def test_sync_pump_accept_error():
    monitor = RecordingMonitor()
    pump = make_sync(RecordingProcessor(process_error=RuntimeError("test")), monitor)

    with pytest.raises(RuntimeError, match="test"):
        pump.accept(make_msg())
    assert monitor.calls == []


def test_async_pump_accept():
    msg = make_msg()
    processor = RecordingProcessor()
    monitor = RecordingMonitor()
    pump = make_async(processor, monitor)

    pump.accept(msg)
    pump.stop()

    assert processor.messages == [msg]
    assert len(monitor.calls) == 1
    name, _, back_pressure = monitor.calls[0]
    assert name == MSG_KEY
    assert 0 <= back_pressure <= 100


def test_async_pump_preserves_order():
    processor = RecordingProcessor()
    pump = make_async(processor)
    messages = [Msg(i, i) for i in range(50)]

    for msg in messages:
        pump.accept(msg)
    pump.stop()

    assert processor.messages == messages


def test_async_pump_accept_error():
    collector = ErrorCollector()
    monitor = RecordingMonitor()
    pipe = StubPipe()
    pump = make_async(RecordingProcessor(process_error=RuntimeError("test")), monitor, pipe, collector)

    pump.accept(make_msg())

    assert collector.done.wait(WAIT)
    pump.stop()
    assert [str(err) for err in collector.errors] == ["test"]
    assert pipe.resets == 1
    assert monitor.calls == []
    assert pump._thread.is_alive() is False


def test_async_pump_lock_holds_processing():
    msg = make_msg()
    processor = RecordingProcessor()
    pump = make_async(processor)

    pump.acquire()
    pump.accept(msg)
    time.sleep(0.05)
    held = list(processor.messages)
    pump.release()
    pump.stop()

    assert held == []
    assert processor.messages == [msg]


@pytest.mark.parametrize("size, filled, expected", [(4, 1, 25.0), (1000, 0, 0.0)])
def test_pressure(size, filled, expected):
    q = queue.Queue(maxsize=size)
    for item in range(filled):
        q.put(item)

    assert pressure(q) == expected


def test_source_pump_can_consume():
    msg = make_msg()
    pump = RecordingPump()
    monitor = RecordingMonitor()
    source_pump = make_source_pump(RepeatingSource(msg), [pump], monitor)

    assert pump.got_message.wait(WAIT)
    source_pump.stop()

    assert pump.accepted[0] == msg
    assert monitor.calls[0][0] == MSG_KEY
    assert monitor.calls[0][2] == -1


def test_source_pump_skips_empty_messages():
    pump = RecordingPump()
    monitor = RecordingMonitor()
    source_pump = make_source_pump(RepeatingSource(None), [pump], monitor)

    time.sleep(0.02)
    source_pump.stop()

    assert pump.accepted == []
    assert monitor.calls == []


@pytest.mark.parametrize(
    "source_kwargs, pump_error, message, accepted, monitored",
    [
        ({"msg": Msg(MSG_KEY, MSG_KEY)}, RuntimeError("test"), "test", 1, 1),
        ({"msg": None, "consume_error": RuntimeError("boom")}, None, "boom", 0, 0),
    ],
    ids=["pump_error", "source_error"],
)
def test_source_pump_handles_errors(source_kwargs, pump_error, message, accepted, monitored):
    collector = ErrorCollector()
    pump = RecordingPump(error=pump_error)
    monitor = RecordingMonitor()
    source_pump = make_source_pump(RepeatingSource(**source_kwargs), [pump], monitor, collector)

    assert collector.done.wait(WAIT)
    source_pump.stop()

    assert str(collector.errors[0]) == message
    assert len(pump.accepted) == accepted
    assert len(monitor.calls) == monitored
    assert source_pump._thread.is_alive() is False


def test_source_pump_close():
    source = RepeatingSource(make_msg())
    source_pump = make_source_pump(source)
    source_pump.stop()

    source_pump.close()

    assert source.closed is True


def test_source_pump_close_error():
    source_pump = make_source_pump(RepeatingSource(make_msg(), close_error=RuntimeError("test")))
    source_pump.stop()

    with pytest.raises(RuntimeError, match="test"):
        source_pump.close()


def test_stop_all():
    pumps = [RecordingPump(), RecordingPump()]

    stop_all(pumps)

    assert [p.stopped for p in pumps] == [True, True]