import threading
from uuid import uuid4

import pytest
import redis

from conftest import prescribe
from sehat_rakshak.core import locks
from sehat_rakshak.core import redis as redis_helpers
from sehat_rakshak.core.config import get_settings
from sehat_rakshak.core.locks import LockTimeoutError, patient_lock
from sehat_rakshak.services.prescription_service import PrescriptionLockTimeout


class StubRedisLock:
    def __init__(self, *, acquire_result=True, acquire_error=None, release_error=None):
        self.acquire_result = acquire_result
        self.acquire_error = acquire_error
        self.release_error = release_error
        self.calls = []

    def acquire(self):
        self.calls.append("acquire")
        if self.acquire_error is not None:
            raise self.acquire_error
        return self.acquire_result

    def release(self):
        self.calls.append("release")
        if self.release_error is not None:
            raise self.release_error


@pytest.fixture()
def fresh_redis():
    redis_helpers.reset_redis_client()
    yield
    redis_helpers.reset_redis_client()


@pytest.fixture()
def stub_lock(monkeypatch):
    def install(**kwargs):
        lock = StubRedisLock(**kwargs)
        monkeypatch.setattr(locks, "make_lock", lambda key, timeout: lock)
        return lock

    return install
def test_unreachable_redis_degrades_to_local_locks(fresh_redis, monkeypatch):
    monkeypatch.setattr(get_settings(), "redis_url", "redis://127.0.0.1:1/0")

    assert redis_helpers.get_redis_client() is None
    assert redis_helpers.make_lock("lock:test", timeout=1) is None
    with patient_lock(uuid4(), timeout=0.5):
        pass


def test_local_patient_lock_times_out_while_held(fresh_redis):
    patient_id = uuid4()
    entered = threading.Event()
    release = threading.Event()

    def holder():
        with patient_lock(patient_id, timeout=1):
            entered.set()
            release.wait(2)

    thread = threading.Thread(target=holder)
    thread.start()
    entered.wait(1)
    try:
        with pytest.raises(LockTimeoutError):
            with patient_lock(patient_id, timeout=0.05):
                pass
        # other patients are not blocked
        with patient_lock(uuid4(), timeout=0.05):
            pass
    finally:
        release.set()
        thread.join()

    with patient_lock(patient_id, timeout=0.5):
        pass


def test_local_lock_entries_are_dropped_after_use(fresh_redis, monkeypatch):
    monkeypatch.setattr(locks, "make_lock", lambda key, timeout: None)

    for _ in range(5):
        with patient_lock(uuid4(), timeout=0.5):
            assert len(locks._local_locks) == 1
    with pytest.raises(RuntimeError):
        with patient_lock(uuid4(), timeout=0.5):
            raise RuntimeError("write failed")

    assert locks._local_locks == {}


def test_redis_lock_is_acquired_and_released(stub_lock):
    lock = stub_lock()

    with patient_lock(uuid4(), timeout=0.5):
        assert lock.calls == ["acquire"]

    assert lock.calls == ["acquire", "release"]
    assert locks._local_locks == {}


def test_redis_lock_not_acquired_in_time_is_a_timeout(stub_lock):
    stub_lock(acquire_result=False)

    with pytest.raises(LockTimeoutError):
        with patient_lock(uuid4(), timeout=0.5):
            pass


def test_redis_error_during_acquire_falls_back_to_local_lock(db, hospital, patient, doctor, stub_lock):
    lock = stub_lock(acquire_error=redis.exceptions.ConnectionError("connection reset"))

    rx = prescribe(db, hospital, patient, doctor)

    assert rx.id is not None
    assert lock.calls == ["acquire"]
    assert locks._local_locks == {}


def test_redis_error_during_release_does_not_fail_the_write(db, hospital, patient, doctor, stub_lock):
    lock = stub_lock(release_error=redis.exceptions.ConnectionError("connection reset"))

    rx = prescribe(db, hospital, patient, doctor)

    assert rx.id is not None
    assert lock.calls == ["acquire", "release"]


def test_busy_redis_lock_rejects_the_prescription(db, hospital, patient, doctor, stub_lock):
    stub_lock(acquire_result=False)

    with pytest.raises(PrescriptionLockTimeout):
        prescribe(db, hospital, patient, doctor)
