import threading

import pytest
from sqlmodel import Session

from conftest import seed_shop

from salon_booking.db import init_db, make_engine
from salon_booking.exceptions import InvalidInput, InvalidTransition, NotFound
from salon_booking.models import Client
from salon_booking.schemas import QueueStatus
from salon_booking.services.queue import QueueService, can_transition


@pytest.fixture
def queue(session, clock):
    return QueueService(session, clock)


def _clients(session, shop, n):
    clients = []
    for i in range(n):
        c = Client(establishment_id=shop.shop.id, name=f"Client {i}", phone=f"55119000000{i:02d}")
        session.add(c)
        clients.append(c)
    session.commit()
    for c in clients:
        session.refresh(c)
    return clients


def _join(queue, shop, clients):
    return [queue.enqueue(shop.shop.id, c.id, shop.haircut.id) for c in clients]


def _positions(queue, shop):
    return [(e.id, e.position) for e in queue.list_queue(shop.shop.id)]


def test_enqueue_assigns_dense_positions(session, queue, shop):
    entries = _join(queue, shop, _clients(session, shop, 4))
    assert [e.position for e in entries] == [1, 2, 3, 4]
    assert all(e.status == "waiting" for e in entries)


def test_cancel_second_closes_the_gap(session, queue, shop):
    entries = _join(queue, shop, _clients(session, shop, 4))
    queue.remove(entries[1].id)
    assert _positions(queue, shop) == [(entries[0].id, 1), (entries[2].id, 2), (entries[3].id, 3)]


def test_full_lifecycle_renumbers_on_completion(session, queue, shop):
    entries = _join(queue, shop, _clients(session, shop, 3))
    first = entries[0].id
    assert queue.advance(first, QueueStatus.called).called_at is not None
    queue.advance(first, QueueStatus.in_service)
    done = queue.advance(first, QueueStatus.completed)
    assert done.completed_at is not None
    assert [p for _, p in _positions(queue, shop)] == [1, 2]


def test_no_show_from_called(session, queue, shop):
    entries = _join(queue, shop, _clients(session, shop, 2))
    queue.advance(entries[0].id, QueueStatus.called)
    queue.advance(entries[0].id, QueueStatus.no_show)
    assert _positions(queue, shop) == [(entries[1].id, 1)]


def test_illegal_transitions_leave_state_alone(session, queue, shop):
    entries = _join(queue, shop, _clients(session, shop, 2))
    with pytest.raises(InvalidTransition):
        queue.advance(entries[0].id, QueueStatus.in_service)
    with pytest.raises(InvalidTransition):
        queue.advance(entries[0].id, QueueStatus.no_show)
    queue.remove(entries[0].id)
    with pytest.raises(InvalidTransition):
        queue.advance(entries[0].id, QueueStatus.called)
    assert _positions(queue, shop) == [(entries[1].id, 1)]


def test_remove_terminal_entry_is_a_no_op(session, queue, shop):
    entries = _join(queue, shop, _clients(session, shop, 2))
    queue.remove(entries[0].id)
    assert queue.remove(entries[0].id).status == "cancelled"
    assert _positions(queue, shop) == [(entries[1].id, 1)]


def test_in_service_entries_keep_contiguity(session, queue, shop):
    entries = _join(queue, shop, _clients(session, shop, 3))
    # third client is served before the first two
    queue.advance(entries[2].id, QueueStatus.called)
    queue.advance(entries[2].id, QueueStatus.in_service)
    queue.remove(entries[0].id)
    assert [p for _, p in _positions(queue, shop)] == [1, 2]
    new = queue.enqueue(shop.shop.id, entries[0].client_id, shop.haircut.id)
    assert new.position == 3


def test_positions_contiguous_after_every_operation(session, queue, shop):
    clients = _clients(session, shop, 6)
    live = []
    for step, c in enumerate(clients):
        live.append(queue.enqueue(shop.shop.id, c.id, shop.haircut.id).id)
        if step % 2 == 1:
            queue.remove(live.pop(0))
        positions = [p for _, p in _positions(queue, shop)]
        assert positions == list(range(1, len(positions) + 1))


def test_transition_table():
    assert can_transition(QueueStatus.waiting, QueueStatus.called)
    assert can_transition(QueueStatus.called, QueueStatus.cancelled)
    assert not can_transition(QueueStatus.in_service, QueueStatus.cancelled)
    assert not can_transition(QueueStatus.completed, QueueStatus.waiting)


def test_scheduled_only_shop_refuses_queue(session, clock):
    booked_only = seed_shop(session, operating_mode="scheduled")
    with pytest.raises(InvalidInput):
        QueueService(session, clock).enqueue(booked_only.shop.id, booked_only.client.id, booked_only.haircut.id)


def test_unknown_entry(queue):
    with pytest.raises(NotFound):
        queue.advance(999, QueueStatus.called)


def test_concurrent_enqueues_get_distinct_positions(tmp_path, clock):
    engine = make_engine(f"sqlite:///{tmp_path / 'queue.db'}")
    init_db(engine)
    with Session(engine) as setup:
        shop = seed_shop(setup)
        clients = _clients(setup, shop, 8)
        shop_id, service_id = shop.shop.id, shop.haircut.id
        client_ids = [c.id for c in clients]

    barrier = threading.Barrier(len(client_ids))
    errors = []

    def join(client_id):
        with Session(engine) as session:
            barrier.wait()
            try:
                QueueService(session, clock).enqueue(shop_id, client_id, service_id)
            except Exception as exc:
                errors.append(exc)

    threads = [threading.Thread(target=join, args=(cid,)) for cid in client_ids]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    assert errors == []
    with Session(engine) as check:
        positions = [e.position for e in QueueService(check, clock).list_queue(shop_id)]
    assert positions == list(range(1, 9))
    engine.dispose()
