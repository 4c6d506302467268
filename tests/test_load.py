import collections
import time

import pytest

from geobulk import core, extract, load, schema

from conftest import FakeStore

LAYERS = ('points', 'lines', 'multipolygons')


def makeBatches(count, size=3):
    batches = []
    for i in range(count):
        batch = extract.Batch(LAYERS[i % len(LAYERS)], size)
        for j in range(size):
            batch.append(extract.Row({'osm_id' : '{}-{}'.format(i, j)}, b'\x01'))
        batches.append(batch)
    return batches


def schemas():
    return {name : schema.RowSchema(name, ['osm_id']) for name in LAYERS}


def test_every_batch_written_exactly_once():
    store = FakeStore(delay=0.01)
    scheduler = load.LoadScheduler(store, schemas(), 4)
    batchCount, rowCount = scheduler.run(iter(makeBatches(20)))
    assert (batchCount, rowCount) == (20, 60)
    written = collections.Counter(
        record[0] for table, columns, records in store.copies for record in records
    )
    assert len(written) == 60
    assert set(written.values()) == {1}
    for table, columns, records in store.copies:
        assert columns == ('osm_id', 'ogr_geometry')
        assert all(int(record[0].split('-')[0]) % 3 == LAYERS.index(table) for record in records)


def test_in_flight_batches_bounded_by_threads():
    store = FakeStore(delay=0.02)
    scheduler = load.LoadScheduler(store, schemas(), 2)
    pulled = []

    def produce():
        for batch in makeBatches(6):
            # a batch is only pulled once a writer is free
            assert len(pulled) - len(store.copies) < 2
            pulled.append(batch)
            yield batch

    scheduler.run(produce())
    assert len(store.copies) == 6


def test_failed_copy_stops_the_load():
    store = FakeStore(failCopyAt=2)
    scheduler = load.LoadScheduler(store, schemas(), 1)
    pulled = []

    def produce():
        for batch in makeBatches(5):
            pulled.append(batch)
            yield batch

    with pytest.raises(core.LoadError, match='cannot write 3 rows'):
        scheduler.run(produce())
    assert store.copyAttempts == 2
    assert len(store.copies) == 1
    assert len(pulled) == 2


def test_failed_copy_stops_the_load_with_free_writers():
    store = FakeStore(failCopyAt=1, delay=0.2)
    scheduler = load.LoadScheduler(store, schemas(), 4)

    def produce():
        for i, batch in enumerate(makeBatches(20, size=1)):
            if i:
                time.sleep(0.05)
            yield batch

    with pytest.raises(core.LoadError, match='cannot write 1 rows'):
        scheduler.run(produce())
    assert store.copyAttempts == 1
    assert store.copies == []


def test_producer_failure_propagates():
    def produce():
        yield makeBatches(1)[0]
        raise RuntimeError('source broke')

    with pytest.raises(RuntimeError):
        load.LoadScheduler(FakeStore(), schemas(), 2).run(produce())


def test_thread_count_must_be_positive():
    with pytest.raises(core.ConfigError):
        load.LoadScheduler(FakeStore(), schemas(), 0)
