import threading
import time

import psycopg2
import pytest

from geobulk import core, source


@pytest.fixture(autouse=True)
def logDir(tmp_path, monkeypatch):
    monkeypatch.setattr(core, 'LOG_PATH', str(tmp_path / 'log'))


def point(x, y):
    return {'type' : 'Point', 'coordinates' : (x, y)}


class FakeSource(source.Source):
    '''In-memory source; `runs` is a list of (layer name, features) pairs.'''

    def __init__(self, layers, runs):
        self._layers = layers
        self._runs = runs
        self.openCount = 0

    @classmethod
    def simple(cls, layers, features):
        return cls(layers, [(layer.name, features[layer.name]) for layer in layers])

    def layers(self):
        return list(self._layers)

    def runs(self):
        self.openCount += 1
        byName = {layer.name : layer for layer in self._layers}
        for name, features in self._runs:
            yield byName[name], iter(features)


class FakeStore:
    '''Records every call; `failCopyAt` makes the n-th copy (1-based) fail.

    The failing copy fails at once; every other copy takes `delay` seconds.'''

    def __init__(self, failCopyAt=None, failOn=None, delay=0):
        self.failCopyAt = failCopyAt
        self.failOn = failOn or set()
        self.delay = delay
        self.calls = []
        self.copies = []
        self.copyAttempts = 0
        self.lock = threading.Lock()

    def logTo(self, logger):
        pass

    def record(self, *call):
        with self.lock:
            self.calls.append(call)

    def dropTable(self, table):
        if 'drop' in self.failOn:
            raise psycopg2.OperationalError('drop failed')
        self.record('drop', table)

    def createTable(self, table, fieldNames, srid):
        if 'create' in self.failOn:
            raise psycopg2.ProgrammingError('create failed')
        self.record('create', table, tuple(fieldNames), srid)

    def copyRows(self, table, columns, records):
        with self.lock:
            self.copyAttempts += 1
            attempt = self.copyAttempts
        if self.failCopyAt is not None and attempt == self.failCopyAt:
            raise psycopg2.OperationalError('copy failed')
        if self.delay:
            time.sleep(self.delay)
        with self.lock:
            self.copies.append((table, tuple(columns), list(records)))
        self.record('copy', table, len(records))

    def createPrimaryKey(self, table):
        if 'index' in self.failOn:
            raise psycopg2.OperationalError('index failed')
        self.record('pk', table)
        return 'pk_' + table

    def createSpatialIndex(self, table, bbox=None):
        self.record('sidx', table, bbox)
        return 'sidx_' + table


class FakeConnector:
    def __init__(self):
        self.poolSize = None
        self.closed = 0

    def logTo(self, logger):
        pass

    def setPoolSize(self, size):
        self.poolSize = size

    def close(self):
        self.closed += 1


@pytest.fixture
def fakeStore():
    return FakeStore()


@pytest.fixture
def osmLayers():
    return [
        source.LayerInfo('points', [('osm_id', 'str'), ('name', 'str')], 'Point', (14.0, 50.0, 14.5, 50.2)),
        source.LayerInfo('lines', [('osm_id', 'str'), ('highway', 'str')], 'LineString', (14.1, 50.1, 14.3, 50.15)),
    ]
