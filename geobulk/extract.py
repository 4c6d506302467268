import collections

from . import core


class Row:
    def __init__(self, values, geometry):
        self.values = values
        self.geometry = geometry

    def __repr__(self):
        return '<Row {}>'.format(self.values)


class Batch:
    '''Rows bound for one bulk copy into one layer table.'''

    def __init__(self, layer, capacity):
        if capacity < 1:
            raise core.ConfigError('batch capacity must be positive, got {}'.format(capacity))
        self.layer = layer
        self.capacity = capacity
        self.rows = []

    def append(self, row):
        if self.isFull():
            raise OverflowError('batch for {} is full ({} rows)'.format(self.layer, self.capacity))
        self.rows.append(row)

    def isFull(self):
        return len(self.rows) >= self.capacity

    def __len__(self):
        return len(self.rows)

    def __bool__(self):
        return bool(self.rows)

    def __repr__(self):
        return '<Batch {} {}/{}>'.format(self.layer, len(self.rows), self.capacity)


class BatchAccumulator:
    '''Keeps one open batch per layer.

    `add()` returns the batch once it has reached capacity, `flush()`
    returns whatever is left for a layer; both start a fresh batch.'''

    def __init__(self, capacity):
        self.capacity = capacity
        self.open = {}

    def add(self, layer, row):
        batch = self.open.get(layer)
        if batch is None:
            batch = self.open[layer] = Batch(layer, self.capacity)
        batch.append(row)
        if batch.isFull():
            del self.open[layer]
            return batch
        return None

    def flush(self, layer):
        batch = self.open.pop(layer, None)
        return batch if batch else None


class Extractor:
    def __init__(self, source, projector, batchSize):
        self.source = source
        self.projector = projector
        self.batchSize = batchSize
        self.readCounts = collections.Counter()
        self.skipCounts = collections.Counter()
        self.logger = core.EmptyLogger()

    def logTo(self, logger):
        self.logger = logger

    def batches(self):
        accumulator = BatchAccumulator(self.batchSize)
        for layer, features in self.source.runs():
            self.logger.debug('processing %s', layer.name)
            for feature in features:
                self.readCounts[layer.name] += 1
                row = self.makeRow(feature)
                if row is None:
                    self.skipCounts[layer.name] += 1
                    continue
                batch = accumulator.add(layer.name, row)
                if batch is not None:
                    yield batch
            # the source moves on to another layer, do not keep rows waiting
            batch = accumulator.flush(layer.name)
            if batch is not None:
                yield batch
        self.logSummary()

    def makeRow(self, feature):
        try:
            geometry = self.projector(feature.get('geometry'))
        except core.ProjectionError as err:
            self.logger.warning('cannot process feature %s (%s)', feature.get('id'), err)
            return None
        return Row(
            {
                name : toText(value)
                for name, value in feature.get('properties', {}).items()
                if value is not None
            },
            geometry
        )

    def logSummary(self):
        for name, count in self.readCounts.items():
            self.logger.info(
                '%d features read from %s, %d skipped',
                count, name, self.skipCounts[name]
            )


def toText(value):
    if isinstance(value, bytes):
        return value.decode('utf8', errors='replace')
    return str(value)
