import psycopg2

from . import core


class IndexBuilder:
    '''Creates the primary key and spatial index of every loaded table.

    Only to be run once all batches have been written.'''

    def __init__(self, store, projector):
        self.store = store
        self.projector = projector
        self.logger = core.EmptyLogger()

    def logTo(self, logger):
        self.logger = logger

    def build(self, layers):
        for layer in layers:
            self.buildForLayer(layer)

    def buildForLayer(self, layer):
        bbox = self.projector.projectExtent(layer.extent)
        try:
            self.logger.info('creating clustered primary key on table %s', layer.name)
            self.store.createPrimaryKey(layer.name)
            self.logger.info('creating spatial index on table %s within %s', layer.name, bbox)
            self.store.createSpatialIndex(layer.name, bbox)
        except psycopg2.Error as err:
            raise core.IndexingError(
                'cannot index table {}: {}'.format(layer.name, err)
            ) from err
        return bbox
