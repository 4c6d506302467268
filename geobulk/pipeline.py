import datetime
import time

from . import core, source, project, schema, extract, load, index
from .store import PostgisStore

DEFAULT_SETTINGS = {
    'batch_size' : 10000,
    'threads' : 4,
    'source_srid' : project.WGS84_SRID,
    'target_srid' : project.WEB_MERCATOR_SRID,
    'tmp_dir' : None,
    'tmp_file_size' : None,
    'osm_config_file' : None,
    'compress_nodes' : True,
}
POSITIVE_SETTINGS = ('batch_size', 'threads', 'source_srid', 'target_srid')


def mergeSettings(settings, overrides=None):
    merged = DEFAULT_SETTINGS.copy()
    unknown = set(settings) - set(DEFAULT_SETTINGS)
    if unknown:
        raise core.ConfigError('unknown load settings: ' + ', '.join(sorted(unknown)))
    merged.update(settings)
    if overrides:
        merged.update({key : value for key, value in overrides.items() if value is not None})
    for key in POSITIVE_SETTINGS:
        value = merged[key]
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise core.ConfigError('{} must be a positive integer, got {!r}'.format(key, value))
    return merged


class BulkLoader(core.DatabaseTask):
    '''Loads every layer of a source into its own table.

    Drops and recreates the tables, copies the reprojected features in
    batches on a pool of threads and indexes the tables once all batches
    are in.'''

    def __init__(self, *args, settings={}, store=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.settings = mergeSettings(settings)
        self.store = store if store is not None else PostgisStore(self.connector, self.schema)
        self.store.logTo(self.logger)

    @classmethod
    def fromConfig(cls, connConfig, loadConfig, schema):
        if loadConfig is None:
            loadConfig = core.DEFAULT_LOAD_CONF_PATH
        return cls(
            core.Connector.fromConfig(connConfig),
            settings=core.loadConfig(loadConfig),
            schema=schema
        )

    def main(self, path, **overrides):
        settings = mergeSettings(self.settings, overrides)
        self.logger.info(
            'loading %s into schema %s (batch size %d, %d threads, EPSG:%d -> EPSG:%d)',
            path, self.schema, settings['batch_size'], settings['threads'],
            settings['source_srid'], settings['target_srid']
        )
        # one connection per writer thread plus one for the main thread
        self.connector.setPoolSize(settings['threads'] + 1)
        dataset = self.openSource(path, settings)
        projector = project.Projector(settings['source_srid'], settings['target_srid'])
        try:
            with dataset.open():
                layers = dataset.layers()
                schemaManager = schema.SchemaManager(self.store, settings['target_srid'])
                schemaManager.logTo(self.logger)
                schemas = schemaManager.prepare(layers)
                start = time.perf_counter()
                self.logger.info('begin processing')
                extractor = extract.Extractor(dataset, projector, settings['batch_size'])
                extractor.logTo(self.logger)
                scheduler = load.LoadScheduler(self.store, schemas, settings['threads'])
                scheduler.logTo(self.logger)
                batchCount, rowCount = scheduler.run(extractor.batches())
                indexer = index.IndexBuilder(self.store, projector)
                indexer.logTo(self.logger)
                indexer.build(layers)
                elapsed = datetime.timedelta(seconds=time.perf_counter() - start)
                self.logger.info('time elapsed: %s', elapsed)
        finally:
            self.connector.close()
        return batchCount, rowCount

    def openSource(self, path, settings):
        if isinstance(path, source.Source):
            dataset = path
        else:
            dataset = source.FionaSource.fromConfig(path, settings)
        if hasattr(dataset, 'logTo'):
            dataset.logTo(self.logger)
        return dataset
