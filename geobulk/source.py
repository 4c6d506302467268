'''Feature sources: the layered datasets the loader reads from.

A source exposes its layers up front (`layers()`) and then yields its
features as *runs* (`runs()`): pairs of a layer and an iterator over a
stretch of that layer's features. Drivers that need to interleave layers
may yield several runs for the same layer; the loader consumes runs in the
order given.

Features are GeoJSON-like dicts with `id`, `properties` (only the fields
that are set) and `geometry` keys.
'''

import collections
import contextlib
import math

import fiona
import fiona.errors

from . import core


class LayerInfo:
    '''Read-only description of a source layer.'''

    def __init__(self, name, fields, geometryType=None, extent=None):
        self._name = name
        self._fields = collections.OrderedDict(fields)
        self._geometryType = geometryType
        self._extent = tuple(extent) if extent is not None else None

    @property
    def name(self):
        return self._name

    @property
    def fields(self):
        return collections.OrderedDict(self._fields)

    @property
    def fieldNames(self):
        return list(self._fields.keys())

    @property
    def geometryType(self):
        return self._geometryType

    @property
    def extent(self):
        return self._extent

    def __repr__(self):
        return '<LayerInfo {} ({} fields, {})>'.format(
            self._name, len(self._fields), self._geometryType
        )


def feature(id, properties, geometry):
    return {
        'id' : id,
        'properties' : {
            key : value for key, value in properties.items() if value is not None
        },
        'geometry' : geometry,
    }


class Source:
    def layers(self):
        raise NotImplementedError

    def runs(self):
        raise NotImplementedError

    @contextlib.contextmanager
    def open(self):
        yield self


class FionaSource(Source):
    '''Reads every layer of an OGR-readable file through fiona.

    Layers are read one after another, each in a single run. GDAL config
    options (temp directory, OSM driver settings) are applied for the
    lifetime of `open()`.'''

    def __init__(self, path, driverOptions=None):
        self.path = path
        self.driverOptions = dict(driverOptions) if driverOptions else {}
        self._layers = None
        self.logger = core.EmptyLogger()

    def logTo(self, logger):
        self.logger = logger

    @classmethod
    def fromConfig(cls, path, config):
        return cls(path, driverOptions=driverOptions(config))

    @contextlib.contextmanager
    def open(self):
        self.logger.debug('opening %s with driver options %s', self.path, self.driverOptions)
        with fiona.Env(**self.driverOptions):
            yield self
            self._layers = None

    def layers(self):
        if self._layers is None:
            try:
                names = fiona.listlayers(self.path)
            except (fiona.errors.FionaError, OSError) as err:
                raise core.SourceError('cannot open {}: {}'.format(self.path, err)) from err
            self._layers = [self.readLayerInfo(name) for name in names]
            self.logger.info('%d layers found in %s', len(self._layers), self.path)
        return list(self._layers)

    def readLayerInfo(self, name):
        with fiona.open(self.path, layer=name) as collection:
            schema = collection.schema
            info = LayerInfo(
                name,
                schema['properties'],
                geometryType=schema.get('geometry'),
                extent=self.validExtent(collection.bounds),
            )
        self.logger.debug('layer %s: fields %s, extent %s', name, info.fieldNames, info.extent)
        return info

    @staticmethod
    def validExtent(bounds):
        if bounds is None or not all(math.isfinite(coor) for coor in bounds):
            return None
        minx, miny, maxx, maxy = bounds
        if minx > maxx or miny > maxy:
            return None
        return (minx, miny, maxx, maxy)

    def runs(self):
        for layer in self.layers():
            yield layer, self.readFeatures(layer)

    def readFeatures(self, layer):
        with fiona.open(self.path, layer=layer.name) as collection:
            for item in collection:
                yield feature(item.id, dict(item.properties), item.geometry)


def driverOptions(config):
    options = {}
    if config.get('compress_nodes', True):
        options['OSM_COMPRESS_NODES'] = 'YES'
    if config.get('tmp_dir'):
        options['CPL_TMPDIR'] = config['tmp_dir']
    if config.get('tmp_file_size'):
        options['OSM_MAX_TMPFILE_SIZE'] = str(config['tmp_file_size'])
    if config.get('osm_config_file'):
        options['OSM_CONFIG_FILE'] = config['osm_config_file']
    return options
