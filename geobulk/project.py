import math

import fiona.errors
import fiona.transform
import shapely.errors
import shapely.geometry
import shapely.wkb

from . import core

WGS84_SRID = 4326
WEB_MERCATOR_SRID = 3857

PROJECTION_ERRORS = (
    AttributeError,
    ValueError,
    TypeError,
    KeyError,
    IndexError,
    fiona.errors.FionaError,
    shapely.errors.ShapelyError,
)


def crsName(srid):
    return 'EPSG:{}'.format(srid)


class BoundingBox:
    def __init__(self, minx, miny, maxx, maxy):
        self.minx = minx
        self.miny = miny
        self.maxx = maxx
        self.maxy = maxy

    def __iter__(self):
        return iter((self.minx, self.miny, self.maxx, self.maxy))

    def __eq__(self, other):
        return isinstance(other, BoundingBox) and tuple(self) == tuple(other)

    def __repr__(self):
        return 'BoundingBox({}, {}, {}, {})'.format(*self)


class Projector:
    '''Reprojects source geometries into the target SRID and serializes them
    as EWKB tagged with that SRID.

    Holds no state besides the two SRIDs, so one instance serves the whole
    load.'''

    def __init__(self, sourceSRID=WGS84_SRID, targetSRID=WEB_MERCATOR_SRID):
        self.sourceSRID = sourceSRID
        self.targetSRID = targetSRID
        self.sourceCRS = crsName(sourceSRID)
        self.targetCRS = crsName(targetSRID)

    def project(self, geometry):
        if geometry is None:
            raise core.ProjectionError('missing geometry')
        try:
            if self.sourceSRID != self.targetSRID:
                geometry = fiona.transform.transform_geom(
                    self.sourceCRS, self.targetCRS, geometry
                )
            shape = shapely.geometry.shape(geometry)
        except PROJECTION_ERRORS as err:
            raise core.ProjectionError('cannot reproject geometry: {}'.format(err)) from err
        if shape.is_empty:
            raise core.ProjectionError('empty geometry')
        if not all(math.isfinite(coor) for coor in shape.bounds):
            raise core.ProjectionError('geometry out of range of EPSG:{}'.format(self.targetSRID))
        return shape

    def serialize(self, geometry):
        try:
            return shapely.wkb.dumps(geometry, srid=self.targetSRID)
        except PROJECTION_ERRORS as err:
            raise core.ProjectionError('cannot serialize geometry: {}'.format(err)) from err

    def __call__(self, geometry):
        return self.serialize(self.project(geometry))

    def projectExtent(self, extent):
        if extent is None:
            return None
        minx, miny, maxx, maxy = extent
        if self.sourceSRID == self.targetSRID:
            return BoundingBox(minx, miny, maxx, maxy)
        xs, ys = fiona.transform.transform(
            self.sourceCRS, self.targetCRS, [minx, maxx], [miny, maxy]
        )
        return BoundingBox(min(xs), min(ys), max(xs), max(ys))
