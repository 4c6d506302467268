import psycopg2

from . import core


class RowSchema:
    '''Column layout of one destination table as filled by the loader.

    The identity column is generated by the store, so copied records hold
    the field values in source order followed by the geometry.'''

    def __init__(self, table, fieldNames):
        self.table = table
        self.fieldNames = list(fieldNames)

    @property
    def columns(self):
        return self.fieldNames + [core.GEOMETRY_FIELD]

    @property
    def tableColumns(self):
        return [core.ID_FIELD] + self.columns

    def record(self, row):
        return tuple(row.values.get(name) for name in self.fieldNames) + (row.geometry, )

    def __eq__(self, other):
        return (
            isinstance(other, RowSchema)
            and self.table == other.table
            and self.fieldNames == other.fieldNames
        )

    def __repr__(self):
        return '<RowSchema {} {}>'.format(self.table, self.tableColumns)


class SchemaManager:
    RESERVED_NAMES = (core.ID_FIELD, core.GEOMETRY_FIELD)

    def __init__(self, store, targetSRID):
        self.store = store
        self.targetSRID = targetSRID
        self.logger = core.EmptyLogger()

    def logTo(self, logger):
        self.logger = logger

    def prepare(self, layers):
        for layer in layers:
            self.dropIfExists(layer)
        return {layer.name : self.createTable(layer) for layer in layers}

    def dropIfExists(self, layer):
        self.logger.info('dropping table %s if it exists', layer.name)
        try:
            self.store.dropTable(layer.name)
        except psycopg2.Error as err:
            raise core.SchemaError(
                'cannot drop table {}: {}'.format(layer.name, err)
            ) from err

    def createTable(self, layer):
        schema = self.rowSchema(layer)
        self.logger.info('creating table %s with columns %s', layer.name, schema.tableColumns)
        try:
            self.store.createTable(layer.name, schema.fieldNames, self.targetSRID)
        except psycopg2.Error as err:
            raise core.SchemaError(
                'cannot create table {}: {}'.format(layer.name, err)
            ) from err
        return schema

    def rowSchema(self, layer):
        for name in layer.fieldNames:
            if name.lower() in self.RESERVED_NAMES:
                raise core.SchemaError(
                    'field {} of layer {} collides with a reserved column'.format(name, layer.name)
                )
        return RowSchema(layer.name, layer.fieldNames)
