import hashlib
import io

from psycopg2 import sql

from . import core


# PostgreSQL cuts identifiers longer than NAMEDATALEN - 1 bytes
MAX_IDENTIFIER_BYTES = 63
NAME_HASH_LENGTH = 8

COPY_NULL = '\\N'
COPY_ESCAPES = str.maketrans({
    '\\' : '\\\\',
    '\n' : '\\n',
    '\r' : '\\r',
    '\t' : '\\t',
})


def copyValue(value):
    if value is None:
        return COPY_NULL
    if isinstance(value, (bytes, bytearray, memoryview)):
        # geometry goes in as hex EWKB, which PostGIS parses on input
        return bytes(value).hex()
    return str(value).translate(COPY_ESCAPES)


def copyBuffer(records):
    '''Renders records in the PostgreSQL COPY text format.'''
    buffer = io.StringIO()
    for record in records:
        buffer.write('\t'.join(copyValue(value) for value in record))
        buffer.write('\n')
    buffer.seek(0)
    return buffer


def makeIndexName(prefix, table, suffix=''):
    '''Names an index of a table, shortening long names with a hash of the
    table name so that tables sharing a long prefix get distinct indexes.'''
    name = prefix + table + suffix
    if len(name.encode('utf8')) <= MAX_IDENTIFIER_BYTES:
        return name
    tag = '_' + hashlib.md5(table.encode('utf8')).hexdigest()[:NAME_HASH_LENGTH]
    budget = MAX_IDENTIFIER_BYTES - len((prefix + suffix + tag).encode('utf8'))
    stem = table.encode('utf8')[:budget].decode('utf8', errors='ignore')
    return prefix + stem + suffix + tag


class PostgisStore:
    '''Destination tables in one PostGIS schema.

    Every call takes its own pooled connection and commits on success, so
    the store may be shared by loader threads. Database errors propagate as
    psycopg2 exceptions.'''

    def __init__(self, connector, schema=core.DEFAULT_SCHEMA):
        self.connector = connector
        self.schema = schema
        self.schemaSQL = sql.Identifier(schema)
        self.logger = core.EmptyLogger()

    def logTo(self, logger):
        self.logger = logger

    def tableSQL(self, table):
        return sql.SQL('{schema}.{table}').format(
            schema=self.schemaSQL, table=sql.Identifier(table)
        )

    def dropTable(self, table):
        with self.connector.connect() as cur:
            qry = sql.SQL('DROP TABLE IF EXISTS {tabledef};').format(
                tabledef=self.tableSQL(table)
            ).as_string(cur)
            self.logger.debug('dropping table: %s', qry)
            cur.execute(qry)

    def createTable(self, table, fieldNames, srid):
        with self.connector.connect() as cur:
            fieldDefs = sql.SQL(', ').join(
                [sql.SQL('{idField} bigint GENERATED BY DEFAULT AS IDENTITY').format(
                    idField=sql.Identifier(core.ID_FIELD)
                )] +
                [sql.SQL('{} text').format(sql.Identifier(name)) for name in fieldNames] +
                [sql.SQL('{geomField} geometry(Geometry,{srid})').format(
                    geomField=sql.Identifier(core.GEOMETRY_FIELD),
                    srid=sql.Literal(srid),
                )]
            )
            qry = sql.SQL('CREATE TABLE {tabledef} ({fieldDefs});').format(
                tabledef=self.tableSQL(table),
                fieldDefs=fieldDefs,
            ).as_string(cur)
            self.logger.debug('creating table: %s', qry)
            cur.execute(qry)

    def copyRows(self, table, columns, records):
        with self.connector.connect() as cur:
            lockqry = sql.SQL('LOCK TABLE {tabledef} IN EXCLUSIVE MODE;').format(
                tabledef=self.tableSQL(table)
            ).as_string(cur)
            cur.execute(lockqry)
            copyqry = sql.SQL('COPY {tabledef} ({columns}) FROM STDIN;').format(
                tabledef=self.tableSQL(table),
                columns=sql.SQL(', ').join([sql.Identifier(col) for col in columns]),
            ).as_string(cur)
            cur.copy_expert(copyqry, copyBuffer(records))

    def createPrimaryKey(self, table):
        indexName = makeIndexName('pk_', table)
        with self.connector.connect() as cur:
            qry = sql.SQL('''
                ALTER TABLE {tabledef} ADD CONSTRAINT {indexName} PRIMARY KEY ({idField});
                CLUSTER {tabledef} USING {indexName};
            ''').format(
                tabledef=self.tableSQL(table),
                indexName=sql.Identifier(indexName),
                idField=sql.Identifier(core.ID_FIELD),
            ).as_string(cur)
            self.logger.debug('creating primary key: %s', qry)
            cur.execute(qry)
        return indexName

    def createSpatialIndex(self, table, bbox=None):
        indexName = makeIndexName('sidx_', table, '_' + core.GEOMETRY_FIELD)
        with self.connector.connect() as cur:
            qry = sql.SQL('''
                CREATE INDEX {indexName}
                ON {tabledef} USING GIST ({geomField});
            ''').format(
                indexName=sql.Identifier(indexName),
                tabledef=self.tableSQL(table),
                geomField=sql.Identifier(core.GEOMETRY_FIELD),
            )
            if bbox is not None:
                qry += sql.SQL('COMMENT ON INDEX {schema}.{indexName} IS {box};').format(
                    schema=self.schemaSQL,
                    indexName=sql.Identifier(indexName),
                    box=sql.Literal(boxText(bbox)),
                )
            qry = qry.as_string(cur)
            self.logger.debug('creating spatial index: %s', qry)
            cur.execute(qry)
        return indexName


def boxText(bbox):
    return 'BOX({} {},{} {})'.format(*bbox)
