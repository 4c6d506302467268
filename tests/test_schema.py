import pytest

from geobulk import core, extract, schema, source

from conftest import FakeStore


def test_table_columns_mirror_layer_fields(osmLayers, fakeStore):
    manager = schema.SchemaManager(fakeStore, 3857)
    rowSchema = manager.createTable(osmLayers[0])
    assert rowSchema.tableColumns == ['id', 'osm_id', 'name', 'ogr_geometry']
    assert rowSchema.columns == ['osm_id', 'name', 'ogr_geometry']
    assert fakeStore.calls == [('create', 'points', ('osm_id', 'name'), 3857)]


def test_prepare_drops_before_creating(osmLayers, fakeStore):
    schemas = schema.SchemaManager(fakeStore, 3857).prepare(osmLayers)
    assert [call[:2] for call in fakeStore.calls] == [
        ('drop', 'points'), ('drop', 'lines'),
        ('create', 'points'), ('create', 'lines'),
    ]
    assert set(schemas) == {'points', 'lines'}
    assert schemas['lines'].fieldNames == ['osm_id', 'highway']


def test_prepare_twice_gives_identical_tables(osmLayers):
    first, second = FakeStore(), FakeStore()
    schemasA = schema.SchemaManager(first, 3857).prepare(osmLayers)
    schemasB = schema.SchemaManager(second, 3857).prepare(osmLayers)
    assert first.calls == second.calls
    assert schemasA == schemasB


def test_record_follows_column_order():
    rowSchema = schema.RowSchema('points', ['osm_id', 'name', 'amenity'])
    row = extract.Row({'amenity' : 'pub', 'osm_id' : '7'}, b'\x01')
    assert rowSchema.record(row) == ('7', None, 'pub', b'\x01')


def test_reserved_field_name_rejected_before_ddl(fakeStore):
    layer = source.LayerInfo('points', [('ID', 'int'), ('name', 'str')])
    with pytest.raises(core.SchemaError):
        schema.SchemaManager(fakeStore, 3857).createTable(layer)
    assert fakeStore.calls == []


def test_drop_failure_is_schema_error(osmLayers):
    with pytest.raises(core.SchemaError, match='cannot drop table points'):
        schema.SchemaManager(FakeStore(failOn={'drop'}), 3857).prepare(osmLayers)


def test_create_failure_is_schema_error(osmLayers):
    with pytest.raises(core.SchemaError, match='cannot create table'):
        schema.SchemaManager(FakeStore(failOn={'create'}), 3857).prepare(osmLayers)
