'''Bulk-load every layer of a spatial data file into PostGIS.

Opens any multi-layer file readable through GDAL/OGR/Fiona (typically an OSM
PBF or XML extract) and loads each layer into its own table in the given
schema, replacing tables left by previous runs. Features are reprojected
on the way and copied in batches by several threads; primary keys and
spatial indexes are created once all data is in.
'''

import sys

import geobulk

argparser = geobulk.defaultArgumentParser(__doc__)
argparser.add_argument('-b', '--batch-size', metavar='rows',
    help='rows per bulk copy', type=int, default=None
)
argparser.add_argument('-t', '--threads', metavar='count',
    help='number of concurrent writer threads', type=int, default=None
)
argparser.add_argument('-s', '--source-srid', metavar='srid',
    help='SRID of the source data (default: 4326)', type=int, default=None
)
argparser.add_argument('-r', '--target-srid', metavar='srid',
    help='SRID of the created tables (default: 3857)', type=int, default=None
)
argparser.add_argument('--tmp-dir', metavar='dir',
    help='directory for temporary files of the source driver'
)
argparser.add_argument('--tmp-file-size', metavar='MB',
    help='maximum size of the OSM driver temporary node file', type=int, default=None
)
argparser.add_argument('--osm-conf', metavar='conffile',
    help='OSM driver configuration file (osmconf.ini)'
)
argparser.add_argument('file', help='spatial data file openable by Fiona')


def main(argv=None):
    args = argparser.parse_args(argv)
    try:
        geobulk.BulkLoader.fromConfig(
            args.dbconf, args.loadconf, args.schema
        ).run(
            path=args.file,
            batch_size=args.batch_size,
            threads=args.threads,
            source_srid=args.source_srid,
            target_srid=args.target_srid,
            tmp_dir=args.tmp_dir,
            tmp_file_size=args.tmp_file_size,
            osm_config_file=args.osm_conf,
        )
    except Exception as exc:
        # already logged with traceback by the task
        print('load failed: {}'.format(exc), file=sys.stderr)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
