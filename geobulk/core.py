import sys
import os
import logging
import logging.handlers
import contextlib
import json

import psycopg2.pool


ROOT_PATH = os.path.normpath(os.path.join(os.path.dirname(__file__), '..'))
LOG_PATH = os.path.join(ROOT_PATH, 'log')
CONFIG_PATH = os.path.join(ROOT_PATH, 'config')

def configPath(filename):
    return os.path.join(CONFIG_PATH, filename)

DEFAULT_DB_CONF_PATH = configPath('dbconn.json')
DEFAULT_LOAD_CONF_PATH = configPath('bulkload.json')

DEFAULT_SCHEMA = 'public'
ID_FIELD = 'id'
GEOMETRY_FIELD = 'ogr_geometry'

# no statement may time out: index builds and copies run for hours
NO_TIMEOUT_OPTIONS = '-c statement_timeout=0'


class Error(Exception):
    pass

class ConfigError(Error):
    pass

class SourceError(Error):
    pass

class SchemaError(Error):
    pass

class LoadError(Error):
    pass

class IndexingError(Error):
    pass

class ProjectionError(Error):
    pass


class Task:
    activeLoggers = []

    def __init__(self, schema=None):
        self.schema = schema if schema else DEFAULT_SCHEMA
        self._startLogging()

    def _startLogging(self):
        self.logname = 'geobulk.' + self.__class__.__name__.lower()
        if self.schema:
            self.logname += ('.' + self.schema)
        self.logger = logging.getLogger(self.logname)
        if self.logger not in self.activeLoggers:
            self.logger.setLevel(logging.DEBUG)
            os.makedirs(LOG_PATH, exist_ok=True)
            fileHandler = logging.handlers.RotatingFileHandler(
                os.path.join(LOG_PATH, self.logname + '.log'),
                maxBytes=10000000,
                backupCount=3
            )
            fileHandler.setLevel(logging.DEBUG)
            stdoutHandler = logging.StreamHandler(sys.stdout)
            stdoutHandler.setLevel(logging.INFO)
            formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s: %(message)s')
            for handler in (fileHandler, stdoutHandler):
                handler.setFormatter(formatter)
                self.logger.addHandler(handler)
            self.activeLoggers.append(self.logger)
            self.logger.debug('logging started')

    def run(self, *args, **kwargs):
        self.logger.debug('starting %s', self.logname)
        try:
            result = self.main(*args, **kwargs)
        except Exception as exc:
            self.logger.exception(exc)
            raise
        self.logger.debug('successfully finished %s', self.logname)
        return result

    def main(self, *args, **kwargs):
        raise NotImplementedError


class DatabaseTask(Task):
    def __init__(self, connector, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.connector = connector
        self.connector.logTo(self.logger)


class Connector:
    '''Hands out pooled psycopg2 connections to any number of threads.

    The pool is created lazily on first use and sized by `setPoolSize()`;
    every connection runs without a statement timeout.'''

    def __init__(self, config):
        self.config = config
        self.maxConnections = 1
        self.pool = None
        self.logger = EmptyLogger()

    def logTo(self, logger):
        self.logger = logger

    @classmethod
    def fromConfig(cls, config):
        if config is None:
            config = DEFAULT_DB_CONF_PATH
        if isinstance(config, str):
            config = loadConfig(config)
        return cls(config)

    def setPoolSize(self, size):
        if self.pool is not None:
            raise ConfigError('connection pool already open')
        self.maxConnections = max(1, size)

    def connectionParams(self):
        params = dict(self.config)
        options = params.get('options')
        params['options'] = (options + ' ' if options else '') + NO_TIMEOUT_OPTIONS
        return params

    def _getPool(self):
        if self.pool is None:
            self.logger.debug(
                'opening connection pool to database %s (max %d connections)',
                self.config.get('dbname'), self.maxConnections
            )
            self.pool = psycopg2.pool.ThreadedConnectionPool(
                1, self.maxConnections, **self.connectionParams()
            )
        return self.pool

    @contextlib.contextmanager
    def connect(self, autocommit=False):
        pool = self._getPool()
        connection = pool.getconn()
        connection.autocommit = autocommit
        try:
            with connection.cursor() as cursor:
                yield cursor
        except Exception:
            if not autocommit:
                connection.rollback()
            raise
        else:
            if not autocommit:
                self.logger.debug('committing database transaction')
                connection.commit()
        finally:
            pool.putconn(connection)

    def close(self):
        if self.pool is not None:
            self.logger.debug('closing connection pool')
            self.pool.closeall()
            self.pool = None


class EmptyLogger:
    def __bool__(self):
        return False

    def info(self, *args, **kwargs):
        pass

    def debug(self, *args, **kwargs):
        pass

    def warning(self, *args, **kwargs):
        pass


def loadConfig(path):
    try:
        with open(path, encoding='utf8') as infile:
            return json.load(infile)
    except (OSError, ValueError) as err:
        raise ConfigError('cannot read configuration file {}: {}'.format(path, err)) from err
