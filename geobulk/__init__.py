import argparse

from .core import Error, Connector
from .pipeline import BulkLoader

def defaultArgumentParser(description, schema=True):
    argparser = argparse.ArgumentParser(description=description)
    argparser.add_argument('-d', '--dbconf', metavar='conffile', help='database connection configuration file')
    argparser.add_argument('-c', '--loadconf', metavar='conffile', help='load settings configuration file')
    if schema:
        argparser.add_argument('schema', help='the target database schema')
    return argparser
