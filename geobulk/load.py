import concurrent.futures

import psycopg2

from . import core


class LoadScheduler:
    '''Copies batches into their tables on a bounded pool of threads.

    Batches are pulled from the producer only while fewer than `threads`
    are being written, so the producer runs at the pace of the writers.
    Finished copies are checked before every submission, so the first
    failed copy stops the load with no further batch attempted; nothing
    is retried or rolled back.'''

    def __init__(self, store, schemas, threads):
        if threads < 1:
            raise core.ConfigError('thread count must be positive, got {}'.format(threads))
        self.store = store
        self.schemas = schemas
        self.threads = threads
        self.batchCount = 0
        self.rowCount = 0
        self.logger = core.EmptyLogger()

    def logTo(self, logger):
        self.logger = logger

    def run(self, batches):
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=self.threads, thread_name_prefix='geobulk-load'
        )
        batches = iter(batches)
        pending = set()
        try:
            while True:
                # wait for a free writer before asking the producer for more
                if len(pending) >= self.threads:
                    pending = self.collect(pending, concurrent.futures.FIRST_COMPLETED)
                batch = next(batches, None)
                if batch is None:
                    break
                # a copy may have failed while the producer was busy
                pending = self.collect(pending, concurrent.futures.FIRST_COMPLETED, timeout=0)
                pending.add(executor.submit(self.write, batch))
            self.collect(pending, concurrent.futures.ALL_COMPLETED)
        except BaseException:
            executor.shutdown(wait=False, cancel_futures=True)
            raise
        executor.shutdown(wait=True)
        self.logger.info('%d rows written in %d batches', self.rowCount, self.batchCount)
        return self.batchCount, self.rowCount

    def collect(self, pending, returnWhen, timeout=None):
        done, pending = concurrent.futures.wait(
            pending, timeout=timeout, return_when=returnWhen
        )
        for future in done:
            batch, count = future.result()
            self.batchCount += 1
            self.rowCount += count
        return pending

    def write(self, batch):
        schema = self.schemas[batch.layer]
        self.logger.debug('writing %d rows to %s', len(batch), schema.table)
        try:
            self.store.copyRows(
                schema.table,
                schema.columns,
                [schema.record(row) for row in batch.rows]
            )
        except psycopg2.Error as err:
            raise core.LoadError(
                'cannot write {} rows to {}: {}'.format(len(batch), schema.table, err)
            ) from err
        return batch, len(batch)
