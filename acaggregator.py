# ################################################################################################ #
# Concurrent aggregation of accurev command results                                                #
#                                                                                                  #
# Fans a batch of independent accurev invocations out over a bounded thread pool and folds each    #
# successful result into a shared collection under a single lock.                                  #
# ################################################################################################ #

import threading
import logging
from concurrent.futures import ThreadPoolExecutor, Future, as_completed

from accommand import AcUtilsError, Cancelled

logger = logging.getLogger('acutils.aggregator')

# ################################################################################################ #
# Script Classes                                                                                   #
# ################################################################################################ #
class CancellationToken(object):
    def __init__(self, parent=None):
        self._event  = threading.Event()
        self._parent = parent

    def Cancel(self):
        self._event.set()

    def IsCancelled(self):
        if self._event.is_set():
            return True
        return self._parent is not None and self._parent.IsCancelled()

    def Check(self, what):
        if self.IsCancelled():
            raise Cancelled(what)

class ComputeOnce(object):
    """Runs func at most once, however many threads race to Get() it first. Every caller gets the
    same result, or the same exception re-raised."""
    def __init__(self, func):
        self._func   = func
        self._lock   = threading.Lock()
        self._future = None

    def IsStarted(self):
        return self._future is not None

    def Get(self):
        future = self._future
        if future is not None and future.done():
            return future.result()

        with self._lock:
            future = self._future
            isOwner = future is None
            if isOwner:
                future = Future()
                self._future = future

        if isOwner:
            try:
                future.set_result(self._func())
            except Exception as e:
                future.set_exception(e)

        return future.result()

class Aggregator(object):
    """Runs operation(item, token) for every work item on a pool of at most context.maxConcurrent
    threads. Each successful result is passed to merge(item, result) on the worker thread while the
    aggregator's lock is held, so merge must only insert.

    WAIT_ALL: the first failure cancels the shared token. Pending items never start, running
    commands are killed at their next poll and no further merges happen.

    AS_COMPLETED: every item runs to completion and every failure is logged, then the run reports
    failure if any item failed.

    Run() returns True only if every item succeeded. Expected failures (AcUtilsError) are logged
    here. Anything else is a bug and is re-raised after the siblings are cancelled.
    """
    WAIT_ALL     = 'wait-all'
    AS_COMPLETED = 'as-completed'

    def __init__(self, context, mode=WAIT_ALL, name=None, lock=None):
        if mode not in (Aggregator.WAIT_ALL, Aggregator.AS_COMPLETED):
            raise ValueError("Unknown aggregation mode {0!r}".format(mode))
        if lock is None:
            lock = threading.Lock()

        self.context = context
        self.mode    = mode
        self.name    = name if name is not None else "aggregation"
        self._lock   = lock

    def __repr__(self):
        str = "Aggregator(name=" + repr(self.name)
        str += ", mode="         + repr(self.mode)
        str += ")"

        return str

    def Run(self, workItems, operation, merge, progress=None, token=None):
        workItems = list(workItems)
        total = len(workItems)
        if total == 0:
            return True

        token = CancellationToken(parent=token)
        failed = []
        maxWorkers = min(self.context.maxConcurrent, total)

        logger.debug("{0}: {1} items, {2} workers, {3}".format(self.name, total, maxWorkers, self.mode))
        with ThreadPoolExecutor(max_workers=maxWorkers, thread_name_prefix=self.name) as executor:
            futures = {}
            for item in workItems:
                futures[executor.submit(self._RunItem, item, operation, merge, token)] = item

            done = 0
            for future in as_completed(futures):
                item = futures[future]
                done += 1
                if future.cancelled():
                    failed.append(item)
                    continue

                try:
                    future.result()
                except Cancelled as e:
                    logger.debug("{0}: {1} cancelled. {2}".format(self.name, item, e))
                    failed.append(item)
                except AcUtilsError as e:
                    logger.error("{0}: {1} failed.\n{2}".format(self.name, item, e))
                    failed.append(item)
                    if self.mode == Aggregator.WAIT_ALL:
                        self._CancelAll(token, futures)
                except Exception:
                    self._CancelAll(token, futures)
                    raise

                if progress is not None:
                    progress(done, total)

        if len(failed) > 0:
            logger.error("{0}: {1} of {2} items failed.".format(self.name, len(failed), total))
            return False
        return True

    def _RunItem(self, item, operation, merge, token):
        token.Check(item)
        result = operation(item, token)
        with self._lock:
            if self.mode == Aggregator.WAIT_ALL:
                token.Check(item)
            merge(item, result)

    @staticmethod
    def _CancelAll(token, futures):
        token.Cancel()
        for future in futures:
            future.cancel()
