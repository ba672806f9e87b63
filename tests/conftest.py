"""
Shared fixtures. FakeRunner stands in for the accurev executable so no test spawns a process.
"""
import time
import threading

import pytest

from accommand import AcContext, CommandRunner, CommandLine, Cancelled, Timeout


class FakeRunner(CommandRunner):
    """Answers accurev command lines from a table of canned responses.

    Every invocation is recorded, and the number of invocations running at the same time is tracked
    so tests can check the pool bound. An unknown command line fails with exit code 1.
    """

    def __init__(self):
        super(FakeRunner, self).__init__(accurevCmd="accurev")
        self.responses = {}
        self.calls = []
        self.active = 0
        self.maxActive = 0
        self._lock = threading.Lock()

    def Add(self, args, stdout="", retVal=0, stderr="", delay=0):
        self.responses[CommandLine(args)] = (retVal, stdout, stderr, delay)

    def Count(self, args):
        key = CommandLine(args)
        with self._lock:
            return len([ c for c in self.calls if c == key ])

    def _Execute(self, args, command, token, timeout):
        key = CommandLine(args)
        with self._lock:
            self.calls.append(key)
            self.active += 1
            self.maxActive = max(self.maxActive, self.active)
        try:
            response = self.responses.get(key)
            if response is None:
                return 1, "", "Unexpected command: {0}".format(key)
            retVal, stdout, stderr, delay = response

            startTime = time.monotonic()
            while time.monotonic() - startTime < delay:
                if token is not None and token.IsCancelled():
                    raise Cancelled(command)
                if timeout is not None and time.monotonic() - startTime > timeout:
                    raise Timeout(command, timeout)
                time.sleep(0.005)

            return retVal, stdout, stderr
        finally:
            with self._lock:
                self.active -= 1


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def context(runner):
    return AcContext(runner=runner, maxConcurrent=4, timezone="UTC")


DEPOTS_XML = """<AcResponse Command="show depots">
  <Element Number="1" Name="NEPTUNE" Slice="1" exclusiveLocking="false" case="insensitive" locWidth="128"/>
  <Element Number="2" Name="MARS" Slice="2" exclusiveLocking="true" case="sensitive" locWidth="128"/>
</AcResponse>"""

NEPTUNE_STREAMS_XML = """<streams>
  <stream name="NEPTUNE" depotName="NEPTUNE" streamNumber="1" isDynamic="true" type="normal" startTime="1400000000" hasDefaultGroup="false"/>
  <stream name="NEPTUNE_DEV" basis="NEPTUNE" basisStreamNumber="1" depotName="NEPTUNE" streamNumber="2" isDynamic="true" type="normal" startTime="1400000100" hasDefaultGroup="true"/>
  <stream name="NEPTUNE_SNAP" basis="NEPTUNE" basisStreamNumber="1" depotName="NEPTUNE" streamNumber="3" isDynamic="false" type="snapshot" time="1400000200" startTime="1400000200" hasDefaultGroup="false"/>
  <stream name="NEPTUNE_DEV_joe" basis="NEPTUNE_DEV" basisStreamNumber="2" depotName="NEPTUNE" streamNumber="4" isDynamic="false" type="workspace" startTime="1400000300" hasDefaultGroup="false"/>
</streams>"""

MARS_STREAMS_XML = """<streams>
  <stream name="MARS" depotName="MARS" streamNumber="1" isDynamic="true" type="normal" startTime="1400000000" hasDefaultGroup="false"/>
</streams>"""


@pytest.fixture
def repository(runner):
    """Two depots, NEPTUNE with four streams and MARS with one."""
    runner.Add([ "show", "-fx", "depots" ], DEPOTS_XML)
    runner.Add([ "show", "-fxg", "-p", "NEPTUNE", "streams" ], NEPTUNE_STREAMS_XML)
    runner.Add([ "show", "-fxg", "-p", "MARS", "streams" ], MARS_STREAMS_XML)
    runner.Add([ "show", "-p", "NEPTUNE", "-fx", "-s", "1", "-r", "streams" ], NEPTUNE_STREAMS_XML)
    return runner
