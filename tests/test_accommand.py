"""
Tests for the accurev command layer: exit status validation, error kinds, context and info parsing.
"""
import os
import sys
import stat

import pytest

from accommand import (AcContext, CommandRunner, AcUtilsError, CommandFailure, Timeout, Cancelled, ParseFailure,
                       CommandLine, CmdValidate, GetMaxConcurrent, GetPrincipal, IsLoggedIn, IsMember,
                       defaultMaxConcurrent, maxConcurrentEnvVar)
from acaggregator import CancellationToken
from accollections import AcDepots

INFO_LOGGED_IN = """Shell:          /bin/bash
Principal:      joe_bloggs
Host:           build01
Domain:         (none)
Server name:    accurev.example.com
Port:           5050
"""

INFO_LOGGED_OUT = """Shell:          /bin/bash
Principal:      (not logged in)
Host:           build01
"""


class TestCommandLine:

    def test_quotes_arguments_with_spaces(self):
        assert CommandLine([ "accurev", "lock", "-c", "release freeze", "NEPTUNE" ]) == 'accurev lock -c "release freeze" NEPTUNE'

    def test_quotes_empty_arguments(self):
        assert CommandLine([ "accurev", "lsacl", "-fx", "depot", "" ]) == 'accurev lsacl -fx depot ""'


class TestCmdValidate:

    def test_zero_is_success(self):
        assert CmdValidate([ "show", "depots" ], 0)

    def test_one_is_failure_for_most_commands(self):
        assert not CmdValidate([ "show", "depots" ], 1)

    @pytest.mark.parametrize("command", [ "diff", "merge" ])
    def test_one_means_differences_for_diff_and_merge(self, command):
        assert CmdValidate([ command, "-a" ], 1)
        assert not CmdValidate([ command, "-a" ], 2)


class TestErrors:

    def test_timeout_is_a_command_failure(self):
        e = Timeout("accurev show depots", 30)
        assert isinstance(e, CommandFailure)
        assert isinstance(e, AcUtilsError)
        assert e.seconds == 30
        assert "30" in str(e)

    def test_command_failure_message_has_command_and_diagnostic(self):
        e = CommandFailure(2, "accurev show depots", "Not authorized.\n")
        assert e.retVal == 2
        assert "accurev show depots" in str(e)
        assert "Not authorized." in str(e)


class TestRunner:

    def test_success_returns_result(self, runner, context):
        runner.Add([ "show", "-fx", "depots" ], "<AcResponse/>")
        r = context.Run([ "show", "-fx", "depots" ])
        assert r.retVal == 0
        assert r.cmdResult == "<AcResponse/>"
        assert r.command == "accurev show -fx depots"

    def test_nonzero_exit_raises_command_failure(self, runner, context):
        runner.Add([ "show", "-fx", "depots" ], "", retVal=1, stderr="Not authorized")
        with pytest.raises(CommandFailure) as excinfo:
            context.Run([ "show", "-fx", "depots" ])
        assert excinfo.value.retVal == 1
        assert excinfo.value.diagnostic == "Not authorized"

    def test_timeout(self, runner):
        runner.Add([ "show", "-fx", "users" ], "<AcResponse/>", delay=5)
        context = AcContext(runner=runner, maxConcurrent=1, timeout=0.05)
        with pytest.raises(Timeout):
            context.Run([ "show", "-fx", "users" ])

    def test_cancelled_token(self, runner, context):
        runner.Add([ "show", "-fx", "users" ], "<AcResponse/>", delay=5)
        token = CancellationToken()
        token.Cancel()
        with pytest.raises(Cancelled):
            context.Run([ "show", "-fx", "users" ], token=token)


FAKE_ACCUREV = """#!/bin/sh
if [ "$3" = "depots" ]; then
    printf '<AcResponse><Element Number="1" Name="Caf\\351" Slice="1"/></AcResponse>'
else
    printf '<streams><stream name="Caf\\351_DEV" depotName="Caf\\351" streamNumber="1" isDynamic="true" type="normal" startTime="1400000000"/></streams>'
    printf 'Warning \\377\\376' 1>&2
fi
"""


@pytest.fixture
def fakeAccurev(tmp_path):
    filename = str(tmp_path / "accurev")
    with open(filename, 'w') as f:
        f.write(FAKE_ACCUREV)
    os.chmod(filename, os.stat(filename).st_mode | stat.S_IXUSR)
    return filename


@pytest.mark.skipif(sys.platform == 'win32', reason="needs a POSIX shell")
class TestSubprocess:

    def test_undecodable_output_is_replaced(self, fakeAccurev):
        context = AcContext(runner=CommandRunner(accurevCmd=fakeAccurev), maxConcurrent=2)
        r = context.Run([ "show", "-fx", "depots" ])
        assert 'Name="Caf\ufffd"' in r.cmdResult

    def test_undecodable_output_in_a_concurrent_load(self, fakeAccurev):
        context = AcContext(runner=CommandRunner(accurevCmd=fakeAccurev), maxConcurrent=2)
        depots = AcDepots(context)
        assert depots.Init()

        depot = depots.GetDepot(1)
        assert depot.name == "Caf\ufffd"
        assert depot.GetStream("Caf\ufffd_DEV") is not None

    def test_missing_program(self, tmp_path):
        context = AcContext(runner=CommandRunner(accurevCmd=str(tmp_path / "missing")), maxConcurrent=1)
        with pytest.raises(CommandFailure):
            context.Run([ "info" ])


class TestContext:

    def test_default_max_concurrent(self):
        assert GetMaxConcurrent({}) == defaultMaxConcurrent

    def test_max_concurrent_from_environment(self):
        assert GetMaxConcurrent({ maxConcurrentEnvVar: "3" }) == 3

    @pytest.mark.parametrize("value", [ "zero", "0", "-2" ])
    def test_invalid_max_concurrent_falls_back(self, value):
        assert GetMaxConcurrent({ maxConcurrentEnvVar: value }) == defaultMaxConcurrent

    def test_rejects_non_positive_max_concurrent(self, runner):
        with pytest.raises(ValueError):
            AcContext(runner=runner, maxConcurrent=0)

    def test_contexts_are_independent(self, runner):
        first = AcContext(runner=runner, maxConcurrent=2)
        second = AcContext(runner=runner, maxConcurrent=5, timezone="UTC")
        assert first.maxConcurrent == 2
        assert second.maxConcurrent == 5
        assert first.timezone is None


class TestInfo:

    def test_principal(self, runner, context):
        runner.Add([ "info" ], INFO_LOGGED_IN)
        assert GetPrincipal(context) == "joe_bloggs"
        assert IsLoggedIn(context)

    def test_not_logged_in(self, runner, context):
        runner.Add([ "info" ], INFO_LOGGED_OUT)
        assert GetPrincipal(context) is None
        assert not IsLoggedIn(context)

    def test_missing_principal_line(self, runner, context):
        runner.Add([ "info" ], "Shell: /bin/bash\n")
        with pytest.raises(ParseFailure):
            GetPrincipal(context)

    def test_is_member(self, runner, context):
        runner.Add([ "ismember", "joe_bloggs", "Developers" ], "1\n")
        runner.Add([ "ismember", "joe_bloggs", "Admins" ], "0\n")
        assert IsMember(context, "joe_bloggs", "Developers")
        assert not IsMember(context, "joe_bloggs", "Admins")
