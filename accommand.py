# ################################################################################################ #
# AccuRev command layer                                                                            #
#                                                                                                  #
# Runs the accurev command line client in a subprocess and turns its exit status into either an   #
# AcResult or one of the AcUtilsError exceptions defined below.                                    #
# ################################################################################################ #

import os
import re
import time
import logging
import subprocess

logger = logging.getLogger('acutils.command')

# ################################################################################################ #
# Script Globals                                                                                   #
# ################################################################################################ #
defaultMaxConcurrent = 8
maxConcurrentEnvVar = 'ACUTILS_MAXCONCURRENT'

# stderr text that accurev emits for every command run outside of a workspace.
ignoredErrorText = "You are not in a directory associated with a workspace"

# ################################################################################################ #
# Errors                                                                                           #
# ################################################################################################ #
class AcUtilsError(Exception):
    pass

class CommandFailure(AcUtilsError):
    def __init__(self, retVal, command, diagnostic=None):
        self.retVal     = retVal
        self.command    = command
        self.diagnostic = diagnostic

        message = "AccuRev program return: {0}\n{1}".format(retVal, command)
        if diagnostic:
            message += "\n" + diagnostic.strip()
        super(CommandFailure, self).__init__(message)

class Timeout(CommandFailure):
    def __init__(self, command, seconds):
        self.seconds = seconds
        super(Timeout, self).__init__(None, command, "Timed out after {0} seconds.".format(seconds))

class Cancelled(AcUtilsError):
    def __init__(self, what):
        self.what = what
        super(Cancelled, self).__init__("Cancelled: {0}".format(what))

class ParseFailure(AcUtilsError):
    def __init__(self, message, command=None, text=None):
        self.command = command
        self.text    = text
        if command is not None:
            message = "{0}\n{1}".format(message, command)
        super(ParseFailure, self).__init__(message)

class DecodeFailure(AcUtilsError):
    def __init__(self, field, value):
        self.field = field
        self.value = value
        super(DecodeFailure, self).__init__("Unrecognized value {0!r} for field '{1}'.".format(value, field))

class ConfigurationFailure(AcUtilsError):
    def __init__(self, message, filename=None):
        self.filename = filename
        if filename is not None:
            message = "{0}: {1}".format(filename, message)
        super(ConfigurationFailure, self).__init__(message)

# Raised for an unknown format specifier. This is a bug at the call site so it is not an AcUtilsError
# and is never caught and logged by the collections.
class UnsupportedFormat(ValueError):
    def __init__(self, format, typeName):
        self.format   = format
        self.typeName = typeName
        super(UnsupportedFormat, self).__init__("The {0} format string is not supported by {1}.".format(format, typeName))

# ################################################################################################ #
# Script Functions                                                                                 #
# ################################################################################################ #
def CommandLine(args):
    parts = []
    for arg in args:
        arg = str(arg)
        if len(arg) == 0 or ' ' in arg:
            arg = '"{0}"'.format(arg)
        parts.append(arg)
    return ' '.join(parts)

def CmdValidate(args, retVal):
    # diff and merge return 1 when differences are found.
    if retVal == 0:
        return True
    if retVal == 1 and len(args) > 0 and args[0] in ("diff", "merge"):
        return True
    return False

def GetMaxConcurrent(environ=None):
    if environ is None:
        environ = os.environ
    value = environ.get(maxConcurrentEnvVar)
    if value is None:
        return defaultMaxConcurrent
    try:
        maxConcurrent = int(value)
    except ValueError:
        maxConcurrent = 0
    if maxConcurrent < 1:
        logger.error("Ignoring invalid {0} value '{1}', using {2}.".format(maxConcurrentEnvVar, value, defaultMaxConcurrent))
        return defaultMaxConcurrent
    return maxConcurrent

# ################################################################################################ #
# Script Classes                                                                                   #
# ################################################################################################ #
class AcResult(object):
    def __init__(self, retVal, cmdResult, command):
        self.retVal    = retVal
        self.cmdResult = cmdResult
        self.command   = command

    def __repr__(self):
        str = "AcResult(retVal=" + repr(self.retVal)
        str += ", command="      + repr(self.command)
        str += ")"

        return str

class CommandRunner(object):
    """Runs accurev in a subprocess.

    The child process is polled so that a timeout or a cancelled token kills it instead of leaving
    the calling thread blocked in communicate() forever.
    """
    accurevCmd   = "accurev"
    pollInterval = 0.25

    def __init__(self, accurevCmd=None):
        if accurevCmd is not None:
            self.accurevCmd = accurevCmd

    def Run(self, args, token=None, timeout=None):
        args = [ str(a) for a in args ]
        command = CommandLine([ self.accurevCmd ] + args)
        logger.debug(command)

        retVal, stdoutdata, stderrdata = self._Execute(args, command, token, timeout)

        if stderrdata and not stderrdata.startswith(ignoredErrorText):
            logger.warning("{0}\n{1}".format(command, stderrdata.strip()))

        if not CmdValidate(args, retVal):
            raise CommandFailure(retVal, command, stderrdata or stdoutdata)

        return AcResult(retVal, stdoutdata, command)

    def _Execute(self, args, command, token, timeout):
        cmd = [ self.accurevCmd ] + args
        try:
            # stdin is redirected or accurev hangs on some commands waiting for console input.
            # accurev writes UTF-8. Bytes that do not decode become U+FFFD rather than failing the command.
            accurevCommand = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE, stdin=subprocess.PIPE,
                                              universal_newlines=True, encoding='utf-8', errors='replace')
        except OSError as e:
            raise CommandFailure(None, command, str(e))

        startTime = time.monotonic()
        while True:
            try:
                stdoutdata, stderrdata = accurevCommand.communicate(timeout=self.pollInterval)
                break
            except subprocess.TimeoutExpired:
                if token is not None and token.IsCancelled():
                    self._Kill(accurevCommand)
                    raise Cancelled(command)
                if timeout is not None and (time.monotonic() - startTime) > timeout:
                    self._Kill(accurevCommand)
                    raise Timeout(command, timeout)

        return accurevCommand.returncode, stdoutdata, stderrdata

    @staticmethod
    def _Kill(process):
        process.kill()
        process.communicate()

class AcContext(object):
    """Per-process state handed to every collection and aggregator: the runner, the bounded pool size,
    the per-invocation timeout and the timezone used for epoch timestamps."""
    def __init__(self, runner=None, maxConcurrent=None, timeout=None, timezone=None):
        if runner is None:
            runner = CommandRunner()
        if maxConcurrent is None:
            maxConcurrent = GetMaxConcurrent()
        if maxConcurrent < 1:
            raise ValueError("maxConcurrent must be at least 1, got {0}".format(maxConcurrent))

        self.runner        = runner
        self.maxConcurrent = maxConcurrent
        self.timeout       = timeout
        self.timezone      = timezone

    def __repr__(self):
        str = "AcContext(maxConcurrent=" + repr(self.maxConcurrent)
        str += ", timeout="              + repr(self.timeout)
        str += ", timezone="             + repr(self.timezone)
        str += ")"

        return str

    def Run(self, args, token=None):
        return self.runner.Run(args, token=token, timeout=self.timeout)

# ################################################################################################ #
# AccuRev Command Extensions                                                                       #
# ################################################################################################ #
infoLineMatcher = re.compile(r'^(.+?):[\s]+(.+)$')

def GetPrincipal(context):
    r = context.Run([ "info" ])
    for line in r.cmdResult.split('\n'):
        match = infoLineMatcher.search(line.strip())
        if match and match.group(1) == "Principal":
            principal = match.group(2).strip()
            if principal == "(not logged in)":
                return None
            return principal
    raise ParseFailure("No Principal line in accurev info output.", command=r.command, text=r.cmdResult)

def IsLoggedIn(context):
    return GetPrincipal(context) is not None

# The exit code of ismember is zero whether or not the user is a member. The answer is the first
# character of its output.
def IsMember(context, user, group):
    r = context.Run([ "ismember", user, group ])
    return r.cmdResult.startswith('1')
