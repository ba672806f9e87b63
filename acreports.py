#!/usr/bin/python3

# ################################################################################################ #
# AccuRev report script                                                                            #
#                                                                                                  #
# Prints reports on the depots, streams, locks, users, workspaces, properties, rules, sessions    #
# and promotions in an AccuRev repository, restricted by the allow-lists in the configuration file.#
# ################################################################################################ #

import sys
import argparse
import logging
from datetime import datetime

from accommand import AcUtilsError, ConfigurationFailure, IsLoggedIn
from accollections import AcDepots, AcUsers, AcLocks, AcProperties, AcWorkspaces, AcRules, AcSessions
from achist import Hist
from acdatetime import AcTimeRange, acDateFormat
from acconfig import Config, DumpExampleConfigFile, InitializeLogging, PrintConfigSummary

logger = logging.getLogger('acutils.reports')

# ################################################################################################ #
# Script Functions                                                                                 #
# ################################################################################################ #
def LogProgress(done, total):
    logger.debug("  {0}/{1}".format(done, total))

def ParseDate(value):
    for format in (acDateFormat, "%Y/%m/%d", "%Y-%m-%d"):
        try:
            return datetime.strptime(value, format)
        except ValueError:
            pass
    raise argparse.ArgumentTypeError("'{0}' is not a date. Expected YYYY/MM/DD [HH:MM:SS].".format(value))

def InitDepots(context, config, dynamicOnly=False, includeHidden=False):
    depots = AcDepots(context, dynamicOnly=dynamicOnly, includeHidden=includeHidden)
    if not depots.Init(config.depots, progress=LogProgress):
        return None
    return depots

def ReportDepots(context, config, args):
    depots = InitDepots(context, config)
    if depots is None:
        return False
    for depot in depots:
        print(depot.Format('LV'))
    return True

def ReportStreams(context, config, args):
    depots = InitDepots(context, config, dynamicOnly=args.dynamicOnly, includeHidden=args.includeHidden)
    if depots is None:
        return False
    for depot in depots:
        for stream in depot.streams:
            if config.streams is None or stream.name in config.streams:
                print(stream.Format('LV'))
                print()
    return True

def ReportLocks(context, config, args):
    depots = InitDepots(context, config)
    if depots is None:
        return False
    locks = AcLocks(context)
    if not locks.InitForDepots(depots):
        return False
    for lock in locks:
        print(lock)
    return True

def ReportUsers(context, config, args):
    users = AcUsers(context, includeGroupsList=args.groups)
    if not users.Init(config.users, progress=LogProgress):
        return False
    for user in users:
        if args.groups:
            print("{0}: {1}".format(user.name, ", ".join(sorted(user.groups or []))))
        else:
            print("{0} ({1})".format(user.name, user.principal.status.name))
    return True

def ReportCanView(context, config, args):
    users = AcUsers(context, includeGroupsList=True)
    if not users.Init([ args.user ]):
        return False
    user = users.GetUser(args.user)
    if user is None:
        logger.error("User {0} not found.".format(args.user))
        return False

    depots = InitDepots(context, config)
    if depots is None:
        return False
    canView = depots.CanView(user)
    if canView is None:
        return False
    print("{0}: {1}".format(user.name, canView))
    return True

def ReportWorkspaces(context, config, args):
    depots = InitDepots(context, config)
    if depots is None:
        return False
    workspaces = AcWorkspaces(context, depots=depots, allWSpaces=args.allWSpaces, includeRefTrees=args.includeRefTrees)
    if not workspaces.Init():
        return False
    for ws in workspaces:
        print(ws.Format('LV'))
    return True

def ReportProperties(context, config, args):
    depots = InitDepots(context, config)
    if depots is None:
        return False
    success = True
    for depot in depots:
        properties = AcProperties(context)
        if not properties.InitForStream(depot.name):
            success = False
            continue
        for prop in properties:
            print(prop)
    return success

def ReportRules(context, config, args):
    rules = AcRules(context, explicitOnly=args.explicitOnly)
    if not rules.Init(args.stream):
        return False
    for rule in rules:
        print(rule)
    return True

def ReportSessions(context, config, args):
    sessions = AcSessions(context)
    if not sessions.Init():
        return False
    for session in sessions:
        print(session)
    return True

def ReportPromotions(context, config, args):
    depots = args.depots
    if len(depots) == 0:
        depots = config.depots
    if depots is None or len(depots) == 0:
        logger.error("No depots given and none configured.")
        return False

    hist = Hist(context, timeSpec=AcTimeRange(args.startTime, args.endTime), transactionKind="promote")
    if not hist.InitForDepots(depots, progress=LogProgress):
        return False

    promotions = {}
    for transaction in hist:
        promotions[transaction.user] = promotions.get(transaction.user, 0) + 1
    for user in sorted(promotions):
        print("{0}: {1}".format(user, promotions[user]))
    return True

reports = {
    'depots':     ReportDepots,
    'streams':    ReportStreams,
    'locks':      ReportLocks,
    'users':      ReportUsers,
    'can-view':   ReportCanView,
    'workspaces': ReportWorkspaces,
    'properties': ReportProperties,
    'rules':      ReportRules,
    'sessions':   ReportSessions,
    'promotions': ReportPromotions,
}

def PrintRunningTime(referenceTime):
    outMessage = ''
    m, s = divmod((datetime.now() - referenceTime).total_seconds(), 60)
    h, m = divmod(m, 60)

    outMessage += "{h: >2d}:{m:0>2d}:{s:0>5.2f}".format(h=int(h), m=int(m), s=s)

    logger.info("Running time was {timeStr}".format(timeStr=outMessage))

# ################################################################################################ #
# Script Main                                                                                      #
# ################################################################################################ #
def CreateArgumentParser(configFilename):
    defaultExampleConfigFilename = '{0}.example.xml'.format(configFilename)

    parser = argparse.ArgumentParser(description="Reports on an AccuRev repository. Configuration of the script is done with a configuration file whose filename is `{0}` by default. The filename can be overridden by providing the `-c` option described below.".format(configFilename))
    parser.add_argument('-c', '--config', dest='configFilename', default=configFilename, metavar='<config-filename>', help="The XML configuration file for this script. By default this filename is set to be `{0}`.".format(configFilename))
    parser.add_argument('-v', '--verbose', dest='debug', action='store_const', const=True, help="Print the script debug information. Makes the script more verbose.")
    parser.add_argument('-L', '--log-file', dest='logFile', metavar='<log-filename>', help="Sets the filename to which all console output will be logged (console output is still printed).")
    parser.add_argument('--example-config', nargs='?', dest='exampleConfigFilename', const=defaultExampleConfigFilename, default=None, metavar='<example-config-filename>', help="Generates an example configuration file and exits. If the filename isn't specified a default filename '{0}' is used.".format(defaultExampleConfigFilename))

    subparsers = parser.add_subparsers(dest='report', metavar='<report>')

    subparsers.add_parser('depots', help="The depots with their slice, case sensitivity and locking mode.")

    streamsParser = subparsers.add_parser('streams', help="The streams in each depot.")
    streamsParser.add_argument('--dynamic-only', dest='dynamicOnly', action='store_const', const=True, default=False, help="Only list dynamic streams.")
    streamsParser.add_argument('--hidden', dest='includeHidden', action='store_const', const=True, default=False, help="Include hidden (removed) streams.")

    subparsers.add_parser('locks', help="The locks on streams in the depots.")

    usersParser = subparsers.add_parser('users', help="The users in the repository.")
    usersParser.add_argument('--groups', dest='groups', action='store_const', const=True, default=False, help="Also list the groups each user is a member of. Runs one accurev command per user.")

    canViewParser = subparsers.add_parser('can-view', help="The depots a user has permission to view. A + marks inheritable access.")
    canViewParser.add_argument('user', metavar='<user>')

    workspacesParser = subparsers.add_parser('workspaces', help="The workspaces in the depots.")
    workspacesParser.add_argument('--all', dest='allWSpaces', action='store_const', const=True, default=False, help="Include the workspaces of all users, not just your own.")
    workspacesParser.add_argument('--reftrees', dest='includeRefTrees', action='store_const', const=True, default=False, help="Include reference trees.")

    subparsers.add_parser('properties', help="The stream properties in the depots.")

    rulesParser = subparsers.add_parser('rules', help="The include/exclude rules of a stream.")
    rulesParser.add_argument('stream', metavar='<stream>')
    rulesParser.add_argument('--explicit', dest='explicitOnly', action='store_const', const=True, default=False, help="Only list the rules set on the stream itself.")

    subparsers.add_parser('sessions', help="The active login sessions.")

    promotionsParser = subparsers.add_parser('promotions', help="The number of promotions made by each user in a time range.")
    promotionsParser.add_argument('depots', nargs='*', metavar='<depot>', help="The depots to query. Defaults to the configured depots.")
    promotionsParser.add_argument('--from', dest='startTime', type=ParseDate, required=True, metavar='<date>')
    promotionsParser.add_argument('--to', dest='endTime', type=ParseDate, required=True, metavar='<date>')

    return parser

def AcReportsMain(argv, runner=None):
    configFilename = Config.FilenameFromScriptName(argv[0])
    parser = CreateArgumentParser(configFilename)
    args = parser.parse_args(argv[1:])

    # Dump example config if specified
    if args.exampleConfigFilename is not None:
        return DumpExampleConfigFile(args.exampleConfigFilename)

    if args.report is None:
        parser.print_usage(sys.stderr)
        return 1

    try:
        config = Config.fromfile(filename=args.configFilename)
    except ConfigurationFailure as e:
        sys.stderr.write("{0}\n".format(e))
        return 1
    if config is None:
        sys.stderr.write("Config file '{0}' not found.\n".format(args.configFilename))
        return 1

    if args.logFile is not None:
        config.logFilename = args.logFile

    loggingLevel = logging.DEBUG if args.debug else logging.INFO
    InitializeLogging(config.logFilename, loggingLevel)

    context = config.CreateContext(runner=runner)

    try:
        if not IsLoggedIn(context):
            sys.stderr.write("Not logged in to AccuRev. Run 'accurev login' first.\n")
            return 1
    except AcUtilsError as e:
        sys.stderr.write("Failed to query the AccuRev login state.\n{0}\n".format(e))
        return 1

    startTime = datetime.now()
    try:
        PrintConfigSummary(config, args.configFilename, context)
        success = reports[args.report](context, config, args)
        PrintRunningTime(referenceTime=startTime)
    except Exception:
        logger.exception("The script has encountered an exception, aborting!")
        raise

    if not success:
        logger.error("The {0} report failed. See the log for details.".format(args.report))
        return 1
    return 0

def main():
    sys.exit(AcReportsMain(sys.argv))

# ################################################################################################ #
# Script Start                                                                                     #
# ################################################################################################ #
if __name__ == "__main__":
    main()
