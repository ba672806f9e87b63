# ################################################################################################ #
# acutils configuration                                                                            #
#                                                                                                  #
# XML configuration file shared by the report scripts: depot, stream and principal allow-lists,    #
# the concurrency limit, the accurev command timeout, the timezone and the log file.              #
# ################################################################################################ #

import os
import os.path
import codecs
import logging
import xml.etree.ElementTree as ElementTree

import pytz

from accommand import AcContext, ConfigurationFailure, GetMaxConcurrent

logger = logging.getLogger('acutils.config')

# The logger configured by InitializeLogging(), 'acutils' unless the caller names another.
rootLogger = None

# ################################################################################################ #
# Script Classes                                                                                   #
# ################################################################################################ #
class Config(object):
    class Concurrency(object):
        @classmethod
        def fromxmlelement(cls, xmlElement, filename=None):
            if xmlElement is not None and xmlElement.tag == 'concurrency':
                maxConcurrent = Config.GetIntAttribute(xmlElement, 'max', filename)
                timeout       = Config.GetIntAttribute(xmlElement, 'timeout', filename)
                if maxConcurrent is not None and maxConcurrent < 1:
                    raise ConfigurationFailure("<concurrency max> must be at least 1, got {0}.".format(maxConcurrent), filename=filename)
                if timeout is not None and timeout < 1:
                    raise ConfigurationFailure("<concurrency timeout> must be at least 1 second, got {0}.".format(timeout), filename=filename)

                return cls(maxConcurrent=maxConcurrent, timeout=timeout)
            else:
                return cls()

        def __init__(self, maxConcurrent=None, timeout=None):
            self.maxConcurrent = maxConcurrent
            self.timeout       = timeout

        def __repr__(self):
            str = "Config.Concurrency(maxConcurrent=" + repr(self.maxConcurrent)
            str += ", timeout="                       + repr(self.timeout)
            str += ")"

            return str

    @staticmethod
    def FilenameFromScriptName(scriptName):
        (root, ext) = os.path.splitext(scriptName)
        return root + '.config.xml'

    @staticmethod
    def GetIntAttribute(xmlElement, attribute, filename=None):
        value = xmlElement.attrib.get(attribute)
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            raise ConfigurationFailure("Could not parse the {attr} attribute of <{tag}>. Expected an integer but got '{value}'.".format(attr=attribute, tag=xmlElement.tag, value=value), filename=filename)

    @staticmethod
    def GetNameList(xmlRoot, listTag, itemTag):
        # An absent list means everything is allowed, an empty one means nothing is.
        listElem = xmlRoot.find(listTag)
        if listElem is None:
            return None
        names = []
        for itemElem in listElem.findall(itemTag):
            if itemElem.text is not None and len(itemElem.text.strip()) > 0:
                names.append(itemElem.text.strip())
        return names

    @classmethod
    def fromxmlstring(cls, xmlString, filename=None):
        try:
            xmlRoot = ElementTree.fromstring(xmlString)
        except ElementTree.ParseError as e:
            raise ConfigurationFailure("Invalid XML. {0}".format(e), filename=filename)

        if xmlRoot.tag != "acutils":
            raise ConfigurationFailure("Expected an <acutils> root element but got <{0}>.".format(xmlRoot.tag), filename=filename)

        depots = Config.GetNameList(xmlRoot, 'depots', 'depot')
        streams = Config.GetNameList(xmlRoot, 'streams', 'stream')
        users = Config.GetNameList(xmlRoot, 'users', 'user')
        groups = Config.GetNameList(xmlRoot, 'groups', 'group')

        concurrency = Config.Concurrency.fromxmlelement(xmlRoot.find('concurrency'), filename=filename)

        timezone = None
        timezoneElem = xmlRoot.find('timezone')
        if timezoneElem is not None and timezoneElem.text is not None:
            timezone = timezoneElem.text.strip()
            try:
                pytz.timezone(timezone)
            except pytz.UnknownTimeZoneError:
                raise ConfigurationFailure("Unknown timezone '{0}'.".format(timezone), filename=filename)

        logFilename = None
        logFileElem = xmlRoot.find('logfile')
        if logFileElem is not None:
            logFilename = logFileElem.text

        return cls(depots=depots, streams=streams, users=users, groups=groups, concurrency=concurrency, timezone=timezone, logFilename=logFilename)

    @staticmethod
    def fromfile(filename):
        config = None
        if os.path.exists(filename):
            with codecs.open(filename) as f:
                configXml = f.read()
                config = Config.fromxmlstring(configXml, filename=filename)
        return config

    def __init__(self, depots=None, streams=None, users=None, groups=None, concurrency=None, timezone=None, logFilename=None):
        if concurrency is None:
            concurrency = Config.Concurrency()

        self.depots      = depots
        self.streams     = streams
        self.users       = users
        self.groups      = groups
        self.concurrency = concurrency
        self.timezone    = timezone
        self.logFilename = logFilename

    def __repr__(self):
        str = "Config(depots="   + repr(self.depots)
        str += ", streams="      + repr(self.streams)
        str += ", users="        + repr(self.users)
        str += ", groups="       + repr(self.groups)
        str += ", concurrency="  + repr(self.concurrency)
        str += ", timezone="     + repr(self.timezone)
        str += ", logFilename="  + repr(self.logFilename)
        str += ")"

        return str

    def CreateContext(self, runner=None, environ=None):
        maxConcurrent = self.concurrency.maxConcurrent
        if maxConcurrent is None:
            maxConcurrent = GetMaxConcurrent(environ)
        return AcContext(runner=runner, maxConcurrent=maxConcurrent, timeout=self.concurrency.timeout, timezone=self.timezone)

# ################################################################################################ #
# Script Functions                                                                                 #
# ################################################################################################ #
def DumpExampleConfigFile(outputFilename):
    with codecs.open(outputFilename, 'w') as file:
        file.write("""<acutils>
    <!-- Allow-lists. Each list is optional. When a list is omitted every depot, stream, user or group
         in the repository is included. When it is present only the names listed are included.
    -->
    <depots>
        <depot>NEPTUNE</depot>
        <depot>MARS</depot>
    </depots>
    <streams>
        <stream>NEPTUNE_DEV</stream>
    </streams>
    <users>
        <user>joe_bloggs</user>
    </users>
    <groups>
        <group>Developers</group>
    </groups>

    <!-- Concurrency:
            max:     The largest number of accurev commands run at the same time. If omitted the
                     ACUTILS_MAXCONCURRENT environment variable is used, or 8 if that is not set either.
            timeout: Optional. The number of seconds after which a single accurev command is killed
                     and treated as failed.
    -->
    <concurrency max="8" timeout="300" />

    <!-- The timezone in which the times reported by accurev are shown. Any Olson timezone name is
         accepted, e.g. "Europe/London" or "UTC". If omitted the local time is used.
    -->
    <timezone>UTC</timezone>

    <!-- The file to which all console output is also logged. Optional. -->
    <logfile>acreports.log</logfile>
</acutils>
        """)
        return 0
    return 1

def InitializeLogging(filename, level, loggerName='acutils'):
    """Attaches a console handler, and a file handler when filename is given, to the loggerName logger.
    Only the first call has any effect. The library modules log under 'acutils.*' so a loggerName other
    than 'acutils' or '' (the root logger) does not receive their records."""
    global rootLogger
    if rootLogger is not None:
        return False

    rootLogger = logging.getLogger(loggerName)
    rootLogger.setLevel(level)

    handlers = [ (logging.StreamHandler(), '%(message)s') ]
    if filename is not None:
        handlers.append((logging.FileHandler(filename=filename), '%(asctime)s - %(name)s - %(levelname)s - %(message)s'))

    for handler, format in handlers:
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(format))
        rootLogger.addHandler(handler)

    return True

def PrintConfigSummary(config, filename, context):
    if config is not None:
        logger.info('Config info:')
        logger.info('  filename: {0}'.format(filename))
        logger.info('  depots: {0}'.format(", ".join(config.depots) if config.depots is not None else "all included"))
        logger.info('  streams: {0}'.format(", ".join(config.streams) if config.streams is not None else "all included"))
        logger.info('  users: {0}'.format(", ".join(config.users) if config.users is not None else "all included"))
        logger.info('  groups: {0}'.format(", ".join(config.groups) if config.groups is not None else "all included"))
        logger.info('  max concurrent: {0}'.format(context.maxConcurrent))
        logger.info('  timeout: {0}'.format(context.timeout if context.timeout is not None else "none"))
        logger.info('  timezone: {0}'.format(context.timezone if context.timezone is not None else "local"))
        logger.info('  log file: {0}'.format(config.logFilename))
        logger.info('  verbose:  {0}'.format( (logger.getEffectiveLevel() == logging.DEBUG) ))
