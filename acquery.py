# ################################################################################################ #
# AccuRev queries                                                                                  #
#                                                                                                  #
# Single command lookups and repository counts that do not need a collection. Each function runs  #
# one accurev command through the context and raises an AcUtilsError if it fails.                 #
# ################################################################################################ #

import os
import logging
import tempfile

from accommand import ParseFailure
from acobj import ParseXml, GetRequired, GetInt, ParseStreamVersion

logger = logging.getLogger('acutils.query')

# ################################################################################################ #
# Script Functions                                                                                 #
# ################################################################################################ #
def _RunXml(context, args, tag=None):
    r = context.Run(args)
    return ParseXml(r.cmdResult, command=r.command, tag=tag), r.command

def _Count(context, args, tag, predicate=None):
    xmlRoot, _ = _RunXml(context, args)
    elements = xmlRoot.findall(tag)
    if predicate is not None:
        elements = [ e for e in elements if predicate(e) ]
    return len(elements)

def GetElementName(context, stream, eid):
    """Returns (depot relative path, parent folder eid) of element eid in stream, or None if accurev
    reports no element.

    Issue this outside of a workspace, or from one backed by a stream in the same depot. accurev name
    gives wrong answers from a workspace in another depot.
    """
    xmlRoot, command = _RunXml(context, [ "name", "-v", stream, "-fx", "-e", eid ])
    xmlElement = xmlRoot.find('element')
    if xmlElement is None:
        return None
    try:
        return GetRequired(xmlElement, 'location'), GetInt(xmlElement, 'parent_id')
    except ParseFailure as e:
        raise ParseFailure(str(e), command=command)

def GetBackedVersion(context, realVerSpec, depot, depotRelPath):
    """Returns (stream number, version number) of the version that backs realVerSpec, e.g.
    PG_MAINT1_barnyrd\\4, or None. realVerSpec must be in text form, the numeric form is not accepted."""
    # -i reports the versions compared without running the comparison.
    xmlRoot, command = _RunXml(context, [ "diff", "-i", "-b", "-fx", "-v", realVerSpec, "-p", depot, depotRelPath ])
    backed = None
    for stream2 in xmlRoot.findall('Element/Change/Stream2'):
        streamNumber, versionNumber = ParseStreamVersion(stream2.attrib.get('Version'))
        if streamNumber is None:
            raise ParseFailure("Unrecognized version {0!r}.".format(stream2.attrib.get('Version')), command=command)
        backed = (streamNumber, versionNumber)
    return backed

def GetCatFile(context, eid, depot, verSpec):
    """Writes the content of version verSpec of text element eid to a new temporary file and returns
    its name. The caller deletes the file."""
    r = context.Run([ "cat", "-v", verSpec, "-p", depot, "-e", eid ])
    with tempfile.NamedTemporaryFile(mode='w', prefix='acutils_cat_', encoding='utf-8', delete=False) as catFile:
        catFile.write(r.cmdResult)
    logger.debug("{0} written to {1}".format(r.command, catFile.name))
    return catFile.name

def GetAccuRevVersion(context):
    """Returns the server's (major, minor, patch) version."""
    # accurev xml only reads its request from a file.
    with tempfile.NamedTemporaryFile(mode='w', prefix='acutils_xml_', suffix='.xml', encoding='utf-8', delete=False) as requestFile:
        requestFile.write('<serverInfo/>')
    try:
        xmlRoot, command = _RunXml(context, [ "xml", "-l", requestFile.name ], tag='serverInfo')
    finally:
        os.remove(requestFile.name)

    serverVersion = xmlRoot.find('serverVersion')
    if serverVersion is None:
        raise ParseFailure("No <serverVersion> in accurev xml output.", command=command)
    try:
        return GetInt(serverVersion, 'major'), GetInt(serverVersion, 'minor'), GetInt(serverVersion, 'patch')
    except ParseFailure as e:
        raise ParseFailure(str(e), command=command)

def GetUsersCount(context, includeDeactivated=False):
    return _Count(context, [ "show", "-fix" if includeDeactivated else "-fx", "users" ], 'Element')

def GetDepotsCount(context):
    return _Count(context, [ "show", "-fx", "depots" ], 'Element')

def GetDynStreamsCount(context):
    return _Count(context, [ "show", "-fx", "streams" ], 'stream', lambda e: e.attrib.get('isDynamic') == "true")

def GetTotalStreamsCount(context):
    """Counts every stream, hidden ones included."""
    return _Count(context, [ "show", "-fix", "streams" ], 'stream')

def GetStreamsWithDefaultGroupCount(context):
    return _Count(context, [ "show", "-fx", "-d", "streams" ], 'stream')

def GetTotalWorkspaceCount(context):
    """Counts the workspaces of all users, hidden ones included."""
    return _Count(context, [ "show", "-fix", "-a", "wspaces" ], 'Element')
