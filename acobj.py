# ################################################################################################ #
# AccuRev objects                                                                                  #
#                                                                                                  #
# Typed records materialized from the XML that accurev emits with its -fx format flag. Each record #
# is created empty and then filled by its fromxmlelement() classmethod. Consumers only read it.    #
# ################################################################################################ #

import enum
import logging
import functools
import xml.etree.ElementTree as ElementTree

from accommand import AcUtilsError, ParseFailure, DecodeFailure, UnsupportedFormat
from acaggregator import ComputeOnce
from acdatetime import AcDate2DateTime, AcDuration

logger = logging.getLogger('acutils.obj')

# ################################################################################################ #
# Result parser                                                                                    #
# ################################################################################################ #
unknownSentinel = "* unknown *"

def ParseXml(xmlText, command=None, tag=None):
    try:
        xmlRoot = ElementTree.fromstring(xmlText)
    except ElementTree.ParseError as e:
        raise ParseFailure("Invalid XML in command output: {0}".format(e), command=command, text=xmlText)

    if tag is not None and xmlRoot.tag != tag:
        raise ParseFailure("Expected a <{0}> root element but got <{1}>.".format(tag, xmlRoot.tag), command=command, text=xmlText)

    return xmlRoot

def IntOrNone(value, field=None):
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise ParseFailure("Expected an integer for '{0}' but got {1!r}.".format(field, value))

def GetInt(xmlElement, attribute, default=None):
    value = IntOrNone(xmlElement.attrib.get(attribute), attribute)
    if value is None:
        return default
    return value

def GetRequired(xmlElement, attribute):
    value = xmlElement.attrib.get(attribute)
    if value is None:
        raise ParseFailure("<{0}> element has no '{1}' attribute.".format(xmlElement.tag, attribute))
    return value

def GetBool(xmlElement, attribute, default=False):
    value = xmlElement.attrib.get(attribute)
    if value is None:
        return default
    lowered = value.lower()
    if lowered == "true" or lowered == "yes":
        return True
    if lowered == "false" or lowered == "no":
        return False
    raise DecodeFailure(attribute, value)

def GetTime(xmlElement, attribute, tz=None):
    value = GetInt(xmlElement, attribute)
    if value is None or value == 0:
        return None
    return AcDate2DateTime(value, tz)

def DecodeEnum(enumType, value, field):
    try:
        return enumType[value]
    except KeyError:
        raise DecodeFailure(field, value)

def DecodeElementType(value, field='elemType'):
    # accurev sometimes reports the element type as "* unknown *".
    if value is None or value == unknownSentinel:
        return ElementType.unknown
    return DecodeEnum(ElementType, value, field)

def ParseStreamVersion(value):
    if value is None:
        return None, None
    parts = value.replace('\\', '/').split('/')
    if len(parts) != 2:
        return None, None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None, None

def ReadOnly(name):
    attr = '_' + name
    return property(lambda self: getattr(self, attr))

# ################################################################################################ #
# Enumerations                                                                                     #
# ################################################################################################ #
class StreamType(enum.Enum):
    unknown     = 0
    dynamic     = 1
    normal      = 2
    regular     = 3
    workspace   = 4
    snapshot    = 5
    passthru    = 6
    passthrough = 7
    gated       = 8
    staging     = 9

class CaseSensitivity(enum.Enum):
    insensitive = 0
    sensitive   = 1

# 'from' is a keyword so members are looked up by name, e.g. LockKind['from'].
LockKind = enum.Enum('LockKind', [ ('from', 0), ('to', 1), ('all', 2) ])

class PrinType(enum.Enum):
    group = 0
    user  = 1
    none  = 2

class PrinStatus(enum.Enum):
    Unknown  = 0
    Active   = 1
    Inactive = 2

class PermKind(enum.Enum):
    depot  = 0
    stream = 1

class PermType(enum.Enum):
    group   = 0
    user    = 1
    builtin = 2

class PermRights(enum.Enum):
    none = 0
    all  = 1

class PropKind(enum.Enum):
    principal = 0
    stream    = 1

class WsType(enum.Enum):
    Workspace = 1
    RefTree   = 3
    Exclusive = 9
    Anchor    = 17

class WsEOL(enum.Enum):
    Platform = 0
    Unix     = 1
    Windows  = 2

class RuleKind(enum.Enum):
    unknown = 0
    clear   = 1
    incl    = 2
    incldo  = 3
    excl    = 4

class ElementType(enum.Enum):
    unknown     = 0
    dir         = 1
    text        = 2
    binary      = 3
    ptext       = 4
    elink       = 5
    slink       = 6
    unsupported = 99

def DecodeIntEnum(enumType, value, field):
    try:
        return enumType(IntOrNone(value, field))
    except ValueError:
        raise DecodeFailure(field, value)

# ################################################################################################ #
# Script Objects                                                                                   #
# ################################################################################################ #
@functools.total_ordering
class AcEntity(object):
    """Base of all records. Equality and hashing use IdentityKey(), ordering uses SortKey() which
    must end with the identity so that no two distinct records tie. Format() renders one of the named
    views in _views and raises UnsupportedFormat for any other specifier."""
    _views = {}

    def IdentityKey(self):
        raise NotImplementedError()

    def SortKey(self):
        raise NotImplementedError()

    def __eq__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.IdentityKey() == other.IdentityKey()

    def __lt__(self, other):
        if type(other) is not type(self):
            return NotImplemented
        return self.SortKey() < other.SortKey()

    def __hash__(self):
        return hash(self.IdentityKey())

    def Format(self, spec=None):
        if not spec:
            spec = 'G'
        view = self._views.get(spec.upper())
        if view is None:
            raise UnsupportedFormat(spec, type(self).__name__)
        return view(self)

    def __format__(self, spec):
        return self.Format(spec)

    def __str__(self):
        return self.Format('G')

def _Str(value):
    return '' if value is None else str(value)

class Depot(AcEntity):
    id               = ReadOnly('id')
    name             = ReadOnly('name')
    slice            = ReadOnly('slice')
    exclusiveLocking = ReadOnly('exclusiveLocking')
    case             = ReadOnly('case')
    streams          = ReadOnly('streams')

    def __init__(self, context=None, includeHidden=False):
        self._id               = 0
        self._name             = None
        self._slice            = 0
        self._exclusiveLocking = False
        self._case             = CaseSensitivity.insensitive
        self._streams          = None
        self._context          = context
        self._includeHidden    = includeHidden
        self._hierarchy        = ComputeOnce(self._GetHierarchy)

    def __repr__(self):
        str = "Depot(id="           + repr(self._id)
        str += ", name="            + repr(self._name)
        str += ", slice="           + repr(self._slice)
        str += ", exclusiveLocking="+ repr(self._exclusiveLocking)
        str += ", case="            + repr(self._case)
        str += ")"

        return str

    def IdentityKey(self):
        return self._id

    def SortKey(self):
        return (_Str(self._name), self._id)

    _views = {
        'G':  lambda self: self._name,
        'LV': lambda self: "{0} ({1}), slice {2}, {3}{4}".format(self._name, self._id, self._slice, self._case.name, ", exclusive locking" if self._exclusiveLocking else ""),
        'I':  lambda self: str(self._id),
        'S':  lambda self: str(self._slice),
        'E':  lambda self: str(self._exclusiveLocking),
        'C':  lambda self: self._case.name,
    }

    @classmethod
    def fromxmlelement(cls, xmlElement, context=None, includeHidden=False):
        if xmlElement is not None and xmlElement.tag == 'Element':
            depot = cls(context=context, includeHidden=includeHidden)
            depot._id               = IntOrNone(GetRequired(xmlElement, 'Number'), 'Number')
            depot._name             = GetRequired(xmlElement, 'Name')
            depot._slice            = GetInt(xmlElement, 'Slice', 0)
            depot._exclusiveLocking = GetBool(xmlElement, 'exclusiveLocking')
            depot._case             = DecodeEnum(CaseSensitivity, xmlElement.attrib.get('case', 'insensitive'), 'case')

            return depot

        return None

    def _SetStreams(self, streams):
        self._streams = streams

    def GetStream(self, nameOrId):
        if self._streams is None:
            return None
        return self._streams.GetStream(nameOrId)

    def GetBasis(self, nameOrId):
        stream = self.GetStream(nameOrId)
        # The root stream (1) has no basis.
        if stream is None or stream.id == 1:
            return None
        return self.GetStream(stream.basisId)

    def _GetHierarchy(self):
        args = [ "show", "-p", self._name, "-fix" if self._includeHidden else "-fx", "-s", "1", "-r", "streams" ]
        try:
            r = self._context.Run(args)
            xmlRoot = ParseXml(r.cmdResult, command=r.command)
            hierarchy = {}
            for streamElement in xmlRoot.findall('stream'):
                # Root streams have no basisStreamNumber.
                parent = GetInt(streamElement, 'basisStreamNumber', -1)
                child = IntOrNone(GetRequired(streamElement, 'streamNumber'), 'streamNumber')
                isWorkspace = streamElement.attrib.get('type') == 'workspace'
                hierarchy.setdefault(parent, []).append((child, isWorkspace))
            return hierarchy
        except AcUtilsError as e:
            logger.error("Depot {0}: stream hierarchy query failed.\n{1}".format(self._name, e))
            return None

    def GetChildren(self, stream, includeWorkspaces=False):
        """Returns the child streams of stream, an empty list when it has none, or None when the
        hierarchy query failed. The hierarchy is queried once per depot and then cached."""
        if stream.type == StreamType.workspace:
            return []

        hierarchy = self._hierarchy.Get()
        if hierarchy is None:
            return None

        children = []
        for childId, isWorkspace in hierarchy.get(stream.id, []):
            if isWorkspace and not includeWorkspaces:
                continue
            child = self.GetStream(childId)
            if child is not None:
                children.append(child)

        return children

    def ForStreamAndAllChildren(self, stream, callback, includeWorkspaces=False):
        callback(stream)
        children = self.GetChildren(stream, includeWorkspaces=includeWorkspaces)
        if children is None:
            return False
        for child in children:
            if not self.ForStreamAndAllChildren(child, callback, includeWorkspaces=includeWorkspaces):
                return False
        return True

class Stream(AcEntity):
    name            = ReadOnly('name')
    id              = ReadOnly('id')
    basisName       = ReadOnly('basisName')
    basisId         = ReadOnly('basisId')
    depotName       = ReadOnly('depotName')
    isDynamic       = ReadOnly('isDynamic')
    type            = ReadOnly('type')
    time            = ReadOnly('time')
    startTime       = ReadOnly('startTime')
    hidden          = ReadOnly('hidden')
    hasDefaultGroup = ReadOnly('hasDefaultGroup')

    def __init__(self):
        self._name            = None
        self._id              = 0
        self._basisName       = ''
        self._basisId         = -1
        self._depotName       = None
        self._depot           = None
        self._isDynamic       = False
        self._type            = StreamType.unknown
        self._time            = None
        self._startTime       = None
        self._hidden          = False
        self._hasDefaultGroup = False

    def __repr__(self):
        str = "Stream(name="       + repr(self._name)
        str += ", id="             + repr(self._id)
        str += ", depotName="      + repr(self._depotName)
        str += ", type="           + repr(self._type)
        str += ", basisName="      + repr(self._basisName)
        str += ", basisId="        + repr(self._basisId)
        str += ", hidden="         + repr(self._hidden)
        str += ")"

        return str

    @property
    def depot(self):
        return self._depot

    def IdentityKey(self):
        return (self._id, self._depotName)

    def SortKey(self):
        return (_Str(self._name), _Str(self._depotName), self._id)

    _views = {
        'G':  lambda self: self._name,
        'LV': lambda self: "{0} ({1}) {{{2}}} {3}\nBasis: {4} ({5})\nDepot: {6}, Hidden: {7}{8}".format(
                  self._name, self._id, self._type.name, _Str(self._time), self._basisName, self._basisId,
                  self._depotName, self._hidden, "" if self._hidden else ", HasDefaultGroup: {0}".format(self._hasDefaultGroup)),
        'I':  lambda self: str(self._id),
        'T':  lambda self: self._type.name,
        'BT': lambda self: _Str(self._time),
        'C':  lambda self: _Str(self._startTime),
        'BN': lambda self: self._basisName,
        'BI': lambda self: str(self._basisId),
        'D':  lambda self: self._depotName,
        'DY': lambda self: str(self._isDynamic),
        'H':  lambda self: str(self._hidden),
        'DG': lambda self: str(self._hasDefaultGroup),
    }

    @classmethod
    def fromxmlelement(cls, xmlElement, depot=None, depotName=None, tz=None):
        if xmlElement is not None and xmlElement.tag == 'stream':
            stream = cls()
            stream._name            = GetRequired(xmlElement, 'name')
            stream._id              = IntOrNone(GetRequired(xmlElement, 'streamNumber'), 'streamNumber')
            stream._basisName       = xmlElement.attrib.get('basis', '')
            stream._basisId         = GetInt(xmlElement, 'basisStreamNumber', -1)
            stream._depotName       = xmlElement.attrib.get('depotName')
            stream._isDynamic       = GetBool(xmlElement, 'isDynamic')
            stream._type            = DecodeEnum(StreamType, GetRequired(xmlElement, 'type'), 'type')
            stream._time            = GetTime(xmlElement, 'time', tz)
            stream._startTime       = GetTime(xmlElement, 'startTime', tz)
            # The hidden attribute is only present on hidden streams.
            stream._hidden          = xmlElement.attrib.get('hidden') is not None
            stream._hasDefaultGroup = GetBool(xmlElement, 'hasDefaultGroup')
            if depot is not None:
                stream._depot = depot
                depotName = depot.name
            if stream._depotName is None:
                stream._depotName = depotName

            return stream

        return None

class Principal(AcEntity):
    id      = ReadOnly('id')
    name    = ReadOnly('name')
    status  = ReadOnly('status')
    members = ReadOnly('members')

    def __init__(self):
        self._id      = 0
        self._name    = None
        self._status  = PrinStatus.Unknown
        self._members = None

    def __repr__(self):
        str = "Principal(id="  + repr(self._id)
        str += ", name="       + repr(self._name)
        str += ", status="     + repr(self._status)
        if self._members is not None:
            str += ", members=" + repr(sorted(self._members))
        str += ")"

        return str

    def IdentityKey(self):
        return self._name

    def SortKey(self):
        return _Str(self._name)

    _views = {
        'G': lambda self: self._name,
        'I': lambda self: str(self._id),
        'N': lambda self: self._name,
        'S': lambda self: self._status.name,
    }

    @classmethod
    def fromxmlelement(cls, xmlElement):
        if xmlElement is not None and xmlElement.tag == 'Element':
            principal = cls()
            principal._name   = GetRequired(xmlElement, 'Name')
            principal._id     = GetInt(xmlElement, 'Number', 0)
            # isActive is only present when the principal has been deactivated.
            principal._status = PrinStatus.Active if xmlElement.attrib.get('isActive') is None else PrinStatus.Inactive

            return principal

        return None

    def _SetMembers(self, members):
        self._members = frozenset(members)

class User(AcEntity):
    principal         = ReadOnly('principal')
    displayName       = ReadOnly('displayName')
    givenName         = ReadOnly('givenName')
    middleName        = ReadOnly('middleName')
    surname           = ReadOnly('surname')
    business          = ReadOnly('business')
    email             = ReadOnly('email')
    description       = ReadOnly('description')
    distinguishedName = ReadOnly('distinguishedName')

    directoryFields = ('displayName', 'givenName', 'middleName', 'surname', 'business', 'email', 'description', 'distinguishedName')

    def __init__(self):
        self._principal = Principal()
        for field in User.directoryFields:
            setattr(self, '_' + field, None)

    def __repr__(self):
        str = "User(principal="  + repr(self._principal)
        if self._displayName is not None:
            str += ", displayName=" + repr(self._displayName)
        str += ")"

        return str

    @property
    def name(self):
        return self._principal.name

    @property
    def groups(self):
        return self._principal.members

    def IdentityKey(self):
        return self._principal.name

    # Display name first when there is one. The principal name breaks ties so the order is total.
    def SortKey(self):
        displayName = self._displayName if self._displayName else self._principal.name
        return (_Str(displayName), _Str(self._principal.name))

    _views = {
        'G':  lambda self: self._displayName if self._displayName is not None else self._principal.name,
        'LV': lambda self: "{0} ({1}), Business: {2}, {3}".format(self._displayName, self._principal.name, self._business if self._business else "N/A", _Str(self._email)),
        'I':  lambda self: str(self._principal.id),
        'N':  lambda self: self._principal.name,
        'S':  lambda self: self._principal.status.name,
        'F':  lambda self: _Str(self._givenName),
        'M':  lambda self: _Str(self._middleName),
        'L':  lambda self: _Str(self._surname),
        'DN': lambda self: _Str(self._displayName),
        'B':  lambda self: _Str(self._business),
        'E':  lambda self: _Str(self._email),
        'D':  lambda self: _Str(self._description),
        'DG': lambda self: _Str(self._distinguishedName),
    }

    @classmethod
    def fromxmlelement(cls, xmlElement, directoryInfo=None):
        principal = Principal.fromxmlelement(xmlElement)
        if principal is not None:
            user = cls()
            user._principal = principal
            if directoryInfo is not None:
                for field, value in directoryInfo.items():
                    if field not in User.directoryFields:
                        raise ValueError("Unknown directory field {0!r}".format(field))
                    setattr(user, '_' + field, value)

            return user

        return None

class Lock(AcEntity):
    kind      = ReadOnly('kind')
    name      = ReadOnly('name')
    type      = ReadOnly('type')
    exceptFor = ReadOnly('exceptFor')
    onlyFor   = ReadOnly('onlyFor')
    comment   = ReadOnly('comment')

    def __init__(self):
        self._kind      = LockKind['all']
        self._name      = None
        self._type      = PrinType.none
        self._exceptFor = ''
        self._onlyFor   = ''
        self._comment   = ''

    def __repr__(self):
        str = "Lock(name="   + repr(self._name)
        str += ", kind="     + repr(self._kind)
        str += ", type="     + repr(self._type)
        str += ", exceptFor="+ repr(self._exceptFor)
        str += ", onlyFor="  + repr(self._onlyFor)
        str += ")"

        return str

    def IdentityKey(self):
        return (self._name, self._kind)

    # 'all' locks first, then 'to', then 'from'.
    def SortKey(self):
        return (-self._kind.value, _Str(self._name))

    def _Describe(self):
        if self._kind == LockKind['all']:
            kind = "promotions to and from"
        else:
            kind = "promotions " + self._kind.name
        if self._kind == LockKind['all'] or (not self._exceptFor and not self._onlyFor):
            howfor = "for all"
        elif self._exceptFor:
            howfor = "except for {0} {1}".format(self._type.name, self._exceptFor)
        else:
            howfor = "for {0} {1} only".format(self._type.name, self._onlyFor)
        return "Lock {0} {1} {2}. {3}".format(kind, self._name, howfor, self._comment)

    _views = {
        'G': _Describe,
        'K': lambda self: self._kind.name,
        'N': lambda self: self._name,
        'T': lambda self: self._type.name,
        'E': lambda self: self._exceptFor,
        'O': lambda self: self._onlyFor,
        'C': lambda self: self._comment,
    }

    @classmethod
    def fromxmlelement(cls, xmlElement):
        if xmlElement is not None and xmlElement.tag == 'Element':
            lock = cls()
            lock._kind      = DecodeEnum(LockKind, GetRequired(xmlElement, 'kind'), 'kind')
            lock._name      = GetRequired(xmlElement, 'Name')
            userType        = xmlElement.attrib.get('userType', '')
            lock._type      = PrinType.none if userType == '' else DecodeEnum(PrinType, userType, 'userType')
            lock._exceptFor = xmlElement.attrib.get('exceptFor', '')
            lock._onlyFor   = xmlElement.attrib.get('onlyFor', '')
            lock._comment   = xmlElement.attrib.get('comment', '')

            return lock

        return None

class Permission(AcEntity):
    kind        = ReadOnly('kind')
    name        = ReadOnly('name')
    appliesTo   = ReadOnly('appliesTo')
    type        = ReadOnly('type')
    rights      = ReadOnly('rights')
    inheritable = ReadOnly('inheritable')

    def __init__(self):
        self._kind        = PermKind.depot
        self._name        = None
        self._appliesTo   = None
        self._type        = PermType.builtin
        self._rights      = PermRights.none
        self._inheritable = False

    def __repr__(self):
        str = "Permission(kind="  + repr(self._kind)
        str += ", name="          + repr(self._name)
        str += ", appliesTo="     + repr(self._appliesTo)
        str += ", type="          + repr(self._type)
        str += ", rights="        + repr(self._rights)
        str += ", inheritable="   + repr(self._inheritable)
        str += ")"

        return str

    def IdentityKey(self):
        return (self._kind, self._name, self._appliesTo, self._type, self._rights)

    def SortKey(self):
        return (_Str(self._name), _Str(self._appliesTo), self._kind.value, self._type.value, self._rights.value)

    def _Describe(self):
        who = self._appliesTo if self._type == PermType.builtin else "{0} {1}".format(self._type.name, self._appliesTo)
        return "Permission on {0} {1} applies to {2} {{{3}, {4}}}".format(self._name, self._kind.name, who, self._rights.name, "inherit" if self._inheritable else "no inherit")

    _views = {
        'G': _Describe,
        'K': lambda self: self._kind.name,
        'N': lambda self: self._name,
        'A': lambda self: self._appliesTo,
        'T': lambda self: self._type.name,
        'R': lambda self: self._rights.name,
        'I': lambda self: str(self._inheritable),
    }

    @classmethod
    def fromxmlelement(cls, xmlElement, kind):
        if xmlElement is not None and xmlElement.tag == 'Element':
            permission = cls()
            permission._kind        = kind
            permission._name        = GetRequired(xmlElement, 'Name')
            permission._appliesTo   = GetRequired(xmlElement, 'Group')
            permission._type        = DecodeEnum(PermType, GetRequired(xmlElement, 'Type'), 'Type')
            permission._rights      = DecodeEnum(PermRights, GetRequired(xmlElement, 'Rights'), 'Rights')
            permission._inheritable = GetBool(xmlElement, 'Inheritable')

            return permission

        return None

class Property(AcEntity):
    kind      = ReadOnly('kind')
    depot     = ReadOnly('depot')
    id        = ReadOnly('id')
    name      = ReadOnly('name')
    propName  = ReadOnly('propName')
    propValue = ReadOnly('propValue')

    def __init__(self):
        self._kind      = PropKind.stream
        self._depot     = None
        self._id        = 0
        self._name      = None
        self._propName  = None
        self._propValue = None

    def __repr__(self):
        str = "Property(kind="  + repr(self._kind)
        str += ", depot="       + repr(self._depot)
        str += ", id="          + repr(self._id)
        str += ", name="        + repr(self._name)
        str += ", propName="    + repr(self._propName)
        str += ", propValue="   + repr(self._propValue)
        str += ")"

        return str

    def IdentityKey(self):
        return (self._kind, self._depot, self._id, self._propName)

    def SortKey(self):
        return (_Str(self._depot), _Str(self._name), _Str(self._propName), self._kind.value, self._id)

    def _Describe(self):
        if self._kind == PropKind.principal or self._depot is None:
            return "{0} ({1}), {2}={3}".format(self._name, self._id, self._propName, self._propValue)
        return "{0}, {1} ({2}), {3}={4}".format(self._depot, self._name, self._id, self._propName, self._propValue)

    _views = {
        'G':  _Describe,
        'K':  lambda self: self._kind.name,
        'D':  lambda self: _Str(self._depot),
        'I':  lambda self: str(self._id),
        'N':  lambda self: self._name,
        'PN': lambda self: self._propName,
        'PV': lambda self: _Str(self._propValue),
    }

    @classmethod
    def fromxmlelement(cls, xmlElement, depot=None):
        if xmlElement is not None and xmlElement.tag == 'property':
            prop = cls()
            prop._kind = DecodeEnum(PropKind, GetRequired(xmlElement, 'kind'), 'kind')
            if prop._kind == PropKind.stream:
                prop._depot = depot
                prop._id    = IntOrNone(GetRequired(xmlElement, 'streamNumber'), 'streamNumber')
                prop._name  = GetRequired(xmlElement, 'streamName')
            else:
                prop._id    = IntOrNone(GetRequired(xmlElement, 'principalNumber'), 'principalNumber')
                prop._name  = GetRequired(xmlElement, 'principalName')
            prop._propName  = GetRequired(xmlElement, 'propertyName')
            prop._propValue = xmlElement.text

            return prop

        return None

class Workspace(AcEntity):
    name          = ReadOnly('name')
    hidden        = ReadOnly('hidden')
    location      = ReadOnly('location')
    storage       = ReadOnly('storage')
    host          = ReadOnly('host')
    id            = ReadOnly('id')
    depot         = ReadOnly('depot')
    targetLevel   = ReadOnly('targetLevel')
    updateLevel   = ReadOnly('updateLevel')
    lastUpdate    = ReadOnly('lastUpdate')
    type          = ReadOnly('type')
    eol           = ReadOnly('eol')
    principalId   = ReadOnly('principalId')
    principalName = ReadOnly('principalName')

    def __init__(self):
        self._name          = None
        self._hidden        = False
        self._location      = None
        self._storage       = None
        self._host          = None
        self._id            = 0
        self._depot         = None
        self._targetLevel   = 0
        self._updateLevel   = 0
        self._lastUpdate    = None
        self._type          = WsType.Workspace
        self._eol           = WsEOL.Platform
        self._principalId   = 0
        self._principalName = None

    def __repr__(self):
        str = "Workspace(name="  + repr(self._name)
        str += ", id="           + repr(self._id)
        str += ", depot="        + repr(self._depot)
        str += ", type="         + repr(self._type)
        str += ", storage="      + repr(self._storage)
        str += ", host="         + repr(self._host)
        str += ")"

        return str

    def IdentityKey(self):
        return (self._id, self._depot)

    def SortKey(self):
        return (_Str(self._depot), _Str(self._name), self._id)

    def _Describe(self):
        return "{0} ({1}) {{{2}}}, Updated {3}\nLocation: \"{4}\", Storage: \"{5}\"\nHost: {6}, ULevel-Target [{7}:{8}]{9}\nDepot: {10}, EOL: {11}, Hidden: {12}\n".format(
            self._name, self._id, self._type.name, _Str(self._lastUpdate), self._location, self._storage, self._host,
            self._updateLevel, self._targetLevel, " (incomplete)" if self._targetLevel != self._updateLevel else "",
            self._depot, self._eol.name, self._hidden)

    _views = {
        'G':  lambda self: self._name,
        'LV': _Describe,
        'I':  lambda self: str(self._id),
        'L':  lambda self: self._location,
        'S':  lambda self: self._storage,
        'M':  lambda self: self._host,
        'H':  lambda self: str(self._hidden),
        'D':  lambda self: self._depot,
        'TL': lambda self: str(self._targetLevel),
        'UL': lambda self: str(self._updateLevel),
        'U':  lambda self: _Str(self._lastUpdate),
        'T':  lambda self: self._type.name,
        'E':  lambda self: self._eol.name,
        'PI': lambda self: str(self._principalId),
        'PN': lambda self: self._principalName,
    }

    @classmethod
    def fromxmlelement(cls, xmlElement, tz=None):
        if xmlElement is not None and xmlElement.tag == 'Element':
            ws = cls()
            ws._name          = GetRequired(xmlElement, 'Name')
            ws._hidden        = xmlElement.attrib.get('hidden') is not None
            ws._location      = xmlElement.attrib.get('Loc')
            ws._storage       = xmlElement.attrib.get('Storage')
            ws._host          = xmlElement.attrib.get('Host')
            ws._id            = IntOrNone(GetRequired(xmlElement, 'Stream'), 'Stream')
            ws._depot         = GetRequired(xmlElement, 'depot')
            ws._targetLevel   = GetInt(xmlElement, 'Target_trans', 0)
            ws._updateLevel   = GetInt(xmlElement, 'Trans', 0)
            ws._lastUpdate    = GetTime(xmlElement, 'fileModTime', tz)
            ws._type          = DecodeIntEnum(WsType, xmlElement.attrib.get('Type', '1'), 'Type')
            ws._eol           = DecodeIntEnum(WsEOL, xmlElement.attrib.get('EOL', '0'), 'EOL')
            ws._principalId   = GetInt(xmlElement, 'user_id', 0)
            ws._principalName = xmlElement.attrib.get('user_name')

            return ws

        return None

class Rule(AcEntity):
    stream        = ReadOnly('stream')
    kind          = ReadOnly('kind')
    type          = ReadOnly('type')
    location      = ReadOnly('location')
    setInStream   = ReadOnly('setInStream')
    xlinkToStream = ReadOnly('xlinkToStream')

    def __init__(self):
        self._stream        = None
        self._kind          = RuleKind.unknown
        self._type          = ElementType.unknown
        self._location      = None
        self._setInStream   = None
        self._xlinkToStream = None

    def __repr__(self):
        str = "Rule(stream="      + repr(self._stream)
        str += ", kind="          + repr(self._kind)
        str += ", location="      + repr(self._location)
        str += ", setInStream="   + repr(self._setInStream)
        if self._xlinkToStream is not None:
            str += ", xlinkToStream=" + repr(self._xlinkToStream)
        str += ")"

        return str

    # Inherited rules are listed again for every stream below the one they are set in, so the queried
    # stream is part of the identity.
    def IdentityKey(self):
        return (self._stream, self._kind, self._location, self._setInStream)

    def SortKey(self):
        return (_Str(self._setInStream), _Str(self._location), self._kind.value, _Str(self._stream))

    def _Describe(self):
        text = "SetInStream: {0}\n".format(self._setInStream)
        if self._xlinkToStream:
            text += "Cross-link (basis): {0}\n".format(self._xlinkToStream)
        text += "Location: {0}\nRule kind: {1}\nElement type: {2}\n".format(self._location, self._kind.name, self._type.name)
        return text

    _views = {
        'G': _Describe,
        'K': lambda self: self._kind.name,
        'T': lambda self: self._type.name,
        'L': lambda self: self._location,
        'S': lambda self: self._setInStream,
        'X': lambda self: _Str(self._xlinkToStream),
    }

    @classmethod
    def fromxmlelement(cls, xmlElement, stream=None):
        if xmlElement is not None and xmlElement.tag == 'element':
            rule = cls()
            rule._stream        = stream
            rule._kind          = DecodeEnum(RuleKind, GetRequired(xmlElement, 'kind'), 'kind')
            rule._type          = DecodeElementType(xmlElement.attrib.get('elemType'))
            rule._location      = GetRequired(xmlElement, 'location')
            rule._setInStream   = GetRequired(xmlElement, 'setInStream')
            rule._xlinkToStream = xmlElement.attrib.get('xlinkToStream')

            return rule

        return None

class Session(AcEntity):
    name     = ReadOnly('name')
    host     = ReadOnly('host')
    duration = ReadOnly('duration')

    def __init__(self):
        self._name     = None
        self._host     = None
        self._duration = None

    def __repr__(self):
        str = "Session(name="  + repr(self._name)
        str += ", host="       + repr(self._host)
        str += ", duration="   + repr(self._duration)
        str += ")"

        return str

    def IdentityKey(self):
        return (self._name, self._host)

    # Timed out sessions have no duration and sort first.
    def SortKey(self):
        if self._duration is None:
            minutes = (0, 0.0)
        else:
            minutes = (1, self._duration.TotalMinutes())
        return (minutes, _Str(self._name), _Str(self._host))

    _views = {
        'G': lambda self: "{0}, {1}, {2}".format(self._name, self._host, "(timed out)" if self._duration is None else self._duration),
        'N': lambda self: self._name,
        'H': lambda self: self._host,
        'D': lambda self: "(timed out)" if self._duration is None else str(self._duration),
    }

    @classmethod
    def fromxmlelement(cls, xmlElement):
        if xmlElement is not None and xmlElement.tag == 'Element':
            session = cls()
            session._name = GetRequired(xmlElement, 'Username')
            session._host = xmlElement.attrib.get('Host')
            duration = xmlElement.attrib.get('Duration')
            if duration is not None and duration != "(timed out)":
                try:
                    session._duration = AcDuration(duration)
                except ValueError:
                    raise ParseFailure("Invalid session Duration {0!r}.".format(duration))

            return session

        return None

class Element(AcEntity):
    status           = ReadOnly('status')
    location         = ReadOnly('location')
    folder           = ReadOnly('folder')
    executable       = ReadOnly('executable')
    eid              = ReadOnly('eid')
    elementType      = ReadOnly('elementType')
    size             = ReadOnly('size')
    modTime          = ReadOnly('modTime')
    hierType         = ReadOnly('hierType')
    virStreamNumber  = ReadOnly('virStreamNumber')
    virVersionNumber = ReadOnly('virVersionNumber')
    namedVersion     = ReadOnly('namedVersion')
    realStreamNumber = ReadOnly('realStreamNumber')
    realVersionNumber= ReadOnly('realVersionNumber')
    lapStream        = ReadOnly('lapStream')
    timeBasedStream  = ReadOnly('timeBasedStream')

    def __init__(self):
        self._status            = ''
        self._location          = ''
        self._folder            = False
        self._executable        = False
        self._eid               = 0
        self._elementType       = ElementType.unknown
        self._size              = 0
        self._modTime           = None
        self._hierType          = ''
        self._virStreamNumber   = None
        self._virVersionNumber  = None
        self._namedVersion      = ''
        self._realStreamNumber  = None
        self._realVersionNumber = None
        self._lapStream         = ''
        self._timeBasedStream   = ''

    def __repr__(self):
        str = "Element(location=" + repr(self._location)
        str += ", eid="           + repr(self._eid)
        str += ", status="        + repr(self._status)
        str += ", elementType="   + repr(self._elementType)
        str += ")"

        return str

    def IdentityKey(self):
        return (self._eid, self._location)

    def SortKey(self):
        return (self._status, self._location, self._eid)

    _views = {
        'G':  lambda self: self._location,
        'LV': lambda self: "{0} ({1}) {{{2}}} {3}\nVirtual: {4}\\{5}, Real: {6}\\{7}, Named: {8}".format(
                  self._location, self._eid, self._elementType.name, self._status,
                  self._virStreamNumber, self._virVersionNumber, self._realStreamNumber, self._realVersionNumber, self._namedVersion),
        'S':  lambda self: self._status,
        'L':  lambda self: self._location,
        'E':  lambda self: str(self._eid),
        'T':  lambda self: self._elementType.name,
        'N':  lambda self: self._namedVersion,
    }

    @classmethod
    def fromxmlelement(cls, xmlElement, tz=None):
        if xmlElement is not None and xmlElement.tag == 'element':
            element = cls()
            element._status      = xmlElement.attrib.get('status', '')
            element._location    = xmlElement.attrib.get('location', '')
            element._folder      = GetBool(xmlElement, 'dir')
            element._executable  = GetBool(xmlElement, 'executable')
            element._eid         = GetInt(xmlElement, 'id', 0)
            element._elementType = DecodeElementType(xmlElement.attrib.get('elemType'))
            element._size        = GetInt(xmlElement, 'size', 0)
            element._modTime     = GetTime(xmlElement, 'modTime', tz)
            element._hierType    = xmlElement.attrib.get('hierType', '')
            element._virStreamNumber, element._virVersionNumber = ParseStreamVersion(xmlElement.attrib.get('Virtual'))
            element._namedVersion = xmlElement.attrib.get('namedVersion', '')
            element._realStreamNumber, element._realVersionNumber = ParseStreamVersion(xmlElement.attrib.get('Real'))
            element._lapStream       = xmlElement.attrib.get('overlapStream', '')
            element._timeBasedStream = xmlElement.attrib.get('timeBasisStream', '')

            return element

        return None
