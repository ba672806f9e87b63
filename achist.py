# ################################################################################################ #
# AccuRev history                                                                                  #
#                                                                                                  #
# Transactions, versions and moves read from accurev hist -fevx. Promote transactions repeat their #
# comment and real named version in the first version element, which is handled here.             #
# ################################################################################################ #

import enum
import logging

from accommand import AcUtilsError
from accollections import AcCollection
from acobj import AcEntity, ReadOnly, GetInt, GetRequired, GetBool, GetTime, IntOrNone, DecodeElementType, ParseStreamVersion

logger = logging.getLogger('acutils.hist')

class RealVirtual(enum.Enum):
    Real    = 0
    Virtual = 1

# ################################################################################################ #
# Script Objects                                                                                   #
# ################################################################################################ #
class Move(object):
    def __init__(self, dest=None, source=None):
        self.dest   = dest
        self.source = source

    def __repr__(self):
        str = "Move(dest=" + repr(self.dest)
        str += ", source=" + repr(self.source)
        str += ")"

        return str

    @classmethod
    def fromxmlelement(cls, xmlElement):
        if xmlElement is not None and xmlElement.tag == 'move':
            return cls(dest=xmlElement.attrib.get('dest'), source=xmlElement.attrib.get('source'))
        return None

class Version(object):
    transaction               = ReadOnly('transaction')
    isFirst                   = ReadOnly('isFirst')
    path                      = ReadOnly('path')
    eid                       = ReadOnly('eid')
    virtual                   = ReadOnly('virtual')
    real                      = ReadOnly('real')
    virtualNamedVersion       = ReadOnly('virtualNamedVersion')
    realNamedVersion          = ReadOnly('realNamedVersion')
    ancestor                  = ReadOnly('ancestor')
    ancestorNamedVersion      = ReadOnly('ancestorNamedVersion')
    mergedAgainst             = ReadOnly('mergedAgainst')
    mergedAgainstNamedVersion = ReadOnly('mergedAgainstNamedVersion')
    elemType                  = ReadOnly('elemType')
    dir                       = ReadOnly('dir')
    mtime                     = ReadOnly('mtime')
    cksum                     = ReadOnly('cksum')
    size                      = ReadOnly('size')

    def __init__(self):
        self._transaction               = None
        self._isFirst                   = False
        self._comment                   = None
        self._path                      = None
        self._eid                       = 0
        self._virtual                   = None
        self._real                      = None
        self._virtualNamedVersion       = None
        self._realNamedVersion          = None
        self._ancestor                  = None
        self._ancestorNamedVersion      = None
        self._mergedAgainst             = None
        self._mergedAgainstNamedVersion = None
        self._elemType                  = None
        self._dir                       = False
        self._mtime                     = None
        self._cksum                     = None
        self._size                      = None

    def __repr__(self):
        str = "Version(path="              + repr(self._path)
        str += ", eid="                    + repr(self._eid)
        str += ", virtual="                + repr(self._virtual)
        str += ", real="                   + repr(self._real)
        str += ", realNamedVersion="       + repr(self._realNamedVersion)
        str += ")"

        return str

    def _IsPromoteFirst(self):
        return self._isFirst and self._transaction is not None and self._transaction.IsPromote()

    def RealNamed(self):
        # In a promote the first version element repeats the real named version of the second one.
        if self._IsPromoteFirst():
            return None
        return "{0} ({1})".format(self._realNamedVersion, self._real)

    def Comment(self):
        # In a promote the comment above the first version is the transaction comment.
        if self._IsPromoteFirst():
            return None
        return self._comment

    def AncestorNamed(self):
        if not self._ancestorNamedVersion:
            return None
        return "{0} ({1})".format(self._ancestorNamedVersion, self._ancestor)

    def MergedAgainstNamed(self):
        if not self._mergedAgainstNamedVersion:
            return None
        return "{0} ({1})".format(self._mergedAgainstNamedVersion, self._mergedAgainst)

    def WorkspaceName(self):
        if self._realNamedVersion is None or '/' not in self._realNamedVersion:
            return None
        return self._realNamedVersion[:self._realNamedVersion.index('/')]

    def WorkspaceOwner(self):
        wspace = self.WorkspaceName()
        if wspace is None or '_' not in wspace:
            return None
        return wspace[wspace.rindex('_') + 1:]

    def StreamVersion(self, request=RealVirtual.Real):
        value = self._real if request == RealVirtual.Real else self._virtual
        streamNumber, versionNumber = ParseStreamVersion(value)
        if streamNumber is None:
            return None
        return streamNumber, versionNumber

    def StreamName(self, request=RealVirtual.Real):
        value = self._realNamedVersion if request == RealVirtual.Real else self._virtualNamedVersion
        if value is None or '/' not in value:
            return None
        return value[:value.index('/')]

    @classmethod
    def fromxmlelement(cls, xmlElement, transaction=None, isFirst=False, comment=None, tz=None):
        if xmlElement is not None and xmlElement.tag == 'version':
            version = cls()
            version._transaction               = transaction
            version._isFirst                   = isFirst
            version._comment                   = comment
            version._path                      = xmlElement.attrib.get('path')
            version._eid                       = GetInt(xmlElement, 'eid', 0)
            version._virtual                   = xmlElement.attrib.get('virtual')
            version._real                      = xmlElement.attrib.get('real')
            version._virtualNamedVersion       = xmlElement.attrib.get('virtualNamedVersion')
            version._realNamedVersion          = xmlElement.attrib.get('realNamedVersion')
            version._ancestor                  = xmlElement.attrib.get('ancestor')
            version._ancestorNamedVersion      = xmlElement.attrib.get('ancestorNamedVersion')
            version._mergedAgainst             = xmlElement.attrib.get('merged_against')
            version._mergedAgainstNamedVersion = xmlElement.attrib.get('mergedAgainstNamedVersion')
            version._elemType                  = DecodeElementType(xmlElement.attrib.get('elem_type'), 'elem_type')
            version._dir                       = GetBool(xmlElement, 'dir')
            version._mtime                     = GetTime(xmlElement, 'mtime', tz)
            version._cksum                     = xmlElement.attrib.get('cksum')
            version._size                      = GetInt(xmlElement, 'sz')

            return version

        return None

class Transaction(AcEntity):
    depot            = ReadOnly('depot')
    id               = ReadOnly('id')
    type             = ReadOnly('type')
    time             = ReadOnly('time')
    user             = ReadOnly('user')
    streamName       = ReadOnly('streamName')
    streamNumber     = ReadOnly('streamNumber')
    fromStreamName   = ReadOnly('fromStreamName')
    fromStreamNumber = ReadOnly('fromStreamNumber')
    comment          = ReadOnly('comment')
    versions         = ReadOnly('versions')
    moves            = ReadOnly('moves')

    def __init__(self):
        self._depot            = None
        self._id               = 0
        self._type             = None
        self._time             = None
        self._user             = None
        self._streamName       = None
        self._streamNumber     = None
        self._fromStreamName   = None
        self._fromStreamNumber = None
        self._comment          = None
        self._versions         = ()
        self._moves            = ()

    def __repr__(self):
        str = "Transaction(id="  + repr(self._id)
        str += ", depot="        + repr(self._depot)
        str += ", type="         + repr(self._type)
        str += ", user="         + repr(self._user)
        str += ", time="         + repr(self._time)
        str += ", versions="     + repr(len(self._versions))
        str += ")"

        return str

    # Transaction numbers are only unique within a depot.
    def IdentityKey(self):
        return (self._depot, self._id)

    def SortKey(self):
        return (self._depot or '', self._id)

    def IsPromote(self):
        return self._type == "promote"

    def IsCheckOut(self):
        return self._type == "co"

    def FromStream(self):
        if not self.IsPromote():
            return None
        return "{0} ({1})".format(self._fromStreamName, self._fromStreamNumber)

    def ToStream(self):
        if not self.IsPromote():
            return None
        return "{0} ({1})".format(self._streamName, self._streamNumber)

    def VirtualNamed(self):
        # Only the first version of a promote carries the correct virtualNamedVersion. AccuRev defect 18636.
        if not (self.IsPromote() or self.IsCheckOut()) or len(self._versions) == 0:
            return None
        first = self._versions[0]
        return "{0} ({1})".format(first.virtualNamedVersion, first.virtual)

    def _Describe(self):
        comment = self._comment if self._comment is not None else ''
        if self._fromStreamNumber is not None and self._fromStreamNumber > 0:
            return "Transaction: {0} {{{1}}} User: {2} {3}\nTo: {4} ({5}), From: {6} ({7})\nComment: {8}".format(
                self._id, self._type, self._user, self._time, self._streamName, self._streamNumber,
                self._fromStreamName, self._fromStreamNumber, comment)
        return "Transaction: {0} {{{1}}} User: {2} {3}, Comment: {4}".format(self._id, self._type, self._user, self._time, comment)

    _views = {
        'G': _Describe,
        'I': lambda self: str(self._id),
        'K': lambda self: self._type,
        'U': lambda self: self._user,
        'T': lambda self: str(self._time),
        'S': lambda self: "{0}\\{1}".format(self._streamName, self._streamNumber) if self.IsPromote() else '',
        'F': lambda self: "{0}\\{1}".format(self._fromStreamName, self._fromStreamNumber) if self.IsPromote() else '',
        'C': lambda self: self._comment if self._comment is not None else '',
    }

    @classmethod
    def fromxmlelement(cls, xmlElement, depot=None, tz=None):
        if xmlElement is not None and xmlElement.tag == 'transaction':
            transaction = cls()
            transaction._depot            = depot
            transaction._id               = IntOrNone(GetRequired(xmlElement, 'id'), 'id')
            transaction._type             = xmlElement.attrib.get('type')
            transaction._time             = GetTime(xmlElement, 'time', tz)
            transaction._user             = xmlElement.attrib.get('user')
            transaction._streamName       = xmlElement.attrib.get('streamName')
            transaction._streamNumber     = GetInt(xmlElement, 'streamNumber')
            transaction._fromStreamName   = xmlElement.attrib.get('fromStreamName')
            transaction._fromStreamNumber = GetInt(xmlElement, 'fromStreamNumber')

            versions = []
            moves = []
            previous = None
            children = list(xmlElement)
            if len(children) > 0 and children[0].tag == 'comment':
                transaction._comment = children[0].text

            for child in children:
                if child.tag == 'version':
                    # A version's comment is the element directly above it.
                    comment = None
                    if previous is not None and previous.tag == 'comment':
                        comment = previous.text
                    versions.append(Version.fromxmlelement(child, transaction=transaction, isFirst=(len(versions) == 0), comment=comment, tz=tz))
                elif child.tag == 'move':
                    moves.append(Move.fromxmlelement(child))
                previous = child

            transaction._versions = tuple(versions)
            transaction._moves    = tuple(moves)

            return transaction

        return None

# ################################################################################################ #
# Script Classes                                                                                   #
# ################################################################################################ #
class Hist(AcCollection):
    """Transactions from accurev hist. timeSpec is any -t argument, e.g. acdatetime.AcTimeRange(start, end)."""
    def __init__(self, context, stream=None, timeSpec=None, transactionKind=None, user=None):
        super(Hist, self).__init__(context)
        self.stream          = stream
        self.timeSpec        = timeSpec
        self.transactionKind = transactionKind
        self.user            = user
        self._byId = {}

    def _Index(self, transaction):
        self._byId.setdefault(transaction.id, []).append(transaction)

    def _Args(self, depot):
        args = [ "hist", "-p", depot ]
        if self.stream is not None:
            args.extend([ "-s", self.stream ])
        if self.timeSpec is not None:
            args.extend([ "-t", self.timeSpec ])
        if self.transactionKind is not None:
            args.extend([ "-k", self.transactionKind ])
        if self.user is not None:
            args.extend([ "-u", self.user ])
        args.append("-fevx")
        return args

    def _Load(self, depot, token=None):
        xmlRoot = self._RunXml(self._Args(depot), token=token)
        return [ Transaction.fromxmlelement(e, depot=depot, tz=self.context.timezone) for e in xmlRoot.findall('transaction') ]

    def Init(self, depot):
        self._BeginInit()
        try:
            self._InsertAll(self._Load(depot))
            return True
        except AcUtilsError as e:
            logger.error("Hist.Init({0}) failed.\n{1}".format(depot, e))
            return False

    def InitForDepots(self, depots, progress=None):
        self._BeginInit()
        aggregator = self._Aggregator("hist")
        return aggregator.Run(depots, lambda depot, token: self._Load(depot, token=token), self._Merge, progress=progress)

    def _Merge(self, depot, transactions):
        for transaction in transactions:
            self._Insert(transaction)

    def GetTransaction(self, id, depot=None):
        with self._lock:
            if depot is not None:
                return self._items.get((depot, id))
            candidates = self._byId.get(id)
        if not candidates:
            return None
        return min(candidates)
