# ################################################################################################ #
# AccuRev collections                                                                              #
#                                                                                                  #
# Sorted, keyed containers of the records in acobj. Each is built once by an Init method that runs #
# the accurev commands (concurrently through an Aggregator where there is more than one) and       #
# returns True on success or False after logging the failure.                                      #
# ################################################################################################ #

import os
import logging
import threading

from accommand import AcUtilsError, ParseFailure
from acaggregator import Aggregator, ComputeOnce
from acobj import ParseXml, Depot, Stream, Principal, User, Lock, Permission, Property, Workspace, Rule, Session, Element
from acobj import LockKind, PermKind, PermType, PermRights

logger = logging.getLogger('acutils.collections')

# ################################################################################################ #
# Script Functions                                                                                 #
# ################################################################################################ #
def ResolveAccess(permissions, resourceName, principalName, memberships):
    """Returns (allowed, inheritable) for principalName on resourceName.

    An explicit user entry wins: 'all' allows and 'none' denies. Otherwise a group 'none' entry on one
    of the principal's groups denies unless another of its groups has an 'all' entry. With no entries
    at all everyone is allowed. The inheritable flag comes from the entry that grants access.
    """
    if memberships is None:
        memberships = frozenset()

    entries = [ p for p in permissions if p.name == resourceName ]

    for p in entries:
        if p.type == PermType.user and p.rights == PermRights.all and p.appliesTo == principalName:
            return True, p.inheritable
    for p in entries:
        if p.type == PermType.user and p.rights == PermRights.none and p.appliesTo == principalName:
            return False, False

    groupEntries = [ p for p in entries if p.type == PermType.group and p.appliesTo in memberships ]
    groupNone = [ p for p in groupEntries if p.rights == PermRights.none ]
    groupAll = [ p for p in groupEntries if p.rights == PermRights.all ]
    if len(groupNone) > 0 and len(groupAll) == 0:
        return False, False

    inheritable = any(p.inheritable for p in groupAll)
    return True, inheritable

# ################################################################################################ #
# Script Classes                                                                                   #
# ################################################################################################ #
class AcCollection(object):
    """Base of the typed collections.

    Entities are inserted while self._lock is held, which is also the lock handed to the aggregators
    that fill the collection. Iteration is in the entities' default sort order.
    """
    def __init__(self, context):
        self.context = context
        self._lock        = threading.Lock()
        self._items       = {}
        self._sorted      = None
        self._initialized = False

    def __repr__(self):
        return "{0}(count={1})".format(type(self).__name__, len(self._items))

    def __len__(self):
        return len(self._items)

    def __iter__(self):
        return iter(self._Sorted())

    def __getitem__(self, index):
        return self._Sorted()[index]

    def __contains__(self, entity):
        return entity in self._items.values()

    def Format(self, spec=None, separator='\n'):
        return separator.join([ e.Format(spec) for e in self ])

    def _BeginInit(self):
        with self._lock:
            if self._initialized:
                raise RuntimeError("{0} has already been initialized.".format(type(self).__name__))
            self._initialized = True

    def _Sorted(self):
        with self._lock:
            if self._sorted is None:
                self._sorted = sorted(self._items.values())
            return self._sorted

    # Caller holds self._lock.
    def _Insert(self, entity):
        key = entity.IdentityKey()
        if key in self._items:
            raise ParseFailure("Duplicate {0} {1!r} in {2}.".format(type(entity).__name__, key, type(self).__name__))
        self._items[key] = entity
        self._sorted = None
        self._Index(entity)

    def _InsertAll(self, entities):
        with self._lock:
            for entity in entities:
                self._Insert(entity)

    def _Index(self, entity):
        pass

    def _RunXml(self, args, token=None):
        r = self.context.Run(args, token=token)
        return ParseXml(r.cmdResult, command=r.command)

    def _Aggregator(self, name, mode=Aggregator.WAIT_ALL):
        return Aggregator(self.context, mode=mode, name=name, lock=self._lock)

class AcStreams(AcCollection):
    def __init__(self, context, dynamicOnly=False, includeHidden=False):
        super(AcStreams, self).__init__(context)
        self.dynamicOnly   = dynamicOnly
        self.includeHidden = includeHidden
        self._byName = {}
        self._byId   = {}

    def _Index(self, stream):
        self._byName.setdefault(stream.name, []).append(stream)
        self._byId.setdefault(stream.id, []).append(stream)

    def _Args(self, depotName, streamName=None, listFile=None):
        args = [ "show", "-fxig" if self.includeHidden else "-fxg", "-p", depotName ]
        if streamName is not None:
            args.extend([ "-s", streamName ])
        if listFile is not None:
            args.extend([ "-l", listFile ])
        args.append("streams")
        return args

    def _Load(self, depot, streamName=None, listFile=None, token=None):
        if isinstance(depot, Depot):
            depotName = depot.name
        else:
            depotName, depot = depot, None

        xmlRoot = self._RunXml(self._Args(depotName, streamName=streamName, listFile=listFile), token=token)
        streams = []
        for streamElement in xmlRoot.findall('stream'):
            stream = Stream.fromxmlelement(streamElement, depot=depot, depotName=depotName, tz=self.context.timezone)
            if self.dynamicOnly and not stream.isDynamic:
                continue
            streams.append(stream)
        return streams

    def Init(self, depot, listFile=None):
        """Loads the streams in depot (a Depot or a depot name). A listFile restricts the query to the
        streams named in that file."""
        self._BeginInit()
        try:
            self._InsertAll(self._Load(depot, listFile=listFile))
            return True
        except AcUtilsError as e:
            logger.error("AcStreams.Init({0}) failed.\n{1}".format(depot, e))
            return False

    def InitForDepots(self, depots, progress=None):
        self._BeginInit()
        aggregator = self._Aggregator("streams")
        return aggregator.Run(depots, lambda depot, token: self._Load(depot, token=token), self._MergeAll, progress=progress)

    def InitForStreams(self, depot, streams, progress=None):
        self._BeginInit()
        aggregator = self._Aggregator("streams")
        return aggregator.Run(streams, lambda name, token: self._Load(depot, streamName=name, token=token), self._MergeAll, progress=progress)

    def _MergeAll(self, item, streams):
        for stream in streams:
            self._Insert(stream)

    def GetStream(self, nameOrId, depotName=None):
        if isinstance(nameOrId, int):
            candidates = self._byId.get(nameOrId, [])
        else:
            candidates = self._byName.get(nameOrId, [])
        for stream in candidates:
            if depotName is None or stream.depotName == depotName:
                return stream
        return None

class AcDepots(AcCollection):
    """The depots in the repository, each with its streams loaded.

    listFileDir is an optional directory holding <depot>.streams list files. When one exists for a
    depot only the streams it names are queried.
    """
    def __init__(self, context, dynamicOnly=False, includeHidden=False, listFileDir=None):
        super(AcDepots, self).__init__(context)
        self.dynamicOnly   = dynamicOnly
        self.includeHidden = includeHidden
        self.listFileDir   = listFileDir
        self._byName = {}
        self._byId   = {}
        self._permissions = ComputeOnce(self._LoadPermissions)

    def _Index(self, depot):
        self._byName[depot.name] = depot
        self._byId[depot.id] = depot

    def ListFile(self, depotName):
        if self.listFileDir is None:
            return None
        filename = os.path.join(self.listFileDir, depotName + ".streams")
        if os.path.exists(filename):
            return filename
        return None

    def Init(self, depots=None, progress=None):
        """Loads the depots, or only those named in the depots allow-list, then their streams with one
        concurrent query per depot."""
        self._BeginInit()
        try:
            xmlRoot = self._RunXml([ "show", "-fx", "depots" ])
            workItems = []
            for depotElement in xmlRoot.findall('Element'):
                depot = Depot.fromxmlelement(depotElement, context=self.context, includeHidden=self.includeHidden)
                if depots is None or depot.name in depots:
                    workItems.append(depot)
        except AcUtilsError as e:
            logger.error("AcDepots.Init failed.\n{0}".format(e))
            return False

        if depots is not None:
            missing = set(depots) - set([ d.name for d in workItems ])
            for name in sorted(missing):
                logger.warning("Depot {0} not found.".format(name))

        aggregator = self._Aggregator("depots")
        return aggregator.Run(workItems, self._LoadStreams, self._MergeDepot, progress=progress)

    def _LoadStreams(self, depot, token):
        streams = AcStreams(self.context, dynamicOnly=self.dynamicOnly, includeHidden=self.includeHidden)
        streams._BeginInit()
        streams._InsertAll(streams._Load(depot, listFile=self.ListFile(depot.name), token=token))
        return streams

    def _MergeDepot(self, depot, streams):
        depot._SetStreams(streams)
        self._Insert(depot)

    def GetDepot(self, nameOrId):
        if isinstance(nameOrId, int):
            return self._byId.get(nameOrId)
        return self._byName.get(nameOrId)

    def GetDepotForStream(self, streamName):
        for depot in self:
            if depot.GetStream(streamName) is not None:
                return depot
        return None

    def GetStream(self, streamName):
        for depot in self:
            stream = depot.GetStream(streamName)
            if stream is not None:
                return stream
        return None

    def _LoadPermissions(self):
        permissions = AcPermissions(self.context, PermKind.depot)
        if not permissions.Init():
            return None
        return permissions

    def CanView(self, user):
        """Returns the sorted, comma separated names of the depots user can view, each marked with
        '+' when the access is inheritable, or None if the permissions could not be read. The user's
        group memberships must have been loaded (AcUsers(includeGroupsList=True))."""
        permissions = self._permissions.Get()
        if permissions is None:
            return None

        canView = []
        for depot in self:
            allowed, inheritable = ResolveAccess(permissions, depot.name, user.name, user.groups)
            if allowed:
                canView.append(depot.name + ("+" if inheritable else ""))

        return ", ".join(sorted(canView))

class AcUsers(AcCollection):
    """directoryLookup is an optional callable taking a principal name and returning a dict of User
    directory fields (displayName, email, ...) or None."""
    def __init__(self, context, includeGroupsList=False, includeDeactivated=False, directoryLookup=None):
        super(AcUsers, self).__init__(context)
        self.includeGroupsList  = includeGroupsList
        self.includeDeactivated = includeDeactivated
        self.directoryLookup    = directoryLookup
        self._byName = {}
        self._byId   = {}

    def _Index(self, user):
        self._byName[user.name] = user
        self._byId[user.principal.id] = user

    def Init(self, users=None, progress=None):
        self._BeginInit()
        try:
            xmlRoot = self._RunXml([ "show", "-fix" if self.includeDeactivated else "-fx", "users" ])
            loaded = []
            for userElement in xmlRoot.findall('Element'):
                name = userElement.attrib.get('Name')
                if users is not None and name not in users:
                    continue
                directoryInfo = None
                if self.directoryLookup is not None:
                    directoryInfo = self.directoryLookup(name)
                loaded.append(User.fromxmlelement(userElement, directoryInfo=directoryInfo))
            self._InsertAll(loaded)
        except AcUtilsError as e:
            logger.error("AcUsers.Init failed.\n{0}".format(e))
            return False

        if not self.includeGroupsList:
            return True

        # Every membership query is drained so the log names every user that failed.
        aggregator = self._Aggregator("groups", mode=Aggregator.AS_COMPLETED)
        return aggregator.Run(loaded, self._LoadGroups, self._MergeGroups, progress=progress)

    def _LoadGroups(self, user, token):
        xmlRoot = self._RunXml([ "show", "-fx", "-u", user.name, "groups" ], token=token)
        return [ e.attrib.get('Name') for e in xmlRoot.findall('Element') ]

    def _MergeGroups(self, user, groups):
        user.principal._SetMembers(groups)

    def GetUser(self, nameOrId):
        if isinstance(nameOrId, int):
            return self._byId.get(nameOrId)
        return self._byName.get(nameOrId)

    def GetWorkspaceOwner(self, workspaceName):
        # Workspace names end in _<principal name>.
        index = workspaceName.rfind('_')
        if index < 0:
            return None
        return self.GetUser(workspaceName[index + 1:])

class AcGroups(AcCollection):
    def __init__(self, context, includeMembersList=False, includeDeactivated=False):
        super(AcGroups, self).__init__(context)
        self.includeMembersList = includeMembersList
        self.includeDeactivated = includeDeactivated
        self._byName = {}

    def _Index(self, group):
        self._byName[group.name] = group

    def Init(self, groups=None, progress=None):
        self._BeginInit()
        try:
            xmlRoot = self._RunXml([ "show", "-fix" if self.includeDeactivated else "-fx", "groups" ])
            loaded = []
            for groupElement in xmlRoot.findall('Element'):
                group = Principal.fromxmlelement(groupElement)
                if groups is None or group.name in groups:
                    loaded.append(group)
            self._InsertAll(loaded)
        except AcUtilsError as e:
            logger.error("AcGroups.Init failed.\n{0}".format(e))
            return False

        if not self.includeMembersList:
            return True

        aggregator = self._Aggregator("members")
        return aggregator.Run(loaded, self._LoadMembers, self._MergeMembers, progress=progress)

    def _LoadMembers(self, group, token):
        xmlRoot = self._RunXml([ "show", "-fx", "-g", group.name, "members" ], token=token)
        return [ e.attrib.get('User') for e in xmlRoot.findall('Element') ]

    def _MergeMembers(self, group, members):
        group._SetMembers(members)

    def GetPrincipal(self, name):
        return self._byName.get(name)

    def GetMembers(self, groupName):
        group = self._byName.get(groupName)
        if group is None or group.members is None:
            return None
        return ", ".join(sorted(group.members))

class AcLocks(AcCollection):
    """Stream locks. The accurev show command lists every lock in the repository, so the Init variants
    differ only in which stream names they keep."""
    def __init__(self, context):
        super(AcLocks, self).__init__(context)
        self._byName = {}

    def _Index(self, lock):
        self._byName.setdefault(lock.name, []).append(lock)

    def _LoadFiltered(self, streamNames, what):
        try:
            xmlRoot = self._RunXml([ "show", "-fx", "locks" ])
            locks = []
            for lockElement in xmlRoot.findall('Element'):
                if streamNames is not None and lockElement.attrib.get('Name') not in streamNames:
                    continue
                locks.append(Lock.fromxmlelement(lockElement))
            self._InsertAll(locks)
            return True
        except AcUtilsError as e:
            logger.error("AcLocks.{0} failed.\n{1}".format(what, e))
            return False

    def Init(self, depot=None):
        """Loads the locks on streams in depot (a Depot with its streams), or every lock when depot
        is None."""
        self._BeginInit()
        streamNames = None
        if depot is not None:
            streamNames = set([ s.name for s in depot.streams ])
        return self._LoadFiltered(streamNames, "Init")

    def InitForDepots(self, depots):
        self._BeginInit()
        streamNames = set()
        for depot in depots:
            streamNames.update([ s.name for s in depot.streams ])
        return self._LoadFiltered(streamNames, "InitForDepots")

    def InitForStreams(self, streams):
        self._BeginInit()
        return self._LoadFiltered(set(streams), "InitForStreams")

    def HasLock(self, streamName, kind=None):
        for lock in self._byName.get(streamName, []):
            if kind is None or lock.kind == kind:
                return True
        return False

    @staticmethod
    def _KindArgs(kind):
        if kind == LockKind['from']:
            return [ "-kf" ]
        if kind == LockKind['to']:
            return [ "-kt" ]
        return []

    def Lock(self, streamName, kind, comment, exceptFor=None, onlyFor=None):
        if exceptFor is not None and onlyFor is not None:
            raise ValueError("Only one of exceptFor and onlyFor may be given.")

        args = [ "lock", "-c", comment ] + self._KindArgs(kind)
        if kind != LockKind['all']:
            if exceptFor is not None:
                args.extend([ "-e", exceptFor ])
            elif onlyFor is not None:
                args.extend([ "-o", onlyFor ])
        args.append(streamName)

        try:
            self.context.Run(args)
            return True
        except AcUtilsError as e:
            logger.error("AcLocks.Lock({0}) failed.\n{1}".format(streamName, e))
            return False

    def Unlock(self, streamName, kind=None):
        args = [ "unlock" ] + self._KindArgs(kind) + [ streamName ]
        try:
            self.context.Run(args)
            return True
        except AcUtilsError as e:
            logger.error("AcLocks.Unlock({0}) failed.\n{1}".format(streamName, e))
            return False

class AcPermissions(AcCollection):
    def __init__(self, context, kind):
        super(AcPermissions, self).__init__(context)
        self.kind = kind

    def Init(self, name=None):
        """Loads the ACL entries on the depot or stream called name, or on all of them."""
        self._BeginInit()
        args = [ "lsacl", "-fx", self.kind.name ]
        if name is not None:
            args.append(name)
        try:
            xmlRoot = self._RunXml(args)
            self._InsertAll([ Permission.fromxmlelement(e, self.kind) for e in xmlRoot.findall('Element') ])
            return True
        except AcUtilsError as e:
            logger.error("AcPermissions.Init({0}) failed.\n{1}".format(name, e))
            return False

    def ResolveAccess(self, resourceName, principalName, memberships):
        return ResolveAccess(self, resourceName, principalName, memberships)

class AcProperties(AcCollection):
    def __init__(self, context, includeHidden=False):
        super(AcProperties, self).__init__(context)
        self.includeHidden = includeHidden

    def _Load(self, args, depot, what):
        try:
            xmlRoot = self._RunXml([ "getproperty", "-fix" if self.includeHidden else "-fx" ] + args)
            self._InsertAll([ Property.fromxmlelement(e, depot=depot) for e in xmlRoot.findall('property') ])
            return True
        except AcUtilsError as e:
            logger.error("AcProperties.{0} failed.\n{1}".format(what, e))
            return False

    def InitForStream(self, depot, stream=None):
        """Properties of stream, or of every stream in depot when stream is None."""
        self._BeginInit()
        if stream is not None:
            args = [ "-s", stream ]
        else:
            args = [ "-ks", "-p", depot ]
        return self._Load(args, depot, "InitForStream({0}, {1})".format(depot, stream))

    def InitForPrincipal(self, principal=None):
        self._BeginInit()
        if principal is not None:
            args = [ "-u", principal ]
        else:
            args = [ "-ku" ]
        return self._Load(args, None, "InitForPrincipal({0})".format(principal))

    def GetValue(self, name, propName, depot=None):
        for prop in self:
            if prop.name == name and prop.propName == propName and (depot is None or prop.depot == depot):
                return prop.propValue
        return None

class AcWorkspaces(AcCollection):
    """Workspaces, and optionally reference trees, in the depots of an initialized AcDepots (or in every
    depot when depots is None)."""
    def __init__(self, context, depots=None, allWSpaces=False, includeHidden=False, includeRefTrees=False):
        super(AcWorkspaces, self).__init__(context)
        self.depots          = depots
        self.allWSpaces      = allWSpaces
        self.includeHidden   = includeHidden
        self.includeRefTrees = includeRefTrees
        self._byName = {}

    def _Index(self, ws):
        self._byName[ws.name] = ws

    def _Args(self, kind):
        args = [ "show", "-fvix" if self.includeHidden else "-fvx" ]
        # -a is only available for show wspaces.
        if kind == "wspaces" and self.allWSpaces:
            args.append("-a")
        args.append(kind)
        return args

    def Init(self, progress=None):
        self._BeginInit()
        workItems = [ "wspaces" ]
        if self.includeRefTrees:
            workItems.append("refs")

        aggregator = self._Aggregator("workspaces")
        return aggregator.Run(workItems, self._Load, self._Merge, progress=progress)

    def _Load(self, kind, token):
        xmlRoot = self._RunXml(self._Args(kind), token=token)
        workspaces = []
        for wsElement in xmlRoot.findall('Element'):
            ws = Workspace.fromxmlelement(wsElement, tz=self.context.timezone)
            if self.depots is None or self.depots.GetDepot(ws.depot) is not None:
                workspaces.append(ws)
        return workspaces

    def _Merge(self, kind, workspaces):
        for ws in workspaces:
            self._Insert(ws)

    def GetWorkspace(self, name):
        return self._byName.get(name)

    def GetDepot(self, workspace):
        if self.depots is None:
            return None
        return self.depots.GetDepot(workspace.depot)

class AcRules(AcCollection):
    """Element rules (include/exclude) of streams. With explicitOnly only the rules set on the stream
    itself are listed, not those inherited from its basis streams."""
    def __init__(self, context, explicitOnly=False):
        super(AcRules, self).__init__(context)
        self.explicitOnly = explicitOnly

    def _Load(self, stream, token=None):
        args = [ "lsrules", "-s", stream ]
        if self.explicitOnly:
            args.append("-d")
        args.append("-fx")
        xmlRoot = self._RunXml(args, token=token)
        return [ Rule.fromxmlelement(e, stream=stream) for e in xmlRoot.findall('element') ]

    def Init(self, stream):
        self._BeginInit()
        try:
            self._InsertAll(self._Load(stream))
            return True
        except AcUtilsError as e:
            logger.error("AcRules.Init({0}) failed.\n{1}".format(stream, e))
            return False

    def InitForDepot(self, depot, progress=None):
        self._BeginInit()
        return self._RunForStreams([ s.name for s in depot.streams ], progress)

    def InitForStreams(self, streams, progress=None):
        self._BeginInit()
        return self._RunForStreams(list(streams), progress)

    def _RunForStreams(self, streamNames, progress):
        aggregator = self._Aggregator("rules")
        return aggregator.Run(streamNames, lambda name, token: self._Load(name, token=token), self._Merge, progress=progress)

    def _Merge(self, stream, rules):
        for rule in rules:
            self._Insert(rule)

class AcSessions(AcCollection):
    def Init(self):
        self._BeginInit()
        try:
            xmlRoot = self._RunXml([ "show", "-fx", "sessions" ])
            self._InsertAll([ Session.fromxmlelement(e) for e in xmlRoot.findall('Element') ])
            return True
        except AcUtilsError as e:
            logger.error("AcSessions.Init failed.\n{0}".format(e))
            return False

class AcStat(AcCollection):
    """Results of an accurev stat query. An empty response is a successful query with no elements."""
    def __init__(self, context):
        super(AcStat, self).__init__(context)
        self._byLocation = {}

    def _Index(self, element):
        self._byLocation[element.location] = element

    def Init(self, args):
        self._BeginInit()
        try:
            xmlRoot = self._RunXml([ "stat", "-fx" ] + list(args))
            elements = []
            for e in xmlRoot.iter('element'):
                if "no such elem" in e.attrib.get('status', ''):
                    continue
                elements.append(Element.fromxmlelement(e, tz=self.context.timezone))
            self._InsertAll(elements)
            return True
        except AcUtilsError as e:
            logger.error("AcStat.Init failed.\n{0}".format(e))
            return False

    def GetElement(self, location):
        return self._byLocation.get(location)
