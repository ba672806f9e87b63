"""
Tests for the typed collections built from concurrent accurev queries.
"""
import threading

import pytest

from acobj import LockKind
from accollections import (AcDepots, AcStreams, AcUsers, AcGroups, AcLocks, AcProperties, AcWorkspaces,
                           AcRules, AcSessions, AcStat)

from conftest import NEPTUNE_STREAMS_XML


class TestDepots:

    def test_init(self, repository, context):
        depots = AcDepots(context)
        assert depots.Init()

        assert [ d.name for d in depots ] == [ "MARS", "NEPTUNE" ]
        neptune = depots.GetDepot("NEPTUNE")
        assert depots.GetDepot(1) is neptune
        assert len(neptune.streams) == 4
        assert neptune.GetStream("NEPTUNE_DEV").id == 2
        assert neptune.GetStream(3).name == "NEPTUNE_SNAP"
        assert neptune.GetStream("NEPTUNE_DEV").depot is neptune

    def test_allow_list(self, repository, context):
        depots = AcDepots(context)
        assert depots.Init([ "MARS" ])
        assert [ d.name for d in depots ] == [ "MARS" ]
        assert repository.Count([ "show", "-fxg", "-p", "NEPTUNE", "streams" ]) == 0

    def test_stream_failure_fails_init(self, repository, context):
        repository.Add([ "show", "-fxg", "-p", "MARS", "streams" ], "", retVal=1, stderr="Depot busy")
        depots = AcDepots(context)
        assert not depots.Init()

    def test_depot_query_failure(self, runner, context):
        runner.Add([ "show", "-fx", "depots" ], "", retVal=1)
        assert not AcDepots(context).Init()

    def test_reinit_is_forbidden(self, repository, context):
        depots = AcDepots(context)
        assert depots.Init()
        with pytest.raises(RuntimeError):
            depots.Init()

    def test_lookups_across_depots(self, repository, context):
        depots = AcDepots(context)
        assert depots.Init()
        assert depots.GetDepotForStream("NEPTUNE_SNAP").name == "NEPTUNE"
        assert depots.GetStream("MARS").depotName == "MARS"
        assert depots.GetStream("VENUS") is None

    def test_dynamic_only(self, repository, context):
        depots = AcDepots(context, dynamicOnly=True)
        assert depots.Init([ "NEPTUNE" ])
        assert [ s.name for s in depots.GetDepot("NEPTUNE").streams ] == [ "NEPTUNE", "NEPTUNE_DEV" ]

    def test_list_file(self, repository, context, tmp_path):
        listFile = tmp_path / "NEPTUNE.streams"
        listFile.write_text("NEPTUNE_DEV\n")
        repository.Add([ "show", "-fxg", "-p", "NEPTUNE", "-l", str(listFile), "streams" ], NEPTUNE_STREAMS_XML)

        depots = AcDepots(context, listFileDir=str(tmp_path))
        assert depots.Init()
        assert repository.Count([ "show", "-fxg", "-p", "NEPTUNE", "-l", str(listFile), "streams" ]) == 1
        assert repository.Count([ "show", "-fxg", "-p", "MARS", "streams" ]) == 1


class TestHierarchy:

    def test_children_and_basis(self, repository, context):
        depots = AcDepots(context)
        assert depots.Init()
        neptune = depots.GetDepot("NEPTUNE")
        root = neptune.GetStream("NEPTUNE")

        assert [ s.name for s in neptune.GetChildren(root) ] == [ "NEPTUNE_DEV", "NEPTUNE_SNAP" ]
        dev = neptune.GetStream("NEPTUNE_DEV")
        assert neptune.GetChildren(dev) == []
        assert [ s.name for s in neptune.GetChildren(dev, includeWorkspaces=True) ] == [ "NEPTUNE_DEV_joe" ]
        assert neptune.GetChildren(neptune.GetStream("NEPTUNE_DEV_joe")) == []

        assert neptune.GetBasis("NEPTUNE_DEV") is root
        assert neptune.GetBasis(1) is None

    def test_walk(self, repository, context):
        depots = AcDepots(context)
        assert depots.Init()
        neptune = depots.GetDepot("NEPTUNE")
        visited = []
        assert neptune.ForStreamAndAllChildren(neptune.GetStream("NEPTUNE"), lambda s: visited.append(s.name), includeWorkspaces=True)
        assert sorted(visited) == [ "NEPTUNE", "NEPTUNE_DEV", "NEPTUNE_DEV_joe", "NEPTUNE_SNAP" ]

    def test_hierarchy_is_queried_once(self, repository, context):
        depots = AcDepots(context)
        assert depots.Init()
        neptune = depots.GetDepot("NEPTUNE")
        root = neptune.GetStream("NEPTUNE")
        results = []
        resultsLock = threading.Lock()

        def caller():
            children = neptune.GetChildren(root)
            with resultsLock:
                results.append([ s.name for s in children ])

        threads = [ threading.Thread(target=caller) for i in range(8) ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert repository.Count([ "show", "-p", "NEPTUNE", "-fx", "-s", "1", "-r", "streams" ]) == 1
        assert all(r == results[0] for r in results)

    def test_hierarchy_failure(self, repository, context):
        repository.Add([ "show", "-p", "NEPTUNE", "-fx", "-s", "1", "-r", "streams" ], "", retVal=1)
        depots = AcDepots(context)
        assert depots.Init()
        neptune = depots.GetDepot("NEPTUNE")
        assert neptune.GetChildren(neptune.GetStream("NEPTUNE")) is None
        assert not neptune.ForStreamAndAllChildren(neptune.GetStream("NEPTUNE"), lambda s: None)


class TestStreams:

    def test_duplicate_identity_fails(self, runner, context):
        runner.Add([ "show", "-fxg", "-p", "NEPTUNE", "streams" ], """<streams>
  <stream name="A" depotName="NEPTUNE" streamNumber="2" type="normal"/>
  <stream name="B" depotName="NEPTUNE" streamNumber="2" type="normal"/>
</streams>""")
        streams = AcStreams(context)
        assert not streams.Init("NEPTUNE")

    def test_init_for_depots(self, repository, context):
        streams = AcStreams(context)
        assert streams.InitForDepots([ "NEPTUNE", "MARS" ])
        assert len(streams) == 5
        assert streams.GetStream("MARS").depotName == "MARS"
        assert streams.GetStream(1, depotName="NEPTUNE").name == "NEPTUNE"

    def test_init_for_streams(self, runner, context):
        runner.Add([ "show", "-fxg", "-p", "NEPTUNE", "-s", "NEPTUNE_DEV", "streams" ],
                   '<streams><stream name="NEPTUNE_DEV" depotName="NEPTUNE" streamNumber="2" type="normal"/></streams>')
        runner.Add([ "show", "-fxg", "-p", "NEPTUNE", "-s", "GONE", "streams" ], "", retVal=1)
        streams = AcStreams(context)
        assert not streams.InitForStreams("NEPTUNE", [ "NEPTUNE_DEV", "GONE" ])

    def test_scenario_stream_failure_leaves_no_duplicates(self, runner, context):
        runner.Add([ "show", "-fxg", "-p", "NEPTUNE", "-s", "S1", "streams" ],
                   '<streams><stream name="S1" depotName="NEPTUNE" streamNumber="5" type="normal"/></streams>')
        runner.Add([ "show", "-fxg", "-p", "NEPTUNE", "-s", "S2", "streams" ], "", retVal=1)
        streams = AcStreams(context)

        assert not streams.InitForStreams("NEPTUNE", [ "S1", "S2" ])

        assert len([ s for s in streams if s.name == "S1" ]) <= 1
        assert streams.GetStream("S2") is None


USERS_XML = """<AcResponse>
  <Element Name="joe" Number="3"/>
  <Element Name="ann" Number="4"/>
  <Element Name="old" Number="5" isActive="false"/>
</AcResponse>"""


class TestUsers:

    def test_init(self, runner, context):
        runner.Add([ "show", "-fx", "users" ], USERS_XML)
        users = AcUsers(context)
        assert users.Init()
        assert [ u.name for u in users ] == [ "ann", "joe", "old" ]
        assert users.GetUser(3).name == "joe"
        assert users.GetUser("ann").groups is None

    def test_groups(self, runner, context):
        runner.Add([ "show", "-fix", "users" ], USERS_XML)
        runner.Add([ "show", "-fx", "-u", "joe", "groups" ], '<AcResponse><Element Name="Developers"/><Element Name="Admins"/></AcResponse>')
        runner.Add([ "show", "-fx", "-u", "ann", "groups" ], '<AcResponse/>')
        runner.Add([ "show", "-fx", "-u", "old", "groups" ], '<AcResponse/>')
        users = AcUsers(context, includeGroupsList=True, includeDeactivated=True)
        assert users.Init()
        assert users.GetUser("joe").groups == frozenset([ "Developers", "Admins" ])
        assert users.GetUser("ann").groups == frozenset()

    def test_group_failures_are_all_queried(self, runner, context):
        runner.Add([ "show", "-fx", "users" ], USERS_XML)
        runner.Add([ "show", "-fx", "-u", "ann", "groups" ], '<AcResponse/>')
        users = AcUsers(context, includeGroupsList=True)
        assert not users.Init()
        for name in [ "joe", "ann", "old" ]:
            assert runner.Count([ "show", "-fx", "-u", name, "groups" ]) == 1
        assert users.GetUser("ann").groups == frozenset()

    def test_allow_list_and_directory(self, runner, context):
        runner.Add([ "show", "-fx", "users" ], USERS_XML)
        users = AcUsers(context, directoryLookup=lambda name: { 'displayName': name.upper() })
        assert users.Init([ "joe" ])
        assert len(users) == 1
        assert str(users.GetUser("joe")) == "JOE"

    def test_workspace_owner(self, runner, context):
        runner.Add([ "show", "-fx", "users" ], USERS_XML)
        users = AcUsers(context)
        assert users.Init()
        assert users.GetWorkspaceOwner("NEPTUNE_DEV_joe").name == "joe"
        assert users.GetWorkspaceOwner("nounderscore") is None


class TestGroups:

    def test_members(self, runner, context):
        runner.Add([ "show", "-fx", "groups" ], '<AcResponse><Element Name="Developers" Number="10"/><Element Name="Admins" Number="11"/></AcResponse>')
        runner.Add([ "show", "-fx", "-g", "Developers", "members" ], '<AcResponse><Element User="joe"/><Element User="ann"/></AcResponse>')
        runner.Add([ "show", "-fx", "-g", "Admins", "members" ], '<AcResponse><Element User="joe"/></AcResponse>')
        groups = AcGroups(context, includeMembersList=True)
        assert groups.Init()
        assert groups.GetMembers("Developers") == "ann, joe"
        assert groups.GetPrincipal("Admins").id == 11
        assert groups.GetMembers("Nobody") is None


LOCKS_XML = """<AcResponse>
  <Element kind="to" Name="NEPTUNE_DEV" userType="group" exceptFor="Admins" comment="freeze"/>
  <Element kind="all" Name="MARS" comment="retired"/>
  <Element kind="from" Name="VENUS_DEV" comment=""/>
</AcResponse>"""


class TestLocks:

    def test_for_depots(self, repository, context):
        repository.Add([ "show", "-fx", "locks" ], LOCKS_XML)
        depots = AcDepots(context)
        assert depots.Init()
        locks = AcLocks(context)
        assert locks.InitForDepots(depots)
        assert [ l.name for l in locks ] == [ "MARS", "NEPTUNE_DEV" ]
        assert locks.HasLock("NEPTUNE_DEV")
        assert locks.HasLock("NEPTUNE_DEV", LockKind['to'])
        assert not locks.HasLock("NEPTUNE_DEV", LockKind['from'])
        assert not locks.HasLock("VENUS_DEV")

    def test_for_streams(self, runner, context):
        runner.Add([ "show", "-fx", "locks" ], LOCKS_XML)
        locks = AcLocks(context)
        assert locks.InitForStreams([ "VENUS_DEV" ])
        assert len(locks) == 1

    def test_lock_and_unlock(self, runner, context):
        runner.Add([ "lock", "-c", "release freeze", "-kt", "-e", "Admins", "NEPTUNE_DEV" ])
        runner.Add([ "lock", "-c", "closed", "MARS" ])
        runner.Add([ "unlock", "-kt", "NEPTUNE_DEV" ])
        locks = AcLocks(context)
        assert locks.Lock("NEPTUNE_DEV", LockKind['to'], "release freeze", exceptFor="Admins")
        assert locks.Lock("MARS", LockKind['all'], "closed")
        assert locks.Unlock("NEPTUNE_DEV", LockKind['to'])
        assert not locks.Unlock("MARS")

    def test_lock_rejects_both_filters(self, context):
        with pytest.raises(ValueError):
            AcLocks(context).Lock("MARS", LockKind['to'], "x", exceptFor="a", onlyFor="b")


class TestProperties:

    def test_stream_properties(self, runner, context):
        runner.Add([ "getproperty", "-fx", "-ks", "-p", "NEPTUNE" ], """<AcResponse>
  <property kind="stream" streamNumber="2" streamName="NEPTUNE_DEV" propertyName="owner">joe</property>
  <property kind="stream" streamNumber="1" streamName="NEPTUNE" propertyName="owner">ann</property>
</AcResponse>""")
        properties = AcProperties(context)
        assert properties.InitForStream("NEPTUNE")
        assert [ p.name for p in properties ] == [ "NEPTUNE", "NEPTUNE_DEV" ]
        assert properties.GetValue("NEPTUNE_DEV", "owner") == "joe"

    def test_principal_properties(self, runner, context):
        runner.Add([ "getproperty", "-fix", "-u", "joe" ], '<AcResponse><property kind="principal" principalNumber="3" principalName="joe" propertyName="team">core</property></AcResponse>')
        properties = AcProperties(context, includeHidden=True)
        assert properties.InitForPrincipal("joe")
        assert properties.GetValue("joe", "team") == "core"


WSPACES_XML = """<AcResponse>
  <Element Name="NEPTUNE_DEV_joe" Loc="/ws/joe" Storage="/ws/joe" Host="build01" Stream="4" depot="NEPTUNE" Target_trans="10" Trans="10" fileModTime="1400000000" Type="1" EOL="0" user_id="3" user_name="joe"/>
  <Element Name="VENUS_joe" Loc="/ws/venus" Storage="/ws/venus" Host="build01" Stream="7" depot="VENUS" Target_trans="1" Trans="1" fileModTime="1400000000" Type="1" EOL="0" user_id="3" user_name="joe"/>
</AcResponse>"""

REFS_XML = """<AcResponse>
  <Element Name="NEPTUNE_ref" Loc="/refs/neptune" Storage="/refs/neptune" Host="build01" Stream="9" depot="NEPTUNE" Target_trans="10" Trans="10" fileModTime="1400000000" Type="3" EOL="0" user_id="1" user_name="build"/>
</AcResponse>"""


class TestWorkspaces:

    def test_init_with_reftrees(self, repository, context):
        repository.Add([ "show", "-fvx", "-a", "wspaces" ], WSPACES_XML)
        repository.Add([ "show", "-fvx", "refs" ], REFS_XML)
        depots = AcDepots(context)
        assert depots.Init()
        workspaces = AcWorkspaces(context, depots=depots, allWSpaces=True, includeRefTrees=True)
        assert workspaces.Init()
        assert [ w.name for w in workspaces ] == [ "NEPTUNE_DEV_joe", "NEPTUNE_ref" ]
        ws = workspaces.GetWorkspace("NEPTUNE_DEV_joe")
        assert workspaces.GetDepot(ws).name == "NEPTUNE"

    def test_refs_failure(self, runner, context):
        runner.Add([ "show", "-fvx", "wspaces" ], WSPACES_XML)
        workspaces = AcWorkspaces(context, includeRefTrees=True)
        assert not workspaces.Init()


class TestRules:

    def test_inherited_rules_per_stream(self, repository, context):
        rule = '<AcResponse><element kind="excl" elemType="dir" location="/./tmp" setInStream="NEPTUNE"/></AcResponse>'
        for name in [ "NEPTUNE", "NEPTUNE_DEV", "NEPTUNE_SNAP", "NEPTUNE_DEV_joe" ]:
            repository.Add([ "lsrules", "-s", name, "-fx" ], rule)
        depots = AcDepots(context)
        assert depots.Init()
        rules = AcRules(context)
        assert rules.InitForDepot(depots.GetDepot("NEPTUNE"))
        assert len(rules) == 4

    def test_explicit_only(self, runner, context):
        runner.Add([ "lsrules", "-s", "NEPTUNE_DEV", "-d", "-fx" ], '<AcResponse/>')
        rules = AcRules(context, explicitOnly=True)
        assert rules.Init("NEPTUNE_DEV")
        assert len(rules) == 0


class TestSessions:

    def test_init(self, runner, context):
        runner.Add([ "show", "-fx", "sessions" ], """<AcResponse>
  <Element Username="joe" Host="build01" Duration="90"/>
  <Element Username="ann" Host="build02" Duration="(timed out)"/>
</AcResponse>""")
        sessions = AcSessions(context)
        assert sessions.Init()
        assert [ str(s) for s in sessions ] == [ "ann, build02, (timed out)", "joe, build01, 01:30" ]


class TestStat:

    def test_empty_response_is_success(self, runner, context):
        runner.Add([ "stat", "-fx", "-s", "NEPTUNE_DEV", "-o" ], "<AcResponse/>")
        stat = AcStat(context)
        assert stat.Init([ "-s", "NEPTUNE_DEV", "-o" ])
        assert len(stat) == 0

    def test_skips_missing_elements(self, runner, context):
        runner.Add([ "stat", "-fx", "-s", "NEPTUNE_DEV", "-a" ], """<AcResponse>
  <element location="/./a.c" id="10" elemType="text" status="(backed)" Virtual="2\\1" Real="4\\1"/>
  <element location="/./gone.c" status="(no such elem)"/>
</AcResponse>""")
        stat = AcStat(context)
        assert stat.Init([ "-s", "NEPTUNE_DEV", "-a" ])
        assert len(stat) == 1
        assert stat.GetElement("/./a.c").eid == 10

    def test_malformed_response(self, runner, context):
        runner.Add([ "stat", "-fx", "-s", "NEPTUNE_DEV", "-a" ], "<AcResponse>")
        assert not AcStat(context).Init([ "-s", "NEPTUNE_DEV", "-a" ])
