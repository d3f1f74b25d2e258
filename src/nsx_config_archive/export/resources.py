"""Resource categories exported from NSX Manager.

Each category knows which read-only API calls produce its snapshot, which
file it is written to, and which of its fields are volatile. ``CATEGORIES``
is ordered; that order is both the fetch order and the file write order.

Every fetch function takes the connection explicitly and returns a list of
XML documents (more than one for composite snapshots). Errors propagate.
"""
import copy
import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

from lxml import etree

from ..nsx.client import NsxConnection

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "globalroot-0"
PAGE_SIZE = 1000

FetchFunc = Callable[[NsxConnection], list]


@dataclass(frozen=True)
class ResourceCategory:
    """One type of configuration object exposed by the NSX API."""
    name: str
    filename: str
    fetch: FetchFunc = field(compare=False, repr=False)
    volatile_paths: tuple[str, ...] = ()


@dataclass
class Snapshot:
    """Documents fetched for one category during a single run."""
    category: ResourceCategory
    documents: list = field(default_factory=list)

    @property
    def filename(self) -> str:
        return self.category.filename


class RunCache:
    """Connection wrapper that answers each GET at most once per run.

    Several categories are cut from the same listing (edges and logical
    routers, firewall rules and sections). Serving every category from the
    one response keeps the files of a single commit consistent with each
    other. Callers get a private copy of the document, since fetchers and
    the normalizer modify what they receive.
    """

    def __init__(self, connection: NsxConnection):
        self.connection = connection
        self._documents: dict[tuple, etree._Element] = {}

    @property
    def host(self) -> str:
        return self.connection.host

    def get_xml(self, path: str, params: Optional[dict] = None) -> etree._Element:
        key = (path, tuple(sorted((params or {}).items())))
        if key not in self._documents:
            self._documents[key] = self.connection.get_xml(path, params=params)
        else:
            logger.debug(f"Reusing {path} from this run")
        return copy.deepcopy(self._documents[key])


# === Helpers ===

def _get(path: str) -> FetchFunc:
    """Fetch function for categories that are a single GET."""
    def fetch(connection: NsxConnection) -> list:
        return [connection.get_xml(path)]
    fetch.__name__ = f"fetch_{path.strip('/').replace('/', '_')}"
    return fetch


def _paged(
    connection: NsxConnection,
    path: str,
    root_tag: str,
    item_path: str,
    total_path: str,
    start_param: str,
    size_param: str,
) -> etree._Element:
    """Collect every page of a paged listing under a single root element."""
    root = etree.Element(root_tag)
    start = 0
    while True:
        page = connection.get_xml(path, params={start_param: start, size_param: PAGE_SIZE})
        items = page.findall(item_path)
        root.extend(items)
        start += len(items)

        total = page.findtext(total_path)
        if not items or total is None or start >= int(total):
            break
    return root


# === Fetchers ===

def fetch_logical_switches(connection: NsxConnection) -> list:
    """All virtual wires (logical switches) across every transport zone."""
    return [_paged(
        connection,
        "/api/2.0/vdn/virtualwires",
        root_tag="virtualWires",
        item_path="dataPage/virtualWire",
        total_path="dataPage/pagingInfo/totalCount",
        start_param="startindex",
        size_param="pagesize",
    )]


def _edge_summaries(connection: NsxConnection) -> etree._Element:
    return _paged(
        connection,
        "/api/4.0/edges",
        root_tag="edgeSummaries",
        item_path="edgePage/edgeSummary",
        total_path="edgePage/pagingInfo/totalCount",
        start_param="startIndex",
        size_param="pageSize",
    )


def _fetch_edges_of_type(connection: NsxConnection, edge_type: str, root_tag: str) -> list:
    root = etree.Element(root_tag)
    for summary in _edge_summaries(connection):
        if summary.findtext("edgeType") != edge_type:
            continue
        edge_id = summary.findtext("objectId") or summary.findtext("id")
        root.append(connection.get_xml(f"/api/4.0/edges/{edge_id}"))
    return [root]


def fetch_logical_routers(connection: NsxConnection) -> list:
    """Distributed logical routers, full configuration per router."""
    return _fetch_edges_of_type(connection, "distributedRouter", "logicalRouters")


def fetch_edges(connection: NsxConnection) -> list:
    """Edge services gateways, full configuration per edge."""
    return _fetch_edges_of_type(connection, "gatewayServices", "edges")


def fetch_spoofguard_nics(connection: NsxConnection) -> list:
    """Active SpoofGuard NIC bindings, one document per policy."""
    policies = connection.get_xml("/api/4.0/services/spoofguard/policies/")
    documents = []
    for policy in policies.iter("spoofguardPolicy"):
        policy_id = policy.findtext("policyId")
        if not policy_id:
            continue
        documents.append(connection.get_xml(
            f"/api/4.0/services/spoofguard/{policy_id}",
            params={"list": "ACTIVE"},
        ))
    return documents


def _firewall_config(connection: NsxConnection) -> etree._Element:
    return connection.get_xml(f"/api/4.0/firewall/{GLOBAL_SCOPE}/config")


def fetch_firewall_rules(connection: NsxConnection) -> list:
    """Every distributed firewall rule, in section then rule order."""
    config = _firewall_config(connection)
    root = etree.Element("firewallRules")
    for section in config.iter("section"):
        for rule in section.findall("rule"):
            root.append(copy.deepcopy(rule))
    return [root]


def fetch_firewall_sections(connection: NsxConnection) -> list:
    """Firewall section headers (attributes and non-rule children)."""
    config = _firewall_config(connection)
    root = etree.Element("firewallSections")
    for section in config.iter("section"):
        header = copy.deepcopy(section)
        for rule in header.findall("rule"):
            header.remove(rule)
        root.append(header)
    return [root]


MANAGER_PATHS = (
    "/api/1.0/appliance-management/backuprestore/backupsettings",
    "/api/1.0/appliance-management/certificatemanager/certificates/nsx",
    "/api/1.0/appliance-management/summary/components",
    "/api/1.0/appliance-management/system/network",
    "/api/2.0/universalsync/configuration/role",
    "/api/2.0/services/ssoconfig",
    "/api/2.0/services/vcconfig",
    "/api/2.0/services/vcconfig/status",
    "/api/2.0/universalsync/status",
    "/api/1.0/appliance-management/system/syslogserver",
    "/api/1.0/appliance-management/system/timesettings",
    "/api/1.0/appliance-management/summary/system",
)


def fetch_manager_config(connection: NsxConnection) -> list:
    """Composite of NSX Manager appliance settings, one document per call."""
    return [connection.get_xml(path) for path in MANAGER_PATHS]


EDGE_VOLATILE = ("edge/edgeSummary/appliancesSummary/statusFromVseUpdatedOn",)

CATEGORIES: tuple[ResourceCategory, ...] = (
    ResourceCategory(
        "Controllers", "Controllers.xml",
        _get("/api/2.0/vdn/controller"),
        volatile_paths=("lastRefreshedAt",),
    ),
    ResourceCategory("LogicalSwitches", "LogicalSwitches.xml", fetch_logical_switches),
    ResourceCategory(
        "LogicalRouters", "LogicalRouters.xml", fetch_logical_routers,
        volatile_paths=EDGE_VOLATILE,
    ),
    ResourceCategory("Edges", "Edges.xml", fetch_edges, volatile_paths=EDGE_VOLATILE),
    ResourceCategory("TransportZones", "TransportZones.xml", _get("/api/2.0/vdn/scopes")),
    ResourceCategory(
        "SpoofGuardPolicies", "SpoofGuard_Policies.xml",
        _get("/api/4.0/services/spoofguard/policies/"),
    ),
    ResourceCategory("SpoofGuardNics", "SpoofGuard_Nics.xml", fetch_spoofguard_nics),
    ResourceCategory("IpSets", "IpSets.xml", _get(f"/api/2.0/services/ipset/scope/{GLOBAL_SCOPE}")),
    ResourceCategory(
        "Services", "Services.xml",
        _get(f"/api/2.0/services/application/scope/{GLOBAL_SCOPE}"),
    ),
    ResourceCategory(
        "ServiceGroups", "ServiceGroups.xml",
        _get(f"/api/2.0/services/applicationgroup/scope/{GLOBAL_SCOPE}"),
    ),
    ResourceCategory(
        "SecurityGroups", "SecurityGroups.xml",
        _get(f"/api/2.0/services/securitygroup/scope/{GLOBAL_SCOPE}"),
    ),
    ResourceCategory("SecurityTags", "SecurityTags.xml", _get("/api/2.0/services/securitytags/tag")),
    ResourceCategory(
        "SecurityPolicies", "SecurityPolicies.xml",
        _get("/api/2.0/services/policy/securitypolicy/all"),
    ),
    ResourceCategory("FirewallRules", "Firewall_Rules.xml", fetch_firewall_rules),
    ResourceCategory("FirewallSections", "Firewall_Sections.xml", fetch_firewall_sections),
    ResourceCategory(
        "FirewallSaved", "Firewall_Saved.xml",
        _get(f"/api/4.0/firewall/{GLOBAL_SCOPE}/drafts"),
    ),
    ResourceCategory(
        "NSXManagerConfig", "NSX_Manager.xml", fetch_manager_config,
        volatile_paths=(
            "lastInventorySyncTime",
            "lastClusterSyncTime",
            "timeSettings/datetime",
            "uptime",
            "currentSystemDate",
            "cpuInfoDto",
            "memInfoDto",
            "storageInfoDto",
        ),
    ),
)


def get_category(name: str) -> Optional[ResourceCategory]:
    """Look up a category by name (case-insensitive)."""
    for category in CATEGORIES:
        if category.name.lower() == name.lower():
            return category
    return None
