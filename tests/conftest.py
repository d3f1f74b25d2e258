"""Shared fakes for the NSX connection and version control."""
from typing import Callable, Optional, Union

import pytest
from lxml import etree

from nsx_config_archive.config_store import GitResult, VersionControl
from nsx_config_archive.nsx import NsxApiError

Response = Union[str, Exception, Callable[[Optional[dict]], str]]


class FakeConnection:
    """Stands in for NsxConnection; serves canned XML per API path."""

    def __init__(self, responses: Optional[dict[str, Response]] = None, active: bool = True):
        self.host = "nsx-test.local"
        self.responses = responses or {}
        self.active = active
        self.calls: list[tuple[str, Optional[dict]]] = []

    def is_active(self) -> bool:
        return self.active

    def get_xml(self, path: str, params: Optional[dict] = None):
        self.calls.append((path, params))
        if path not in self.responses:
            raise NsxApiError(f"GET {path} returned HTTP 404", status_code=404, path=path)
        response = self.responses[path]
        if isinstance(response, Exception):
            raise response
        if callable(response):
            response = response(params)
        parser = etree.XMLParser(remove_blank_text=True)
        return etree.fromstring(response.encode(), parser=parser)


class FakeVersionControl(VersionControl):
    """Records stage/commit/push calls without a real repository."""

    def __init__(self, work_tree: bool = True, push_rc: int = 0):
        self.work_tree = work_tree
        self.push_rc = push_rc
        self.calls: list[tuple] = []
        self.committed: set[str] = set()
        self.pending = False

    def is_work_tree(self) -> bool:
        self.calls.append(("status",))
        return self.work_tree

    def stage(self, pattern: str) -> GitResult:
        self.calls.append(("add", pattern))
        return GitResult(("add", pattern), 0)

    def commit(self, message: str) -> GitResult:
        self.calls.append(("commit", message))
        if not self.pending:
            return GitResult(
                ("commit", "-a", "-m", message), 1,
                "On branch master\nnothing to commit, working tree clean\n",
            )
        self.pending = False
        return GitResult(("commit", "-a", "-m", message), 0, "[master abc1234] export\n")

    def push(self, remote: str, branch: str) -> GitResult:
        self.calls.append(("push", remote, branch))
        output = "" if self.push_rc == 0 else "fatal: unable to access remote\n"
        return GitResult(("push", "-u", remote, branch), self.push_rc, output)

    def commands(self) -> list[str]:
        return [c[0] for c in self.calls]


def parse(xml: str):
    """Parse an XML string the way NsxConnection does."""
    return etree.fromstring(xml.encode(), parser=etree.XMLParser(remove_blank_text=True))


@pytest.fixture
def fake_vcs():
    return FakeVersionControl()


@pytest.fixture
def git_exe(tmp_path):
    """A file standing in for the git executable path check."""
    path = tmp_path / "bin" / "git"
    path.parent.mkdir()
    path.write_text("#!/bin/sh\n")
    return str(path)
