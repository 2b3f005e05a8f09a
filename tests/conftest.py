import pytest

from fakes import FakeInspector, FakeMailServer, FakeSubmitter


@pytest.fixture
def mail_server():
    return FakeMailServer()


@pytest.fixture
def submitter(mail_server):
    return FakeSubmitter(mail_server)


@pytest.fixture
def inspector(mail_server):
    return FakeInspector(mail_server)
