"""Integration tests against the scripted fake agent in test/fixtures/fake_agent.py.

Run with: pytest test/integration/ -v
"""

import pytest

from lensprobe.harness.fixture import AgentFixture

DOCUMENT = "src/main/java/Foo.java"


@pytest.fixture
def agent_fixture(java_project, fake_agent_config):
    fixture = AgentFixture(java_project, document=java_project / DOCUMENT, config=fake_agent_config)
    fixture.set_up()
    try:
        yield fixture
    finally:
        fixture.tear_down()
