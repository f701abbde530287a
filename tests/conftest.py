"""
Shared fixtures: a scripted gateway that never touches the network.

The gateway tells the three kinds of calls apart by their system prompt
(analysis, response, regeneration) and answers each from its own script.
A script is a list of replies; the last reply repeats once the list runs
out. A reply is a dict (sent as JSON), a raw string, or None for "no answer".
"""

import json

import pytest

from verso.llm.analyzer import ANALYSIS_PROMPT
from verso.llm.client import GatewayResponse, LLMGateway, ProviderConfig

REGENERATION_MARKER = "DO NOT reuse or lightly paraphrase"


def _as_script(value):
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class ScriptedGateway(LLMGateway):
    def __init__(self, analysis=None, response=None, regeneration=None):
        super().__init__([ProviderConfig(name="scripted", api_key="test", model="fake-1", base_url="http://fake")])
        self.scripts = {
            "analysis": _as_script(analysis),
            "response": _as_script(response),
            "regeneration": _as_script(regeneration),
        }
        self.calls = {"analysis": 0, "response": 0, "regeneration": 0}
        self.sent = []

    @staticmethod
    def kind_of(messages):
        system = messages[0]["content"] if messages and messages[0]["role"] == "system" else ""
        if system == ANALYSIS_PROMPT:
            return "analysis"
        if REGENERATION_MARKER in system:
            return "regeneration"
        return "response"

    def send(self, messages):
        kind = self.kind_of(messages)
        self.sent.append((kind, messages))
        index = self.calls[kind]
        self.calls[kind] += 1
        script = self.scripts[kind]
        if not script:
            return None
        reply = script[min(index, len(script) - 1)]
        if reply is None:
            return None
        content = reply if isinstance(reply, str) else json.dumps(reply)
        return GatewayResponse(content=content, provider="scripted", model="fake-1")

    @property
    def total_calls(self):
        return sum(self.calls.values())


ANALYSIS_REPLY = {
    "trigger_event": "A plan fell through",
    "likely_interpretation": "It says something about them",
    "underlying_fear": "Not being good enough",
    "emotional_need": "Reassurance",
    "core_wound": "Never being enough",
}


@pytest.fixture
def scripted_gateway():
    """Factory for ScriptedGateway instances."""
    return ScriptedGateway


@pytest.fixture
def analysis_reply():
    return dict(ANALYSIS_REPLY)
