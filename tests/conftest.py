"""Pytest configuration and fixtures."""

import asyncio
from types import SimpleNamespace

import pytest


class StubClient:
    """Model client double: records every invoke and answers per output model name."""

    def __init__(self, response=None, error=None, delay=0.0):
        self.response = response
        self.error = error
        self.delay = delay
        self.calls = []

    async def invoke(self, prompt, output_model):
        self.calls.append((prompt, output_model))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if isinstance(self.response, dict) and output_model.__name__ in self.response:
            return self.response[output_model.__name__]
        return self.response


class FakeMessages:
    def __init__(self, response=None, error=None, delay=0.0):
        self.response = response
        self.error = error
        self.delay = delay
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.response


def tool_response(data, name="submit_result"):
    return SimpleNamespace(content=[SimpleNamespace(type="tool_use", name=name, input=data)])


def text_response(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


@pytest.fixture(name="tool_response")
def tool_response_fixture():
    return tool_response


@pytest.fixture(name="text_response")
def text_response_fixture():
    return text_response


@pytest.fixture
def stub_client():
    return StubClient


@pytest.fixture
def fake_sdk():
    def build(response=None, error=None, delay=0.0):
        return SimpleNamespace(messages=FakeMessages(response=response, error=error, delay=delay))

    return build


@pytest.fixture
def humanize_input():
    return {
        "senderName": "Sam",
        "recipient": "Jo",
        "message": "Call back about invoice 42",
        "messageContext": "Urgent",
    }
