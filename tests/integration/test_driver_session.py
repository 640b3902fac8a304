"""Interactive session driven by a scripted prompter against a live host."""

from __future__ import annotations

import json

import pytest

from users_mcp.capabilities import CapabilityKind
from users_mcp.driver import DriverSession, SamplingHandler
from users_mcp.driver.llm import FunctionCall, Turn

pytestmark = pytest.mark.integration

USER_ARGS = ["Ada Lovelace", "ada@example.com", "12 Analytical Row, London", "+44 20 7946 0000"]


class ScriptedPrompter:
    """Answers prompts from prepared lists and records everything echoed."""

    def __init__(
        self,
        selections: list[str] | None = None,
        texts: list[str] | None = None,
        confirms: list[bool] | None = None,
    ) -> None:
        self.selections = list(selections or [])
        self.texts = list(texts or [])
        self.confirms = list(confirms or [])
        self.output: list[str] = []
        self.questions: list[str] = []

    async def select(self, message, choices):
        self.questions.append(message)
        wanted = self.selections.pop(0)
        for label, value in choices:
            if label == wanted:
                return value
        raise AssertionError(f"{wanted!r} not offered in {[label for label, _ in choices]}")

    async def text(self, message: str) -> str:
        self.questions.append(message)
        return self.texts.pop(0)

    async def confirm(self, message: str, default: bool = True) -> bool:
        self.questions.append(message)
        return self.confirms.pop(0) if self.confirms else default

    def echo(self, text: str = "") -> None:
        self.output.append(text)


class FakeModel:
    """Text generator and tool-calling model with scripted turns."""

    def __init__(self, turns: list[Turn] | None = None, text: str = "generated") -> None:
        self.turns = list(turns or [])
        self.text = text
        self.prompts: list[str] = []

    async def generate(self, prompt: str, *, max_tokens: int | None = None) -> str:
        self.prompts.append(prompt)
        return self.text

    async def complete(self, turns, *, tools=None, max_tokens=None) -> Turn:
        self.prompts.append(turns[0].text)
        return self.turns.pop(0)


@pytest.fixture
async def live(registry, store, connector):
    """Factory building a session over a connected host; closes what it built."""
    opened = []

    async def build(prompter: ScriptedPrompter, model: FakeModel) -> DriverSession:
        session: DriverSession | None = None

        async def confirm(text: str) -> bool:
            return await session.confirm_sampling(text)

        pair = await connector(
            registry,
            store,
            sampling_handler=SamplingHandler(model, model="fake-model", confirm=confirm),
        )
        opened.append(pair)
        session = DriverSession(pair.client, model, prompter)
        await session.list_capabilities()
        return session

    yield build
    for pair in opened:
        await pair.client.close()
        await pair.connection.peer.close()


class TestSelectAndInvoke:
    """Menu-driven invocation of each capability kind."""

    @pytest.mark.asyncio
    async def test_tool(self, live, store) -> None:
        prompter = ScriptedPrompter(selections=["Create User"], texts=list(USER_ARGS))
        session = await live(prompter, FakeModel())

        await session.select_and_invoke(CapabilityKind.TOOL)

        assert prompter.output == ["User 1 created successfully"]
        assert "Enter value for email (string)" in prompter.questions
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_template_resource(self, live, store) -> None:
        prompter = ScriptedPrompter(selections=["user-details"], texts=["1"])
        session = await live(prompter, FakeModel())

        await session.select_and_invoke(CapabilityKind.RESOURCE)

        assert json.loads(prompter.output[0]) == {"error": "User not found"}
        assert "Enter value for userId" in prompter.questions

    @pytest.mark.asyncio
    async def test_static_resource_pretty_printed(self, live) -> None:
        prompter = ScriptedPrompter(selections=["users"])
        session = await live(prompter, FakeModel())

        await session.select_and_invoke(CapabilityKind.RESOURCE)

        assert prompter.output == ["[]"]

    @pytest.mark.asyncio
    async def test_prompt_confirmed_and_generated(self, live) -> None:
        prompter = ScriptedPrompter(selections=["generate-fake-user"], texts=["Ada"], confirms=[True])
        model = FakeModel(text='{"name": "Ada"}')
        session = await live(prompter, model)

        await session.select_and_invoke(CapabilityKind.PROMPT)

        assert "with the name Ada" in prompter.output[0]
        assert prompter.output[1] == '{"name": "Ada"}'
        assert model.prompts == [prompter.output[0]]

    @pytest.mark.asyncio
    async def test_prompt_declined(self, live) -> None:
        prompter = ScriptedPrompter(selections=["generate-fake-user"], texts=["Ada"], confirms=[False])
        model = FakeModel()
        session = await live(prompter, model)

        await session.select_and_invoke(CapabilityKind.PROMPT)

        assert len(prompter.output) == 1
        assert model.prompts == []

    @pytest.mark.asyncio
    async def test_random_user_asks_for_sampling_confirmation(self, live, store) -> None:
        generated = json.dumps(
            {"name": "Kenji", "email": "k@example.com", "address": "Tokyo", "phone": "123"}
        )
        prompter = ScriptedPrompter(selections=["Create Random User"], confirms=[True])
        session = await live(prompter, FakeModel(text=generated))

        await session.select_and_invoke(CapabilityKind.TOOL)

        assert prompter.output[0].startswith("Generate fake user data.")
        assert prompter.output[-1] == "User 1 created successfully"
        assert await store.count() == 1


class TestModelModes:
    """Query and autonomous task through the tool-use loop."""

    @pytest.mark.asyncio
    async def test_query_single_step(self, live, store) -> None:
        call = FunctionCall("create-user", dict(zip(["name", "email", "address", "phone"], USER_ARGS)))
        model = FakeModel(turns=[Turn(role="model", function_calls=[call])])
        prompter = ScriptedPrompter()
        session = await live(prompter, model)

        summary = await session.run_query("Add Ada to the database")

        assert summary == "User 1 created successfully"
        assert prompter.output == ["  -> Calling tool: create-user"]
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_autonomous_task(self, live) -> None:
        model = FakeModel(turns=[Turn(role="model", text="All done.")])
        session = await live(ScriptedPrompter(), model)

        summary = await session.run_autonomous("Create 3 users")

        assert summary == "All done."
        assert model.prompts == [
            "Complete this task: Create 3 users. Use the available tools as needed."
        ]


class TestMenuLoop:
    """run() dispatches menu choices until Quit."""

    @pytest.mark.asyncio
    async def test_menu_until_quit(self, live) -> None:
        prompter = ScriptedPrompter(selections=["Resources", "users", "Quit"])
        session = await live(prompter, FakeModel())

        await session.run()

        assert prompter.output == ["You are connected!", "[]"]

    @pytest.mark.asyncio
    async def test_protocol_error_printed_and_loop_continues(self, live) -> None:
        model = FakeModel(
            turns=[Turn(role="model", function_calls=[FunctionCall("create-user", {})])]
        )
        prompter = ScriptedPrompter(
            selections=["Resources", "user-details", "Query", "Quit"],
            texts=["", "make a user"],
        )
        session = await live(prompter, model)

        await session.run()

        assert any(line.startswith("Error: ") for line in prompter.output)
        assert "Invalid arguments for tool 'create-user'" in prompter.output[-1]
