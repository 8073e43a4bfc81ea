import pytest

from script_craft.llm import LLMError, LLMRequest
from script_craft.models import Persona, ScriptLine


class StubLLM:
    """Deterministic LLM stand-in for tests.

    Provide a dict mapping stage name → list of responses (in call order).
    A response that is an exception instance is raised instead of returned.
    Raises if a stage is called more times than responses were provided.
    """

    def __init__(self, responses: dict[str, list[str | Exception]]) -> None:
        self._queues = {k: list(v) for k, v in responses.items()}
        self.calls: list[tuple[str, LLMRequest]] = []

    async def __call__(self, stage: str, request: LLMRequest) -> str:
        self.calls.append((stage, request))
        queue = self._queues.get(stage)
        if not queue:
            raise AssertionError(
                f"StubLLM: unexpected call to stage={stage!r} "
                f"(no responses queued). calls so far: {[s for s, _ in self.calls]}"
            )
        response = queue.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def assert_exhausted(self) -> None:
        """Assert every queued response was consumed."""
        leftover = {k: v for k, v in self._queues.items() if v}
        if leftover:
            raise AssertionError(f"StubLLM: unused responses remain: {leftover}")


@pytest.fixture
def stub_llm():
    """Factory: stub_llm({"script": ['[...]']})."""
    return StubLLM


@pytest.fixture
def llm_down():
    """Error every stage raises when the model endpoint is unreachable."""
    return LLMError("Cannot connect to Gemini at http://localhost:1")


@pytest.fixture
def alex() -> Persona:
    return Persona(
        id="a1",
        name="Alex",
        role="Host",
        personality_traits=["Curious"],
        motivations="Make science accessible",
    )


@pytest.fixture
def sam() -> Persona:
    return Persona(
        id="s1",
        name="Sam",
        role="Energy Analyst",
        communication_style="Analytical",
        expertise_level="Expert",
        personality_traits=["Pragmatic", "Skeptical"],
    )


@pytest.fixture
def personas(alex, sam) -> list[Persona]:
    return [alex, sam]


@pytest.fixture
def script() -> list[ScriptLine]:
    return [
        ScriptLine(id="l1", speaker_id="a1", line="Welcome to the show."),
        ScriptLine(id="l2", speaker_id="s1", line="Glad to be here."),
        ScriptLine(id="l3", speaker_id="a1", line="Let's talk solar."),
    ]
