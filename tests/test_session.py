"""Tests for script_craft.session: in-memory state and input validation."""

import base64

import pytest

from script_craft.documents import UploadedFile
from script_craft.models import GenerationSettings, InputError, SourceDocument
from script_craft.session import (
    MAX_AVATAR_BYTES,
    MAX_DEEPER_CHARS_BYTES,
    NotFoundError,
    Session,
)


@pytest.fixture
def session(personas, script) -> Session:
    return Session(personas=personas, script=script, show_intro="Hello")


def _upload(name: str, mime: str, size: int = 10) -> UploadedFile:
    return UploadedFile(name=name, content_type=mime, data=b"x" * size)


def _docs(n: int) -> list[SourceDocument]:
    return [SourceDocument(name=f"d{i}.txt") for i in range(n)]


class TestPersonas:
    def test_add_duplicate_id(self, session, alex) -> None:
        with pytest.raises(InputError):
            session.add_persona(alex)

    def test_update_persona(self, session) -> None:
        updated = session.update_persona("a1", role="Moderator", quirks="Hums")
        assert updated.role == "Moderator"
        assert session.get_persona("a1").quirks == "Hums"
        assert session.get_persona("a1").personality_traits == ["Curious"]

    def test_update_merges_speaking_patterns(self, session) -> None:
        session.update_persona("a1", speaking_patterns={"filler_words": "um"})
        updated = session.update_persona("a1", speaking_patterns={"humor_level": "Witty"})
        assert updated.speaking_patterns.humor_level == "Witty"
        assert updated.speaking_patterns.filler_words == "um"
        assert updated.speaking_patterns.sentence_length == "Medium"

    def test_update_rejects_blank_name(self, session) -> None:
        with pytest.raises(InputError):
            session.update_persona("a1", name=" ")

    def test_update_rejects_bad_value(self, session) -> None:
        with pytest.raises(InputError):
            session.update_persona("a1", expertise_level="Wizard")
        assert session.get_persona("a1").expertise_level == "Intermediate"

    def test_remove_keeps_lines(self, session) -> None:
        session.remove_persona("s1")
        assert [p.id for p in session.personas] == ["a1"]
        assert len(session.script) == 3

    def test_unknown_persona(self, session) -> None:
        with pytest.raises(NotFoundError):
            session.get_persona("nobody")


class TestDocuments:
    def test_attach_and_remove(self, session) -> None:
        docs = _docs(2)
        session.attach_documents("a1", docs)
        assert len(session.get_persona("a1").source_documents) == 2
        session.remove_document("a1", docs[0].id)
        assert [d.id for d in session.get_persona("a1").source_documents] == [docs[1].id]

    def test_cap_of_three(self, session) -> None:
        session.attach_documents("a1", _docs(2))
        with pytest.raises(InputError, match="maximum of 3"):
            session.attach_documents("a1", _docs(2))
        assert len(session.get_persona("a1").source_documents) == 2

    def test_remove_unknown_document(self, session) -> None:
        with pytest.raises(NotFoundError):
            session.remove_document("a1", "nope")


class TestAttachments:
    def test_avatar_stored_as_data_url(self, session) -> None:
        p = session.set_avatar("a1", _upload("me.png", "image/png"))
        assert p.avatar_url == "data:image/png;base64," + base64.b64encode(b"x" * 10).decode()

    def test_avatar_wrong_type(self, session) -> None:
        with pytest.raises(InputError, match="PNG, JPG, or WEBP"):
            session.set_avatar("a1", _upload("me.gif", "image/gif"))

    def test_avatar_too_large(self, session) -> None:
        with pytest.raises(InputError, match="under 1MB"):
            session.set_avatar("a1", _upload("me.png", "image/png", MAX_AVATAR_BYTES + 1))

    def test_avatar_removed(self, session) -> None:
        session.set_avatar("a1", _upload("me.webp", "image/webp"))
        assert session.set_avatar("a1", None).avatar_url is None

    def test_speaking_context(self, session) -> None:
        p = session.set_speaking_context("a1", _upload("Style.MD", "text/markdown"))
        assert p.speaking_patterns.speaking_context_file.name == "Style.MD"
        assert p.speaking_patterns.humor_level == "Subtle"

    def test_speaking_context_wrong_extension(self, session) -> None:
        with pytest.raises(InputError, match=".md, .txt, .html or .pdf"):
            session.set_speaking_context("a1", _upload("style.docx", "application/msword"))

    def test_speaking_context_too_large(self, session) -> None:
        with pytest.raises(InputError, match="under 2MB"):
            session.set_speaking_context("a1", _upload("s.txt", "text/plain", 2 * 1024 * 1024 + 1))

    def test_deeper_chars(self, session) -> None:
        p = session.set_deeper_chars("s1", _upload("talk.mp4", "video/mp4"))
        assert p.deeper_chars_context_file.type == "video/mp4"

    def test_deeper_chars_wrong_type(self, session) -> None:
        with pytest.raises(InputError, match="audio or video"):
            session.set_deeper_chars("s1", _upload("talk.txt", "text/plain"))

    def test_deeper_chars_too_large(self, session) -> None:
        with pytest.raises(InputError, match="under 10MB"):
            session.set_deeper_chars("s1", _upload("t.mp3", "audio/mpeg", MAX_DEEPER_CHARS_BYTES + 1))


class TestScript:
    def test_require_script_ready(self, alex) -> None:
        with pytest.raises(InputError, match="At least 2 personas"):
            Session(personas=[alex]).require_script_ready()

    def test_edit_line(self, session) -> None:
        assert session.edit_line("l1", "Hi!").line == "Hi!"
        assert session.script[0].line == "Hi!"

    def test_switch_to_unknown_speaker(self, session) -> None:
        with pytest.raises(NotFoundError):
            session.switch_speaker("l1", "nobody")

    def test_insert_after(self, session) -> None:
        new_line = session.insert_after("l1")
        assert session.script[1] is new_line
        assert new_line.speaker_id == "s1"

    def test_insert_after_without_personas(self, script) -> None:
        with pytest.raises(InputError):
            Session(script=script).insert_after("l1")

    def test_delete_unknown_line(self, session) -> None:
        with pytest.raises(NotFoundError):
            session.delete_line("nope")


def test_reset(session) -> None:
    session.settings = GenerationSettings(temperature=1.2)
    session.reset()
    assert session.personas == []
    assert session.script == []
    assert session.show_intro == ""
    assert session.settings == GenerationSettings()
