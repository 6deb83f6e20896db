# tests/unit/test_resources.py
"""针对资源桥接（归一化与基于 TM 的资源翻译）的单元测试。"""

from collections.abc import Callable
from typing import Any

import pytest
from conftest import ph

from l10n_hub._guid.encoder import generate_tu_guid
from l10n_hub._nstr.decoders import (
    brace_placeholder_decoder,
    xml_entity_decoder,
    xml_entity_encoder,
)
from l10n_hub.core.exceptions import ConfigurationError, IncompatibleTranslationError
from l10n_hub.core.types import Job, JobStatus, Segment, StructuredNotes, TranslationUnit
from l10n_hub.resources import ResourceHandler, translate_with_tm_entry
from l10n_hub.tm_manager import TMManager

RESOURCE = "greet=Hello {name}\nbye=Bye &amp; thanks\nnew=Brand new"


class LineFilter:
    """每行一个 `sid=text` 段落的资源格式。"""

    def __init__(self, notes: dict[str, str] | None = None, subresources: bool = False):
        self.notes = notes or {}
        self.subresources = subresources

    async def parse_resource(self, *, resource: str, **kwargs: Any) -> dict[str, Any]:
        segments = []
        for line in resource.splitlines():
            sid, _, text = line.partition("=")
            segment: dict[str, Any] = {"sid": sid, "str": text}
            if sid in self.notes:
                segment["notes"] = self.notes[sid]
            segments.append(segment)
        parsed: dict[str, Any] = {"segments": segments}
        if self.subresources:
            parsed["subresources"] = [{"id": "embedded"}]
        return parsed

    async def translate_resource(
        self, *, resource: str, translator: Callable[[str, str], Any], **kwargs: Any
    ) -> str:
        lines = []
        for line in resource.splitlines():
            sid, _, text = line.partition("=")
            translated = await translator(sid, text)
            if translated is not None:
                lines.append(f"{sid}={translated}")
        return "\n".join(lines)


def _handler(resource_filter: LineFilter | None = None) -> ResourceHandler:
    return ResourceHandler(
        resource_filter or LineFilter(),
        decoders_by_mf={"icu": [xml_entity_decoder, brace_placeholder_decoder]},
        default_mf="icu",
        text_encoders=[xml_entity_encoder],
    )


@pytest.mark.asyncio
async def test_get_normalized_resource() -> None:
    tus = await _handler(LineFilter(subresources=True)).get_normalized_resource(
        "res", RESOURCE, prj="web"
    )

    assert [tu.sid for tu in tus] == ["greet", "bye", "new"]
    assert tus[0].nsrc == ["Hello ", ph("{name}")]
    assert tus[1].nsrc == ["Bye & thanks"]
    assert tus[0].guid == generate_tu_guid("res", "greet", ["Hello ", ph("{name}")])
    assert {tu.prj for tu in tus} == {"web"}


@pytest.mark.asyncio
async def test_notes_are_structured_and_samples_applied() -> None:
    handler = _handler(LineFilter(notes={"greet": "Greeting PH({name}|Bob) MAXWIDTH(30)"}))

    greet = (await handler.get_normalized_resource("res", RESOURCE))[0]

    assert isinstance(greet.notes, StructuredNotes)
    assert greet.notes.desc == "Greeting"
    assert greet.notes.max_width == 30
    assert greet.nsrc == ["Hello ", ph("{name}", s="Bob")]


def test_unknown_message_format() -> None:
    segment = Segment.model_validate({"sid": "a", "str": "Hi", "mf": "po"})
    with pytest.raises(ConfigurationError):
        _handler().normalize(segment)


def test_normalize_reports_decoder_flags() -> None:
    flags: dict[str, bool] = {}
    segment = Segment.model_validate({"sid": "a", "str": "A &amp; B"})
    assert _handler().normalize(segment, flags) == ["A & B"]
    assert flags == {"xmlEntityDecoder": True}


@pytest.mark.asyncio
async def test_translate_resource_uses_tm(tm_manager: TMManager) -> None:
    """测试 TM 中有译文的段落被编码回原始格式，没有译文的段落被省略。"""
    handler = _handler()
    greet, bye, _ = await handler.get_normalized_resource("res", RESOURCE)
    request = Job(job_guid="job1", source_lang="en", target_lang="de", tus=[greet, bye])
    response = request.model_copy(
        update={
            "status": JobStatus.DONE,
            "tus": [
                TranslationUnit(guid=greet.guid, ntgt=["Hallo ", ph("{name}")], q=80, ts=1),
                TranslationUnit(guid=bye.guid, ntgt=["Tschüss & danke"], q=80, ts=1),
            ],
        }
    )
    await tm_manager.ingest_job(response, request)

    translated = await handler.translate_resource(
        "res", RESOURCE, tm_manager.get_tm("en", "de")
    )

    assert translated == "greet=Hallo {name}\nbye=Tschüss &amp; danke"


@pytest.mark.asyncio
async def test_translate_resource_skips_inflight_entries(tm_manager: TMManager) -> None:
    handler = _handler()
    greet = (await handler.get_normalized_resource("res", "greet=Hello {name}"))[0]
    request = Job(job_guid="job1", source_lang="en", target_lang="de", tus=[greet])
    await tm_manager.ingest_job(
        request.model_copy(update={"status": JobStatus.PENDING, "inflight": [greet.guid]}),
        request,
    )

    assert await handler.translate_resource(
        "res", "greet=Hello {name}", tm_manager.get_tm("en", "de")
    ) == ""


def test_translate_with_tm_entry() -> None:
    nsrc = ["Hello ", ph("{user}")]
    entry = TranslationUnit(guid="g", ntgt=[ph("{name}", v1="a_x_name"), " Hallo"], q=50, ts=1)

    assert translate_with_tm_entry(nsrc, entry) == [ph("{user}", v1="a_x_user"), " Hallo"]
    with pytest.raises(IncompatibleTranslationError):
        translate_with_tm_entry(nsrc, None)
    with pytest.raises(IncompatibleTranslationError):
        translate_with_tm_entry(nsrc, entry.model_copy(update={"inflight": True}))
    with pytest.raises(IncompatibleTranslationError):
        translate_with_tm_entry(nsrc, entry.model_copy(update={"ntgt": ["Hallo"]}))
