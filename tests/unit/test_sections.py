from blox_pipeline.models.domain.pipeline_domain import DocumentType
from blox_pipeline.models.domain.sections import (
    map_lines_to_sections,
    section_kinds,
    semantic_content,
    serialize_content,
)


def test_lines_map_positionally_and_pad_with_placeholders():
    sections = map_lines_to_sections(DocumentType.RESUME, "Line A\n\n   \nLine B")

    assert [s.to_dict() for s in sections] == [
        {"id": "section-0", "type": "summary", "content": "Line A"},
        {"id": "section-1", "type": "experience", "content": "Line B"},
        {"id": "section-2", "type": "education", "content": "Education section"},
        {"id": "section-3", "type": "skills", "content": "Skills section"},
    ]


def test_extra_lines_are_dropped():
    text = "\n".join(f"line {i}" for i in range(10))

    sections = map_lines_to_sections(DocumentType.COVER_LETTER, text)

    assert [s.content for s in sections] == ["line 0", "line 1", "line 2"]


def test_unknown_type_uses_resume_sections():
    assert section_kinds("INVOICE") == section_kinds(DocumentType.RESUME)
    assert section_kinds("portfolio")[0].value == "hero"


def test_semantic_content_drops_pipeline_results():
    content = {"sections": [], "critique": {"overallScore": 80}, "atsResult": {}, "tailoring": {}}

    assert semantic_content(content) == {"sections": []}
    assert serialize_content(semantic_content(content)) == '{"sections":[]}'
