"""Stage machine transitions and status derivation."""

import pytest

from shortfactory.errors import MissingStageData, StageMismatch, TerminalStage
from shortfactory.orchestrator.stages import (
    advance,
    complete_stage,
    mark_error,
    mark_processing,
    mark_review,
    move_stage,
    reset_stage,
)
from shortfactory.orchestrator.state import (
    completed_stages,
    effective_status,
    next_stage,
    populated_prefix_ok,
)
from shortfactory.schemas.project import Project, ProjectFlag, ProjectStatus
from shortfactory.schemas.stage import STAGE_ORDER, Stage
from shortfactory.schemas.stage_payloads import ReferencePayload, ScriptPayload


def _project(**kwargs) -> Project:
    return Project(channel_id="chan-1", title="Test", **kwargs)


def _with_transcript() -> Project:
    return _project(stage_data={
        Stage.REFERENCE: ReferencePayload(video_id="abc123", transcript="Some transcript."),
    })


# ---------------------------------------------------------------------------
# Stage order
# ---------------------------------------------------------------------------


def test_stage_order_has_ten_stages():
    assert len(STAGE_ORDER) == 10
    assert STAGE_ORDER[0] == Stage.REFERENCE
    assert STAGE_ORDER[-1] == Stage.PUBLISH_THUMBNAIL


def test_next_stage_is_none_at_the_end():
    assert next_stage(Stage.REFERENCE) == Stage.SCRIPT
    assert next_stage(Stage.THUMBNAIL) == Stage.PUBLISH_THUMBNAIL
    assert next_stage(Stage.PUBLISH_THUMBNAIL) is None


# ---------------------------------------------------------------------------
# advance
# ---------------------------------------------------------------------------


def test_advance_moves_exactly_one_stage_and_stores_payload():
    project = _with_transcript()
    updated = advance(project, {"text": "A brand new script."})

    assert updated.current_stage == Stage.SCRIPT
    assert isinstance(updated.stage_data[Stage.SCRIPT], ScriptPayload)
    assert updated.stage_data[Stage.SCRIPT].word_count == 4
    assert updated.status == ProjectStatus.READY
    # the input is not mutated
    assert project.current_stage == Stage.REFERENCE
    assert Stage.SCRIPT not in project.stage_data


def test_advance_from_script_with_script_payload_raises_stage_mismatch():
    project = advance(_with_transcript(), {"text": "Script text."})

    with pytest.raises(StageMismatch):
        advance(project, ScriptPayload(text="Another script."))
    with pytest.raises(StageMismatch):
        advance(project, {"text": "Another script."})


def test_advance_rejects_payload_tagged_for_another_stage():
    project = _with_transcript()
    with pytest.raises(StageMismatch) as exc_info:
        advance(project, {"audio": {"file_url": "/tmp/a.wav"}})
    assert exc_info.value.stage == Stage.SCRIPT


def test_advance_accepts_payload_tagged_for_the_next_stage():
    updated = advance(_with_transcript(), {"script": {"text": "Tagged script."}})
    assert updated.stage_data[Stage.SCRIPT].text == "Tagged script."


def test_advance_without_data_leaves_new_stage_pending():
    updated = advance(_with_transcript(), None)
    assert updated.current_stage == Stage.SCRIPT
    assert Stage.SCRIPT not in updated.stage_data
    assert updated.status == ProjectStatus.PENDING


def test_advance_clears_error_flag():
    project = mark_error(_with_transcript(), "boom")
    updated = advance(project, {"text": "Script."})
    assert updated.flag is None
    assert updated.error_message is None


def test_advance_at_last_stage_raises_terminal_stage():
    project = _project(current_stage=Stage.PUBLISH_THUMBNAIL)
    with pytest.raises(TerminalStage):
        advance(project, {"confirmed": True})


def test_advance_bumps_updated_at():
    project = _with_transcript()
    updated = advance(project, None)
    assert updated.updated_at >= project.updated_at


def test_completed_stages_are_the_prefix_before_current():
    project = advance(advance(_with_transcript(), {"text": "S."}), {"file_url": "/a.wav"})
    assert completed_stages(project) == [Stage.REFERENCE, Stage.SCRIPT]
    assert populated_prefix_ok(project)


def test_advance_with_data_from_an_empty_stage_is_rejected():
    project = advance(_with_transcript(), None)

    with pytest.raises(MissingStageData):
        advance(project, {"file_url": "/a.wav"})
    assert Stage.AUDIO not in project.stage_data


def test_populated_stages_stay_a_prefix_across_advances():
    steps = [
        None,
        "fill:script",
        {"file_url": "/a.wav"},
        {"file_url": "/a.mp3"},
        None,
        {"file_url": "/a.wav"},
        "fill:subtitles",
        {"image_urls": ["/img/1.png"]},
        {"file_url": "/out/final.mp4"},
    ]
    project = _with_transcript()
    assert populated_prefix_ok(project)

    for step in steps:
        if step == "fill:script":
            project = complete_stage(project, {"text": "Filled script."})
        elif step == "fill:subtitles":
            project = complete_stage(project, {"srt_content": "1\n00:00:00,000 --> 00:00:01,000\nHi\n"})
        else:
            try:
                project = advance(project, step)
            except MissingStageData:
                pass
        assert populated_prefix_ok(project), sorted(s.value for s in project.stage_data)

    assert project.current_stage == Stage.VIDEO


def test_populated_prefix_detects_a_gap():
    gap = _project(
        current_stage=Stage.AUDIO,
        stage_data={
            Stage.REFERENCE: ReferencePayload(transcript="t"),
            Stage.AUDIO: {"file_url": "/a.wav"},
        },
    )
    assert not populated_prefix_ok(gap)


# ---------------------------------------------------------------------------
# complete_stage / move / reset
# ---------------------------------------------------------------------------


def test_complete_stage_fills_current_stage_in_place():
    project = advance(_with_transcript(), None)
    filled = complete_stage(project, {"text": "Filled later."})
    assert filled.current_stage == Stage.SCRIPT
    assert filled.status == ProjectStatus.READY


def test_move_stage_skips_prerequisites_and_keeps_data():
    project = _with_transcript()
    moved = move_stage(project, Stage.VIDEO)
    assert moved.current_stage == Stage.VIDEO
    assert moved.status == ProjectStatus.PENDING
    published = advance(complete_stage(moved, {"file_url": "/out/final.mp4"}), {"content": "Published at youtube"})
    back = move_stage(published, Stage.SCRIPT)
    assert Stage.PUBLISH_VIDEO in back.stage_data
    assert not populated_prefix_ok(back)


def test_reset_clears_error_and_keeps_stage():
    project = mark_error(advance(_with_transcript(), {"text": "S."}), "Error at stage audio: quota")
    assert project.status == ProjectStatus.ERROR

    reset = reset_stage(project)
    assert reset.current_stage == Stage.SCRIPT
    assert reset.error_message is None
    assert reset.status == ProjectStatus.READY


# ---------------------------------------------------------------------------
# Status derivation
# ---------------------------------------------------------------------------


def test_flags_are_returned_verbatim():
    project = _with_transcript()
    assert effective_status(mark_processing(project)) == ProjectStatus.PROCESSING
    assert effective_status(mark_review(project)) == ProjectStatus.REVIEW
    assert effective_status(mark_error(project, "x")) == ProjectStatus.ERROR


def test_reference_without_transcript_is_pending():
    project = _project(stage_data={Stage.REFERENCE: ReferencePayload(video_id="abc", transcript="   ")})
    assert effective_status(project) == ProjectStatus.PENDING
    assert effective_status(_with_transcript()) == ProjectStatus.READY


def test_status_derivation_does_not_modify_project():
    project = _project(flag=ProjectFlag.REVIEW)
    before = project.model_dump()
    effective_status(project)
    assert project.model_dump() == before
