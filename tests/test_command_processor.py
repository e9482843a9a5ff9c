from __future__ import annotations

import pytest

from inkwell.core.ranges import TextRange
from inkwell.documents.model import AIHistoryEntry, Document
from inkwell.editor.commands import (
    AIEditGroup,
    AIReplacePlainTextRangeCommand,
    RollbackAIEditGroupCommand,
    UpdateSectionNotesCommand,
)
from inkwell.editor.errors import HistoryEmptyError
from inkwell.editor.processor import CommandProcessor


def _content(document: Document) -> str:
    return document.chapters[0].sections[0].content.value


def _two_command_group(processor: CommandProcessor, section_id: str) -> tuple[AIEditGroup, list[AIReplacePlainTextRangeCommand]]:
    group = AIEditGroup(section_id, "rewrite")
    commands = [
        AIReplacePlainTextRangeCommand(section_id, TextRange(0, 5), "Hi", group, "rewrite"),
        AIReplacePlainTextRangeCommand(section_id, TextRange(3, 5), "earth", group, "rewrite"),
    ]
    for command in commands:
        processor.execute(command)
    return group, commands


def test_empty_history_raises(processor: CommandProcessor) -> None:
    assert not processor.can_undo
    with pytest.raises(HistoryEmptyError):
        processor.undo()
    with pytest.raises(HistoryEmptyError):
        processor.redo()


def test_execute_undo_redo_cycle(processor: CommandProcessor, section_id: str) -> None:
    seen: list[Document] = []
    processor.add_listener(seen.append)
    command = UpdateSectionNotesCommand(section_id, "check pacing")

    processor.execute(command)
    assert processor.undo() is command
    assert processor.can_redo
    assert processor.redo() is command

    assert processor.document.chapters[0].sections[0].notes == "check pacing"
    assert len(seen) == 3


def test_new_command_clears_redo(processor: CommandProcessor, section_id: str) -> None:
    processor.execute(UpdateSectionNotesCommand(section_id, "one"))
    processor.undo()
    processor.execute(UpdateSectionNotesCommand(section_id, "two"))

    assert not processor.can_redo


def test_group_provenance_records_both_commands(processor: CommandProcessor, section_id: str) -> None:
    group, commands = _two_command_group(processor, section_id)

    section = processor.document.chapters[0].sections[0]
    assert _content(processor.document) == "<p>Hi earth</p>"
    assert section.ai.last_modified_by_ai
    assert len(section.ai.ai_edit_groups) == 1
    entry = section.ai.ai_edit_groups[0]
    assert entry.group_id == group.group_id
    assert entry.reason == "rewrite"
    assert entry.command_ids == [command.command_id for command in commands]


def test_rollback_removes_group_and_restores_content(processor: CommandProcessor, section_id: str) -> None:
    group, _ = _two_command_group(processor, section_id)

    assert processor.rollback_ai_edit_group(section_id, group.group_id)

    section = processor.document.chapters[0].sections[0]
    assert _content(processor.document) == "<p>Hello world</p>"
    assert section.ai.ai_edit_groups == []
    assert not section.ai.last_modified_by_ai


def test_undoing_a_rollback_replays_the_group(processor: CommandProcessor, section_id: str) -> None:
    group, commands = _two_command_group(processor, section_id)
    processor.rollback_ai_edit_group(section_id, group.group_id)

    replayed = processor.undo()

    assert isinstance(replayed, RollbackAIEditGroupCommand)
    section = processor.document.chapters[0].sections[0]
    assert _content(processor.document) == "<p>Hi earth</p>"
    assert section.ai.find_group(group.group_id) is not None
    assert section.ai.ai_edit_groups[0].command_ids == [command.command_id for command in commands]


def test_rollback_reaches_groups_below_the_top_of_the_stack(processor: CommandProcessor, section_id: str) -> None:
    group = AIEditGroup(section_id)
    processor.execute(AIReplacePlainTextRangeCommand(section_id, TextRange(0, 5), "Hi", group))
    processor.execute(UpdateSectionNotesCommand(section_id, "unrelated"))

    assert processor.rollback_ai_edit_group(section_id, group.group_id)
    assert _content(processor.document) == "<p>Hello world</p>"
    assert processor.document.chapters[0].sections[0].notes == "unrelated"


def test_rollback_unknown_group_returns_false(processor: CommandProcessor, section_id: str) -> None:
    assert not processor.rollback_ai_edit_group(section_id, "nope")
    assert not processor.rollback_last_ai_edit(section_id)
    with pytest.raises(ValueError):
        processor.rollback_ai_edit_group("", "nope")


def test_global_undo_strips_provenance(processor: CommandProcessor, section_id: str) -> None:
    _two_command_group(processor, section_id)

    processor.undo()
    section = processor.document.chapters[0].sections[0]
    assert len(section.ai.ai_edit_groups[0].command_ids) == 1

    processor.undo()
    assert section.ai.ai_edit_groups == []


def test_rollback_all_walks_groups_newest_first(processor: CommandProcessor, section_id: str) -> None:
    processor.execute(AIReplacePlainTextRangeCommand(section_id, TextRange(0, 5), "Hi", AIEditGroup(section_id)))
    processor.execute(AIReplacePlainTextRangeCommand(section_id, TextRange(3, 5), "there", AIEditGroup(section_id)))

    assert processor.rollback_all_ai_edits(section_id) == 2
    assert _content(processor.document) == "<p>Hello world</p>"


def test_ai_edit_ranges_and_selection_info(processor: CommandProcessor, section_id: str) -> None:
    group, _ = _two_command_group(processor, section_id)

    ranges = processor.get_ai_edit_ranges(section_id, 9)
    info = processor.get_ai_edit_selection_info(section_id, TextRange(1, 1), 9)
    outside = processor.get_ai_edit_selection_info(section_id, TextRange(8, 1), 9)

    assert [(item.group_id, item.text_range) for item in ranges] == [(group.group_id, TextRange(0, 8))]
    assert info.is_ai_edit and info.group_id == group.group_id
    assert not info.has_multiple_groups
    assert not outside.is_ai_edit


def test_ai_history_entries_are_deduplicated_by_group(processor: CommandProcessor, section_id: str) -> None:
    entry = AIHistoryEntry("group-1", "rewrite.selection", "mock-text", "Rewrite selected text")

    assert processor.append_ai_history_entry(section_id, entry)
    assert not processor.append_ai_history_entry(section_id, AIHistoryEntry("group-1", "x", "y"))
    assert processor.remove_ai_history_entry(section_id, "group-1")
    assert not processor.remove_ai_history_entry(section_id, "group-1")


def test_discard_forgets_the_command(processor: CommandProcessor, section_id: str) -> None:
    group, commands = _two_command_group(processor, section_id)

    processor.discard(commands[1])
    processor.discard(commands[0])

    section = processor.document.chapters[0].sections[0]
    assert _content(processor.document) == "<p>Hello world</p>"
    assert section.ai.find_group(group.group_id) is None
    assert processor.ai_commands == ()
    assert not processor.can_undo and not processor.can_redo
    with pytest.raises(ValueError):
        processor.discard(commands[0])
