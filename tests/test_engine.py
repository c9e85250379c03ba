"""Tests for the push and pull sync engines."""

from pathlib import Path

import pytest
from conftest import STORY_ID_FIELD, FakeBoardProvider, make_card

from mdsync.models import CustomFieldItem, Label, Member, Story, SyncConfig, Todo
from mdsync.sync.engine import (
    BoardToMarkdownEngine,
    MarkdownToBoardEngine,
    card_to_story,
    load_stories,
    resolve_story_id_field,
    roundtrip_mismatches,
    write_story_files,
)
from mdsync.sync.errors import DuplicateStoryIdError, MarkdownParseError
from mdsync.sync.parser import parse_markdown
from mdsync.sync.renderer import render_story

LOGIN_MD = """\
## Story: STORY-1 Login

### Story ID
STORY-1

### Status
Doing

### Description
Body

### Acceptance Criteria
- [x] a
"""

SIGNUP_MD = """\
## Story: STORY-2 Signup

### Status
Ready

### Description
New
"""


def synced_login_card(**overrides):
    fields = {
        "card_id": "c1",
        "name": "STORY-1 Login",
        "list_id": "list-doing",
        "desc": "Body",
        "story_id": "STORY-1",
        "todos": [("a", True)],
    }
    fields.update(overrides)
    return make_card(**fields)


def write_md(directory: Path, name: str, text: str) -> Path:
    path = directory / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text)
    return path


class TestLoadStories:
    """Tests for reading the input directory."""

    def test_files_in_path_order(self, md_dir, config):
        """Files are read sorted, recursively, with relative source paths."""
        write_md(md_dir, "b.md", SIGNUP_MD)
        write_md(md_dir, "a.md", LOGIN_MD)
        write_md(md_dir, "sub/c.md", "## Story: STORY-3 Nested\n")
        write_md(md_dir, "notes.txt", "## Story: ignored\n")

        stories, count = load_stories(md_dir, config)

        assert count == 3
        assert [s.story_id for s in stories] == ["STORY-1", "STORY-2", "STORY-3"]
        assert stories[2].source.file == "sub/c.md"

    def test_missing_directory(self, tmp_path, config):
        """A missing input directory yields no stories."""
        assert load_stories(tmp_path / "nope", config) == ([], 0)

    def test_config_flags_applied(self, md_dir):
        """Strict and required-id options reach the parser."""
        write_md(md_dir, "a.md", "## Story: No id\n")
        with pytest.raises(MarkdownParseError):
            load_stories(md_dir, SyncConfig(require_story_id=True))


class TestWriteStoryFiles:
    """Tests for local snapshots."""

    def test_writes_rendered_files(self, tmp_path):
        """Each story gets its own rendered file."""
        stories = [Story(story_id="STORY-1", title="A"), Story(title="A")]
        written = write_story_files(stories, tmp_path / "out")
        assert [Path(p).name for p in written] == ["STORY-1-a.md", "a.md"]
        assert Path(written[0]).read_text() == render_story(stories[0])

    def test_name_collisions(self, tmp_path):
        """Colliding names get a numeric suffix."""
        stories = [Story(title="Same"), Story(title="same")]
        written = write_story_files(stories, tmp_path)
        assert [Path(p).name for p in written] == ["same.md", "same-1.md"]


class TestResolveStoryIdField:
    """Tests for custom field resolution."""

    @pytest.mark.asyncio
    async def test_by_name(self, provider):
        """Field names resolve case-insensitively."""
        assert await resolve_story_id_field(provider, " story id ") == STORY_ID_FIELD

    @pytest.mark.asyncio
    async def test_raw_id(self, provider):
        """A 24-hex value is used as an id without a lookup."""
        field_id = "5f0c1a2b3c4d5e6f7a8b9c0d"
        assert await resolve_story_id_field(provider, field_id) == field_id
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_unknown_or_disabled(self, provider):
        """Unknown names and blanks resolve to None."""
        assert await resolve_story_id_field(provider, "Ticket") is None
        assert await resolve_story_id_field(provider, "") is None


class TestPush:
    """Tests for the markdown -> board engine."""

    @pytest.mark.asyncio
    async def test_unchanged_board_makes_no_writes(self, md_dir, config):
        """A board that already matches gets zero mutations."""
        write_md(md_dir, "login.md", LOGIN_MD)
        provider = FakeBoardProvider(cards=[synced_login_card()])

        result = await MarkdownToBoardEngine(provider, config).run(md_dir)

        assert provider.mutation_calls == []
        assert (result.created, result.updated, result.skipped) == (0, 0, 1)
        assert result.processed_files == 1
        assert result.story_count == 1

    @pytest.mark.asyncio
    async def test_new_story_created(self, md_dir, provider, config):
        """A new story is created and its id stored in the field."""
        write_md(md_dir, "signup.md", SIGNUP_MD)

        result = await MarkdownToBoardEngine(provider, config).run(md_dir)

        assert provider.mutation_calls == [
            ("create_item", ("STORY-2 Signup", "New", "Ready")),
            ("set_story_id", ("new-1", STORY_ID_FIELD, "STORY-2")),
        ]
        assert result.created == 1
        assert not result.has_errors

    @pytest.mark.asyncio
    async def test_status_change_only_moves(self, md_dir, config):
        """A status change moves the card without updating it."""
        write_md(md_dir, "login.md", LOGIN_MD)
        provider = FakeBoardProvider(cards=[synced_login_card(list_id="list-backlog")])

        result = await MarkdownToBoardEngine(provider, config).run(md_dir)

        assert provider.mutation_calls == [("move_item_to_status", ("c1", "Doing"))]
        assert result.updated == 1

    @pytest.mark.asyncio
    async def test_second_run_is_idempotent(self, md_dir, provider, config):
        """After a push, pushing again changes nothing."""
        write_md(md_dir, "login.md", LOGIN_MD)
        write_md(md_dir, "signup.md", SIGNUP_MD)
        engine = MarkdownToBoardEngine(provider, config)
        first = await engine.run(md_dir)
        assert first.created == 2

        provider.calls.clear()
        second = await engine.run(md_dir)
        assert provider.mutation_calls == []
        assert second.skipped == 2

    @pytest.mark.asyncio
    async def test_strict_status_fails_before_any_call(self, md_dir, provider):
        """Unmapped statuses under strict mode abort with nothing sent."""
        write_md(md_dir, "a.md", "## Story: STORY-1 A\n\n### Status\nBlocked\n")
        engine = MarkdownToBoardEngine(provider, SyncConfig(strict_status=True))

        with pytest.raises(MarkdownParseError, match="Blocked"):
            await engine.run(md_dir)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_remote_duplicate_ids_abort(self, md_dir, config):
        """Two cards claiming one id abort before any mutation."""
        write_md(md_dir, "login.md", LOGIN_MD)
        provider = FakeBoardProvider(
            cards=[synced_login_card(), make_card("c2", "STORY-1 Copy")]
        )
        with pytest.raises(DuplicateStoryIdError):
            await MarkdownToBoardEngine(provider, config).run(md_dir)
        assert provider.mutation_calls == []

    @pytest.mark.asyncio
    async def test_local_duplicate_ids_abort(self, md_dir, provider, config):
        """Two local stories with one id abort before reading cards."""
        write_md(md_dir, "a.md", LOGIN_MD)
        write_md(md_dir, "b.md", LOGIN_MD)
        with pytest.raises(DuplicateStoryIdError):
            await MarkdownToBoardEngine(provider, config).run(md_dir)
        assert provider.calls_to("list_items") == []

    @pytest.mark.asyncio
    async def test_failures_reported(self, md_dir, provider, config):
        """Per-story failures land on the result, not as exceptions."""
        write_md(md_dir, "signup.md", SIGNUP_MD)
        provider.failures["create_item"] = RuntimeError("API down")

        result = await MarkdownToBoardEngine(provider, config).run(md_dir)

        assert result.failed == 1
        assert result.has_errors
        assert result.errors[0].message == "API down"

    @pytest.mark.asyncio
    async def test_dry_run(self, md_dir, provider):
        """Dry runs report the plan and ensure labels without creating them."""
        write_md(
            md_dir,
            "a.md",
            "## Ready\n- Story: STORY-3 Labels\n  labels: ui, Auth\n  priority: high\n",
        )
        config = SyncConfig(
            dry_run=True,
            ensure_labels=True,
            required_labels="blocked",
            priority_label_map="high:P1",
        )

        result = await MarkdownToBoardEngine(provider, config).run(md_dir)

        assert provider.mutation_calls == []
        assert provider.calls_to("ensure_labels") == [(["Auth", "blocked", "P1", "ui"], False)]
        assert result.dry_run
        assert result.created == 1
        summary = result.dry_run_summary
        assert summary.created == ["STORY-3"]
        assert summary.stats.stories_with_missing_labels == 1
        assert summary.stats.priorities_with_mappings == 1
        assert summary.stats.priorities_missing_labels == 1
        assert result.to_dict()["dryRunSummary"]["created"] == ["STORY-3"]

    @pytest.mark.asyncio
    async def test_ensure_labels_creates_then_applies(self, md_dir, provider):
        """Live runs create missing labels and put them on the card."""
        write_md(md_dir, "a.md", "## Ready\n- Story: STORY-4 Tagged\n  labels: ui\n")
        config = SyncConfig(ensure_labels=True)

        await MarkdownToBoardEngine(provider, config).run(md_dir)

        assert provider.calls_to("ensure_labels") == [(["ui"], True)]
        assert provider.calls_to("set_card_labels") == [("new-1", ["label-ui"])]

    @pytest.mark.asyncio
    async def test_member_alias(self, md_dir):
        """Assignee aliases map to board members."""
        write_md(md_dir, "a.md", "## Ready\n- Story: STORY-5 Owned\n  assignees: al\n")
        provider = FakeBoardProvider(members=[Member(id="m1", username="alice")])
        config = SyncConfig(member_alias_map={"al": "alice"})

        await MarkdownToBoardEngine(provider, config).run(md_dir)

        assert provider.calls_to("set_card_members") == [("new-1", ["m1"])]

    @pytest.mark.asyncio
    async def test_write_local(self, md_dir, tmp_path, provider):
        """write_local renders parsed stories to the output directory."""
        write_md(md_dir, "login.md", LOGIN_MD)
        out = tmp_path / "items"
        config = SyncConfig(write_local=True, dry_run=True)

        result = await MarkdownToBoardEngine(provider, config).run(md_dir, out)

        assert result.written_files == [str(out / "STORY-1-login.md")]
        assert (out / "STORY-1-login.md").read_text() == LOGIN_MD

    def test_label_definitions(self, provider):
        """Label candidates are merged, deduplicated and sorted."""
        config = SyncConfig(required_labels=["Blocked"], priority_label_map={"low": "p3"})
        engine = MarkdownToBoardEngine(provider, config)
        stories = [Story(labels=["ui", "blocked"]), Story(labels=["UI", " "])]
        definitions = engine.label_definitions(stories)
        assert [d.name for d in definitions] == ["Blocked", "p3", "ui"]
        assert {d.color for d in definitions} == {"sky"}


class TestCardToStory:
    """Tests for mapping cards back to stories."""

    def test_full_card(self):
        """Field id, title, body, todos and labels are mapped."""
        card = make_card(
            "c1",
            "STORY-1 Login",
            desc="\nBody\n",
            story_id="STORY-1",
            todos=[("b", False), ("  ", True), ("a", True)],
        ).model_copy(update={"labels": [Label(id="l1", name="auth")]})

        story = card_to_story(card, "Doing", "Todos", STORY_ID_FIELD)

        assert story.story_id == "STORY-1"
        assert story.title == "Login"
        assert story.status == "Doing"
        assert story.body == "Body"
        assert story.todos == [Todo(text="b"), Todo(text="a", done=True)]
        assert story.labels == ["auth"]
        assert story.meta["card_id"] == "c1"

    def test_field_id_strips_title_prefix(self):
        """A custom-scheme id repeated in the name is removed from the title."""
        card = make_card("c1", "ABC-1 Custom", story_id="ABC-1")
        story = card_to_story(card, "Ready", "Todos", STORY_ID_FIELD)
        assert (story.story_id, story.title) == ("ABC-1", "Custom")

    def test_first_custom_field_fallback(self):
        """Without a configured field any custom field value is used."""
        card = make_card("c1", "Title").model_copy(
            update={
                "custom_field_items": [
                    CustomFieldItem(id_custom_field="other", value={"text": "X-9"})
                ]
            }
        )
        assert card_to_story(card, "Ready", "Todos").story_id == "X-9"

    def test_name_fallback(self):
        """Ids in the card name are used last."""
        story = card_to_story(make_card("c1", "ID: STORY-8 Legacy"), "Done", "Todos")
        assert (story.story_id, story.title) == ("STORY-8", "Legacy")

    def test_roundtrip_mismatches(self):
        """Faithful renders report nothing; lossy ones name the field."""
        story = Story(story_id="STORY-1", title="T", status="Doing", body="b")
        faithful = story.model_copy(update={"status": "In progress"})
        assert roundtrip_mismatches(story, [faithful]) == []
        assert roundtrip_mismatches(story, []) == ["expected 1 story, parsed 0"]
        lossy = story.model_copy(update={"status": "In progress", "body": ""})
        assert roundtrip_mismatches(story, [lossy]) == ["body"]


class TestPull:
    """Tests for the board -> markdown engine."""

    @pytest.fixture
    def board(self) -> FakeBoardProvider:
        return FakeBoardProvider(
            cards=[
                make_card("card-b", "STORY-2 Beta", list_id="list-doing"),
                make_card("card-a", "STORY-1 Alpha", list_id="list-done", story_id="STORY-1"),
                make_card("card-x", "Untracked", list_id="list-backlog").model_copy(
                    update={"labels": [Label(id="l1", name="Chore")]}
                ),
            ]
        )

    @pytest.mark.asyncio
    async def test_writes_sorted_files(self, board, config, tmp_path):
        """Files are written in (story id, title, card id) order."""
        result = await BoardToMarkdownEngine(board, config).run(tmp_path)

        assert [Path(f.file).name for f in result.files] == [
            "untracked.md",
            "STORY-1-alpha.md",
            "STORY-2-beta.md",
        ]
        assert result.total_cards == 3
        assert result.filtered_cards == 3
        assert not result.has_errors
        text = (tmp_path / "STORY-1-alpha.md").read_text()
        assert text.startswith("## Story: STORY-1 Alpha\n")
        assert "### Status\nDone\n" in text
        assert board.mutation_calls == []

    @pytest.mark.asyncio
    async def test_list_filter(self, board, config, tmp_path):
        """Only cards in the named lists are pulled."""
        result = await BoardToMarkdownEngine(board, config).run(tmp_path, lists="doing, DONE")
        assert sorted(f.story_id for f in result.files) == ["STORY-1", "STORY-2"]
        assert result.filtered_cards == 2

    @pytest.mark.asyncio
    async def test_label_filter(self, board, config, tmp_path):
        """A card needs one of the labels."""
        result = await BoardToMarkdownEngine(board, config).run(tmp_path, labels="chore,other")
        assert [f.title for f in result.files] == ["Untracked"]

    @pytest.mark.asyncio
    async def test_story_id_filter(self, board, config, tmp_path):
        """Story id filters are case-insensitive."""
        result = await BoardToMarkdownEngine(board, config).run(tmp_path, story_ids="story-2")
        assert [(f.story_id, f.status) for f in result.files] == [("STORY-2", "Doing")]

    @pytest.mark.asyncio
    async def test_name_collisions(self, config, tmp_path):
        """Cards that render to one name get a card id suffix."""
        provider = FakeBoardProvider(
            cards=[make_card("card-bbbb2222", "Same"), make_card("card-aaaa1111", "Same")]
        )
        result = await BoardToMarkdownEngine(provider, config).run(tmp_path)
        assert [Path(f.file).name for f in result.files] == ["same.md", "same-card-bbb.md"]
        assert [f.card_id for f in result.files] == ["card-aaaa1111", "card-bbbb2222"]

    @pytest.mark.asyncio
    async def test_roundtrip_error_recorded(self, config, tmp_path):
        """Descriptions the parser cannot read back are reported."""
        provider = FakeBoardProvider(
            cards=[make_card("c1", "STORY-1 Tricky", desc="Before\n### Status\nAfter")]
        )
        result = await BoardToMarkdownEngine(provider, config).run(tmp_path)
        assert result.errors == ["STORY-1-tricky.md: round-trip mismatch in status, body"]
        assert (tmp_path / "STORY-1-tricky.md").exists()

    @pytest.mark.asyncio
    async def test_description_headings_survive_pull_then_push(self, config, tmp_path):
        """Pushing freshly pulled files leaves descriptions with headings alone."""
        desc = "Intro\n### Steps\n1. open app\n## Notes\nsee: docs"
        provider = FakeBoardProvider(
            cards=[make_card("c1", "STORY-1 Login", desc=desc, story_id="STORY-1")]
        )

        pulled = await BoardToMarkdownEngine(provider, config).run(tmp_path / "items")
        assert not pulled.has_errors

        provider.calls.clear()
        result = await MarkdownToBoardEngine(provider, config).run(tmp_path / "items")

        assert provider.mutation_calls == []
        assert (result.skipped, result.failed) == (1, 0)
        assert provider.cards["c1"].desc == desc

    @pytest.mark.asyncio
    async def test_pushed_files_pull_back(self, md_dir, provider, config, tmp_path):
        """Pull after push reproduces the story content."""
        write_md(md_dir, "login.md", LOGIN_MD)
        await MarkdownToBoardEngine(provider, config).run(md_dir)

        result = await BoardToMarkdownEngine(provider, config).run(tmp_path / "out")

        story = parse_markdown(Path(result.files[0].file).read_text())[0]
        assert (story.story_id, story.title, story.body) == ("STORY-1", "Login", "Body")
        assert story.todos == [Todo(text="a", done=True)]
