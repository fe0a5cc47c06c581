"""
Tests for the sync orchestrator.

Tests cover:
- End-to-end scenarios (new block, in sync, local edit, upstream change, conflict)
- Idempotence of repeated syncs
- Check mode never writing
- Insertion order and preservation of surrounding text
- Orphan removal and foreign blocks
- Per-file failure isolation and snapshot crash consistency
- Building a service from configuration
- Stop requests and interrupted runs
- Skill directory sync
"""

import json
import shutil
from pathlib import Path
from typing import Callable

import frontmatter
import pytest

from agentsync.core.config import load_config
from agentsync.core.skills import load_skills
from agentsync.core.sync import (
    CanonicalRule,
    SyncMode,
    SyncService,
    Verdict,
)
from agentsync.core.sync.hashing import content_hash
from agentsync.core.sync.markers import CommentStyle, parse_blocks
from agentsync.core.targets import TargetSpec

CLAUDE = TargetSpec(name="claude", path="CLAUDE.md")
CODEX = TargetSpec(name="codex", path="AGENTS.md")
CURSOR = TargetSpec(name="cursor", path=".cursorrules", comment_style=CommentStyle.HASH)

ServiceFactory = Callable[..., SyncService]


def rule(rule_id: str, body: str, **kwargs) -> CanonicalRule:
    return CanonicalRule(id=rule_id, prefix="agentsync", body=body, **kwargs)


def block_text(rule_id: str, body: str, prefix: str = "agentsync") -> str:
    return (
        f"<!-- agentsync:start id={rule_id} prefix={prefix} hash={content_hash(body)} -->\n"
        f"{body}\n"
        f"<!-- agentsync:end id={rule_id} prefix={prefix} -->\n"
    )


def verdicts(result) -> list[Verdict]:
    return [b.verdict for f in result.files for b in f.blocks]


def edit_body(path: Path, old: str, new: str) -> None:
    """Hand-edit a managed body without touching its marker hash."""
    text = path.read_text()
    assert old in text
    path.write_text(text.replace(old, new))


# ==============================================================================
# Scenarios
# ==============================================================================


class TestScenarios:
    """End-to-end reconciliation scenarios."""

    def test_new_block_into_empty_target(
        self, project_dir: Path, make_service: ServiceFactory
    ) -> None:
        """Scenario A: no snapshot, no target file."""
        service = make_service([rule("style", "use tabs")])

        check = service.check()
        assert verdicts(check) == [Verdict.NEW_BLOCK]
        assert not check.success
        assert not (project_dir / "CLAUDE.md").exists()

        result = service.sync()
        assert result.success
        assert result.files[0].written
        assert (project_dir / "CLAUDE.md").read_text() == block_text("style", "use tabs")

    def test_in_sync_after_sync(self, make_service: ServiceFactory) -> None:
        """Scenario B: snapshot matches canonical and body."""
        service = make_service([rule("style", "use tabs")])
        service.sync()

        check = service.check()
        assert verdicts(check) == [Verdict.IN_SYNC]
        assert check.drift_count == 0
        assert check.success

    def test_local_edit_kept(
        self, project_dir: Path, state_path: Path, make_service: ServiceFactory
    ) -> None:
        """Scenario C: body hand-edited, canonical unchanged."""
        service = make_service([rule("style", "use tabs")])
        service.sync()
        target = project_dir / "CLAUDE.md"
        edit_body(target, "use tabs\n", "use spaces\n")
        edited = target.read_text()
        state_before = state_path.read_text()

        check = service.check()
        assert verdicts(check) == [Verdict.LOCALLY_EDITED]
        assert not check.success

        result = service.sync()
        block = result.files[0].blocks[0]
        assert block.verdict == Verdict.LOCALLY_EDITED
        assert not block.applied
        assert block.warnings
        assert result.success
        assert target.read_text() == edited
        assert state_path.read_text() == state_before

    def test_upstream_change_applied(
        self, project_dir: Path, state_path: Path, make_service: ServiceFactory
    ) -> None:
        """Scenario D: canonical changed, target untouched."""
        make_service([rule("style", "use tabs")]).sync()

        service = make_service([rule("style", "use tabs, width 4")])
        assert verdicts(service.check()) == [Verdict.SOURCE_UPDATED]

        result = service.sync()
        assert result.files[0].blocks[0].applied
        assert (project_dir / "CLAUDE.md").read_text() == block_text("style", "use tabs, width 4")

        state = json.loads(state_path.read_text())
        entry = state["targets"]["CLAUDE.md"][0]
        assert entry["last_canonical_hash"] == content_hash("use tabs, width 4")
        assert entry["last_body_hash"] == content_hash("use tabs, width 4")

    def test_conflict_requires_force(
        self, project_dir: Path, state_path: Path, make_service: ServiceFactory
    ) -> None:
        """Scenario E: both sides changed since the last snapshot."""
        make_service([rule("style", "use tabs")]).sync()
        target = project_dir / "CLAUDE.md"
        edit_body(target, "use tabs\n", "use spaces\n")
        edited = target.read_text()

        service = make_service([rule("style", "use tabs, width 4")])
        result = service.sync()

        block = result.files[0].blocks[0]
        assert block.verdict == Verdict.CONFLICT
        assert block.blocked
        assert not block.applied
        assert block.canonical_hash == content_hash("use tabs, width 4")
        assert block.body_hash == content_hash("use spaces")
        assert result.conflict_count == 1
        assert not result.success
        assert target.read_text() == edited

        forced = service.sync(force=True)
        block = forced.files[0].blocks[0]
        assert block.forced
        assert block.applied
        assert forced.success
        assert target.read_text() == block_text("style", "use tabs, width 4")

        entry = json.loads(state_path.read_text())["targets"]["CLAUDE.md"][0]
        assert entry["last_canonical_hash"] == content_hash("use tabs, width 4")


# ==============================================================================
# Idempotence and check mode
# ==============================================================================


class TestIdempotence:
    """Repeated runs with no external change."""

    def test_second_sync_writes_nothing(
        self, project_dir: Path, state_path: Path, make_service: ServiceFactory
    ) -> None:
        service = make_service(
            [rule("style", "use tabs"), rule("docs", "write docstrings")],
            targets=[CLAUDE, CODEX, CURSOR],
        )
        first = service.sync()
        assert all(f.written for f in first.files)

        state_mtime = state_path.stat().st_mtime_ns
        names = ("CLAUDE.md", "AGENTS.md", ".cursorrules")
        contents = {name: (project_dir / name).read_text() for name in names}

        second = service.sync()
        assert not any(f.written for f in second.files)
        assert set(verdicts(second)) == {Verdict.IN_SYNC}
        assert state_path.stat().st_mtime_ns == state_mtime
        for name, text in contents.items():
            assert (project_dir / name).read_text() == text

    def test_check_never_writes(self, project_dir: Path, make_service: ServiceFactory) -> None:
        (project_dir / "CLAUDE.md").write_text("# Notes\n")
        service = make_service([rule("style", "use tabs")])

        result = service.check()

        assert result.mode == SyncMode.CHECK
        assert not result.files[0].written
        assert (project_dir / "CLAUDE.md").read_text() == "# Notes\n"
        assert not (project_dir / ".agentsync").exists()
        assert "+use tabs" in result.files[0].blocks[0].diff


# ==============================================================================
# Rendering
# ==============================================================================


class TestRendering:
    """Placement of blocks and preservation of surrounding text."""

    def test_appends_after_existing_text(
        self, project_dir: Path, make_service: ServiceFactory
    ) -> None:
        (project_dir / "CLAUDE.md").write_text("# Project\n\nHand-written notes.\n")
        make_service([rule("style", "use tabs")]).sync()

        assert (project_dir / "CLAUDE.md").read_text() == (
            "# Project\n\nHand-written notes.\n\n" + block_text("style", "use tabs")
        )

    def test_appends_to_text_without_trailing_newline(
        self, project_dir: Path, make_service: ServiceFactory
    ) -> None:
        (project_dir / "CLAUDE.md").write_text("# Project")
        make_service([rule("style", "use tabs")]).sync()

        assert (project_dir / "CLAUDE.md").read_text() == (
            "# Project\n\n" + block_text("style", "use tabs")
        )

    def test_new_blocks_in_declared_order(
        self, project_dir: Path, make_service: ServiceFactory
    ) -> None:
        make_service([rule("a", "first"), rule("b", "second"), rule("c", "third")]).sync()

        text = (project_dir / "CLAUDE.md").read_text()
        assert text == "\n".join(
            [block_text("a", "first"), block_text("b", "second"), block_text("c", "third")]
        )

    def test_insert_between_existing_blocks(
        self, project_dir: Path, make_service: ServiceFactory
    ) -> None:
        make_service([rule("a", "first"), rule("c", "third")]).sync()
        make_service([rule("a", "first"), rule("b", "second"), rule("c", "third")]).sync()

        ids = [b.id for b in parse_blocks((project_dir / "CLAUDE.md").read_text())]
        assert ids == ["a", "b", "c"]

    def test_insert_before_first_existing_block(
        self, project_dir: Path, make_service: ServiceFactory
    ) -> None:
        (project_dir / "CLAUDE.md").write_text("# Title\n\n" + block_text("b", "second"))
        make_service([rule("a", "first"), rule("b", "second")]).sync()

        text = (project_dir / "CLAUDE.md").read_text()
        assert text.startswith("# Title\n\n" + block_text("a", "first") + "\n")
        assert [b.id for b in parse_blocks(text)] == ["a", "b"]

    def test_surrounding_text_untouched(
        self, project_dir: Path, make_service: ServiceFactory
    ) -> None:
        before = "# Title  \n\nTrailing spaces   \n\n"
        after = "\n## Footer\n\tindented\n"
        (project_dir / "CLAUDE.md").write_text(before + block_text("style", "old") + after)

        make_service([rule("style", "new")]).sync()

        assert (project_dir / "CLAUDE.md").read_text() == (
            before + block_text("style", "new") + after
        )

    def test_crlf_file_keeps_crlf(self, project_dir: Path, make_service: ServiceFactory) -> None:
        target = project_dir / "CLAUDE.md"
        target.write_bytes(b"# Title\r\n\r\nNotes\r\n")

        make_service([rule("style", "line one\nline two")]).sync()

        data = target.read_bytes()
        assert data.startswith(b"# Title\r\n\r\nNotes\r\n\r\n")
        assert b"\n" not in data.replace(b"\r\n", b"")
        assert b"line one\r\nline two\r\n" in data

    def test_hash_comment_target(self, project_dir: Path, make_service: ServiceFactory) -> None:
        make_service([rule("style", "use tabs")], targets=[CURSOR]).sync()

        text = (project_dir / ".cursorrules").read_text()
        assert text.startswith("# agentsync:start id=style prefix=agentsync hash=")
        assert parse_blocks(text, CommentStyle.HASH)[0].body == "use tabs\n"

    def test_nested_target_directory_created(
        self, project_dir: Path, make_service: ServiceFactory
    ) -> None:
        copilot = TargetSpec(name="copilot", path=".github/copilot-instructions.md")
        make_service([rule("style", "use tabs")], targets=[copilot]).sync()
        assert (project_dir / ".github" / "copilot-instructions.md").exists()

    def test_rule_target_filter(self, project_dir: Path, make_service: ServiceFactory) -> None:
        make_service(
            [rule("style", "use tabs"), rule("codex-only", "codex", targets=["codex"])],
            targets=[CLAUDE, CODEX],
        ).sync()

        claude_ids = [b.id for b in parse_blocks((project_dir / "CLAUDE.md").read_text())]
        codex_ids = [b.id for b in parse_blocks((project_dir / "AGENTS.md").read_text())]
        assert claude_ids == ["style"]
        assert codex_ids == ["style", "codex-only"]


# ==============================================================================
# Orphans and foreign blocks
# ==============================================================================


class TestOrphans:
    """Blocks whose canonical rule disappeared."""

    def test_orphan_removed(
        self, project_dir: Path, state_path: Path, make_service: ServiceFactory
    ) -> None:
        (project_dir / "CLAUDE.md").write_text("# Title\n\n")
        make_service([rule("style", "use tabs"), rule("old", "remove me")]).sync()

        service = make_service([rule("style", "use tabs")])
        check = service.check()
        assert verdicts(check) == [Verdict.IN_SYNC, Verdict.ORPHANED_BLOCK]

        service.sync()
        assert (project_dir / "CLAUDE.md").read_text() == "# Title\n\n" + block_text(
            "style", "use tabs"
        )
        ids = [e["id"] for e in json.loads(state_path.read_text())["targets"]["CLAUDE.md"]]
        assert ids == ["style"]

    def test_edited_orphan_needs_force(
        self, project_dir: Path, make_service: ServiceFactory
    ) -> None:
        make_service([rule("old", "remove me")]).sync()
        target = project_dir / "CLAUDE.md"
        edit_body(target, "remove me\n", "but I edited this\n")

        service = make_service([])
        result = service.sync()
        assert verdicts(result) == [Verdict.CONFLICT]
        assert "but I edited this" in target.read_text()

        service.sync(force=True)
        assert target.read_text() == ""

    def test_foreign_blocks_preserved(
        self, project_dir: Path, make_service: ServiceFactory
    ) -> None:
        foreign = block_text("style", "someone else's rule", prefix="other-source")
        (project_dir / "CLAUDE.md").write_text(foreign)

        result = make_service([rule("style", "use tabs")]).sync()

        text = (project_dir / "CLAUDE.md").read_text()
        assert text.startswith(foreign)
        assert [(b.id, b.prefix) for b in parse_blocks(text)] == [
            ("style", "other-source"),
            ("style", "agentsync"),
        ]
        assert verdicts(result) == [Verdict.NEW_BLOCK]


# ==============================================================================
# Failure isolation
# ==============================================================================


class TestFailureIsolation:
    """One target's failure never stops its siblings."""

    def test_parse_error_isolated(self, project_dir: Path, make_service: ServiceFactory) -> None:
        broken = "<!-- agentsync:end id=style prefix=agentsync -->\n"
        (project_dir / "CLAUDE.md").write_text(broken)

        result = make_service([rule("style", "use tabs")], targets=[CLAUDE, CODEX]).sync()

        claude, codex = result.files
        assert claude.failed
        assert claude.error_kind == "ParseError"
        assert "CLAUDE.md:1" in claude.error
        assert (project_dir / "CLAUDE.md").read_text() == broken

        assert not codex.failed
        assert codex.written
        assert not result.success
        assert result.failed_files == [claude]

    def test_parse_error_fails_check(self, project_dir: Path, make_service: ServiceFactory) -> None:
        (project_dir / "CLAUDE.md").write_text(
            f"<!-- agentsync:start id=x prefix=agentsync hash={content_hash('x')} -->\nx\n"
        )
        result = make_service([]).check()
        assert result.files[0].error_kind == "ParseError"
        assert not result.success

    def test_write_failure_isolated(
        self,
        project_dir: Path,
        state_path: Path,
        make_service: ServiceFactory,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """A failed write leaves both the target and its snapshot untouched."""
        import agentsync.core.sync.service as service_module

        real_write = service_module.write_atomic

        def flaky_write(path: Path, text: str) -> None:
            if path.name == "CLAUDE.md":
                raise OSError("read-only file system")
            real_write(path, text)

        monkeypatch.setattr(service_module, "write_atomic", flaky_write)

        result = make_service([rule("style", "use tabs")], targets=[CLAUDE, CODEX]).sync()

        claude, codex = result.files
        assert claude.error_kind == "TargetIOError"
        assert "read-only file system" in claude.error
        assert not claude.blocks[0].applied
        assert not (project_dir / "CLAUDE.md").exists()
        assert codex.written

        state = json.loads(state_path.read_text())
        assert "CLAUDE.md" not in state["targets"]
        assert "AGENTS.md" in state["targets"]

    def test_rule_with_marker_line_refused(
        self, project_dir: Path, make_service: ServiceFactory
    ) -> None:
        """A body that reads as a marker never reaches a target that would misparse it."""
        body = "Example:\n<!-- agentsync:end id=style prefix=agentsync -->\nmore"
        service = make_service([rule("style", body)], targets=[CLAUDE, CURSOR])

        result = service.sync()

        claude, cursor = result.files
        assert claude.error_kind == "ParseError"
        assert "CLAUDE.md" in claude.error
        assert "contains a marker line" in claude.error
        assert not (project_dir / "CLAUDE.md").exists()

        # HTML marker text is plain content in a hash-comment target
        assert not cursor.failed
        assert parse_blocks((project_dir / ".cursorrules").read_text(), CommentStyle.HASH)

        again = service.sync()
        assert again.files[0].error_kind == "ParseError"
        assert not again.files[1].failed
        assert [b.verdict for b in again.files[1].blocks] == [Verdict.IN_SYNC]

    def test_rule_with_marker_line_leaves_target_untouched(
        self, project_dir: Path, state_path: Path, make_service: ServiceFactory
    ) -> None:
        make_service([rule("style", "use tabs")]).sync()
        before = (project_dir / "CLAUDE.md").read_text()
        state_before = state_path.read_text()

        broken = "use tabs\n<!-- agentsync:start id=x prefix=agentsync hash=sha256:000000000000 -->"
        result = make_service([rule("style", broken)]).sync()

        assert result.files[0].error_kind == "ParseError"
        assert not result.success
        assert (project_dir / "CLAUDE.md").read_text() == before
        assert state_path.read_text() == state_before
        assert make_service([rule("style", "use tabs")]).check().success

    def test_stop_request_skips_unstarted_files(self, make_service: ServiceFactory) -> None:
        service = make_service([rule("style", "use tabs")], targets=[CLAUDE], workers=1)
        service.request_stop()

        outcome = service._process_target(CLAUDE, SyncMode.SYNC, False)
        assert outcome.skipped
        assert not outcome.written


# ==============================================================================
# Construction from config
# ==============================================================================


class TestFromConfig:
    """Build a service from layered configuration."""

    def test_from_config(self, project_dir: Path) -> None:
        service = SyncService.from_config(load_config(project_dir), project_dir)

        assert [t.name for t in service.targets] == ["claude", "codex"]
        assert [r.id for r in service.rules] == ["style"]
        assert service.store.path == project_dir / ".agentsync" / "state.json"

        result = service.sync()
        assert result.success
        assert "Use tabs for indentation." in (project_dir / "AGENTS.md").read_text()

    def test_target_names_override(self, project_dir: Path) -> None:
        service = SyncService.from_config(load_config(project_dir), project_dir, ["gemini"])
        assert [t.path for t in service.targets] == ["GEMINI.md"]

    def test_custom_target(self, project_dir: Path) -> None:
        config = json.loads((project_dir / ".agentsync.json").read_text())
        config["custom_targets"] = [
            {"name": "windsurf", "path": ".windsurfrules", "comment_style": "hash"}
        ]
        config["targets"] = ["windsurf"]
        (project_dir / ".agentsync.json").write_text(json.dumps(config))

        SyncService.from_config(load_config(project_dir), project_dir).sync()

        text = (project_dir / ".windsurfrules").read_text()
        assert text.startswith("# agentsync:start id=style")


# ==============================================================================
# Interrupts
# ==============================================================================


class TestInterrupts:
    """Stop requests and Ctrl+C during a run."""

    def test_stop_before_run_skips_everything(
        self, project_dir: Path, make_service: ServiceFactory
    ) -> None:
        service = make_service([rule("style", "use tabs")], targets=[CLAUDE, CODEX])
        service.request_stop()

        result = service.sync()

        assert [f.skipped for f in result.files] == [True, True]
        assert not (project_dir / "CLAUDE.md").exists()
        assert "2 skipped" in result.summary()

        # The pending stop is consumed by the run it applied to
        assert service.sync().success
        assert (project_dir / "CLAUDE.md").exists()

    def test_keyboard_interrupt_returns_partial_result(
        self,
        project_dir: Path,
        make_service: ServiceFactory,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        import agentsync.core.sync.service as service_module

        real_as_completed = service_module.as_completed

        def interrupted(futures):
            raise KeyboardInterrupt

        monkeypatch.setattr(service_module, "as_completed", interrupted)
        service = make_service([rule("style", "use tabs")], targets=[CLAUDE, CODEX], workers=1)

        result = service.sync()

        assert result.interrupted
        assert not result.success
        assert "interrupted" in result.summary()
        assert [f.tool for f in result.files] == ["claude", "codex"]
        for file in result.files:
            assert file.skipped or file.blocks
            assert file.skipped or file.written

        monkeypatch.setattr(service_module, "as_completed", real_as_completed)
        again = service.sync()
        assert not again.interrupted
        assert again.success


# ==============================================================================
# Skills
# ==============================================================================

CLAUDE_SKILLS = TargetSpec(name="claude", path="CLAUDE.md", skills_dir=".claude/skills")


def write_canonical_skill(
    skills_root: Path,
    name: str,
    body: str = "Review the diff line by line.",
    files: dict[str, str] | None = None,
) -> Path:
    skill_dir = skills_root / name
    skill_dir.mkdir(parents=True, exist_ok=True)
    (skill_dir / "SKILL.md").write_text(
        f"---\nname: {name}\ndescription: Reviews code\n---\n{body}\n"
    )
    for relpath, text in (files or {}).items():
        (skill_dir / relpath).parent.mkdir(parents=True, exist_ok=True)
        (skill_dir / relpath).write_text(text)
    return skill_dir


def managed_metadata(skill_dir: Path) -> dict:
    return frontmatter.load(skill_dir / "SKILL.md").metadata.get("metadata", {})


class TestSkills:
    """Canonical skill directories copied into targets."""

    @pytest.fixture
    def skills_root(self, project_dir: Path) -> Path:
        root = project_dir / "canon" / "skills"
        write_canonical_skill(root, "review", files={"scripts/run.sh": "echo review\n"})
        return root

    @pytest.fixture
    def skill_service(
        self, skills_root: Path, make_service: ServiceFactory
    ) -> Callable[[], SyncService]:
        def factory() -> SyncService:
            return make_service(
                [], targets=[CLAUDE_SKILLS], skills=load_skills(skills_root, "agentsync")
            )

        return factory

    def test_new_skill_copied_with_metadata(
        self, project_dir: Path, skill_service: Callable[[], SyncService]
    ) -> None:
        result = skill_service().sync()

        skills_outcome = result.files[-1]
        assert skills_outcome.path.parts[-2:] == (".claude", "skills")
        assert [b.verdict for b in skills_outcome.blocks] == [Verdict.NEW_BLOCK]
        assert skills_outcome.written

        copy = project_dir / ".claude" / "skills" / "review"
        assert (copy / "scripts" / "run.sh").read_text() == "echo review\n"
        metadata = managed_metadata(copy)
        assert metadata["agentsync_managed"] == "true"
        assert metadata["agentsync_content_hash"] == skill_service().skills[0].content_hash
        assert "Review the diff line by line." in (copy / "SKILL.md").read_text()

    def test_second_sync_writes_nothing(
        self, state_path: Path, skill_service: Callable[[], SyncService]
    ) -> None:
        skill_service().sync()
        state = state_path.read_text()

        result = skill_service().sync()

        assert verdicts(result) == [Verdict.IN_SYNC]
        assert not any(f.written for f in result.files)
        assert state_path.read_text() == state
        assert skill_service().check().success

    def test_check_never_writes(
        self, project_dir: Path, skill_service: Callable[[], SyncService]
    ) -> None:
        result = skill_service().check()

        assert verdicts(result) == [Verdict.NEW_BLOCK]
        assert not (project_dir / ".claude").exists()

    def test_local_edit_kept(
        self, project_dir: Path, skill_service: Callable[[], SyncService]
    ) -> None:
        skill_service().sync()
        skill_md = project_dir / ".claude" / "skills" / "review" / "SKILL.md"
        edit_body(skill_md, "line by line", "hunk by hunk")

        assert verdicts(skill_service().check()) == [Verdict.LOCALLY_EDITED]
        result = skill_service().sync()

        assert result.success
        assert "hunk by hunk" in skill_md.read_text()

    def test_upstream_change_applied(
        self,
        project_dir: Path,
        skills_root: Path,
        skill_service: Callable[[], SyncService],
    ) -> None:
        skill_service().sync()
        (skills_root / "review" / "scripts" / "run.sh").write_text("echo v2\n")

        result = skill_service().sync()

        assert verdicts(result) == [Verdict.SOURCE_UPDATED]
        copy = project_dir / ".claude" / "skills" / "review"
        assert (copy / "scripts" / "run.sh").read_text() == "echo v2\n"
        assert managed_metadata(copy)["agentsync_content_hash"] == (
            skill_service().skills[0].content_hash
        )
        assert not list(copy.parent.glob(".review.*"))

    def test_orphan_deleted(
        self,
        project_dir: Path,
        state_path: Path,
        skills_root: Path,
        skill_service: Callable[[], SyncService],
    ) -> None:
        skill_service().sync()
        shutil.rmtree(skills_root / "review")

        result = skill_service().sync()

        assert verdicts(result) == [Verdict.ORPHANED_BLOCK]
        assert not (project_dir / ".claude" / "skills" / "review").exists()
        state = json.loads(state_path.read_text())
        assert ".claude/skills" not in state["targets"]

    def test_edited_orphan_needs_force(
        self,
        project_dir: Path,
        skills_root: Path,
        skill_service: Callable[[], SyncService],
    ) -> None:
        skill_service().sync()
        copy = project_dir / ".claude" / "skills" / "review"
        (copy / "scripts" / "run.sh").write_text("echo mine\n")
        shutil.rmtree(skills_root / "review")

        result = skill_service().sync()
        assert verdicts(result) == [Verdict.CONFLICT]
        assert not result.success
        assert copy.exists()

        assert skill_service().sync(force=True).success
        assert not copy.exists()

    def test_unmanaged_skill_with_same_name_is_conflict(
        self, project_dir: Path, skill_service: Callable[[], SyncService]
    ) -> None:
        mine = write_canonical_skill(project_dir / ".claude" / "skills", "review", body="Mine.")

        result = skill_service().sync()
        assert verdicts(result) == [Verdict.CONFLICT]
        assert "Mine." in (mine / "SKILL.md").read_text()

        skill_service().sync(force=True)
        assert managed_metadata(mine)["agentsync_managed"] == "true"
        assert "Mine." not in (mine / "SKILL.md").read_text()

    def test_unmanaged_skills_untouched(
        self, project_dir: Path, skill_service: Callable[[], SyncService]
    ) -> None:
        other = write_canonical_skill(project_dir / ".claude" / "skills", "deploy")
        before = (other / "SKILL.md").read_text()

        result = skill_service().sync()

        assert [b.id for f in result.files for b in f.blocks] == ["review"]
        assert (other / "SKILL.md").read_text() == before

    def test_from_config_loads_skills(self, project_dir: Path, skills_root: Path) -> None:
        service = SyncService.from_config(load_config(project_dir), project_dir)

        assert [s.name for s in service.skills] == ["review"]
        service.sync()
        assert (project_dir / ".claude" / "skills" / "review" / "SKILL.md").exists()
        assert (project_dir / ".codex" / "skills" / "review" / "SKILL.md").exists()
